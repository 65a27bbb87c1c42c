"""
Testes de segurança: hash de senha, JWT e AuthService.
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from school_library.core.exceptions import AuthenticationError, ConflictError
from school_library.core.security import (
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)
from school_library.models.audit import AuditLog
from school_library.models.enums import AuditAction, TeacherRole
from school_library.schemas.audit import SYSTEM_CONTEXT
from school_library.schemas.auth import TeacherCreate
from school_library.services.auth import AuthService


class TestPasswordHashing:
    """Testes para hash de senha."""

    def test_hash_password_returns_bcrypt_hash(self):
        """Hash deve ser diferente da senha original."""
        hashed = hash_password("MinhaSenh@123")

        assert hashed != "MinhaSenh@123"
        assert hashed.startswith("$2")

    def test_hash_password_uses_salt(self):
        """Mesma senha gera hashes diferentes."""
        assert hash_password("MinhaSenh@123") != hash_password("MinhaSenh@123")

    def test_verify_password(self):
        hashed = hash_password("MinhaSenh@123")

        assert verify_password("MinhaSenh@123", hashed) is True
        assert verify_password("SenhaErrada123", hashed) is False
        assert verify_password("", hashed) is False

    def test_verify_password_malformed_hash(self):
        """Hash corrompido no banco não derruba o login."""
        assert verify_password("MinhaSenh@123", "not-a-bcrypt-hash") is False


class TestJWT:
    """Testes para JWT."""

    def test_decode_token_valid(self):
        teacher_id = str(uuid.uuid4())
        token = create_access_token(subject=teacher_id, extra_data={"role": "LIBRARIAN"})
        payload = decode_token(token)

        assert payload is not None
        assert payload["sub"] == teacher_id
        assert payload["role"] == "LIBRARIAN"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_token_invalid(self):
        assert decode_token("invalid-token") is None

    def test_decode_token_expired(self):
        token = create_access_token(subject="t-1", expires_delta=timedelta(seconds=-1))

        assert decode_token(token) is None

    def test_decode_token_tampered(self):
        token = create_access_token(subject="t-1")
        tampered = token[:-5] + ("AAAAA" if not token.endswith("AAAAA") else "BBBBB")

        assert decode_token(tampered) is None


class TestAuthService:
    """Cadastro e login da equipe."""

    @pytest.mark.anyio
    async def test_create_teacher_normalizes_username(self, test_db, clock):
        service = AuthService(test_db, clock)
        teacher = await service.create_teacher(
            TeacherCreate(
                username="J.Weber",
                password="Senha123!",
                first_name="Jonas",
                last_name="Weber",
            ),
            SYSTEM_CONTEXT,
        )

        assert teacher.username == "j.weber"
        assert teacher.role == TeacherRole.LIBRARIAN
        assert teacher.password_hash != "Senha123!"

    @pytest.mark.anyio
    async def test_create_teacher_duplicate_username(self, test_db, clock, librarian):
        service = AuthService(test_db, clock)

        with pytest.raises(ConflictError):
            await service.create_teacher(
                TeacherCreate(
                    username="M.Keller",
                    password="Senha123!",
                    first_name="Outra",
                    last_name="Pessoa",
                ),
                SYSTEM_CONTEXT,
            )

    @pytest.mark.anyio
    async def test_login_success_records_audit(self, test_db, clock, librarian):
        service = AuthService(test_db, clock)
        result = await service.login("m.keller", "Senha123!")

        assert result.teacher.id == librarian.id
        assert result.teacher.last_login_at == clock.now
        assert decode_token(result.token.access_token)["sub"] == str(librarian.id)

        logs = (await test_db.execute(select(AuditLog))).scalars().all()
        assert [log.action for log in logs] == [AuditAction.LOGIN]
        assert logs[0].teacher_id == librarian.id

    @pytest.mark.anyio
    async def test_login_wrong_password(self, test_db, clock, librarian):
        with pytest.raises(AuthenticationError):
            await AuthService(test_db, clock).login("m.keller", "Errada123")

    @pytest.mark.anyio
    async def test_login_inactive_account(self, test_db, clock, librarian):
        librarian.is_active = False
        await test_db.commit()

        with pytest.raises(AuthenticationError):
            await AuthService(test_db, clock).login("m.keller", "Senha123!")
