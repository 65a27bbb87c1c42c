"""
Service de autenticação da equipe (Teacher).
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.clock import Clock, utcnow
from school_library.core.config import get_settings
from school_library.core.exceptions import AuthenticationError, ConflictError
from school_library.core.security import create_access_token, hash_password, verify_password
from school_library.db.transaction import atomic
from school_library.models.enums import AuditAction
from school_library.models.teacher import Teacher
from school_library.repositories.teacher import TeacherRepository
from school_library.schemas.audit import AuditContext
from school_library.schemas.auth import TeacherCreate, TeacherRead, TeacherWithToken, TokenResponse
from school_library.services.audit import AuditService

logger = logging.getLogger(__name__)
settings = get_settings()


class AuthService:
    """Service para operações de autenticação."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.teacher_repo = TeacherRepository(db)
        self.audit = AuditService(db)

    async def create_teacher(self, data: TeacherCreate, ctx: AuditContext) -> Teacher:
        """
        Cadastra professor/bibliotecário.

        Args:
            data: Dados do novo professor
            ctx: Contexto de auditoria (admin que cadastra, ou sistema no seed)

        Returns:
            Professor criado

        Raises:
            ConflictError: Login já cadastrado
        """
        async with atomic(self.db):
            if await self.teacher_repo.username_exists(data.username):
                raise ConflictError("Login já cadastrado", {"username": data.username})

            teacher = await self.teacher_repo.create(
                username=data.username.lower(),
                password_hash=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                email=data.email,
                role=data.role,
                is_active=True,
            )
            await self.audit.record(
                ctx,
                AuditAction.CREATE,
                "Teacher",
                teacher.id,
                {"username": teacher.username, "role": teacher.role.value},
            )

        logger.info(f"Professor cadastrado: {teacher.username} ({teacher.role.value})")
        return teacher

    async def login(self, username: str, password: str, ctx: AuditContext | None = None) -> TeacherWithToken:
        """
        Autentica professor e retorna token JWT.

        Grava last_login_at e uma entrada LOGIN na auditoria.

        Args:
            username: Login
            password: Senha em texto plano
            ctx: Origem da requisição (IP, user agent)

        Returns:
            Professor com token JWT

        Raises:
            AuthenticationError: Credenciais inválidas ou conta inativa
        """
        teacher = await self.teacher_repo.get_by_username(username)

        if teacher is None or not verify_password(password, teacher.password_hash):
            logger.warning(f"Tentativa de login inválida para '{username}'")
            raise AuthenticationError("Login ou senha incorretos")

        if not teacher.is_active:
            raise AuthenticationError("Conta desativada")

        async with atomic(self.db):
            teacher = await self.teacher_repo.update(teacher, last_login_at=self.clock())
            await self.audit.record(
                AuditContext(
                    actor_id=teacher.id,
                    ip_address=ctx.ip_address if ctx else None,
                    user_agent=ctx.user_agent if ctx else None,
                ),
                AuditAction.LOGIN,
                "Teacher",
                teacher.id,
            )

        access_token = create_access_token(
            subject=str(teacher.id),
            extra_data={"role": teacher.role.value},
        )

        return TeacherWithToken(
            teacher=TeacherRead.model_validate(teacher),
            token=TokenResponse(
                access_token=access_token,
                token_type="bearer",
                expires_in=settings.JWT_EXPIRES_MINUTES * 60,
            ),
        )
