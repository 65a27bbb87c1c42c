"""
Schemas Pydantic para autenticação da equipe (Teacher).
"""

import re
from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from school_library.models.enums import TeacherRole
from school_library.schemas.base import BaseSchema, TimestampSchema


class TeacherCreate(BaseSchema):
    """
    Schema para cadastro de professor/bibliotecário.

    Validações:
        - username: 3-50 caracteres, letras, números, ponto, hífen e underscore
        - password: mínimo 8 chars, 1 maiúscula, 1 minúscula, 1 número
    """
    username: str = Field(..., min_length=3, max_length=50, examples=["m.keller"])
    password: str = Field(..., min_length=8, max_length=128, examples=["Senha123!"])
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str | None = Field(None, max_length=255)
    role: TeacherRole = TeacherRole.LIBRARIAN

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Za-z0-9._-]+", v):
            raise ValueError("Login deve conter apenas letras, números, ponto, hífen ou underscore")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Valida complexidade da senha."""
        if not re.search(r"[A-Z]", v):
            raise ValueError("Senha deve conter pelo menos uma letra maiúscula")
        if not re.search(r"[a-z]", v):
            raise ValueError("Senha deve conter pelo menos uma letra minúscula")
        if not re.search(r"\d", v):
            raise ValueError("Senha deve conter pelo menos um número")
        return v


class TeacherRead(TimestampSchema):
    """Schema para leitura de professor. Nunca expõe password_hash."""
    id: UUID
    username: str
    first_name: str
    last_name: str
    email: str | None
    role: TeacherRole
    is_active: bool
    last_login_at: datetime | None


class LoginRequest(BaseSchema):
    """Schema para login."""
    username: str
    password: str


class TokenResponse(BaseSchema):
    """Resposta de autenticação com token JWT."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class TeacherWithToken(BaseSchema):
    """Professor com token JWT (retorno do login)."""
    teacher: TeacherRead
    token: TokenResponse
