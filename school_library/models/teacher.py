"""
Model de professor/bibliotecário (equipe que opera o sistema).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from school_library.db.session import Base
from school_library.models.base import SoftDeleteMixin, TimestampMixin, UUIDMixin
from school_library.models.enums import TeacherRole


class Teacher(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Membro da equipe com acesso ao sistema.

    Toda ação registrada na auditoria aponta para o professor que a executou.

    Attributes:
        username: Login único
        password_hash: Hash bcrypt da senha
        role: ADMIN ou LIBRARIAN
        is_active: Contas inativas não conseguem logar
        last_login_at: Último login bem sucedido
    """
    __tablename__ = "teachers"

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[TeacherRole] = mapped_column(
        SQLEnum(TeacherRole, name="teacher_role", native_enum=False, length=20),
        nullable=False,
        default=TeacherRole.LIBRARIAN,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<Teacher {self.username}>"
