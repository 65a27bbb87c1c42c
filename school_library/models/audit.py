"""
Model do log de auditoria.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import JSON, Enum as SQLEnum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from school_library.db.session import Base
from school_library.models.base import TimestampMixin, UUIDMixin
from school_library.models.enums import AuditAction


class AuditLog(Base, UUIDMixin, TimestampMixin):
    """
    Registro imutável de uma ação executada no sistema.

    Só é inserido, nunca atualizado nem removido; por isso não tem
    soft delete.

    Attributes:
        teacher_id: Professor que executou a ação (None para ações do sistema)
        action: Tipo da ação (CREATE, LOAN_OPEN, ...)
        entity_type: Nome da entidade afetada (ex.: "Loan")
        entity_id: ID da entidade afetada
        details: Dados adicionais em JSON
        ip_address / user_agent: Origem da requisição
    """
    __tablename__ = "audit_logs"

    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("teachers.id", ondelete="RESTRICT"),
        nullable=True,
    )
    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(AuditAction, name="audit_action", native_enum=False, length=30),
        nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        Index("ix_audit_logs_teacher_id", "teacher_id"),
        Index("ix_audit_logs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action.value} {self.entity_type}>"
