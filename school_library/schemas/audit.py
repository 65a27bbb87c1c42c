"""
Schemas de auditoria: contexto do autor da ação e leitura do log.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from school_library.models.enums import AuditAction
from school_library.schemas.base import BaseSchema


class AuditContext(BaseModel):
    """
    Quem está executando a operação e de onde.

    Montado pela camada de API (core.deps.get_audit_context) e repassado
    a toda operação que grava. ``actor_id`` None indica ação do sistema
    (ex.: sweep agendado).
    """
    model_config = ConfigDict(frozen=True)

    actor_id: UUID | None = None
    ip_address: str | None = None
    user_agent: str | None = None


SYSTEM_CONTEXT = AuditContext()


class AuditLogRead(BaseSchema):
    """Schema para leitura do log de auditoria."""
    id: UUID
    teacher_id: UUID | None
    action: AuditAction
    entity_type: str
    entity_id: UUID | None
    details: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime
