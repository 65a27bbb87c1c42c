"""
Service de auditoria.

Toda operação que grava chama ``AuditService.record`` dentro da mesma
transação: se o registro de auditoria falhar, a operação inteira é
desfeita junto.
"""

from typing import Any
from uuid import UUID

from pydantic_core import to_jsonable_python
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.models.audit import AuditLog
from school_library.models.enums import AuditAction
from school_library.repositories.audit import AuditLogRepository
from school_library.schemas.audit import AuditContext


class AuditService:
    """Service para gravação e leitura do log de auditoria."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit_repo = AuditLogRepository(db)

    async def record(
        self,
        ctx: AuditContext,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        """
        Adiciona uma entrada de auditoria na transação corrente.

        Não faz commit. Erros propagam para o chamador, que desfaz a
        transação inteira (ver ``db.transaction.atomic``).

        Args:
            ctx: Quem executou a ação e de onde
            action: Tipo da ação
            entity_type: Nome da entidade (ex.: "Loan")
            entity_id: ID da entidade afetada
            details: Dados extras; UUIDs, datas e enums viram texto

        Returns:
            AuditLog criado
        """
        return await self.audit_repo.create(
            teacher_id=ctx.actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=to_jsonable_python(details) if details else None,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )

    async def trail(self, entity_type: str, entity_id: UUID, limit: int = 100) -> list[AuditLog]:
        """Histórico de uma entidade, mais recente primeiro."""
        return await self.audit_repo.for_entity(entity_type, entity_id, limit)

    async def by_teacher(self, teacher_id: UUID, limit: int = 100) -> list[AuditLog]:
        return await self.audit_repo.by_teacher(teacher_id, limit)
