"""
Repository do log de auditoria (somente inserção e leitura).
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.models.audit import AuditLog
from school_library.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository para AuditLog. Não expõe update."""

    def __init__(self, db: AsyncSession):
        super().__init__(AuditLog, db)

    async def update(self, instance, **kwargs):
        raise TypeError("AuditLog é imutável")

    async def for_entity(self, entity_type: str, entity_id: UUID, limit: int = 100) -> list[AuditLog]:
        """Histórico de uma entidade, mais recente primeiro."""
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def by_teacher(self, teacher_id: UUID, limit: int = 100) -> list[AuditLog]:
        """Ações executadas por um professor, mais recentes primeiro."""
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.teacher_id == teacher_id)
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
