"""
Remoção lógica genérica.

Funciona para qualquer model com ``SoftDeleteMixin``. Não há cascata:
remover um título não remove suas cópias, e empréstimos/reservas
existentes continuam apontando para o registro removido.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.clock import Clock, utcnow
from school_library.core.exceptions import InvalidStateError, NotFoundError
from school_library.db.transaction import atomic
from school_library.models.base import SoftDeletable
from school_library.models.enums import AuditAction
from school_library.schemas.audit import AuditContext
from school_library.services.audit import AuditService

logger = logging.getLogger(__name__)


class SoftDeleteService:
    """Service de soft delete / restore para qualquer entidade removível."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.audit = AuditService(db)

    async def _get(self, model: type[SoftDeletable], entity_id: UUID) -> SoftDeletable:
        result = await self.db.execute(
            select(model).where(model.id == entity_id).execution_options(populate_existing=True)
        )
        instance = result.scalar_one_or_none()
        if instance is None:
            raise NotFoundError(
                f"{model.__name__} não encontrado",
                {"entity_type": model.__name__, "entity_id": str(entity_id)},
            )
        return instance

    async def _set_deleted(
        self,
        model: type[SoftDeletable],
        entity_id: UUID,
        deleted: bool,
        ctx: AuditContext,
    ) -> SoftDeletable:
        async with atomic(self.db):
            instance = await self._get(model, entity_id)
            if instance.is_deleted == deleted:
                state = "removido" if deleted else "ativo"
                raise InvalidStateError(
                    f"{model.__name__} já está {state}",
                    {"entity_type": model.__name__, "entity_id": str(entity_id)},
                )

            instance.is_deleted = deleted
            instance.updated_at = self.clock()
            await self.db.flush()

            await self.audit.record(
                ctx,
                AuditAction.DELETE if deleted else AuditAction.RESTORE,
                model.__name__,
                entity_id,
            )

        logger.info(
            f"{model.__name__} {entity_id} {'removido' if deleted else 'restaurado'} "
            f"por {ctx.actor_id or 'sistema'}"
        )
        return instance

    async def soft_delete(self, model: type[SoftDeletable], entity_id: UUID, ctx: AuditContext) -> SoftDeletable:
        """
        Marca o registro como removido.

        Raises:
            NotFoundError: Registro não existe
            InvalidStateError: Registro já estava removido
        """
        return await self._set_deleted(model, entity_id, True, ctx)

    async def restore(self, model: type[SoftDeletable], entity_id: UUID, ctx: AuditContext) -> SoftDeletable:
        """
        Desfaz a remoção lógica.

        Raises:
            NotFoundError: Registro não existe
            InvalidStateError: Registro não estava removido
        """
        return await self._set_deleted(model, entity_id, False, ctx)
