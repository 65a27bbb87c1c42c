"""
Repository base com operações genéricas.

Repositories só fazem flush; o commit é responsabilidade do service
(ver ``school_library.db.transaction.atomic``).

Toda leitura recebe ``include_deleted`` explicitamente (default False):
o filtro de soft delete é aplicado por ``visible`` em cada query, nunca
por estado global da sessão.
"""

from typing import Any, Generic, Type, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.db.session import Base

ModelType = TypeVar("ModelType", bound=Base)


def visible(query: Select, model: type, include_deleted: bool = False) -> Select:
    """
    Aplica o filtro de soft delete a uma query.

    Models sem ``is_deleted`` (ex.: AuditLog) não são filtrados. Os
    objetos lidos sempre são recarregados do banco (populate_existing):
    os compare-and-set não sincronizam a sessão.
    """
    query = query.execution_options(populate_existing=True)
    if include_deleted or not hasattr(model, "is_deleted"):
        return query
    return query.where(model.is_deleted.is_(False))


class BaseRepository(Generic[ModelType]):
    """
    Repository base.

    Fornece métodos genéricos para:
    - get_by_id: Buscar por ID
    - get_all: Listar (paginado)
    - create: Criar registro
    - update: Atualizar campos
    - count: Contar registros
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def get_by_id(self, id: UUID, include_deleted: bool = False) -> ModelType | None:
        """Busca registro por ID."""
        query = visible(select(self.model).where(self.model.id == id), self.model, include_deleted)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        include_deleted: bool = False,
    ) -> list[ModelType]:
        """Lista registros com paginação, mais recentes primeiro."""
        query = visible(select(self.model), self.model, include_deleted)
        result = await self.db.execute(
            query.offset(skip).limit(limit).order_by(self.model.created_at.desc())
        )
        return list(result.scalars().all())

    async def create(self, **kwargs: Any) -> ModelType:
        """Cria novo registro e faz flush (id e defaults ficam disponíveis)."""
        instance = self.model(**kwargs)
        self.db.add(instance)
        await self.db.flush()
        return instance

    async def update(self, instance: ModelType, **kwargs: Any) -> ModelType:
        """Atualiza os campos informados (None é ignorado)."""
        for key, value in kwargs.items():
            if value is not None:
                setattr(instance, key, value)
        await self.db.flush()
        return instance

    async def refresh(self, instance: ModelType) -> ModelType:
        """Recarrega o objeto do banco (necessário após updates condicionais)."""
        await self.db.refresh(instance)
        return instance

    async def count(self, include_deleted: bool = False) -> int:
        """Conta registros."""
        query = visible(select(func.count(self.model.id)), self.model, include_deleted)
        result = await self.db.execute(query)
        return result.scalar_one()
