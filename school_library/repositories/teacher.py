"""
Repository para operações de Teacher (equipe) no banco de dados.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.models.teacher import Teacher
from school_library.repositories.base import BaseRepository, visible


class TeacherRepository(BaseRepository[Teacher]):
    """Repository para operações de Teacher."""

    def __init__(self, db: AsyncSession):
        super().__init__(Teacher, db)

    async def get_by_username(self, username: str) -> Teacher | None:
        """Busca professor pelo login (case-insensitive)."""
        query = visible(
            select(Teacher).where(func.lower(Teacher.username) == username.lower()),
            Teacher,
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def username_exists(self, username: str) -> bool:
        """Verifica se o login já está em uso, inclusive por contas removidas."""
        result = await self.db.execute(
            select(func.count(Teacher.id)).where(
                func.lower(Teacher.username) == username.lower()
            )
        )
        return result.scalar_one() > 0
