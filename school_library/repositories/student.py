"""
Repository para operações de Student no banco de dados.
"""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.models.student import Student
from school_library.repositories.base import BaseRepository, visible


class StudentRepository(BaseRepository[Student]):
    """Repository para operações de Student."""

    def __init__(self, db: AsyncSession):
        super().__init__(Student, db)

    async def get_for_update(self, student_id: UUID) -> Student | None:
        """
        Busca estudante travando a linha até o fim da transação.

        Serializa aberturas de empréstimo concorrentes do mesmo estudante
        (a checagem de limite e o insert ficam na mesma janela). No SQLite
        o FOR UPDATE é ignorado; lá as escritas já são serializadas.
        """
        query = visible(select(Student).where(Student.id == student_id), Student)
        result = await self.db.execute(query.with_for_update())
        return result.scalar_one_or_none()

    async def get_by_qr_code(self, qr_code: str, include_deleted: bool = False) -> Student | None:
        """Busca estudante pelo QR code da carteirinha."""
        query = visible(select(Student).where(Student.qr_code == qr_code), Student, include_deleted)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def qr_code_exists(self, qr_code: str) -> bool:
        """QR codes são únicos inclusive entre estudantes removidos."""
        result = await self.db.execute(
            select(func.count(Student.id)).where(Student.qr_code == qr_code)
        )
        return result.scalar_one() > 0

    async def search(
        self,
        class_code: str | None = None,
        term: str | None = None,
        active_only: bool = False,
        include_deleted: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Student], int]:
        """
        Busca estudantes com filtros e paginação.

        Args:
            class_code: Filtro exato por turma
            term: Busca parcial em nome ou QR code
            active_only: Apenas estudantes ativos
            include_deleted: Incluir removidos
            page: Número da página
            page_size: Tamanho da página

        Returns:
            Tupla (lista de estudantes, total)
        """
        skip = (page - 1) * page_size

        query = visible(select(Student), Student, include_deleted)

        if class_code:
            query = query.where(Student.class_code == class_code)

        if term:
            pattern = f"%{term.lower()}%"
            query = query.where(
                or_(
                    func.lower(Student.first_name).like(pattern),
                    func.lower(Student.qr_code).like(pattern),
                )
            )

        if active_only:
            query = query.where(Student.is_active.is_(True))

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            query.order_by(Student.class_code, Student.first_name).offset(skip).limit(page_size)
        )
        return list(result.scalars().all()), total
