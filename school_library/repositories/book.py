"""
Repository para operações de BookTitle e BookCopy no banco de dados.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import case, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.models.book import BookCopy, BookTitle
from school_library.models.enums import (
    CIRCULATING_COPY_STATUSES,
    CONDITION_ORDER,
    CopyStatus,
)
from school_library.models.loan import Loan
from school_library.repositories.base import BaseRepository, visible


class BookTitleRepository(BaseRepository[BookTitle]):
    """Repository para operações de BookTitle."""

    def __init__(self, db: AsyncSession):
        super().__init__(BookTitle, db)

    async def isbn_exists(self, isbn: str, exclude_id: UUID | None = None) -> bool:
        """ISBN é único entre todos os títulos, removidos inclusive."""
        query = select(func.count(BookTitle.id)).where(BookTitle.isbn == isbn)
        if exclude_id:
            query = query.where(BookTitle.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalar_one() > 0

    async def search(
        self,
        term: str | None = None,
        language: str | None = None,
        genre: str | None = None,
        subject: str | None = None,
        available_only: bool = False,
        include_deleted: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[tuple[BookTitle, int]], int]:
        """
        Busca títulos com filtros e paginação.

        A busca textual é case-insensitive em título, autor, ISBN,
        descrição e editora.

        Args:
            term: Texto a buscar
            language: Filtro exato por idioma
            genre: Filtro exato por gênero
            subject: Filtro exato por disciplina
            available_only: Apenas títulos com cópia AVAILABLE
            include_deleted: Incluir títulos removidos
            page: Número da página
            page_size: Tamanho da página

        Returns:
            Tupla (lista de (título, cópias disponíveis), total)
        """
        skip = (page - 1) * page_size

        available_count = (
            select(func.count(BookCopy.id))
            .where(
                BookCopy.book_title_id == BookTitle.id,
                BookCopy.status == CopyStatus.AVAILABLE,
                BookCopy.is_deleted.is_(False),
            )
            .correlate(BookTitle)
            .scalar_subquery()
        )

        query = visible(
            select(BookTitle, available_count.label("available_copies")),
            BookTitle,
            include_deleted,
        )

        if term:
            pattern = f"%{term.lower()}%"
            query = query.where(
                or_(
                    func.lower(BookTitle.title).like(pattern),
                    func.lower(BookTitle.author).like(pattern),
                    func.lower(BookTitle.isbn).like(pattern),
                    func.lower(BookTitle.description).like(pattern),
                    func.lower(BookTitle.publisher).like(pattern),
                )
            )

        if language:
            query = query.where(BookTitle.language == language)

        if genre:
            query = query.where(BookTitle.genre == genre)

        if subject:
            query = query.where(BookTitle.subject == subject)

        if available_only:
            query = query.where(available_count > 0)

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            query.order_by(BookTitle.title).offset(skip).limit(page_size)
        )
        return [(row[0], row[1]) for row in result.all()], total

    async def popular(self, since: datetime, top: int = 10) -> list[tuple[BookTitle, int]]:
        """
        Títulos mais emprestados desde ``since``.

        Returns:
            Lista de (título, quantidade de empréstimos), maior primeiro
        """
        loan_count = func.count(Loan.id).label("loan_count")
        result = await self.db.execute(
            select(BookTitle, loan_count)
            .join(BookCopy, BookCopy.book_title_id == BookTitle.id)
            .join(Loan, Loan.book_copy_id == BookCopy.id)
            .where(
                Loan.borrowed_at >= since,
                Loan.is_deleted.is_(False),
                BookTitle.is_deleted.is_(False),
            )
            .group_by(BookTitle.id)
            .order_by(desc("loan_count"), BookTitle.title)
            .limit(top)
        )
        return [(row[0], row[1]) for row in result.all()]


class BookCopyRepository(BaseRepository[BookCopy]):
    """Repository para operações de BookCopy."""

    def __init__(self, db: AsyncSession):
        super().__init__(BookCopy, db)

    async def get_by_qr_code(self, qr_code: str, include_deleted: bool = False) -> BookCopy | None:
        """Busca cópia pela etiqueta QR."""
        query = visible(select(BookCopy).where(BookCopy.qr_code == qr_code), BookCopy, include_deleted)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def qr_code_exists(self, qr_code: str) -> bool:
        result = await self.db.execute(
            select(func.count(BookCopy.id)).where(BookCopy.qr_code == qr_code)
        )
        return result.scalar_one() > 0

    async def inventory_number_exists(self, inventory_number: str, exclude_id: UUID | None = None) -> bool:
        query = select(func.count(BookCopy.id)).where(BookCopy.inventory_number == inventory_number)
        if exclude_id:
            query = query.where(BookCopy.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalar_one() > 0

    async def list_by_title(self, book_title_id: UUID, include_deleted: bool = False) -> list[BookCopy]:
        """Lista as cópias de um título, mais antigas primeiro."""
        query = visible(
            select(BookCopy).where(BookCopy.book_title_id == book_title_id),
            BookCopy,
            include_deleted,
        )
        result = await self.db.execute(query.order_by(BookCopy.created_at))
        return list(result.scalars().all())

    async def count_available(self, book_title_id: UUID) -> int:
        """Quantidade de cópias AVAILABLE e não removidas do título."""
        result = await self.db.execute(
            visible(
                select(func.count(BookCopy.id)).where(
                    BookCopy.book_title_id == book_title_id,
                    BookCopy.status == CopyStatus.AVAILABLE,
                ),
                BookCopy,
            )
        )
        return result.scalar_one()

    async def count_circulating(self, book_title_id: UUID) -> int:
        """Cópias que podem atender uma reserva (disponíveis, emprestadas ou separadas)."""
        result = await self.db.execute(
            visible(
                select(func.count(BookCopy.id)).where(
                    BookCopy.book_title_id == book_title_id,
                    BookCopy.status.in_(CIRCULATING_COPY_STATUSES),
                ),
                BookCopy,
            )
        )
        return result.scalar_one()

    async def best_available(self, book_title_id: UUID) -> BookCopy | None:
        """
        Melhor cópia disponível do título.

        Ordena pela conservação (EXCELLENT primeiro) e, no empate, pela
        cópia cadastrada há mais tempo, para distribuir o desgaste.

        Returns:
            A cópia ou None se não houver nenhuma disponível
        """
        condition_rank = case(
            *[(BookCopy.condition == condition, rank) for rank, condition in enumerate(CONDITION_ORDER)],
            else_=len(CONDITION_ORDER),
        )
        query = visible(
            select(BookCopy).where(
                BookCopy.book_title_id == book_title_id,
                BookCopy.status == CopyStatus.AVAILABLE,
            ),
            BookCopy,
        )
        result = await self.db.execute(
            query.order_by(condition_rank, BookCopy.created_at, BookCopy.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def statistics(self, book_title_id: UUID) -> dict[str, int]:
        """
        Conta cópias não removidas por status para um título.

        Returns:
            Dict com total, available, borrowed, reserved, damaged, lost, retired
        """
        result = await self.db.execute(
            visible(
                select(BookCopy.status, func.count(BookCopy.id))
                .where(BookCopy.book_title_id == book_title_id)
                .group_by(BookCopy.status),
                BookCopy,
            )
        )
        counts = {status: 0 for status in CopyStatus}
        for status, count in result.all():
            counts[status] = count

        return {
            "total": sum(counts.values()),
            "available": counts[CopyStatus.AVAILABLE],
            "borrowed": counts[CopyStatus.BORROWED],
            "reserved": counts[CopyStatus.RESERVED],
            "damaged": counts[CopyStatus.DAMAGED],
            "lost": counts[CopyStatus.LOST],
            "retired": counts[CopyStatus.RETIRED],
        }

    async def transition_status(
        self,
        copy_id: UUID,
        expected: CopyStatus,
        new_status: CopyStatus,
        now: datetime,
    ) -> bool:
        """
        Compare-and-set do status da cópia.

        Só altera se o status atual ainda for ``expected``; quem perder uma
        corrida recebe False e nada é gravado.

        Returns:
            True se a linha foi alterada
        """
        result = await self.db.execute(
            update(BookCopy)
            .where(
                BookCopy.id == copy_id,
                BookCopy.status == expected,
            )
            .values(status=new_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
