"""
Repository para operações de Loan no banco de dados.
"""

from datetime import datetime, time, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.models.book import BookCopy, BookTitle
from school_library.models.enums import OPEN_LOAN_STATUSES, LoanStatus, ReminderTier
from school_library.models.loan import Loan
from school_library.models.student import Student
from school_library.repositories.base import BaseRepository, visible

# Coluna de flag correspondente a cada nível de lembrete
REMINDER_FLAGS = {
    ReminderTier.FIRST: "first_reminder_sent",
    ReminderTier.SECOND: "second_reminder_sent",
    ReminderTier.OVERDUE: "overdue_reminder_sent",
}

LoanRow = tuple[Loan, Student, BookCopy, BookTitle]


def _open_loans(query: Select) -> Select:
    return query.where(Loan.status.in_(OPEN_LOAN_STATUSES), Loan.returned_at.is_(None))


def _due_before_day(now: datetime, days: int) -> datetime:
    """Início do dia seguinte a ``now + days`` (limite exclusivo em dias de calendário)."""
    return datetime.combine(now.date() + timedelta(days=days + 1), time.min)


class LoanRepository(BaseRepository[Loan]):
    """Repository para operações de Loan."""

    def __init__(self, db: AsyncSession):
        super().__init__(Loan, db)

    # ==========================================
    # Leituras simples
    # ==========================================

    async def count_open_by_student(self, student_id: UUID) -> int:
        """Conta empréstimos abertos (ACTIVE/RENEWED) de um estudante."""
        query = _open_loans(
            visible(select(func.count(Loan.id)).where(Loan.student_id == student_id), Loan)
        )
        result = await self.db.execute(query)
        return result.scalar_one()

    async def get_open_by_copy(self, book_copy_id: UUID) -> Loan | None:
        """Empréstimo aberto de uma cópia, se houver."""
        query = _open_loans(visible(select(Loan).where(Loan.book_copy_id == book_copy_id), Loan))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_by_student(
        self,
        student_id: UUID,
        include_returned: bool = True,
        include_deleted: bool = False,
    ) -> list[Loan]:
        """
        Empréstimos de um estudante, mais recentes primeiro.

        Args:
            student_id: ID do estudante
            include_returned: Se False, só os abertos
            include_deleted: Incluir empréstimos removidos
        """
        query = visible(select(Loan).where(Loan.student_id == student_id), Loan, include_deleted)
        if not include_returned:
            query = _open_loans(query)
        result = await self.db.execute(query.order_by(Loan.borrowed_at.desc()))
        return list(result.scalars().all())

    async def count_open(self) -> int:
        result = await self.db.execute(_open_loans(visible(select(func.count(Loan.id)), Loan)))
        return result.scalar_one()

    async def count_overdue(self, now: datetime) -> int:
        result = await self.db.execute(
            _open_loans(visible(select(func.count(Loan.id)), Loan)).where(Loan.due_date < now)
        )
        return result.scalar_one()

    # ==========================================
    # Compare-and-set
    # ==========================================

    async def _conditional_update(self, loan_id: UUID, criteria: list, values: dict[str, Any]) -> bool:
        result = await self.db.execute(
            update(Loan)
            .where(Loan.id == loan_id, *criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def close(self, loan_id: UUID, status: LoanStatus, now: datetime, returned: bool) -> bool:
        """
        Encerra um empréstimo ainda aberto (devolução ou perda).

        Args:
            loan_id: ID do empréstimo
            status: RETURNED ou LOST
            now: Instante da operação
            returned: Se True, grava returned_at

        Returns:
            False se o empréstimo já não estava aberto
        """
        values: dict[str, Any] = {"status": status, "updated_at": now}
        if returned:
            values["returned_at"] = now
        return await self._conditional_update(
            loan_id,
            [Loan.status.in_(OPEN_LOAN_STATUSES), Loan.returned_at.is_(None)],
            values,
        )

    async def extend(self, loan_id: UUID, current_due: datetime, new_due: datetime, now: datetime) -> bool:
        """
        Renova o empréstimo se a due_date ainda for ``current_due``.

        Duas renovações concorrentes não somam prazo duas vezes.
        """
        return await self._conditional_update(
            loan_id,
            [
                Loan.status.in_(OPEN_LOAN_STATUSES),
                Loan.returned_at.is_(None),
                Loan.due_date == current_due,
            ],
            {
                "due_date": new_due,
                "status": LoanStatus.RENEWED,
                "renewals_count": Loan.renewals_count + 1,
                "updated_at": now,
            },
        )

    async def mark_reminder(self, loan_id: UUID, tier: ReminderTier, now: datetime) -> bool:
        """
        Marca o lembrete do nível como enviado (False -> True).

        Returns:
            False se o flag já estava marcado
        """
        flag = getattr(Loan, REMINDER_FLAGS[tier])
        return await self._conditional_update(
            loan_id,
            [flag.is_(False)],
            {REMINDER_FLAGS[tier]: True, "updated_at": now},
        )

    # ==========================================
    # Relatórios
    # ==========================================

    def _detailed(self) -> Select:
        return visible(
            select(Loan, Student, BookCopy, BookTitle)
            .join(Student, Student.id == Loan.student_id)
            .join(BookCopy, BookCopy.id == Loan.book_copy_id)
            .join(BookTitle, BookTitle.id == BookCopy.book_title_id),
            Loan,
        )

    async def overdue(self, now: datetime) -> list[LoanRow]:
        """Empréstimos abertos vencidos, mais atrasados primeiro."""
        query = _open_loans(self._detailed()).where(Loan.due_date < now)
        result = await self.db.execute(query.order_by(Loan.due_date))
        return [tuple(row) for row in result.all()]

    async def due_within(self, now: datetime, days: int) -> list[LoanRow]:
        """Empréstimos abertos que vencem entre agora e os próximos ``days`` dias."""
        query = _open_loans(self._detailed()).where(
            Loan.due_date >= now,
            Loan.due_date < _due_before_day(now, days),
        )
        result = await self.db.execute(query.order_by(Loan.due_date))
        return [tuple(row) for row in result.all()]

    async def needing_reminder(self, tier: ReminderTier, now: datetime, threshold_days: int) -> list[Loan]:
        """
        Empréstimos abertos cujo lembrete do nível ainda não foi enviado.

        FIRST/SECOND: vencem em até ``threshold_days`` dias de calendário
        e ainda não venceram. OVERDUE: já venceram.
        """
        flag = getattr(Loan, REMINDER_FLAGS[tier])
        query = _open_loans(visible(select(Loan), Loan)).where(flag.is_(False))

        if tier == ReminderTier.OVERDUE:
            query = query.where(Loan.due_date < now)
        else:
            query = query.where(
                Loan.due_date >= now,
                Loan.due_date < _due_before_day(now, threshold_days),
            )

        result = await self.db.execute(query.order_by(Loan.due_date))
        return list(result.scalars().all())

    async def search(
        self,
        student_id: UUID | None = None,
        book_title_id: UUID | None = None,
        status: LoanStatus | None = None,
        open_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Loan], int]:
        """
        Busca empréstimos com filtros e paginação.

        Args:
            student_id: Filtro por estudante
            book_title_id: Filtro por título (join com a cópia)
            status: Filtro por status gravado
            open_only: Apenas empréstimos abertos
            page: Número da página
            page_size: Tamanho da página

        Returns:
            Tupla (lista de empréstimos, total)
        """
        skip = (page - 1) * page_size

        query = visible(select(Loan), Loan)

        if student_id:
            query = query.where(Loan.student_id == student_id)

        if book_title_id:
            query = query.join(BookCopy, BookCopy.id == Loan.book_copy_id).where(
                BookCopy.book_title_id == book_title_id
            )

        if status:
            query = query.where(Loan.status == status)

        if open_only:
            query = _open_loans(query)

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            query.order_by(Loan.borrowed_at.desc()).offset(skip).limit(page_size)
        )
        return list(result.scalars().all()), total
