"""
Repository para operações de Reservation no banco de dados.

"Ativa" aqui é sempre relativo a um instante ``now`` passado pelo
service: cancelled_at nulo e expires_at > now. Reservas vencidas não são
gravadas como tal; o sweep só libera as cópias que elas seguravam.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.models.book import BookCopy, BookTitle
from school_library.models.enums import CopyStatus
from school_library.models.reservation import Reservation
from school_library.models.student import Student
from school_library.repositories.base import BaseRepository, visible

ReservationRow = tuple[Reservation, Student, BookTitle]


def _active(query: Select, now: datetime) -> Select:
    return query.where(Reservation.cancelled_at.is_(None), Reservation.expires_at > now)


class ReservationRepository(BaseRepository[Reservation]):
    """Repository para operações de Reservation."""

    def __init__(self, db: AsyncSession):
        super().__init__(Reservation, db)

    # ==========================================
    # Consultas de fila
    # ==========================================

    async def get_active_by_student_and_title(
        self,
        student_id: UUID,
        book_title_id: UUID,
        now: datetime,
    ) -> Reservation | None:
        """
        Reserva ativa de um estudante para um título.

        Usado como guarda de idempotência antes de criar nova reserva.
        """
        query = _active(
            visible(
                select(Reservation).where(
                    Reservation.student_id == student_id,
                    Reservation.book_title_id == book_title_id,
                ),
                Reservation,
            ),
            now,
        )
        result = await self.db.execute(query.order_by(Reservation.reserved_at).limit(1))
        return result.scalar_one_or_none()

    async def count_active_by_student(self, student_id: UUID, now: datetime) -> int:
        """Conta reservas ativas de um estudante."""
        query = _active(
            visible(select(func.count(Reservation.id)).where(Reservation.student_id == student_id), Reservation),
            now,
        )
        result = await self.db.execute(query)
        return result.scalar_one()

    async def first_queued(self, book_title_id: UUID, now: datetime) -> Reservation | None:
        """
        Primeira reserva ativa do título ainda sem cópia separada (FIFO).

        Ordem: reserved_at, depois created_at e id para desempate estável.
        """
        query = _active(
            visible(
                select(Reservation).where(
                    Reservation.book_title_id == book_title_id,
                    Reservation.book_copy_id.is_(None),
                ),
                Reservation,
            ),
            now,
        )
        result = await self.db.execute(
            query.order_by(Reservation.reserved_at, Reservation.created_at, Reservation.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def active_holder_exists(
        self,
        book_copy_id: UUID,
        now: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        """Existe reserva ativa segurando esta cópia (opcionalmente ignorando uma)?"""
        query = _active(
            visible(
                select(func.count(Reservation.id)).where(Reservation.book_copy_id == book_copy_id),
                Reservation,
            ),
            now,
        )
        if exclude_id:
            query = query.where(Reservation.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalar_one() > 0

    async def has_active_for_title(
        self,
        book_title_id: UUID,
        now: datetime,
        exclude_student_id: UUID | None = None,
    ) -> bool:
        """Alguém (exceto ``exclude_student_id``) aguarda este título?"""
        query = _active(
            visible(
                select(func.count(Reservation.id)).where(Reservation.book_title_id == book_title_id),
                Reservation,
            ),
            now,
        )
        if exclude_student_id:
            query = query.where(Reservation.student_id != exclude_student_id)
        result = await self.db.execute(query)
        return result.scalar_one() > 0

    async def queue_position(self, reservation: Reservation, now: datetime) -> int:
        """
        Posição (1 = próxima) de uma reserva que ainda espera cópia.

        Conta as reservas ativas do título, sem cópia, que chegaram antes.
        """
        earlier = or_(
            Reservation.reserved_at < reservation.reserved_at,
            and_(
                Reservation.reserved_at == reservation.reserved_at,
                Reservation.created_at < reservation.created_at,
            ),
        )
        query = _active(
            visible(
                select(func.count(Reservation.id)).where(
                    Reservation.book_title_id == reservation.book_title_id,
                    Reservation.book_copy_id.is_(None),
                    Reservation.id != reservation.id,
                    earlier,
                ),
                Reservation,
            ),
            now,
        )
        result = await self.db.execute(query)
        return result.scalar_one() + 1

    async def count_active(self, now: datetime) -> int:
        result = await self.db.execute(_active(visible(select(func.count(Reservation.id)), Reservation), now))
        return result.scalar_one()

    # ==========================================
    # Compare-and-set
    # ==========================================

    async def _conditional_update(self, reservation_id: UUID, criteria: list, values: dict[str, Any]) -> bool:
        result = await self.db.execute(
            update(Reservation)
            .where(Reservation.id == reservation_id, *criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def cancel(self, reservation_id: UUID, now: datetime, reason: str | None) -> bool:
        """
        Cancela a reserva se ainda não estiver cancelada.

        Returns:
            False se outra operação já a cancelou
        """
        return await self._conditional_update(
            reservation_id,
            [Reservation.cancelled_at.is_(None)],
            {"cancelled_at": now, "cancellation_reason": reason, "updated_at": now},
        )

    async def assign_copy(
        self,
        reservation_id: UUID,
        book_copy_id: UUID,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        """Separa uma cópia para uma reserva ativa que ainda não tem cópia."""
        return await self._conditional_update(
            reservation_id,
            [
                Reservation.cancelled_at.is_(None),
                Reservation.book_copy_id.is_(None),
            ],
            {
                "book_copy_id": book_copy_id,
                "expires_at": expires_at,
                "is_notified": False,
                "updated_at": now,
            },
        )

    async def set_notified(self, reservation_id: UUID, now: datetime) -> bool:
        """Marca is_notified (False -> True)."""
        return await self._conditional_update(
            reservation_id,
            [Reservation.is_notified.is_(False)],
            {"is_notified": True, "updated_at": now},
        )

    # ==========================================
    # Sweep e relatórios
    # ==========================================

    async def expired_holding_reserved_copy(self, now: datetime) -> list[Reservation]:
        """
        Uma reserva vencida (não cancelada) por cópia ainda RESERVED.

        Uma cópia passada adiante fica ligada a várias reservas antigas;
        só a de expires_at mais recente representa a separação atual.
        O service confere com active_holder_exists antes de liberar.
        """
        query = visible(
            select(Reservation)
            .join(BookCopy, BookCopy.id == Reservation.book_copy_id)
            .where(
                Reservation.cancelled_at.is_(None),
                Reservation.expires_at <= now,
                BookCopy.status == CopyStatus.RESERVED,
            ),
            Reservation,
        )
        result = await self.db.execute(
            query.order_by(Reservation.book_copy_id, Reservation.expires_at.desc(), Reservation.id)
        )

        latest: dict[UUID, Reservation] = {}
        for reservation in result.scalars().all():
            latest.setdefault(reservation.book_copy_id, reservation)
        return sorted(latest.values(), key=lambda r: (r.expires_at, str(r.id)))

    async def list_active(self, now: datetime, book_title_id: UUID | None = None) -> list[ReservationRow]:
        """Reservas ativas com estudante e título, em ordem de fila."""
        query = _active(
            visible(
                select(Reservation, Student, BookTitle)
                .join(Student, Student.id == Reservation.student_id)
                .join(BookTitle, BookTitle.id == Reservation.book_title_id),
                Reservation,
            ),
            now,
        )
        if book_title_id:
            query = query.where(Reservation.book_title_id == book_title_id)
        result = await self.db.execute(
            query.order_by(BookTitle.title, Reservation.reserved_at, Reservation.created_at)
        )
        return [tuple(row) for row in result.all()]

    async def list_by_student(
        self,
        student_id: UUID,
        now: datetime,
        active_only: bool = False,
        include_deleted: bool = False,
    ) -> list[Reservation]:
        """Reservas de um estudante, mais recentes primeiro."""
        query = visible(
            select(Reservation).where(Reservation.student_id == student_id),
            Reservation,
            include_deleted,
        )
        if active_only:
            query = _active(query, now)
        result = await self.db.execute(query.order_by(Reservation.reserved_at.desc()))
        return list(result.scalars().all())
