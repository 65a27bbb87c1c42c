"""
Testes do ReservationService: fila FIFO por título, cancelamento,
retirada, sweep de reservas vencidas e notificação.
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from school_library.core.exceptions import (
    ConflictError,
    CopyUnavailableError,
    InvalidStateError,
    LoanLimitReachedError,
    NotFoundError,
    ReservationLimitReachedError,
    ValidationError,
)
from school_library.models.audit import AuditLog
from school_library.models.enums import AuditAction, CopyCondition, CopyStatus, LoanStatus, ReservationState
from school_library.models import predicates
from school_library.repositories.book import BookCopyRepository
from school_library.schemas.audit import SYSTEM_CONTEXT
from school_library.services.loan import LoanService
from school_library.services.reservation import ReservationService


@pytest.fixture
def reservations(test_db, clock, cache) -> ReservationService:
    return ReservationService(test_db, clock, cache)


@pytest.fixture
def loans(test_db, clock, cache) -> LoanService:
    return LoanService(test_db, clock, cache)


async def copy_status(db, copy_id) -> CopyStatus:
    copy = await BookCopyRepository(db).get_by_id(copy_id, include_deleted=True)
    return copy.status


async def sweep_audit_count(db) -> int:
    query = select(func.count(AuditLog.id)).where(AuditLog.action == AuditAction.RESERVATION_SWEEP)
    return (await db.execute(query)).scalar_one()


class TestCreateReservation:
    """Criação de reserva."""

    @pytest.mark.anyio
    async def test_available_copy_is_held_immediately(
        self, test_db, reservations, clock, ctx, make_student, make_title, make_copy
    ):
        student = await make_student()
        title = await make_title()
        copy = await make_copy(title)

        reservation = await reservations.create_reservation(student.id, title.id, ctx)

        assert reservation.book_copy_id == copy.id
        assert reservation.reserved_at == clock.now
        assert reservation.expires_at == clock.now + timedelta(days=3)
        assert reservation.is_notified is False
        assert await copy_status(test_db, copy.id) == CopyStatus.RESERVED
        assert await reservations.queue_position(reservation) is None

    @pytest.mark.anyio
    async def test_best_condition_copy_is_held(
        self, reservations, ctx, make_student, make_title, make_copy
    ):
        student = await make_student()
        title = await make_title()
        await make_copy(title, condition=CopyCondition.POOR)
        best = await make_copy(title, condition=CopyCondition.EXCELLENT)

        reservation = await reservations.create_reservation(student.id, title.id, ctx)

        assert reservation.book_copy_id == best.id

    @pytest.mark.anyio
    async def test_no_available_copy_enters_queue(
        self, reservations, loans, clock, ctx, make_student, make_title, make_copy
    ):
        borrower = await make_student("Lena")
        first = await make_student("Paul")
        second = await make_student("Mia")
        title = await make_title()
        copy = await make_copy(title)
        await loans.open_loan(borrower.id, copy.id, ctx)

        r1 = await reservations.create_reservation(first.id, title.id, ctx)
        clock.advance(minutes=5)
        r2 = await reservations.create_reservation(second.id, title.id, ctx)

        assert r1.book_copy_id is None
        assert await reservations.queue_position(r1) == 1
        assert await reservations.queue_position(r2) == 2

    @pytest.mark.anyio
    async def test_duplicate_active_reservation_returns_existing(
        self, reservations, ctx, make_student, make_title, make_copy
    ):
        student = await make_student()
        title = await make_title()
        await make_copy(title)

        first = await reservations.create_reservation(student.id, title.id, ctx)
        second = await reservations.create_reservation(student.id, title.id, ctx)

        assert second.id == first.id

    @pytest.mark.anyio
    async def test_reservation_limit(self, reservations, ctx, make_student, make_title):
        student = await make_student()
        titles = [await make_title(f"Livro {i}", copies=1) for i in range(4)]

        for title in titles[:3]:
            await reservations.create_reservation(student.id, title.id, ctx)

        with pytest.raises(ReservationLimitReachedError) as exc_info:
            await reservations.create_reservation(student.id, titles[3].id, ctx)

        assert exc_info.value.kind == "LimitExceeded"

    @pytest.mark.anyio
    async def test_title_without_circulating_copies(self, reservations, ctx, make_student, make_title, make_copy):
        student = await make_student()
        title = await make_title()
        await make_copy(title, status=CopyStatus.RETIRED)

        with pytest.raises(InvalidStateError):
            await reservations.create_reservation(student.id, title.id, ctx)

    @pytest.mark.anyio
    async def test_unknown_title(self, reservations, ctx, make_student):
        student = await make_student()

        with pytest.raises(NotFoundError):
            await reservations.create_reservation(student.id, uuid.uuid4(), ctx)

    @pytest.mark.anyio
    async def test_inactive_student(self, reservations, ctx, make_student, make_title):
        student = await make_student(is_active=False)
        title = await make_title(copies=1)

        with pytest.raises(InvalidStateError):
            await reservations.create_reservation(student.id, title.id, ctx)

    @pytest.mark.anyio
    async def test_invalid_duration(self, reservations, ctx, make_student, make_title):
        student = await make_student()
        title = await make_title(copies=1)

        with pytest.raises(ValidationError):
            await reservations.create_reservation(student.id, title.id, ctx, duration_days=0)


class TestReservationPriority:
    """Reserva com cópia separada tem prioridade sobre o balcão."""

    @pytest.mark.anyio
    async def test_reserved_copy_cannot_be_lent_to_other_student(
        self, test_db, reservations, loans, clock, ctx, make_student, make_title, make_copy
    ):
        student_a = await make_student("Anna")
        student_b = await make_student("Ben")
        title = await make_title()
        copy = await make_copy(title)

        copy_id, student_b_id = copy.id, student_b.id

        reservation = await reservations.create_reservation(student_a.id, title.id, ctx, duration_days=3)
        reservation_id = reservation.id
        assert await copy_status(test_db, copy_id) == CopyStatus.RESERVED

        with pytest.raises(CopyUnavailableError) as exc_info:
            await loans.open_loan(student_b_id, copy_id, ctx)
        assert exc_info.value.kind == "Conflict"

        _, total = await loans.list_loans(student_id=student_b_id)
        assert total == 0
        reservation = await reservations.get_reservation(reservation_id)
        assert reservation.book_copy_id == copy_id
        assert await copy_status(test_db, copy_id) == CopyStatus.RESERVED


class TestCancelReservation:
    """Cancelamento."""

    @pytest.mark.anyio
    async def test_cancel_only_reservation_frees_copy(
        self, test_db, reservations, clock, ctx, make_student, make_title, make_copy
    ):
        student = await make_student()
        title = await make_title()
        copy = await make_copy(title)
        reservation = await reservations.create_reservation(student.id, title.id, ctx)

        cancelled = await reservations.cancel_reservation(reservation.id, ctx, reason="Desistiu")

        assert cancelled.cancelled_at == clock.now
        assert cancelled.cancellation_reason == "Desistiu"
        assert predicates.reservation_state(cancelled, clock.now) == ReservationState.CANCELLED
        assert await copy_status(test_db, copy.id) == CopyStatus.AVAILABLE

    @pytest.mark.anyio
    async def test_cancel_passes_copy_to_next_in_queue(
        self, test_db, reservations, clock, ctx, make_student, make_title, make_copy
    ):
        first = await make_student("Lena")
        second = await make_student("Paul")
        title = await make_title()
        copy = await make_copy(title)

        r1 = await reservations.create_reservation(first.id, title.id, ctx)
        clock.advance(minutes=1)
        r2 = await reservations.create_reservation(second.id, title.id, ctx)
        assert r2.book_copy_id is None

        await reservations.cancel_reservation(r1.id, ctx)

        r2 = await reservations.get_reservation(r2.id)
        assert r2.book_copy_id == copy.id
        assert await copy_status(test_db, copy.id) == CopyStatus.RESERVED

    @pytest.mark.anyio
    async def test_cancel_twice(self, reservations, ctx, make_student, make_title):
        student = await make_student()
        title = await make_title(copies=1)
        reservation = await reservations.create_reservation(student.id, title.id, ctx)
        await reservations.cancel_reservation(reservation.id, ctx)

        with pytest.raises(ConflictError):
            await reservations.cancel_reservation(reservation.id, ctx)

    @pytest.mark.anyio
    async def test_cancel_queued_reservation_keeps_copy_borrowed(
        self, test_db, reservations, loans, ctx, make_student, make_title, make_copy
    ):
        borrower = await make_student("Lena")
        waiting = await make_student("Paul")
        title = await make_title()
        copy = await make_copy(title)
        await loans.open_loan(borrower.id, copy.id, ctx)
        reservation = await reservations.create_reservation(waiting.id, title.id, ctx)

        await reservations.cancel_reservation(reservation.id, ctx)

        assert await copy_status(test_db, copy.id) == CopyStatus.BORROWED


class TestFulfillReservation:
    """Retirada da reserva."""

    @pytest.mark.anyio
    async def test_fulfill_creates_loan(self, test_db, reservations, clock, ctx, make_student, make_title, make_copy):
        student = await make_student()
        title = await make_title()
        copy = await make_copy(title)
        reservation = await reservations.create_reservation(student.id, title.id, ctx)

        clock.advance(days=1)
        loan = await reservations.fulfill_reservation(reservation.id, ctx)

        assert loan.student_id == student.id
        assert loan.book_copy_id == copy.id
        assert loan.status == LoanStatus.ACTIVE
        assert await copy_status(test_db, copy.id) == CopyStatus.BORROWED

        reservation = await reservations.get_reservation(reservation.id)
        assert predicates.reservation_state(reservation, clock.now) == ReservationState.FULFILLED

    @pytest.mark.anyio
    async def test_fulfill_without_held_copy(self, reservations, loans, ctx, make_student, make_title, make_copy):
        borrower = await make_student("Lena")
        waiting = await make_student("Paul")
        title = await make_title()
        copy = await make_copy(title)
        await loans.open_loan(borrower.id, copy.id, ctx)
        reservation = await reservations.create_reservation(waiting.id, title.id, ctx)

        with pytest.raises(InvalidStateError):
            await reservations.fulfill_reservation(reservation.id, ctx)

    @pytest.mark.anyio
    async def test_fulfill_expired_reservation(self, reservations, clock, ctx, make_student, make_title):
        student = await make_student()
        title = await make_title(copies=1)
        reservation = await reservations.create_reservation(student.id, title.id, ctx)

        clock.advance(days=4)
        with pytest.raises(InvalidStateError):
            await reservations.fulfill_reservation(reservation.id, ctx)

    @pytest.mark.anyio
    async def test_fulfill_respects_loan_limit(
        self, test_db, reservations, loans, ctx, make_student, make_title, make_copy
    ):
        """Limite de empréstimos vale na retirada; nada muda se falhar."""
        student = await make_student()
        other_title = await make_title("Outro")
        for _ in range(3):
            copy = await make_copy(other_title)
            await loans.open_loan(student.id, copy.id, ctx)

        title = await make_title()
        held = await make_copy(title)
        held_id = held.id
        reservation = await reservations.create_reservation(student.id, title.id, ctx)
        reservation_id = reservation.id

        with pytest.raises(LoanLimitReachedError):
            await reservations.fulfill_reservation(reservation_id, ctx)

        reservation = await reservations.get_reservation(reservation_id)
        assert reservation.cancelled_at is None
        assert await copy_status(test_db, held_id) == CopyStatus.RESERVED

    @pytest.mark.anyio
    async def test_fulfill_cancelled_reservation(self, reservations, ctx, make_student, make_title):
        student = await make_student()
        title = await make_title(copies=1)
        reservation = await reservations.create_reservation(student.id, title.id, ctx)
        await reservations.cancel_reservation(reservation.id, ctx)

        with pytest.raises(ConflictError):
            await reservations.fulfill_reservation(reservation.id, ctx)


class TestSweep:
    """Sweep de reservas vencidas."""

    @pytest.mark.anyio
    async def test_sweep_releases_expired_hold_to_shelf(
        self, test_db, reservations, clock, ctx, make_student, make_title, make_copy
    ):
        student = await make_student()
        title = await make_title()
        copy = await make_copy(title)
        reservation = await reservations.create_reservation(student.id, title.id, ctx)

        clock.advance(days=4)
        result = await reservations.sweep()

        assert result.examined == 1
        assert result.released_to_shelf == 1
        assert result.passed_to_next == 0
        assert result.book_title_ids == [title.id]
        assert await copy_status(test_db, copy.id) == CopyStatus.AVAILABLE

        reservation = await reservations.get_reservation(reservation.id)
        assert reservation.is_notified is True
        assert predicates.reservation_state(reservation, clock.now) == ReservationState.EXPIRED

    @pytest.mark.anyio
    async def test_sweep_passes_copy_to_next(
        self, test_db, reservations, clock, ctx, make_student, make_title, make_copy
    ):
        first = await make_student("Lena")
        second = await make_student("Paul")
        title = await make_title()
        copy = await make_copy(title)

        await reservations.create_reservation(first.id, title.id, ctx, duration_days=1)
        clock.advance(hours=1)
        r2 = await reservations.create_reservation(second.id, title.id, ctx, duration_days=5)

        clock.advance(days=2)
        result = await reservations.sweep()

        assert result.passed_to_next == 1
        r2 = await reservations.get_reservation(r2.id)
        assert r2.book_copy_id == copy.id
        assert await copy_status(test_db, copy.id) == CopyStatus.RESERVED

    @pytest.mark.anyio
    async def test_sweep_twice_after_passing_copy(
        self, test_db, reservations, clock, ctx, make_student, make_title, make_copy
    ):
        first = await make_student("Lena")
        second = await make_student("Paul")
        title = await make_title()
        copy = await make_copy(title)

        await reservations.create_reservation(first.id, title.id, ctx, duration_days=1)
        clock.advance(hours=1)
        await reservations.create_reservation(second.id, title.id, ctx, duration_days=5)

        clock.advance(days=2)
        passed = await reservations.sweep()
        again = await reservations.sweep()

        assert passed.examined == 1
        assert again.examined == 0
        assert again.passed_to_next == again.released_to_shelf == 0
        assert await copy_status(test_db, copy.id) == CopyStatus.RESERVED
        assert await sweep_audit_count(test_db) == 1

    @pytest.mark.anyio
    async def test_sweep_after_next_holder_also_expires(
        self, test_db, reservations, clock, ctx, make_student, make_title, make_copy
    ):
        first = await make_student("Lena")
        second = await make_student("Paul")
        title = await make_title()
        copy = await make_copy(title)
        copy_id = copy.id

        await reservations.create_reservation(first.id, title.id, ctx, duration_days=1)
        clock.advance(hours=1)
        r2 = await reservations.create_reservation(second.id, title.id, ctx, duration_days=5)
        r2_id = r2.id

        clock.advance(days=2)
        await reservations.sweep()

        clock.advance(days=10)
        result = await reservations.sweep()

        assert result.examined == 1
        assert result.released_to_shelf == 1
        assert result.passed_to_next == 0
        assert await copy_status(test_db, copy_id) == CopyStatus.AVAILABLE
        assert (await reservations.get_reservation(r2_id)).is_notified is True

        repeat = await reservations.sweep()

        assert repeat.examined == 0
        assert await copy_status(test_db, copy_id) == CopyStatus.AVAILABLE
        assert await sweep_audit_count(test_db) == 2

    @pytest.mark.anyio
    async def test_sweep_is_idempotent(self, test_db, reservations, clock, ctx, make_student, make_title, make_copy):
        student = await make_student()
        title = await make_title()
        copy = await make_copy(title)
        await reservations.create_reservation(student.id, title.id, ctx)

        clock.advance(days=4)
        first = await reservations.sweep()
        status_after_first = await copy_status(test_db, copy.id)
        second = await reservations.sweep(SYSTEM_CONTEXT)

        assert first.examined == 1
        assert second.examined == 0
        assert await copy_status(test_db, copy.id) == status_after_first == CopyStatus.AVAILABLE

    @pytest.mark.anyio
    async def test_sweep_ignores_active_reservations(self, test_db, reservations, ctx, make_student, make_title, make_copy):
        student = await make_student()
        title = await make_title()
        copy = await make_copy(title)
        await reservations.create_reservation(student.id, title.id, ctx)

        result = await reservations.sweep()

        assert result.examined == 0
        assert await copy_status(test_db, copy.id) == CopyStatus.RESERVED


class TestNotification:

    @pytest.mark.anyio
    async def test_mark_notified_is_idempotent(self, reservations, ctx, make_student, make_title):
        student = await make_student()
        title = await make_title(copies=1)
        reservation = await reservations.create_reservation(student.id, title.id, ctx)

        first = await reservations.mark_notified(reservation.id, ctx)
        second = await reservations.mark_notified(reservation.id, ctx)

        assert first.is_notified is True
        assert second.is_notified is True
