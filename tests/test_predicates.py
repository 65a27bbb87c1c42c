"""
Testes das propriedades derivadas (funções puras, sem banco).
"""

from datetime import datetime, timedelta

import pytest

from school_library.models import predicates
from school_library.models.book import BookTitle
from school_library.models.enums import FULFILLED_REASON, LoanStatus, ReservationState
from school_library.models.loan import Loan
from school_library.models.reservation import Reservation
from school_library.models.student import Student

NOW = datetime(2026, 3, 10, 15, 30)


def make_loan(due_in: timedelta, status=LoanStatus.ACTIVE, returned_at=None) -> Loan:
    return Loan(
        borrowed_at=NOW - timedelta(days=7),
        due_date=NOW + due_in,
        status=status,
        returned_at=returned_at,
    )


def make_reservation(expires_in: timedelta, cancelled_at=None, reason=None) -> Reservation:
    return Reservation(
        reserved_at=NOW - timedelta(days=1),
        expires_at=NOW + expires_in,
        cancelled_at=cancelled_at,
        cancellation_reason=reason,
    )


class TestLoanPredicates:

    def test_active_loan_due_later(self):
        loan = make_loan(timedelta(days=2))

        assert predicates.is_open(loan) is True
        assert predicates.is_overdue(loan, NOW) is False
        assert predicates.days_until_due(loan, NOW) == 2

    def test_renewed_loan_past_due_is_overdue(self):
        loan = make_loan(timedelta(hours=-1), status=LoanStatus.RENEWED)

        assert predicates.is_overdue(loan, NOW) is True
        assert predicates.days_until_due(loan, NOW) == 0

    def test_due_exactly_now_is_not_overdue(self):
        assert predicates.is_overdue(make_loan(timedelta(0)), NOW) is False

    def test_returned_loan_is_never_overdue(self):
        loan = make_loan(timedelta(days=-5), status=LoanStatus.RETURNED, returned_at=NOW)

        assert predicates.is_open(loan) is False
        assert predicates.is_overdue(loan, NOW) is False

    def test_lost_loan_is_closed(self):
        assert predicates.is_open(make_loan(timedelta(days=-5), status=LoanStatus.LOST)) is False

    def test_days_until_due_uses_calendar_days(self):
        """Vence amanhã às 08:00: faltam 1 dia, mesmo com menos de 24h."""
        loan = Loan(due_date=datetime(2026, 3, 11, 8, 0), status=LoanStatus.ACTIVE, returned_at=None)

        assert predicates.days_until_due(loan, NOW) == 1

    @pytest.mark.parametrize(
        "due_in, expected",
        [
            (timedelta(days=5), False),
            (timedelta(days=3), True),
            (timedelta(days=1), True),
            (timedelta(days=-2), True),
        ],
    )
    def test_needs_reminder(self, due_in, expected):
        assert predicates.needs_reminder(make_loan(due_in), NOW, threshold_days=3) is expected


class TestReservationPredicates:

    def test_pending(self):
        reservation = make_reservation(timedelta(days=2))

        assert predicates.reservation_state(reservation, NOW) == ReservationState.PENDING
        assert predicates.reservation_is_active(reservation, NOW) is True
        assert predicates.reservation_is_expired(reservation, NOW) is False

    def test_expires_exactly_now(self):
        reservation = make_reservation(timedelta(0))

        assert predicates.reservation_state(reservation, NOW) == ReservationState.EXPIRED
        assert predicates.reservation_is_active(reservation, NOW) is False

    def test_cancelled(self):
        reservation = make_reservation(timedelta(days=2), cancelled_at=NOW, reason="Desistiu")

        assert predicates.reservation_state(reservation, NOW) == ReservationState.CANCELLED
        assert predicates.reservation_is_active(reservation, NOW) is False
        assert predicates.reservation_is_expired(reservation, NOW) is False

    def test_fulfilled(self):
        reservation = make_reservation(timedelta(days=-1), cancelled_at=NOW, reason=FULFILLED_REASON)

        assert predicates.reservation_state(reservation, NOW) == ReservationState.FULFILLED
        assert predicates.reservation_is_expired(reservation, NOW) is False


class TestDisplayNames:

    def test_student_display_name(self):
        assert predicates.student_display_name(Student(first_name="Lena", class_code="5b")) == "Lena (5b)"

    def test_title_display(self):
        assert predicates.title_display(BookTitle(title="Momo", author="Michael Ende")) == "Momo - Michael Ende"
        assert predicates.title_display(BookTitle(title="Atlas")) == "Atlas"
