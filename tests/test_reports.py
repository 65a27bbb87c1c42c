"""
Testes do ReportingService.
"""

import pytest

from school_library.models.enums import ReservationState
from school_library.services.loan import LoanService
from school_library.services.reporting import ReportingService
from school_library.services.reservation import ReservationService


@pytest.fixture
def reports(test_db, clock) -> ReportingService:
    return ReportingService(test_db, clock)


@pytest.fixture
def loans(test_db, clock, cache) -> LoanService:
    return LoanService(test_db, clock, cache)


class TestLoanReports:

    @pytest.mark.anyio
    async def test_overdue_loans(self, reports, loans, clock, ctx, make_student, make_title, make_copy):
        student = await make_student("Lena", "5b")
        title = await make_title("Momo")
        late = await loans.open_loan(student.id, (await make_copy(title)).id, ctx, duration_days=7)
        await loans.open_loan(student.id, (await make_copy(title)).id, ctx, duration_days=21)

        clock.advance(days=10)
        overdue = await reports.overdue_loans()

        assert [item.id for item in overdue] == [late.id]
        assert overdue[0].is_overdue is True
        assert overdue[0].days_until_due == -3
        assert overdue[0].student_name == "Lena (5b)"
        assert overdue[0].book_title == "Momo - Michael Ende"

    @pytest.mark.anyio
    async def test_returned_loan_is_never_overdue(self, reports, loans, clock, ctx, make_student, make_title, make_copy):
        student = await make_student()
        loan = await loans.open_loan(student.id, (await make_copy(await make_title())).id, ctx, duration_days=3)
        clock.advance(days=5)
        await loans.return_loan(loan.id, ctx)

        assert await reports.overdue_loans() == []
        [read] = await reports.loans_of(student.id)
        assert read.is_overdue is False
        assert read.days_until_due is None

    @pytest.mark.anyio
    async def test_due_soon_loans(self, reports, loans, ctx, make_student, make_title, make_copy):
        student = await make_student()
        title = await make_title()
        soon = await loans.open_loan(student.id, (await make_copy(title)).id, ctx, duration_days=2)
        await loans.open_loan(student.id, (await make_copy(title)).id, ctx, duration_days=14)

        due_soon = await reports.due_soon_loans(days=3)

        assert [item.id for item in due_soon] == [soon.id]
        assert due_soon[0].days_until_due == 2

    @pytest.mark.anyio
    async def test_loans_of_only_open(self, reports, loans, ctx, make_student, make_title, make_copy):
        student = await make_student()
        title = await make_title()
        returned = await loans.open_loan(student.id, (await make_copy(title)).id, ctx)
        open_loan = await loans.open_loan(student.id, (await make_copy(title)).id, ctx)
        returned_id, open_id = returned.id, open_loan.id
        await loans.return_loan(returned_id, ctx)

        assert {item.id for item in await reports.loans_of(student.id)} == {returned_id, open_id}
        assert [item.id for item in await reports.loans_of(student.id, include_returned=False)] == [open_id]


class TestReservationReports:

    @pytest.mark.anyio
    async def test_reservations_of_with_queue_position(
        self, test_db, reports, loans, clock, cache, ctx, make_student, make_title, make_copy
    ):
        borrower = await make_student("Lena")
        first = await make_student("Paul")
        second = await make_student("Jonas")
        title = await make_title()
        copy = await make_copy(title)
        await loans.open_loan(borrower.id, copy.id, ctx)
        reservations = ReservationService(test_db, clock, cache)
        await reservations.create_reservation(first.id, title.id, ctx)
        clock.advance(minutes=5)
        await reservations.create_reservation(second.id, title.id, ctx)

        [read] = await reports.reservations_of(second.id)

        assert read.queue_position == 2
        assert read.state == ReservationState.PENDING
        assert read.is_active is True

        active = await reports.active_reservations(title.id)
        assert [item.student_id for item in active] == [first.id, second.id]
        assert active[0].student_name == "Paul (5b)"

    @pytest.mark.anyio
    async def test_expired_reservation_not_active(
        self, test_db, reports, clock, cache, ctx, make_student, make_title
    ):
        student = await make_student()
        title = await make_title(copies=1)
        await ReservationService(test_db, clock, cache).create_reservation(student.id, title.id, ctx, duration_days=1)

        clock.advance(days=2)

        [read] = await reports.reservations_of(student.id)
        assert read.state == ReservationState.EXPIRED
        assert read.is_expired is True
        assert read.queue_position is None
        assert await reports.reservations_of(student.id, active_only=True) == []
        assert await reports.active_reservations() == []


class TestCatalogReports:

    @pytest.mark.anyio
    async def test_search_titles(self, reports, make_title):
        await make_title("Momo", copies=1)
        await make_title("Emil und die Detektive", author="Erich Kästner")

        result = await reports.search_titles()
        assert [item.title for item in result.items] == ["Emil und die Detektive", "Momo"]
        assert result.total == 2

        result = await reports.search_titles(term="detektive")
        assert [item.title for item in result.items] == ["Emil und die Detektive"]
        assert result.items[0].available_copies == 0

    @pytest.mark.anyio
    async def test_search_available_only(self, reports, make_title):
        await make_title("Momo", copies=2)
        await make_title("Emil und die Detektive")

        result = await reports.search_titles(available_only=True)

        assert result.total == 1
        assert result.items[0].title == "Momo"
        assert result.items[0].available_copies == 2

    @pytest.mark.anyio
    async def test_search_hides_deleted_titles(self, reports, make_title):
        await make_title("Momo", is_deleted=True)

        assert (await reports.search_titles(term="momo")).total == 0

    @pytest.mark.anyio
    async def test_search_pagination(self, reports, make_title):
        for name in ("A", "B", "C"):
            await make_title(name)

        result = await reports.search_titles(page=2, page_size=2)

        assert [item.title for item in result.items] == ["C"]
        assert result.pages == 2

    @pytest.mark.anyio
    async def test_popular_titles(self, reports, loans, ctx, make_student, make_title, make_copy):
        lena = await make_student("Lena")
        paul = await make_student("Paul")
        momo = await make_title("Momo")
        emil = await make_title("Emil und die Detektive")
        await loans.open_loan(lena.id, (await make_copy(momo)).id, ctx)
        await loans.open_loan(paul.id, (await make_copy(momo)).id, ctx)
        await loans.open_loan(paul.id, (await make_copy(emil)).id, ctx)

        popular = await reports.popular_titles(top=5)

        assert [(item.title, item.loan_count) for item in popular] == [
            ("Momo", 2),
            ("Emil und die Detektive", 1),
        ]


class TestDashboard:

    @pytest.mark.anyio
    async def test_dashboard_counts(self, test_db, reports, loans, clock, cache, ctx, make_student, make_title, make_copy):
        lena = await make_student("Lena")
        paul = await make_student("Paul")
        title = await make_title(copies=1)
        await loans.open_loan(lena.id, (await make_copy(title)).id, ctx, duration_days=1)
        await ReservationService(test_db, clock, cache).create_reservation(paul.id, title.id, ctx, duration_days=5)

        clock.advance(days=2)
        stats = await reports.dashboard()

        assert stats.generated_at == clock.now
        assert stats.students == 2
        assert stats.titles == 1
        assert stats.copies == 2
        assert stats.open_loans == 1
        assert stats.overdue_loans == 1
        assert stats.active_reservations == 1
