"""
Testes de remoção lógica, trilha de auditoria e atomicidade das escritas.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from school_library.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    StorageFailureError,
)
from school_library.db.transaction import atomic
from school_library.models.audit import AuditLog
from school_library.models.book import BookTitle
from school_library.models.enums import AuditAction, CopyStatus, LoanStatus
from school_library.models.loan import Loan
from school_library.models.student import Student
from school_library.repositories.book import BookCopyRepository
from school_library.services.audit import AuditService
from school_library.services.catalog import CatalogService
from school_library.services.loan import LoanService
from school_library.services.soft_delete import SoftDeleteService
from school_library.services.student import StudentService


@pytest.fixture
def soft_delete(test_db, clock) -> SoftDeleteService:
    return SoftDeleteService(test_db, clock)


class TestSoftDelete:

    @pytest.mark.anyio
    async def test_deleted_student_is_hidden(self, test_db, soft_delete, ctx, make_student):
        student = await make_student()
        student_id = student.id

        deleted = await soft_delete.soft_delete(Student, student_id, ctx)

        assert deleted.is_deleted is True
        with pytest.raises(NotFoundError):
            await StudentService(test_db).get(student_id)
        assert (await StudentService(test_db).get(student_id, include_deleted=True)).is_deleted is True

    @pytest.mark.anyio
    async def test_restore(self, test_db, soft_delete, ctx, make_student):
        student = await make_student()
        student_id = student.id
        await soft_delete.soft_delete(Student, student_id, ctx)

        restored = await soft_delete.restore(Student, student_id, ctx)

        assert restored.is_deleted is False
        assert (await StudentService(test_db).get(student_id)).id == student_id

    @pytest.mark.anyio
    async def test_delete_twice(self, soft_delete, ctx, make_student):
        student = await make_student()
        student_id = student.id
        await soft_delete.soft_delete(Student, student_id, ctx)

        with pytest.raises(InvalidStateError):
            await soft_delete.soft_delete(Student, student_id, ctx)

    @pytest.mark.anyio
    async def test_restore_not_deleted(self, soft_delete, ctx, make_student):
        student = await make_student()

        with pytest.raises(InvalidStateError):
            await soft_delete.restore(Student, student.id, ctx)

    @pytest.mark.anyio
    async def test_unknown_entity(self, soft_delete, ctx):
        with pytest.raises(NotFoundError):
            await soft_delete.soft_delete(BookTitle, uuid.uuid4(), ctx)

    @pytest.mark.anyio
    async def test_deleted_title_keeps_copies(self, test_db, soft_delete, clock, cache, ctx, make_title):
        title = await make_title(copies=2)
        title_id = title.id

        await soft_delete.soft_delete(BookTitle, title_id, ctx)

        copies = await CatalogService(test_db, clock, cache).copy_repo.list_by_title(title_id)
        assert len(copies) == 2
        assert all(not copy.is_deleted for copy in copies)

    @pytest.mark.anyio
    async def test_delete_and_restore_are_audited(self, test_db, soft_delete, ctx, make_student):
        student = await make_student()
        student_id = student.id
        await soft_delete.soft_delete(Student, student_id, ctx)
        await soft_delete.restore(Student, student_id, ctx)

        trail = await AuditService(test_db).trail("Student", student_id)

        assert {log.action for log in trail} == {AuditAction.DELETE, AuditAction.RESTORE}
        assert all(log.teacher_id == ctx.actor_id for log in trail)


class TestAuditTrail:

    @pytest.mark.anyio
    async def test_details_are_serialized(self, test_db, clock, cache, ctx, make_student, make_title, make_copy):
        student = await make_student()
        copy = await make_copy(await make_title())

        loan = await LoanService(test_db, clock, cache).open_loan(student.id, copy.id, ctx)

        [log] = await AuditService(test_db).trail("Loan", loan.id)
        assert log.details["student_id"] == str(student.id)
        assert log.details["book_copy_id"] == str(copy.id)
        assert log.ip_address == "127.0.0.1"
        assert log.user_agent == "pytest"

    @pytest.mark.anyio
    async def test_by_teacher(self, test_db, librarian, soft_delete, ctx, make_student):
        student = await make_student()
        await soft_delete.soft_delete(Student, student.id, ctx)

        logs = await AuditService(test_db).by_teacher(librarian.id)

        assert [log.action for log in logs] == [AuditAction.DELETE]


class TestAtomicity:

    @pytest.mark.anyio
    async def test_audit_failure_rolls_back_loan(self, test_db, clock, cache, ctx, make_student, make_title, make_copy):
        """Sem auditoria não há empréstimo: o status da cópia também volta."""
        student = await make_student()
        copy = await make_copy(await make_title())
        student_id, copy_id = student.id, copy.id

        with patch.object(AuditService, "record", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
            with pytest.raises(StorageFailureError) as exc_info:
                await LoanService(test_db, clock, cache).open_loan(student_id, copy_id, ctx)

        assert exc_info.value.kind == "StorageFailure"
        loans = (await test_db.execute(select(func.count(Loan.id)))).scalar_one()
        assert loans == 0
        copy = await BookCopyRepository(test_db).get_by_id(copy_id)
        assert copy.status == CopyStatus.AVAILABLE

    @pytest.mark.anyio
    async def test_audit_error_propagates_unchanged(self, test_db, soft_delete, ctx, make_student):
        student = await make_student()
        student_id = student.id

        with patch.object(AuditService, "record", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                await soft_delete.soft_delete(Student, student_id, ctx)

        restored = await StudentService(test_db).get(student_id)
        assert restored.is_deleted is False
        assert (await test_db.execute(select(func.count(AuditLog.id)))).scalar_one() == 0

    @pytest.mark.anyio
    async def test_second_open_loan_for_copy_is_conflict(
        self, test_db, clock, cache, ctx, make_student, make_title, make_copy
    ):
        """O índice único impede dois empréstimos abertos da mesma cópia."""
        first = await make_student("Lena")
        second = await make_student("Paul")
        copy = await make_copy(await make_title())
        second_id, copy_id = second.id, copy.id
        await LoanService(test_db, clock, cache).open_loan(first.id, copy_id, ctx)

        with pytest.raises(ConflictError):
            async with atomic(test_db):
                test_db.add(
                    Loan(
                        student_id=second_id,
                        book_copy_id=copy_id,
                        borrowed_at=clock.now,
                        due_date=clock.now + timedelta(days=14),
                        status=LoanStatus.ACTIVE,
                    )
                )

        open_loans = (
            await test_db.execute(
                select(func.count(Loan.id)).where(Loan.book_copy_id == copy_id, Loan.returned_at.is_(None))
            )
        ).scalar_one()
        assert open_loans == 1
