"""
Testes do StudentService.
"""

import pytest

from school_library.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from school_library.schemas.student import StudentCreate, StudentUpdate
from school_library.services.student import StudentService


@pytest.fixture
def students(test_db) -> StudentService:
    return StudentService(test_db)


class TestStudentService:

    @pytest.mark.anyio
    async def test_create_and_find_by_qr_code(self, students, ctx):
        student = await students.create(StudentCreate(first_name="Lena", class_code="5b", qr_code="STU-000123"), ctx)

        assert student.is_active is True
        assert (await students.get_by_qr_code("STU-000123")).id == student.id

    @pytest.mark.anyio
    async def test_duplicate_qr_code(self, students, ctx, make_student):
        await make_student(qr_code="STU-000123")

        with pytest.raises(ConflictError):
            await students.create(StudentCreate(first_name="Paul", class_code="5b", qr_code="STU-000123"), ctx)

    @pytest.mark.anyio
    async def test_list_by_class(self, students, make_student):
        await make_student("Lena", "5b")
        await make_student("Paul", "5b")
        await make_student("Jonas", "7a")

        items, total = await students.list(class_code="5b")

        assert total == 2
        assert {student.first_name for student in items} == {"Lena", "Paul"}

    @pytest.mark.anyio
    async def test_update(self, students, ctx, make_student):
        student = await make_student("Lena", "5b")

        updated = await students.update(student.id, StudentUpdate(class_code="6b"), ctx)

        assert updated.class_code == "6b"
        assert updated.first_name == "Lena"

    @pytest.mark.anyio
    async def test_deactivate(self, students, ctx, make_student):
        student = await make_student()
        student_id = student.id

        deactivated = await students.deactivate(student_id, ctx)
        assert deactivated.is_active is False

        with pytest.raises(InvalidStateError):
            await students.deactivate(student_id, ctx)

    @pytest.mark.anyio
    async def test_unknown_qr_code(self, students):
        with pytest.raises(NotFoundError):
            await students.get_by_qr_code("STU-NOPE")
