"""
Endpoints de Estudantes.

Contratos:
    - POST /students: Cadastra estudante
    - GET /students: Lista paginada (filtro por turma/termo)
    - GET /students/by-qr/{qr_code}: Busca pela carteirinha
    - GET /students/{id}: Detalhes
    - PATCH /students/{id}: Atualiza nome/turma/situação
    - POST /students/{id}/deactivate: Desativa
    - DELETE /students/{id}: Soft delete (somente ADMIN)
    - POST /students/{id}/restore: Desfaz soft delete (somente ADMIN)
    - GET /students/{id}/loans: Empréstimos do estudante
    - GET /students/{id}/reservations: Reservas do estudante

Todos os endpoints exigem professor autenticado.
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from school_library.core.deps import AdminTeacher, Audit, CurrentTeacher, DbSession
from school_library.models.student import Student
from school_library.schemas.base import PaginatedResponse
from school_library.schemas.loan import LoanRead
from school_library.schemas.reservation import ReservationRead
from school_library.schemas.student import StudentCreate, StudentRead, StudentUpdate
from school_library.services.reporting import ReportingService
from school_library.services.soft_delete import SoftDeleteService
from school_library.services.student import StudentService

router = APIRouter(prefix="/students", tags=["Students"])


@router.post(
    "",
    response_model=StudentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Cadastrar estudante",
)
async def create_student(data: StudentCreate, db: DbSession, ctx: Audit) -> StudentRead:
    service = StudentService(db)
    student = await service.create(data, ctx)
    return StudentRead.model_validate(student)


@router.get(
    "",
    response_model=PaginatedResponse[StudentRead],
    summary="Listar estudantes",
)
async def list_students(
    db: DbSession,
    teacher: CurrentTeacher,
    page: int = Query(1, ge=1, description="Número da página"),
    page_size: int = Query(20, ge=1, le=100, description="Itens por página"),
    class_code: str | None = Query(None, description="Filtrar por turma"),
    term: str | None = Query(None, description="Busca parcial em nome ou QR code"),
    active_only: bool = Query(False, description="Apenas estudantes ativos"),
) -> PaginatedResponse[StudentRead]:
    service = StudentService(db)
    students, total = await service.list(
        class_code=class_code,
        term=term,
        active_only=active_only,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.create(
        items=[StudentRead.model_validate(s) for s in students],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/by-qr/{qr_code}",
    response_model=StudentRead,
    summary="Buscar estudante pela carteirinha",
)
async def get_student_by_qr(qr_code: str, db: DbSession, teacher: CurrentTeacher) -> StudentRead:
    service = StudentService(db)
    return StudentRead.model_validate(await service.get_by_qr_code(qr_code))


@router.get(
    "/{student_id}",
    response_model=StudentRead,
    summary="Detalhes do estudante",
)
async def get_student(student_id: UUID, db: DbSession, teacher: CurrentTeacher) -> StudentRead:
    service = StudentService(db)
    return StudentRead.model_validate(await service.get(student_id))


@router.patch(
    "/{student_id}",
    response_model=StudentRead,
    summary="Atualizar estudante",
)
async def update_student(student_id: UUID, data: StudentUpdate, db: DbSession, ctx: Audit) -> StudentRead:
    service = StudentService(db)
    return StudentRead.model_validate(await service.update(student_id, data, ctx))


@router.post(
    "/{student_id}/deactivate",
    response_model=StudentRead,
    summary="Desativar estudante",
)
async def deactivate_student(student_id: UUID, db: DbSession, ctx: Audit) -> StudentRead:
    service = StudentService(db)
    return StudentRead.model_validate(await service.deactivate(student_id, ctx))


@router.delete(
    "/{student_id}",
    response_model=StudentRead,
    summary="Remover estudante (soft delete)",
    description="Oculta o estudante das leituras. Histórico é preservado. **Requer ADMIN.**",
)
async def delete_student(student_id: UUID, db: DbSession, admin: AdminTeacher, ctx: Audit) -> StudentRead:
    service = SoftDeleteService(db)
    return StudentRead.model_validate(await service.soft_delete(Student, student_id, ctx))


@router.post(
    "/{student_id}/restore",
    response_model=StudentRead,
    summary="Restaurar estudante removido",
)
async def restore_student(student_id: UUID, db: DbSession, admin: AdminTeacher, ctx: Audit) -> StudentRead:
    service = SoftDeleteService(db)
    return StudentRead.model_validate(await service.restore(Student, student_id, ctx))


@router.get(
    "/{student_id}/loans",
    response_model=list[LoanRead],
    summary="Empréstimos do estudante",
)
async def student_loans(
    student_id: UUID,
    db: DbSession,
    teacher: CurrentTeacher,
    include_returned: bool = Query(True, description="Incluir empréstimos encerrados"),
) -> list[LoanRead]:
    await StudentService(db).get(student_id)
    return await ReportingService(db).loans_of(student_id, include_returned=include_returned)


@router.get(
    "/{student_id}/reservations",
    response_model=list[ReservationRead],
    summary="Reservas do estudante",
)
async def student_reservations(
    student_id: UUID,
    db: DbSession,
    teacher: CurrentTeacher,
    active_only: bool = Query(False, description="Apenas reservas ativas"),
) -> list[ReservationRead]:
    await StudentService(db).get(student_id)
    return await ReportingService(db).reservations_of(student_id, active_only=active_only)
