"""
Endpoints de Empréstimos (Loan).

Contratos:
    - POST /loans: Abre empréstimo de uma cópia AVAILABLE
    - GET /loans: Lista empréstimos com filtros
    - GET /loans/overdue: Empréstimos em atraso
    - GET /loans/due-soon: Empréstimos que vencem nos próximos dias
    - GET /loans/reminders/{tier}: Empréstimos que devem receber o lembrete
    - GET /loans/{id}: Detalhes do empréstimo
    - POST /loans/{id}/return: Devolve a cópia
    - POST /loans/{id}/renew: Renova o prazo
    - POST /loans/{id}/lost: Marca como perdido
    - POST /loans/{id}/reminders/{tier}: Registra lembrete enviado

Status codes:
    - 200: Sucesso
    - 201: Criado com sucesso
    - 400: Limite de empréstimos atingido
    - 401: Não autenticado
    - 404: Empréstimo, estudante ou cópia não encontrado
    - 409: Cópia indisponível, reserva pendente ou empréstimo já devolvido
    - 422: Erro de validação
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from school_library.core.deps import Audit, CurrentTeacher, DbSession
from school_library.models.enums import LoanStatus, ReminderTier
from school_library.schemas.base import MessageResponse, PaginatedResponse
from school_library.schemas.loan import (
    LoanCreate,
    LoanDetail,
    LoanRead,
    LoanRenewRequest,
    LoanReturnRequest,
)
from school_library.services.loan import LoanService
from school_library.services.reporting import ReportingService

router = APIRouter(prefix="/loans", tags=["Loans"])


@router.post(
    "",
    response_model=LoanRead,
    status_code=status.HTTP_201_CREATED,
    summary="Abrir empréstimo",
    description="""
    Empresta uma cópia AVAILABLE a um estudante ativo.

    **Regras:**
    - Máximo de MaxActiveLoansPerStudent empréstimos abertos
    - Prazo padrão de LoanDurationDays dias
    - Cópias separadas para reserva saem apenas por /reservations/{id}/fulfill
    """,
)
async def open_loan(data: LoanCreate, db: DbSession, ctx: Audit) -> LoanRead:
    service = LoanService(db)
    loan = await service.open_loan(
        data.student_id,
        data.book_copy_id,
        ctx,
        duration_days=data.duration_days,
        notes=data.notes,
    )
    return LoanRead.from_loan(loan, service.clock())


@router.get(
    "",
    response_model=PaginatedResponse[LoanRead],
    summary="Listar empréstimos",
)
async def list_loans(
    db: DbSession,
    teacher: CurrentTeacher,
    page: int = Query(1, ge=1, description="Número da página"),
    page_size: int = Query(20, ge=1, le=100, description="Itens por página"),
    student_id: UUID | None = Query(None, description="Filtrar por estudante"),
    book_title_id: UUID | None = Query(None, description="Filtrar por título"),
    loan_status: LoanStatus | None = Query(None, alias="status", description="Filtrar por status"),
    open_only: bool = Query(False, description="Apenas empréstimos abertos"),
) -> PaginatedResponse[LoanRead]:
    service = LoanService(db)
    loans, total = await service.list_loans(
        student_id=student_id,
        book_title_id=book_title_id,
        status=loan_status,
        open_only=open_only,
        page=page,
        page_size=page_size,
    )
    now = service.clock()
    return PaginatedResponse.create(
        items=[LoanRead.from_loan(loan, now) for loan in loans],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/overdue",
    response_model=list[LoanDetail],
    summary="Empréstimos em atraso",
)
async def overdue_loans(db: DbSession, teacher: CurrentTeacher) -> list[LoanDetail]:
    return await ReportingService(db).overdue_loans()


@router.get(
    "/due-soon",
    response_model=list[LoanDetail],
    summary="Empréstimos a vencer",
)
async def due_soon_loans(
    db: DbSession,
    teacher: CurrentTeacher,
    days: int = Query(3, ge=0, le=60, description="Janela em dias"),
) -> list[LoanDetail]:
    return await ReportingService(db).due_soon_loans(days)


@router.get(
    "/reminders/{tier}",
    response_model=list[LoanRead],
    summary="Empréstimos pendentes de lembrete",
    description="Lista o que o serviço de notificação deve enviar para o nível informado.",
)
async def loans_needing_reminder(tier: ReminderTier, db: DbSession, teacher: CurrentTeacher) -> list[LoanRead]:
    service = LoanService(db)
    loans = await service.loans_needing_reminder(tier)
    now = service.clock()
    return [LoanRead.from_loan(loan, now) for loan in loans]


@router.get(
    "/{loan_id}",
    response_model=LoanRead,
    summary="Detalhes do empréstimo",
)
async def get_loan(loan_id: UUID, db: DbSession, teacher: CurrentTeacher) -> LoanRead:
    service = LoanService(db)
    return LoanRead.from_loan(await service.get_loan(loan_id), service.clock())


@router.post(
    "/{loan_id}/return",
    response_model=LoanRead,
    summary="Devolver empréstimo",
    description="""
    Encerra o empréstimo. A cópia vai para a próxima reserva da fila
    ou volta para a estante. Com condition=DAMAGED a cópia sai de circulação.
    """,
)
async def return_loan(
    loan_id: UUID,
    db: DbSession,
    ctx: Audit,
    data: LoanReturnRequest | None = None,
) -> LoanRead:
    data = data or LoanReturnRequest()
    service = LoanService(db)
    loan = await service.return_loan(loan_id, ctx, condition=data.condition, notes=data.notes)
    return LoanRead.from_loan(loan, service.clock())


@router.post(
    "/{loan_id}/renew",
    response_model=LoanRead,
    summary="Renovar empréstimo",
    description="Bloqueado quando outro estudante aguarda o título.",
)
async def renew_loan(
    loan_id: UUID,
    db: DbSession,
    ctx: Audit,
    data: LoanRenewRequest | None = None,
) -> LoanRead:
    data = data or LoanRenewRequest()
    service = LoanService(db)
    loan = await service.renew_loan(loan_id, ctx, extension_days=data.extension_days)
    return LoanRead.from_loan(loan, service.clock())


@router.post(
    "/{loan_id}/lost",
    response_model=LoanRead,
    summary="Marcar empréstimo como perdido",
)
async def mark_lost(loan_id: UUID, db: DbSession, ctx: Audit) -> LoanRead:
    service = LoanService(db)
    loan = await service.mark_lost(loan_id, ctx)
    return LoanRead.from_loan(loan, service.clock())


@router.post(
    "/{loan_id}/reminders/{tier}",
    response_model=MessageResponse,
    summary="Registrar lembrete enviado",
)
async def record_reminder(loan_id: UUID, tier: ReminderTier, db: DbSession, ctx: Audit) -> MessageResponse:
    sent = await LoanService(db).record_reminder_sent(loan_id, tier, ctx)
    if sent:
        return MessageResponse(message=f"Lembrete {tier.value} registrado")
    return MessageResponse(message=f"Lembrete {tier.value} já havia sido registrado")
