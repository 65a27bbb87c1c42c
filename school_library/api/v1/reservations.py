"""
Endpoints de Reservas (Reservation).

Contratos:
    - POST /reservations: Reserva um título para um estudante
    - GET /reservations: Reservas ativas (filtro por título)
    - GET /reservations/{id}: Detalhes com posição na fila
    - POST /reservations/{id}/cancel: Cancela a reserva
    - POST /reservations/{id}/fulfill: Retirada (vira empréstimo)
    - POST /reservations/{id}/notified: Confirma aviso ao estudante

Reservas são por título: a cópia é separada na criação (se houver
AVAILABLE) ou quando uma cópia é devolvida.

Status codes:
    - 200: Sucesso
    - 201: Criado com sucesso
    - 400: Limite de reservas/empréstimos atingido
    - 401: Não autenticado
    - 404: Reserva, estudante ou título não encontrado
    - 409: Reserva já encerrada, expirada ou sem cópia separada
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from school_library.core.deps import Audit, CurrentTeacher, DbSession
from school_library.schemas.loan import LoanRead
from school_library.schemas.reservation import (
    ReservationCancel,
    ReservationCreate,
    ReservationDetail,
    ReservationRead,
)
from school_library.services.reporting import ReportingService
from school_library.services.reservation import ReservationService

router = APIRouter(prefix="/reservations", tags=["Reservations"])


async def _read(service: ReservationService, reservation) -> ReservationRead:
    position = await service.queue_position(reservation)
    return ReservationRead.from_reservation(reservation, service.clock(), position)


@router.post(
    "",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Criar reserva",
    description="""
    Reserva um título. Se houver cópia disponível ela é separada na hora;
    caso contrário o estudante entra na fila (FIFO por data da reserva).

    Reserva ativa repetida para o mesmo título devolve a existente.
    """,
)
async def create_reservation(data: ReservationCreate, db: DbSession, ctx: Audit) -> ReservationRead:
    service = ReservationService(db)
    reservation = await service.create_reservation(
        data.student_id,
        data.book_title_id,
        ctx,
        duration_days=data.duration_days,
    )
    return await _read(service, reservation)


@router.get(
    "",
    response_model=list[ReservationDetail],
    summary="Reservas ativas",
)
async def list_active_reservations(
    db: DbSession,
    teacher: CurrentTeacher,
    book_title_id: UUID | None = Query(None, description="Filtrar por título"),
) -> list[ReservationDetail]:
    return await ReportingService(db).active_reservations(book_title_id)


@router.get(
    "/{reservation_id}",
    response_model=ReservationRead,
    summary="Detalhes da reserva",
)
async def get_reservation(reservation_id: UUID, db: DbSession, teacher: CurrentTeacher) -> ReservationRead:
    service = ReservationService(db)
    return await _read(service, await service.get_reservation(reservation_id))


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationRead,
    summary="Cancelar reserva",
    description="A cópia separada, se houver, vai para a próxima reserva ou volta à estante.",
)
async def cancel_reservation(
    reservation_id: UUID,
    db: DbSession,
    ctx: Audit,
    data: ReservationCancel | None = None,
) -> ReservationRead:
    data = data or ReservationCancel()
    service = ReservationService(db)
    reservation = await service.cancel_reservation(reservation_id, ctx, reason=data.reason)
    return await _read(service, reservation)


@router.post(
    "/{reservation_id}/fulfill",
    response_model=LoanRead,
    status_code=status.HTTP_201_CREATED,
    summary="Retirar reserva",
    description="Empresta a cópia separada ao estudante e encerra a reserva.",
)
async def fulfill_reservation(reservation_id: UUID, db: DbSession, ctx: Audit) -> LoanRead:
    service = ReservationService(db)
    loan = await service.fulfill_reservation(reservation_id, ctx)
    return LoanRead.from_loan(loan, service.clock())


@router.post(
    "/{reservation_id}/notified",
    response_model=ReservationRead,
    summary="Confirmar aviso ao estudante",
)
async def mark_notified(reservation_id: UUID, db: DbSession, ctx: Audit) -> ReservationRead:
    service = ReservationService(db)
    return await _read(service, await service.mark_notified(reservation_id, ctx))
