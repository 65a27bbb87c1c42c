"""
Service para lógica de negócio de reservas (Reservation).

Regras de negócio:
    - Reserva é por título (qualquer cópia serve)
    - Estudante pode ter no máximo MaxActiveReservationsPerStudent
      reservas ativas; default 3
    - Criar reserva repetida (mesmo estudante, mesmo título, ainda ativa)
      devolve a reserva existente
    - Se há cópia AVAILABLE, a melhor é separada na hora (RESERVED);
      senão a reserva entra na fila FIFO (reserved_at)
    - Reserva ativa = não cancelada e expires_at > now; expiração é
      derivada, o sweep só devolve à circulação as cópias presas
    - A retirada (fulfill) é explícita: abre o empréstimo e encerra a
      reserva com motivo "FULFILLED"
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.cache import CacheService, cache_service
from school_library.core.clock import Clock, utcnow
from school_library.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ReservationLimitReachedError,
    ValidationError,
)
from school_library.db.transaction import atomic
from school_library.models import predicates
from school_library.models.enums import AuditAction, CopyStatus, FULFILLED_REASON
from school_library.models.loan import Loan
from school_library.models.reservation import Reservation
from school_library.repositories.book import BookCopyRepository, BookTitleRepository
from school_library.repositories.reservation import ReservationRepository
from school_library.repositories.student import StudentRepository
from school_library.schemas.audit import SYSTEM_CONTEXT, AuditContext
from school_library.schemas.reservation import SweepResult
from school_library.services.audit import AuditService
from school_library.services.holds import HoldQueue
from school_library.services.loan import LoanService
from school_library.services.settings import SettingsService

logger = logging.getLogger(__name__)


class ReservationService:
    """Service para operações de reserva."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow, cache: CacheService | None = None):
        self.db = db
        self.clock = clock
        self.cache = cache or cache_service
        self.reservation_repo = ReservationRepository(db)
        self.student_repo = StudentRepository(db)
        self.title_repo = BookTitleRepository(db)
        self.copy_repo = BookCopyRepository(db)
        self.audit = AuditService(db)
        self.holds = HoldQueue(db)
        self.settings = SettingsService(db, self.cache)
        self.loans = LoanService(db, clock, self.cache)

    # ==========================================
    # Leitura
    # ==========================================

    async def get_reservation(self, reservation_id: UUID, include_deleted: bool = False) -> Reservation:
        """
        Busca reserva por ID.

        Raises:
            NotFoundError: Reserva não encontrada
        """
        reservation = await self.reservation_repo.get_by_id(reservation_id, include_deleted=include_deleted)
        if not reservation:
            raise NotFoundError("Reserva não encontrada", {"reservation_id": str(reservation_id)})
        return reservation

    async def queue_position(self, reservation: Reservation) -> int | None:
        """
        Posição 1-based na fila do título.

        None se a reserva não está ativa ou já tem cópia separada.
        """
        now = self.clock()
        if not predicates.reservation_is_active(reservation, now) or reservation.book_copy_id is not None:
            return None
        return await self.reservation_repo.queue_position(reservation, now)

    # ==========================================
    # Create Reservation
    # ==========================================

    async def create_reservation(
        self,
        student_id: UUID,
        book_title_id: UUID,
        ctx: AuditContext,
        duration_days: int | None = None,
    ) -> Reservation:
        """
        Cria uma reserva de título para um estudante.

        Fluxo (uma transação):
            1. Valida título (existe, tem cópia em circulação) e estudante
            2. Reserva ativa do mesmo estudante/título? Devolve ela
            3. Verifica limite de reservas ativas
            4. Escolhe a melhor cópia AVAILABLE, se houver
            5. Cria a reserva (expires_at = now + duração) e, com cópia,
               AVAILABLE -> RESERVED (ConflictError se perdeu a corrida)
            6. Registra auditoria

        Args:
            student_id: ID do estudante
            book_title_id: ID do título
            ctx: Contexto de auditoria
            duration_days: Prazo em dias (default: ReservationDurationDays)

        Returns:
            Reserva criada ou a já existente

        Raises:
            ValidationError: duration_days < 1
            NotFoundError: Título ou estudante ausentes/removidos
            InvalidStateError: Estudante inativo ou título sem cópias em circulação
            ReservationLimitReachedError: Limite de reservas atingido
            ConflictError: A cópia escolhida foi emprestada concorrentemente
        """
        if duration_days is not None and duration_days < 1:
            raise ValidationError("Prazo deve ser de pelo menos 1 dia", {"duration_days": duration_days})

        now = self.clock()

        async with atomic(self.db):
            title = await self.title_repo.get_by_id(book_title_id)
            if not title:
                raise NotFoundError("Livro não encontrado", {"book_title_id": str(book_title_id)})

            student = await self.student_repo.get_by_id(student_id)
            if not student:
                raise NotFoundError("Estudante não encontrado", {"student_id": str(student_id)})
            if not student.is_active:
                raise InvalidStateError("Estudante inativo", {"student_id": str(student_id)})

            existing = await self.reservation_repo.get_active_by_student_and_title(
                student_id, book_title_id, now
            )
            if existing:
                logger.info(f"Reserva {existing.id} já existente devolvida para estudante {student_id}")
                return existing

            if await self.copy_repo.count_circulating(book_title_id) == 0:
                raise InvalidStateError(
                    "Livro não possui cópias em circulação",
                    {"book_title_id": str(book_title_id)},
                )

            circulation = await self.settings.circulation()
            active_count = await self.reservation_repo.count_active_by_student(student_id, now)
            if active_count >= circulation.max_active_reservations:
                raise ReservationLimitReachedError(
                    f"Estudante já possui {active_count} reservas ativas",
                    {"student_id": str(student_id), "limit": circulation.max_active_reservations},
                )

            copy = await self.copy_repo.best_available(book_title_id)

            duration = duration_days or circulation.reservation_duration_days
            reservation = await self.reservation_repo.create(
                student_id=student_id,
                book_title_id=book_title_id,
                reserved_at=now,
                expires_at=now + timedelta(days=duration),
                is_notified=False,
            )

            if copy is not None:
                if not await self.copy_repo.transition_status(
                    copy.id, CopyStatus.AVAILABLE, CopyStatus.RESERVED, now
                ):
                    raise ConflictError(
                        f"Cópia {copy.qr_code} foi emprestada por outra operação; tente novamente",
                        {"book_copy_id": str(copy.id)},
                    )
                reservation = await self.reservation_repo.update(reservation, book_copy_id=copy.id)
                await self.copy_repo.refresh(copy)

            await self.audit.record(
                ctx,
                AuditAction.RESERVATION_CREATE,
                "Reservation",
                reservation.id,
                {
                    "student_id": student_id,
                    "book_title_id": book_title_id,
                    "book_copy_id": reservation.book_copy_id,
                    "expires_at": reservation.expires_at,
                },
            )

        await self.cache.invalidate_availability(book_title_id)
        logger.info(
            f"Reserva {reservation.id} criada para estudante {student_id} "
            f"({'cópia separada' if reservation.book_copy_id else 'na fila'})"
        )
        return reservation

    # ==========================================
    # Cancel Reservation
    # ==========================================

    async def cancel_reservation(
        self,
        reservation_id: UUID,
        ctx: AuditContext,
        reason: str | None = None,
    ) -> Reservation:
        """
        Cancela uma reserva.

        Se ela segurava uma cópia RESERVED (e nenhuma outra reserva ativa
        a segura), a cópia passa para a próxima da fila ou fica AVAILABLE.

        Raises:
            NotFoundError: Reserva não encontrada
            ConflictError: Reserva já cancelada
        """
        now = self.clock()

        async with atomic(self.db):
            reservation = await self.get_reservation(reservation_id)

            if not await self.reservation_repo.cancel(reservation.id, now, reason):
                raise ConflictError(
                    "Reserva já foi cancelada",
                    {"reservation_id": str(reservation_id)},
                )
            await self.reservation_repo.refresh(reservation)

            released = await self._release_held_copy(reservation, now)

            await self.audit.record(
                ctx,
                AuditAction.RESERVATION_CANCEL,
                "Reservation",
                reservation.id,
                {"reason": reason, "released_copy_status": released},
            )

        await self.cache.invalidate_availability(reservation.book_title_id)
        logger.info(f"Reserva {reservation.id} cancelada ({reason or 'sem motivo'})")
        return reservation

    async def _release_held_copy(self, reservation: Reservation, now: datetime) -> str | None:
        """
        Libera a cópia que a reserva segurava, se ainda RESERVED para ela.

        Returns:
            Novo status da cópia, ou None se nada foi liberado
        """
        if reservation.book_copy_id is None:
            return None

        copy = await self.copy_repo.get_by_id(reservation.book_copy_id, include_deleted=True)
        if copy is None or copy.status != CopyStatus.RESERVED:
            return None
        if await self.reservation_repo.active_holder_exists(copy.id, now, exclude_id=reservation.id):
            return None

        circulation = await self.settings.circulation()
        outcome = await self.holds.release(
            copy, CopyStatus.RESERVED, now, circulation.reservation_duration_days
        )
        await self.copy_repo.refresh(copy)
        return outcome.status.value

    # ==========================================
    # Fulfill Reservation
    # ==========================================

    async def fulfill_reservation(self, reservation_id: UUID, ctx: AuditContext) -> Loan:
        """
        Retirada da reserva: empresta a cópia separada ao estudante.

        Fluxo (uma transação):
            1. Reserva deve estar ativa e ter cópia separada
            2. Abre empréstimo com a cópia RESERVED -> BORROWED
               (limite de empréstimos vale normalmente)
            3. Encerra a reserva com motivo "FULFILLED"

        Returns:
            Loan criado

        Raises:
            NotFoundError: Reserva não encontrada
            ConflictError: Reserva já cancelada ou retirada
            InvalidStateError: Reserva expirada ou ainda sem cópia
            LoanLimitReachedError: Estudante no limite de empréstimos
            CopyUnavailableError: Cópia não está mais RESERVED
        """
        now = self.clock()

        async with atomic(self.db):
            reservation = await self.get_reservation(reservation_id)

            if reservation.cancelled_at is not None:
                raise ConflictError(
                    "Reserva já foi cancelada ou retirada",
                    {"reservation_id": str(reservation_id)},
                )
            if predicates.reservation_is_expired(reservation, now):
                raise InvalidStateError("Reserva expirada", {"reservation_id": str(reservation_id)})
            if reservation.book_copy_id is None:
                raise InvalidStateError(
                    "Nenhuma cópia separada para esta reserva ainda",
                    {"reservation_id": str(reservation_id)},
                )

            loan = await self.loans._open(
                reservation.student_id,
                reservation.book_copy_id,
                CopyStatus.RESERVED,
                ctx,
                None,
                None,
                now,
            )

            if not await self.reservation_repo.cancel(reservation.id, now, FULFILLED_REASON):
                raise ConflictError(
                    "Reserva alterada por outra operação",
                    {"reservation_id": str(reservation_id)},
                )
            await self.reservation_repo.refresh(reservation)

            await self.audit.record(
                ctx,
                AuditAction.RESERVATION_FULFILL,
                "Reservation",
                reservation.id,
                {"loan_id": loan.id, "book_copy_id": reservation.book_copy_id},
            )

        await self.cache.invalidate_availability(reservation.book_title_id)
        logger.info(f"Reserva {reservation.id} retirada; empréstimo {loan.id}")
        return loan

    # ==========================================
    # Sweep / notificação
    # ==========================================

    async def sweep(self, ctx: AuditContext = SYSTEM_CONTEXT) -> SweepResult:
        """
        Devolve à circulação as cópias presas em reservas vencidas.

        Para cada cópia RESERVED cuja reserva mais recente venceu e que não
        é segurada por outra reserva ativa: a cópia vai para a próxima da
        fila ou fica AVAILABLE, e essa reserva é marcada como notificada.
        ``examined`` conta só as cópias efetivamente liberadas.

        Idempotente: uma segunda execução não encontra nada a fazer.
        """
        now = self.clock()
        examined = to_shelf = to_next = 0
        title_ids: set[UUID] = set()

        async with atomic(self.db):
            circulation = await self.settings.circulation()
            expired = await self.reservation_repo.expired_holding_reserved_copy(now)

            for reservation in expired:
                if await self.reservation_repo.active_holder_exists(
                    reservation.book_copy_id, now, exclude_id=reservation.id
                ):
                    continue

                copy = await self.copy_repo.get_by_id(reservation.book_copy_id, include_deleted=True)
                if copy.status != CopyStatus.RESERVED:
                    continue

                outcome = await self.holds.release(
                    copy, CopyStatus.RESERVED, now, circulation.reservation_duration_days
                )
                await self.copy_repo.refresh(copy)
                await self.reservation_repo.set_notified(reservation.id, now)

                examined += 1
                if outcome.reservation_id:
                    to_next += 1
                else:
                    to_shelf += 1
                title_ids.add(reservation.book_title_id)

            if examined:
                await self.audit.record(
                    ctx,
                    AuditAction.RESERVATION_SWEEP,
                    "Reservation",
                    None,
                    {
                        "examined": examined,
                        "released_to_shelf": to_shelf,
                        "passed_to_next": to_next,
                    },
                )

        await self.cache.invalidate_availability(*title_ids)
        if examined:
            logger.info(
                f"Sweep de reservas: {examined} vencida(s), {to_shelf} cópia(s) na estante, "
                f"{to_next} passada(s) adiante"
            )

        return SweepResult(
            examined=examined,
            released_to_shelf=to_shelf,
            passed_to_next=to_next,
            book_title_ids=sorted(title_ids, key=str),
            message=f"{to_shelf + to_next} cópia(s) liberada(s)",
        )

    async def mark_notified(self, reservation_id: UUID, ctx: AuditContext = SYSTEM_CONTEXT) -> Reservation:
        """
        Confirma que o estudante foi avisado (disparo externo de notificação).

        Idempotente: marcar de novo não muda nada.

        Raises:
            NotFoundError: Reserva não encontrada
        """
        now = self.clock()

        async with atomic(self.db):
            reservation = await self.get_reservation(reservation_id)
            if await self.reservation_repo.set_notified(reservation.id, now):
                await self.reservation_repo.refresh(reservation)
                await self.audit.record(
                    ctx, AuditAction.UPDATE, "Reservation", reservation.id, {"is_notified": True}
                )

        return reservation
