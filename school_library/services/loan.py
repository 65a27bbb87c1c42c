"""
Service para lógica de negócio de empréstimos (Loan).

Regras de negócio:
    - Estudante pode ter no máximo MaxActiveLoansPerStudent empréstimos
      abertos (ACTIVE ou RENEWED); default 3
    - Prazo padrão: LoanDurationDays (default 14 dias)
    - Só cópias AVAILABLE podem ser emprestadas; cópias RESERVED saem
      apenas pela retirada da reserva (ReservationService.fulfill_reservation)
    - Renovação bloqueada se outro estudante aguarda o título
    - Atraso é derivado (due_date < now), nunca gravado
    - Cada lembrete (FIRST, SECOND, OVERDUE) é marcado no máximo uma vez

Toda operação de escrita roda numa única transação (``atomic``):
checagem de estado, checagem de limite, compare-and-set da cópia,
gravação do empréstimo e auditoria são confirmados juntos ou nada é.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.cache import CacheService, cache_service
from school_library.core.clock import Clock, utcnow
from school_library.core.exceptions import (
    AlreadyReturnedError,
    ConflictError,
    CopyUnavailableError,
    InvalidStateError,
    LoanLimitReachedError,
    NotFoundError,
    ReservationPendingError,
    ValidationError,
)
from school_library.db.transaction import atomic
from school_library.models import predicates
from school_library.models.book import BookCopy
from school_library.models.enums import (
    AuditAction,
    CopyCondition,
    CopyStatus,
    LoanStatus,
    ReminderTier,
)
from school_library.models.loan import Loan
from school_library.models.student import Student
from school_library.repositories.book import BookCopyRepository
from school_library.repositories.loan import LoanRepository
from school_library.repositories.reservation import ReservationRepository
from school_library.repositories.student import StudentRepository
from school_library.schemas.audit import SYSTEM_CONTEXT, AuditContext
from school_library.services.audit import AuditService
from school_library.services.holds import HoldQueue
from school_library.services.settings import SettingsService

logger = logging.getLogger(__name__)


class LoanService:
    """Service para operações de empréstimo."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow, cache: CacheService | None = None):
        self.db = db
        self.clock = clock
        self.cache = cache or cache_service
        self.loan_repo = LoanRepository(db)
        self.student_repo = StudentRepository(db)
        self.copy_repo = BookCopyRepository(db)
        self.reservation_repo = ReservationRepository(db)
        self.audit = AuditService(db)
        self.holds = HoldQueue(db)
        self.settings = SettingsService(db, self.cache)

    # ==========================================
    # Leitura
    # ==========================================

    async def get_loan(self, loan_id: UUID, include_deleted: bool = False) -> Loan:
        """
        Busca empréstimo por ID.

        Raises:
            NotFoundError: Empréstimo não encontrado
        """
        loan = await self.loan_repo.get_by_id(loan_id, include_deleted=include_deleted)
        if not loan:
            raise NotFoundError("Empréstimo não encontrado", {"loan_id": str(loan_id)})
        return loan

    async def list_loans(
        self,
        student_id: UUID | None = None,
        book_title_id: UUID | None = None,
        status: LoanStatus | None = None,
        open_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Loan], int]:
        return await self.loan_repo.search(
            student_id=student_id,
            book_title_id=book_title_id,
            status=status,
            open_only=open_only,
            page=page,
            page_size=page_size,
        )

    def _ensure_open(self, loan: Loan) -> None:
        if loan.status == LoanStatus.LOST:
            raise InvalidStateError(
                "Empréstimo foi marcado como perdido",
                {"loan_id": str(loan.id)},
            )
        if not predicates.is_open(loan):
            raise AlreadyReturnedError("Empréstimo já foi devolvido", {"loan_id": str(loan.id)})

    # ==========================================
    # Open Loan
    # ==========================================

    async def open_loan(
        self,
        student_id: UUID,
        copy_id: UUID,
        ctx: AuditContext,
        duration_days: int | None = None,
        notes: str | None = None,
    ) -> Loan:
        """
        Empresta uma cópia AVAILABLE a um estudante.

        Fluxo (uma transação):
            1. Busca a cópia e trava a linha do estudante
            2. Verifica status da cópia (AVAILABLE)
            3. Verifica limite de empréstimos abertos
            4. Compare-and-set da cópia AVAILABLE -> BORROWED
            5. Cria o Loan com due_date = now + duração
            6. Registra auditoria

        Args:
            student_id: ID do estudante
            copy_id: ID da cópia
            ctx: Contexto de auditoria
            duration_days: Prazo em dias (default: LoanDurationDays)
            notes: Observações do balcão

        Returns:
            Loan criado

        Raises:
            ValidationError: duration_days < 1
            NotFoundError: Estudante ou cópia ausentes/removidos
            InvalidStateError: Estudante inativo
            CopyUnavailableError: Cópia não está AVAILABLE
            LoanLimitReachedError: Estudante no limite de empréstimos
        """
        if duration_days is not None and duration_days < 1:
            raise ValidationError("Prazo deve ser de pelo menos 1 dia", {"duration_days": duration_days})

        now = self.clock()
        async with atomic(self.db):
            loan = await self._open(
                student_id, copy_id, CopyStatus.AVAILABLE, ctx, duration_days, notes, now
            )
            copy = await self.copy_repo.get_by_id(copy_id)

        await self.cache.invalidate_availability(copy.book_title_id)
        logger.info(f"Empréstimo {loan.id} aberto: cópia {copy.qr_code} para estudante {student_id}")
        return loan

    async def _get_student_for_loan(self, student_id: UUID) -> Student:
        student = await self.student_repo.get_for_update(student_id)
        if not student:
            raise NotFoundError("Estudante não encontrado", {"student_id": str(student_id)})
        if not student.is_active:
            raise InvalidStateError("Estudante inativo", {"student_id": str(student_id)})
        return student

    async def _open(
        self,
        student_id: UUID,
        copy_id: UUID,
        expected_status: CopyStatus,
        ctx: AuditContext,
        duration_days: int | None,
        notes: str | None,
        now: datetime,
    ) -> Loan:
        """
        Núcleo da abertura de empréstimo; roda na transação do chamador.

        ``expected_status`` é AVAILABLE no balcão e RESERVED na retirada
        de uma reserva.
        """
        copy = await self.copy_repo.get_by_id(copy_id)
        if not copy:
            raise NotFoundError("Cópia não encontrada", {"book_copy_id": str(copy_id)})

        await self._get_student_for_loan(student_id)

        if copy.status != expected_status:
            raise CopyUnavailableError(
                f"Cópia {copy.qr_code} não está disponível (status: {copy.status.value})",
                {"book_copy_id": str(copy_id), "status": copy.status.value},
            )

        circulation = await self.settings.circulation()
        open_count = await self.loan_repo.count_open_by_student(student_id)
        if open_count >= circulation.max_active_loans:
            raise LoanLimitReachedError(
                f"Estudante já possui {open_count} empréstimos ativos. "
                f"Devolva um livro antes de pegar outro.",
                {"student_id": str(student_id), "limit": circulation.max_active_loans},
            )

        if not await self.copy_repo.transition_status(copy_id, expected_status, CopyStatus.BORROWED, now):
            raise CopyUnavailableError(
                f"Cópia {copy.qr_code} foi emprestada ou reservada por outra operação",
                {"book_copy_id": str(copy_id)},
            )
        await self.copy_repo.refresh(copy)

        duration = duration_days or circulation.loan_duration_days
        loan = await self.loan_repo.create(
            student_id=student_id,
            book_copy_id=copy_id,
            borrowed_at=now,
            due_date=now + timedelta(days=duration),
            status=LoanStatus.ACTIVE,
            renewals_count=0,
            notes=notes,
        )

        await self.audit.record(
            ctx,
            AuditAction.LOAN_OPEN,
            "Loan",
            loan.id,
            {
                "student_id": student_id,
                "book_copy_id": copy_id,
                "book_title_id": copy.book_title_id,
                "due_date": loan.due_date,
            },
        )
        return loan

    # ==========================================
    # Return Loan
    # ==========================================

    async def return_loan(
        self,
        loan_id: UUID,
        ctx: AuditContext,
        condition: CopyCondition | None = None,
        notes: str | None = None,
    ) -> Loan:
        """
        Processa a devolução de um empréstimo.

        Fluxo:
            1. Encerra o empréstimo (compare-and-set: só se ainda aberto)
            2. Se a cópia voltou danificada: BORROWED -> DAMAGED
            3. Senão libera a cópia: RESERVED para a primeira reserva da
               fila do título, ou AVAILABLE
            4. Registra auditoria

        A retirada da reserva continua sendo um passo explícito.

        Args:
            loan_id: ID do empréstimo
            ctx: Contexto de auditoria
            condition: Conservação observada na devolução
            notes: Observações (anexadas às existentes)

        Returns:
            Loan atualizado

        Raises:
            NotFoundError: Empréstimo não encontrado
            AlreadyReturnedError: Já devolvido
            InvalidStateError: Empréstimo marcado como perdido
        """
        now = self.clock()

        async with atomic(self.db):
            loan = await self.get_loan(loan_id)
            self._ensure_open(loan)
            was_overdue = predicates.is_overdue(loan, now)

            if not await self.loan_repo.close(loan.id, LoanStatus.RETURNED, now, returned=True):
                raise AlreadyReturnedError("Empréstimo já foi devolvido", {"loan_id": str(loan_id)})
            await self.loan_repo.refresh(loan)

            if notes:
                loan = await self.loan_repo.update(
                    loan, notes=f"{loan.notes}\n{notes}" if loan.notes else notes
                )

            copy = await self.copy_repo.get_by_id(loan.book_copy_id, include_deleted=True)
            reservation_id = None

            if condition == CopyCondition.DAMAGED:
                copy = await self.copy_repo.update(copy, condition=CopyCondition.DAMAGED)
                if not await self.copy_repo.transition_status(
                    copy.id, CopyStatus.BORROWED, CopyStatus.DAMAGED, now
                ):
                    raise ConflictError(
                        f"Cópia {copy.qr_code} não está mais BORROWED",
                        {"book_copy_id": str(copy.id)},
                    )
            else:
                if condition is not None:
                    copy = await self.copy_repo.update(copy, condition=condition)
                circulation = await self.settings.circulation()
                outcome = await self.holds.release(
                    copy, CopyStatus.BORROWED, now, circulation.reservation_duration_days
                )
                reservation_id = outcome.reservation_id

            await self.copy_repo.refresh(copy)

            await self.audit.record(
                ctx,
                AuditAction.LOAN_RETURN,
                "Loan",
                loan.id,
                {
                    "book_copy_id": copy.id,
                    "copy_status": copy.status.value,
                    "condition": condition.value if condition else None,
                    "was_overdue": was_overdue,
                    "reservation_id": reservation_id,
                },
            )

        await self.cache.invalidate_availability(copy.book_title_id)
        logger.info(
            f"Empréstimo {loan.id} devolvido; cópia {copy.qr_code} agora {copy.status.value}"
        )
        return loan

    # ==========================================
    # Renew Loan
    # ==========================================

    async def renew_loan(
        self,
        loan_id: UUID,
        ctx: AuditContext,
        extension_days: int | None = None,
    ) -> Loan:
        """
        Renova um empréstimo aberto.

        due_date += extensão (default LoanDurationDays), status RENEWED,
        renewals_count + 1. Bloqueado se outro estudante tem reserva
        ativa para o título.

        Raises:
            ValidationError: extension_days < 1
            NotFoundError: Empréstimo não encontrado
            AlreadyReturnedError / InvalidStateError: Empréstimo não está aberto
            ReservationPendingError: Outro estudante aguarda o título
            ConflictError: Renovação concorrente
        """
        if extension_days is not None and extension_days < 1:
            raise ValidationError(
                "Extensão deve ser de pelo menos 1 dia",
                {"extension_days": extension_days},
            )

        now = self.clock()

        async with atomic(self.db):
            loan = await self.get_loan(loan_id)
            self._ensure_open(loan)

            copy = await self.copy_repo.get_by_id(loan.book_copy_id, include_deleted=True)
            if await self.reservation_repo.has_active_for_title(
                copy.book_title_id, now, exclude_student_id=loan.student_id
            ):
                raise ReservationPendingError(
                    "Renovação bloqueada: outro estudante reservou este livro",
                    {"loan_id": str(loan_id), "book_title_id": str(copy.book_title_id)},
                )

            circulation = await self.settings.circulation()
            extension = extension_days or circulation.loan_duration_days
            old_due = loan.due_date
            new_due = old_due + timedelta(days=extension)

            if not await self.loan_repo.extend(loan.id, old_due, new_due, now):
                raise ConflictError(
                    "Empréstimo alterado por outra operação; tente novamente",
                    {"loan_id": str(loan_id)},
                )
            await self.loan_repo.refresh(loan)

            await self.audit.record(
                ctx,
                AuditAction.LOAN_RENEW,
                "Loan",
                loan.id,
                {
                    "old_due_date": old_due,
                    "new_due_date": new_due,
                    "renewals_count": loan.renewals_count,
                },
            )

        logger.info(f"Empréstimo {loan.id} renovado até {loan.due_date.isoformat()}")
        return loan

    # ==========================================
    # Mark Lost
    # ==========================================

    async def mark_lost(self, loan_id: UUID, ctx: AuditContext) -> Loan:
        """
        Marca empréstimo e cópia como perdidos.

        Raises:
            NotFoundError: Empréstimo não encontrado
            AlreadyReturnedError / InvalidStateError: Empréstimo não está aberto
            ConflictError: Cópia não está mais BORROWED
        """
        now = self.clock()

        async with atomic(self.db):
            loan = await self.get_loan(loan_id)
            self._ensure_open(loan)

            if not await self.loan_repo.close(loan.id, LoanStatus.LOST, now, returned=False):
                raise AlreadyReturnedError("Empréstimo já foi encerrado", {"loan_id": str(loan_id)})
            await self.loan_repo.refresh(loan)

            copy: BookCopy = await self.copy_repo.get_by_id(loan.book_copy_id, include_deleted=True)
            if not await self.copy_repo.transition_status(copy.id, CopyStatus.BORROWED, CopyStatus.LOST, now):
                raise ConflictError(
                    f"Cópia {copy.qr_code} não está mais BORROWED",
                    {"book_copy_id": str(copy.id)},
                )
            await self.copy_repo.refresh(copy)

            await self.audit.record(
                ctx,
                AuditAction.LOAN_LOST,
                "Loan",
                loan.id,
                {"book_copy_id": copy.id, "student_id": loan.student_id},
            )

        await self.cache.invalidate_availability(copy.book_title_id)
        logger.info(f"Empréstimo {loan.id} marcado como perdido (cópia {copy.qr_code})")
        return loan

    # ==========================================
    # Lembretes
    # ==========================================

    async def loans_needing_reminder(self, tier: ReminderTier) -> list[Loan]:
        """
        Empréstimos abertos que ainda devem receber o lembrete ``tier``.

        FIRST: vencem em até FirstReminderDays dias; SECOND: em até
        SecondReminderDays dias; OVERDUE: já venceram.
        """
        circulation = await self.settings.circulation()
        thresholds = {
            ReminderTier.FIRST: circulation.first_reminder_days,
            ReminderTier.SECOND: circulation.second_reminder_days,
            ReminderTier.OVERDUE: 0,
        }
        return await self.loan_repo.needing_reminder(tier, self.clock(), thresholds[tier])

    async def record_reminder_sent(
        self,
        loan_id: UUID,
        tier: ReminderTier,
        ctx: AuditContext | None = None,
    ) -> bool:
        """
        Marca o lembrete como enviado (no máximo uma vez por nível).

        Returns:
            True se marcou agora; False se já estava marcado

        Raises:
            NotFoundError: Empréstimo não encontrado
        """
        now = self.clock()

        async with atomic(self.db):
            loan = await self.get_loan(loan_id)
            sent = await self.loan_repo.mark_reminder(loan.id, tier, now)
            if sent:
                await self.loan_repo.refresh(loan)
                await self.audit.record(
                    ctx or SYSTEM_CONTEXT,
                    AuditAction.REMINDER_SENT,
                    "Loan",
                    loan.id,
                    {"tier": tier.value},
                )

        if sent:
            logger.info(f"Lembrete {tier.value} registrado para o empréstimo {loan_id}")
        return sent
