"""
Relatórios e consultas de leitura.

Nada aqui grava. Registros removidos (soft delete) nunca aparecem.
Campos derivados (atraso, estado da reserva, fila) são calculados no
instante da consulta.
"""

from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.clock import Clock, utcnow
from school_library.models.audit import AuditLog
from school_library.repositories.audit import AuditLogRepository
from school_library.repositories.book import BookCopyRepository, BookTitleRepository
from school_library.repositories.loan import LoanRepository
from school_library.repositories.reservation import ReservationRepository
from school_library.repositories.student import StudentRepository
from school_library.schemas.base import PaginatedResponse
from school_library.schemas.book import PopularTitle, TitleSearchItem
from school_library.schemas.loan import LoanDetail, LoanRead
from school_library.schemas.report import DashboardStats
from school_library.schemas.reservation import ReservationDetail, ReservationRead


class ReportingService:
    """Service de consultas para telas de balcão e administração."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.loan_repo = LoanRepository(db)
        self.reservation_repo = ReservationRepository(db)
        self.title_repo = BookTitleRepository(db)
        self.copy_repo = BookCopyRepository(db)
        self.student_repo = StudentRepository(db)
        self.audit_repo = AuditLogRepository(db)

    # ==========================================
    # Empréstimos
    # ==========================================

    async def overdue_loans(self) -> list[LoanDetail]:
        """Empréstimos abertos vencidos, mais atrasados primeiro."""
        now = self.clock()
        rows = await self.loan_repo.overdue(now)
        return [LoanDetail.from_row(*row, now=now) for row in rows]

    async def due_soon_loans(self, days: int = 3) -> list[LoanDetail]:
        """Empréstimos abertos que vencem nos próximos ``days`` dias."""
        now = self.clock()
        rows = await self.loan_repo.due_within(now, days)
        return [LoanDetail.from_row(*row, now=now) for row in rows]

    async def loans_of(self, student_id: UUID, include_returned: bool = True) -> list[LoanRead]:
        """Empréstimos de um estudante (abertos e, opcionalmente, encerrados)."""
        now = self.clock()
        loans = await self.loan_repo.list_by_student(student_id, include_returned=include_returned)
        return [LoanRead.from_loan(loan, now) for loan in loans]

    # ==========================================
    # Reservas
    # ==========================================

    async def active_reservations(self, book_title_id: UUID | None = None) -> list[ReservationDetail]:
        """Reservas ativas, agrupadas por título em ordem de fila."""
        now = self.clock()
        rows = await self.reservation_repo.list_active(now, book_title_id)
        return [ReservationDetail.from_row(*row, now=now) for row in rows]

    async def reservations_of(self, student_id: UUID, active_only: bool = False) -> list[ReservationRead]:
        """Reservas de um estudante, com posição na fila das que aguardam cópia."""
        now = self.clock()
        reservations = await self.reservation_repo.list_by_student(student_id, now, active_only=active_only)

        result = []
        for reservation in reservations:
            position = None
            if reservation.book_copy_id is None and reservation.cancelled_at is None and reservation.expires_at > now:
                position = await self.reservation_repo.queue_position(reservation, now)
            result.append(ReservationRead.from_reservation(reservation, now, position))
        return result

    # ==========================================
    # Catálogo
    # ==========================================

    async def search_titles(
        self,
        term: str | None = None,
        language: str | None = None,
        genre: str | None = None,
        subject: str | None = None,
        available_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> PaginatedResponse[TitleSearchItem]:
        """Busca no catálogo com a quantidade de cópias disponíveis de cada título."""
        rows, total = await self.title_repo.search(
            term=term,
            language=language,
            genre=genre,
            subject=subject,
            available_only=available_only,
            page=page,
            page_size=page_size,
        )
        items = [TitleSearchItem.from_row(title, available) for title, available in rows]
        return PaginatedResponse.create(items=items, total=total, page=page, page_size=page_size)

    async def popular_titles(self, top: int = 10, days_back: int = 30) -> list[PopularTitle]:
        """Títulos mais emprestados nos últimos ``days_back`` dias."""
        since = self.clock() - timedelta(days=days_back)
        rows = await self.title_repo.popular(since, top)
        return [
            PopularTitle(
                book_title_id=title.id,
                title=title.title,
                author=title.author,
                loan_count=count,
            )
            for title, count in rows
        ]

    # ==========================================
    # Auditoria / painel
    # ==========================================

    async def audit_trail(self, entity_type: str, entity_id: UUID, limit: int = 100) -> list[AuditLog]:
        return await self.audit_repo.for_entity(entity_type, entity_id, limit)

    async def dashboard(self) -> DashboardStats:
        """Números gerais do acervo e da circulação."""
        now = self.clock()
        return DashboardStats(
            generated_at=now,
            students=await self.student_repo.count(),
            titles=await self.title_repo.count(),
            copies=await self.copy_repo.count(),
            open_loans=await self.loan_repo.count_open(),
            overdue_loans=await self.loan_repo.count_overdue(now),
            active_reservations=await self.reservation_repo.count_active(now),
        )
