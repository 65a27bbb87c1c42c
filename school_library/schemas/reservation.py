"""
Schemas Pydantic para Reservation.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from school_library.models import predicates
from school_library.models.book import BookTitle
from school_library.models.enums import ReservationState
from school_library.models.reservation import Reservation
from school_library.models.student import Student
from school_library.schemas.base import BaseSchema, TimestampSchema


class ReservationCreate(BaseSchema):
    """Schema para criação de reserva (por título)."""
    student_id: UUID
    book_title_id: UUID
    duration_days: int | None = Field(
        None,
        ge=1,
        le=60,
        description="Prazo da reserva em dias (default: ReservationDurationDays)",
    )


class ReservationCancel(BaseSchema):
    """Schema para cancelamento."""
    reason: str | None = Field(None, max_length=200)


class ReservationRead(TimestampSchema):
    """Schema para leitura de reserva, com estado derivado."""
    id: UUID
    student_id: UUID
    book_title_id: UUID
    book_copy_id: UUID | None
    reserved_at: datetime
    expires_at: datetime
    cancelled_at: datetime | None
    cancellation_reason: str | None
    is_notified: bool
    state: ReservationState
    is_active: bool
    is_expired: bool
    queue_position: int | None = Field(
        None,
        description="Posição na fila (apenas reservas ativas ainda sem cópia)",
    )

    @classmethod
    def from_reservation(
        cls,
        reservation: Reservation,
        now: datetime,
        queue_position: int | None = None,
    ) -> "ReservationRead":
        """Constrói a partir de um model Reservation calculando o estado em ``now``."""
        return cls(
            id=reservation.id,
            student_id=reservation.student_id,
            book_title_id=reservation.book_title_id,
            book_copy_id=reservation.book_copy_id,
            reserved_at=reservation.reserved_at,
            expires_at=reservation.expires_at,
            cancelled_at=reservation.cancelled_at,
            cancellation_reason=reservation.cancellation_reason,
            is_notified=reservation.is_notified,
            state=predicates.reservation_state(reservation, now),
            is_active=predicates.reservation_is_active(reservation, now),
            is_expired=predicates.reservation_is_expired(reservation, now),
            queue_position=queue_position,
            created_at=reservation.created_at,
            updated_at=reservation.updated_at,
        )


class ReservationDetail(ReservationRead):
    """Reserva com nomes do estudante e do título (relatórios)."""
    student_name: str
    book_title: str

    @classmethod
    def from_row(
        cls,
        reservation: Reservation,
        student: Student,
        title: BookTitle,
        now: datetime,
    ) -> "ReservationDetail":
        base = ReservationRead.from_reservation(reservation, now)
        return cls(
            **base.model_dump(),
            student_name=predicates.student_display_name(student),
            book_title=predicates.title_display(title),
        )


class SweepResult(BaseSchema):
    """Resultado do sweep de reservas vencidas."""
    examined: int = Field(..., description="Reservas vencidas que ainda seguravam cópia RESERVED")
    released_to_shelf: int = Field(..., description="Cópias que voltaram a AVAILABLE")
    passed_to_next: int = Field(..., description="Cópias separadas para a próxima reserva da fila")
    book_title_ids: list[UUID] = Field(default_factory=list)
    message: str
