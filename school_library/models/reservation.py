"""
Model de reserva de livros.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from school_library.db.session import Base
from school_library.models.base import SoftDeleteMixin, TimestampMixin, UUIDMixin


class Reservation(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Reserva de um título por um estudante.

    A reserva é por título (qualquer cópia serve). Enquanto espera na fila,
    book_copy_id é None; quando uma cópia é separada para ela, book_copy_id
    aponta para essa cópia (status RESERVED).

    Estados (derivados, ver models.predicates.reservation_state):
        - PENDING: cancelled_at nulo e expires_at > now
        - EXPIRED: cancelled_at nulo e expires_at <= now
        - CANCELLED / FULFILLED: cancelled_at preenchido
          (FULFILLED quando cancellation_reason == "FULFILLED")

    Attributes:
        student_id: FK para o estudante
        book_title_id: FK para o título reservado
        book_copy_id: Cópia separada para esta reserva (opcional)
        reserved_at: Momento da reserva (define a posição na fila)
        expires_at: Prazo da reserva (sempre > reserved_at)
        is_notified: Estudante já foi avisado sobre a reserva
    """
    __tablename__ = "reservations"

    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
    )
    book_title_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("book_titles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    book_copy_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("book_copies.id", ondelete="RESTRICT"),
        nullable=True,
    )
    reserved_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    is_notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("reserved_at < expires_at", name="ck_reservations_expiry_after_reserve"),
        # Fila FIFO por título
        Index("ix_reservations_title_queue", "book_title_id", "cancelled_at", "reserved_at"),
        Index("ix_reservations_student", "student_id", "cancelled_at"),
        Index("ix_reservations_book_copy_id", "book_copy_id"),
        Index("ix_reservations_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Reservation {self.id} - title {self.book_title_id}>"
