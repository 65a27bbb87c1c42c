"""
Model de empréstimo de livros.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from school_library.db.session import Base
from school_library.models.base import SoftDeleteMixin, TimestampMixin, UUIDMixin
from school_library.models.enums import LoanStatus

_OPEN_LOAN_SQL = text("status IN ('ACTIVE', 'RENEWED', 'OVERDUE')")


class Loan(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Empréstimo de uma cópia para um estudante.

    Regras:
        - due_date >= borrowed_at; returned_at >= borrowed_at quando presente
        - No máximo um empréstimo aberto (ACTIVE/RENEWED/OVERDUE) por cópia
        - Flags de lembrete só passam de False para True, uma vez cada

    Attributes:
        student_id: FK para o estudante
        book_copy_id: FK para a cópia emprestada
        borrowed_at: Data/hora do empréstimo
        due_date: Data prevista de devolução
        returned_at: Data/hora da devolução (None enquanto aberto)
        status: ACTIVE, RENEWED, RETURNED ou LOST (OVERDUE só em linhas
            antigas, tratado como aberto)
        renewals_count: Número de renovações realizadas
    """
    __tablename__ = "loans"

    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
    )
    book_copy_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("book_copies.id", ondelete="RESTRICT"),
        nullable=False,
    )
    borrowed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    returned_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[LoanStatus] = mapped_column(
        SQLEnum(LoanStatus, name="loan_status", native_enum=False, length=20),
        nullable=False,
        default=LoanStatus.ACTIVE,
    )
    renewals_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    first_reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    second_reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    overdue_reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("due_date >= borrowed_at", name="ck_loans_due_after_borrow"),
        CheckConstraint(
            "returned_at IS NULL OR returned_at >= borrowed_at",
            name="ck_loans_return_after_borrow",
        ),
        Index("ix_loans_student_status", "student_id", "status"),
        Index("ix_loans_book_copy_id", "book_copy_id"),
        Index("ix_loans_due_date", "due_date"),
        # Uma cópia nunca tem dois empréstimos abertos
        Index(
            "uq_loans_open_copy",
            "book_copy_id",
            unique=True,
            sqlite_where=_OPEN_LOAN_SQL,
            postgresql_where=_OPEN_LOAN_SQL,
        ),
    )

    def __repr__(self) -> str:
        return f"<Loan {self.id} - {self.status.value}>"
