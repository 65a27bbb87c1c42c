"""
Schemas Pydantic para Loan (empréstimo).
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from school_library.models import predicates
from school_library.models.book import BookCopy, BookTitle
from school_library.models.enums import CopyCondition, LoanStatus
from school_library.models.loan import Loan
from school_library.models.student import Student


class LoanCreate(BaseModel):
    """Schema para abrir empréstimo de uma cópia."""

    student_id: UUID = Field(..., description="ID do estudante")
    book_copy_id: UUID = Field(..., description="ID da cópia física")
    duration_days: int | None = Field(
        None,
        ge=1,
        le=365,
        description="Prazo em dias (default: LoanDurationDays)",
    )
    notes: str | None = Field(None, max_length=1000)


class LoanReturnRequest(BaseModel):
    """Dados opcionais informados na devolução."""

    condition: CopyCondition | None = Field(
        None,
        description="Estado da cópia na devolução; DAMAGED tira a cópia de circulação",
    )
    notes: str | None = Field(None, max_length=1000)


class LoanRenewRequest(BaseModel):
    """Schema para renovação."""

    extension_days: int | None = Field(
        None,
        ge=1,
        le=365,
        description="Dias adicionais (default: LoanDurationDays)",
    )


class LoanRead(BaseModel):
    """
    Schema de leitura de empréstimo.

    is_overdue e days_until_due são calculados no momento da resposta
    (via from_loan), nunca gravados.
    """

    id: UUID
    student_id: UUID
    book_copy_id: UUID
    borrowed_at: datetime
    due_date: datetime
    returned_at: datetime | None = None
    status: LoanStatus
    renewals_count: int
    notes: str | None = None
    first_reminder_sent: bool
    second_reminder_sent: bool
    overdue_reminder_sent: bool
    is_overdue: bool = False
    days_until_due: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_loan(cls, loan: Loan, now: datetime) -> "LoanRead":
        """Constrói a leitura calculando os campos derivados em ``now``."""
        is_open = predicates.is_open(loan)
        return cls.model_validate(loan).model_copy(
            update={
                "is_overdue": predicates.is_overdue(loan, now),
                "days_until_due": predicates.days_until_due(loan, now) if is_open else None,
            }
        )


class LoanDetail(LoanRead):
    """Empréstimo com dados do estudante e do livro (relatórios)."""

    student_name: str
    class_code: str
    book_title_id: UUID
    book_title: str
    copy_qr_code: str

    @classmethod
    def from_row(
        cls,
        loan: Loan,
        student: Student,
        copy: BookCopy,
        title: BookTitle,
        now: datetime,
    ) -> "LoanDetail":
        base = LoanRead.from_loan(loan, now)
        return cls(
            **base.model_dump(),
            student_name=predicates.student_display_name(student),
            class_code=student.class_code,
            book_title_id=title.id,
            book_title=predicates.title_display(title),
            copy_qr_code=copy.qr_code,
        )
