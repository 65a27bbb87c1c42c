"""
Model de estudante (leitor).

Por privacidade guardamos apenas o primeiro nome e a turma; a
identificação no balcão é feita pelo QR code da carteirinha.
"""

from sqlalchemy import Boolean, CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from school_library.db.session import Base
from school_library.models.base import SoftDeleteMixin, TimestampMixin, UUIDMixin


class Student(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Estudante que pode pegar livros emprestados.

    Empréstimos e reservas do estudante são buscados explicitamente
    pelos repositories (LoanRepository.list_by_student, ...).

    Attributes:
        id: UUID único do estudante
        first_name: Primeiro nome
        class_code: Código da turma (2 a 10 caracteres)
        qr_code: Identificador único da carteirinha
        is_active: Estudantes inativos não podem emprestar nem reservar
    """
    __tablename__ = "students"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    class_code: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    qr_code: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("length(class_code) >= 2", name="ck_students_class_code_length"),
    )

    def __repr__(self) -> str:
        return f"<Student {self.first_name} ({self.class_code})>"
