"""
Models de livros: BookTitle (obra do catálogo) e BookCopy (cópia física).
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from school_library.db.session import Base
from school_library.models.base import SoftDeleteMixin, TimestampMixin, UUIDMixin
from school_library.models.enums import CopyCondition, CopyStatus


class BookTitle(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Título de um livro (obra).

    Um título pode ter múltiplas cópias físicas (BookCopy), buscadas via
    BookCopyRepository.list_by_title.

    Attributes:
        title: Título do livro
        isbn: ISBN (único quando informado)
        author: Autor(es) em texto livre
        language: Código do idioma (padrão "de")
        external_metadata: Cache da última consulta de ISBN
        last_isbn_lookup: Quando a consulta de ISBN foi feita
    """
    __tablename__ = "book_titles"

    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    isbn: Mapped[Optional[str]] = mapped_column(String(20), unique=True, nullable=True)
    author: Mapped[Optional[str]] = mapped_column(String(300), nullable=True, index=True)
    publisher: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    publication_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="de")
    genre: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    subject: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    page_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    age_recommendation: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cover_image_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    external_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    last_isbn_lookup: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<BookTitle {self.title}>"


class BookCopy(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Cópia física de um livro.

    Representa uma unidade do inventário que pode ser emprestada.
    Mudanças de status passam sempre por compare-and-set
    (BookCopyRepository.transition_status).

    Attributes:
        book_title_id: FK para o título
        qr_code: Etiqueta QR única da cópia
        inventory_number: Número de tombo (único quando informado)
        status: AVAILABLE, BORROWED, RESERVED, DAMAGED, LOST ou RETIRED
        condition: Estado de conservação (EXCELLENT ... DAMAGED)
        location: Estante/sala
    """
    __tablename__ = "book_copies"

    book_title_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("book_titles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    qr_code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    inventory_number: Mapped[Optional[str]] = mapped_column(
        String(50),
        unique=True,
        nullable=True,
    )
    status: Mapped[CopyStatus] = mapped_column(
        SQLEnum(CopyStatus, name="copy_status", native_enum=False, length=20),
        nullable=False,
        default=CopyStatus.AVAILABLE,
    )
    condition: Mapped[CopyCondition] = mapped_column(
        SQLEnum(CopyCondition, name="copy_condition", native_enum=False, length=20),
        nullable=False,
        default=CopyCondition.GOOD,
    )
    location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_book_copies_title_status", "book_title_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<BookCopy {self.qr_code} - {self.status.value}>"
