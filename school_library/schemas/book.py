"""
Schemas Pydantic para BookTitle e BookCopy.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field, computed_field, field_validator

from school_library.models.book import BookTitle
from school_library.models.enums import CopyCondition, CopyStatus
from school_library.schemas.base import BaseSchema, TimestampSchema


def _normalize_isbn(v: str | None) -> str | None:
    if v is None:
        return None
    digits = v.replace("-", "").replace(" ", "").upper()
    if not digits:
        return None
    if len(digits) not in (10, 13) or not digits[:-1].isdigit() or not (digits[-1].isdigit() or digits[-1] == "X"):
        raise ValueError("ISBN deve ter 10 ou 13 dígitos")
    return digits


# ============================================
# BookTitle Schemas
# ============================================

class BookTitleCreate(BaseSchema):
    """Schema para cadastro de título."""
    title: str = Field(..., min_length=1, max_length=500, examples=["Momo"])
    isbn: str | None = Field(None, examples=["978-3-522-20210-9"])
    author: str | None = Field(None, max_length=300, examples=["Michael Ende"])
    publisher: str | None = Field(None, max_length=200)
    publication_year: int | None = Field(None, ge=1000, le=2100)
    language: str = Field("de", min_length=2, max_length=10)
    genre: str | None = Field(None, max_length=100)
    subject: str | None = Field(None, max_length=100)
    description: str | None = None
    page_count: int | None = Field(None, ge=1, le=50000)
    age_recommendation: str | None = Field(None, max_length=20, examples=["10+"])

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str | None) -> str | None:
        return _normalize_isbn(v)


class BookTitleUpdate(BaseSchema):
    """Schema para atualização de título. Campos ausentes não mudam."""
    title: str | None = Field(None, min_length=1, max_length=500)
    isbn: str | None = None
    author: str | None = Field(None, max_length=300)
    publisher: str | None = Field(None, max_length=200)
    publication_year: int | None = Field(None, ge=1000, le=2100)
    language: str | None = Field(None, min_length=2, max_length=10)
    genre: str | None = Field(None, max_length=100)
    subject: str | None = Field(None, max_length=100)
    description: str | None = None
    page_count: int | None = Field(None, ge=1, le=50000)
    age_recommendation: str | None = Field(None, max_length=20)

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str | None) -> str | None:
        return _normalize_isbn(v)


class BookTitleRead(TimestampSchema):
    """Schema para leitura de título."""
    id: UUID
    title: str
    isbn: str | None
    author: str | None
    publisher: str | None
    publication_year: int | None
    language: str
    genre: str | None
    subject: str | None
    description: str | None
    page_count: int | None
    age_recommendation: str | None
    cover_image_path: str | None
    external_metadata: dict[str, Any] | None
    last_isbn_lookup: datetime | None
    is_deleted: bool

    @computed_field
    @property
    def display_title(self) -> str:
        """"Título - Autor", ou só o título."""
        return f"{self.title} - {self.author}" if self.author else self.title


class TitleSearchItem(BookTitleRead):
    """Título na listagem de busca, com a disponibilidade atual."""
    available_copies: int

    @classmethod
    def from_row(cls, title: BookTitle, available_copies: int) -> "TitleSearchItem":
        data = BookTitleRead.model_validate(title).model_dump(exclude={"display_title"})
        return cls(**data, available_copies=available_copies)


# ============================================
# BookCopy Schemas
# ============================================

class BookCopyCreate(BaseSchema):
    """Schema para cadastro de cópia física."""
    qr_code: str = Field(..., min_length=1, max_length=100, examples=["BK-000042"])
    inventory_number: str | None = Field(None, max_length=50)
    condition: CopyCondition = CopyCondition.GOOD
    location: str | None = Field(None, max_length=100, examples=["Estante 3B"])


class BookCopyUpdate(BaseSchema):
    """
    Schema para atualização de cópia.

    Status não é editável aqui: muda apenas pelas operações de circulação
    e pelos endpoints de danificada/baixa/reparo.
    """
    inventory_number: str | None = Field(None, max_length=50)
    condition: CopyCondition | None = None
    location: str | None = Field(None, max_length=100)


class BookCopyRead(TimestampSchema):
    """Schema para leitura de cópia."""
    id: UUID
    book_title_id: UUID
    qr_code: str
    inventory_number: str | None
    status: CopyStatus
    condition: CopyCondition
    location: str | None
    is_deleted: bool


# ============================================
# Estatísticas
# ============================================

class TitleStatistics(BaseSchema):
    """Contagem de cópias não removidas de um título, por status."""
    book_title_id: UUID
    total: int
    available: int
    borrowed: int
    reserved: int
    damaged: int = 0
    lost: int = 0
    retired: int = 0


class PopularTitle(BaseSchema):
    """Título com a quantidade de empréstimos no período."""
    book_title_id: UUID
    title: str
    author: str | None
    loan_count: int


class MetadataLookupResult(BaseSchema):
    """Resultado da consulta de metadados por ISBN."""
    title: BookTitleRead
    updated: bool
    message: str
