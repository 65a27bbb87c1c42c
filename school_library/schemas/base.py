"""
Schemas base reutilizáveis em toda a aplicação.
"""

from datetime import datetime
from typing import Any, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Schema base com configurações padrão."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )


class TimestampSchema(BaseSchema):
    """Schema com timestamps."""
    created_at: datetime
    updated_at: datetime


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Resposta paginada genérica.

    Uso nos endpoints:
        @router.get("/students", response_model=PaginatedResponse[StudentRead])
        async def list_students(...) -> PaginatedResponse[StudentRead]:
            ...
    """
    items: List[T]
    total: int
    page: int
    page_size: int
    pages: int

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def create(
        cls,
        items: List[T],
        total: int,
        page: int,
        page_size: int,
    ) -> "PaginatedResponse[T]":
        """Factory method para criar resposta paginada."""
        pages = (total + page_size - 1) // page_size if page_size > 0 else 0
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            pages=pages,
        )


class ErrorDetail(BaseModel):
    """Detalhe de um erro de validação."""
    field: str | None = None
    message: str


class ErrorResponse(BaseModel):
    """
    Resposta de erro padrão.

    ``error`` é o tipo do erro de domínio (NotFound, Conflict,
    LimitExceeded, InvalidState, ValidationError, StorageFailure).

    Exemplo:
        {
            "error": "LimitExceeded",
            "message": "Estudante já possui 3 empréstimos ativos",
            "details": {"limit": 3}
        }
    """
    error: str
    message: str
    details: dict[str, Any] | List[ErrorDetail] | None = None


class MessageResponse(BaseModel):
    """Resposta simples com mensagem."""
    message: str
