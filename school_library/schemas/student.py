"""
Schemas Pydantic para Student.
"""

from uuid import UUID

from pydantic import Field, computed_field

from school_library.schemas.base import BaseSchema, TimestampSchema


class StudentCreate(BaseSchema):
    """
    Schema para cadastro de estudante.

    Validações:
        - first_name: 1-100 caracteres
        - class_code: 2-10 caracteres (ex.: "5b", "10A")
        - qr_code: identificador da carteirinha, único
    """
    first_name: str = Field(..., min_length=1, max_length=100, examples=["Lena"])
    class_code: str = Field(..., min_length=2, max_length=10, examples=["5b"])
    qr_code: str = Field(..., min_length=1, max_length=100, examples=["STU-000123"])


class StudentUpdate(BaseSchema):
    """Schema para atualização de estudante."""
    first_name: str | None = Field(None, min_length=1, max_length=100)
    class_code: str | None = Field(None, min_length=2, max_length=10)
    is_active: bool | None = None


class StudentRead(TimestampSchema):
    """Schema para leitura de estudante."""
    id: UUID
    first_name: str
    class_code: str
    qr_code: str
    is_active: bool
    is_deleted: bool

    @computed_field
    @property
    def display_name(self) -> str:
        """Nome de exibição: "Primeiro (Turma)"."""
        return f"{self.first_name} ({self.class_code})"
