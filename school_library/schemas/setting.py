"""
Schemas Pydantic para configurações.
"""

from uuid import UUID

from pydantic import BaseModel, Field

from school_library.models.enums import SettingCategory
from school_library.schemas.base import BaseSchema, TimestampSchema


class CirculationSettings(BaseModel):
    """Parâmetros de circulação efetivos (gravados ou default)."""
    loan_duration_days: int
    max_active_loans: int
    reservation_duration_days: int
    max_active_reservations: int
    first_reminder_days: int
    second_reminder_days: int


class SettingRead(TimestampSchema):
    """Schema para leitura de configuração."""
    id: UUID
    key: str
    value: str
    description: str | None
    category: SettingCategory
    is_system_setting: bool


class SettingUpdate(BaseSchema):
    """Schema para alterar o valor de uma configuração."""
    value: str = Field(..., min_length=1, max_length=1000)
