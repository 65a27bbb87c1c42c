"""
Model de configurações ajustáveis pela administração.
"""

from typing import Optional

from sqlalchemy import Boolean, Enum as SQLEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from school_library.db.session import Base
from school_library.models.base import TimestampMixin, UUIDMixin
from school_library.models.enums import SettingCategory


class AppSetting(Base, UUIDMixin, TimestampMixin):
    """
    Par chave/valor de configuração.

    Valores são texto; SettingsService converte e valida os numéricos.

    Attributes:
        key: Nome único (ex.: "LoanDurationDays")
        value: Valor em texto
        category: Agrupamento (LOANS, RESERVATIONS, ...)
        is_system_setting: Configurações de sistema só podem ser
            alteradas por ADMIN
    """
    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    category: Mapped[SettingCategory] = mapped_column(
        SQLEnum(SettingCategory, name="setting_category", native_enum=False, length=20),
        nullable=False,
        default=SettingCategory.GENERAL,
    )
    is_system_setting: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<AppSetting {self.key}={self.value}>"
