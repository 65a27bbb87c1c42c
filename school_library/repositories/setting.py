"""
Repository para a tabela de configurações (app_settings).
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.models.enums import SettingCategory
from school_library.models.setting import AppSetting
from school_library.repositories.base import BaseRepository


class SettingRepository(BaseRepository[AppSetting]):
    """Repository para AppSetting."""

    def __init__(self, db: AsyncSession):
        super().__init__(AppSetting, db)

    async def get_by_key(self, key: str) -> AppSetting | None:
        result = await self.db.execute(select(AppSetting).where(AppSetting.key == key))
        return result.scalar_one_or_none()

    async def values_for(self, keys: list[str]) -> dict[str, str]:
        """Valores gravados para as chaves pedidas (ausentes ficam de fora)."""
        result = await self.db.execute(
            select(AppSetting.key, AppSetting.value).where(AppSetting.key.in_(keys))
        )
        return {key: value for key, value in result.all()}

    async def list_by_category(self, category: SettingCategory | None = None) -> list[AppSetting]:
        query = select(AppSetting)
        if category:
            query = query.where(AppSetting.category == category)
        result = await self.db.execute(query.order_by(AppSetting.category, AppSetting.key))
        return list(result.scalars().all())
