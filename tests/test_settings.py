"""
Testes do SettingsService e do cache Redis (com um Redis falso em memória).
"""

import fnmatch
from unittest.mock import patch

import pytest

from school_library.core.cache import CacheService
from school_library.core.exceptions import NotFoundError, ValidationError
from school_library.models.enums import SettingCategory
from school_library.models.setting import AppSetting
from school_library.services.settings import (
    LOAN_DURATION_DAYS,
    MAX_ACTIVE_LOANS,
    SECOND_REMINDER_DAYS,
    SettingsService,
)


class FakeRedis:
    """Subconjunto assíncrono da API do redis usado pelo CacheService."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value

    async def delete(self, *keys):
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def scan_iter(self, match):
        for key in list(self.data):
            if fnmatch.fnmatch(key, match):
                yield key


class BrokenRedis(FakeRedis):
    async def get(self, key):
        raise ConnectionError("redis fora do ar")

    async def setex(self, key, ttl, value):
        raise ConnectionError("redis fora do ar")


@pytest.fixture
def fake_redis():
    redis = FakeRedis()
    with patch.object(CacheService, "_client", return_value=redis):
        yield redis


@pytest.fixture
def service(test_db, cache) -> SettingsService:
    return SettingsService(test_db, cache)


class TestCirculationSettings:

    @pytest.mark.anyio
    async def test_defaults_when_table_is_empty(self, service):
        circulation = await service.circulation()

        assert circulation.loan_duration_days == 14
        assert circulation.max_active_loans == 3
        assert circulation.reservation_duration_days == 3
        assert circulation.max_active_reservations == 3
        assert circulation.first_reminder_days == 3
        assert circulation.second_reminder_days == 1

    @pytest.mark.anyio
    async def test_stored_value_wins(self, test_db, service):
        test_db.add(AppSetting(key=MAX_ACTIVE_LOANS, value="5", category=SettingCategory.LOANS))
        await test_db.commit()

        assert (await service.circulation()).max_active_loans == 5
        assert await service.get_int(MAX_ACTIVE_LOANS) == 5

    @pytest.mark.anyio
    @pytest.mark.parametrize("raw", ["abc", "0", "-2", ""])
    async def test_invalid_stored_value_falls_back(self, test_db, service, raw):
        test_db.add(AppSetting(key=LOAN_DURATION_DAYS, value=raw, category=SettingCategory.LOANS))
        await test_db.commit()

        assert (await service.circulation()).loan_duration_days == 14
        assert await service.get_int(LOAN_DURATION_DAYS) == 14

    @pytest.mark.anyio
    async def test_zero_allowed_for_reminder_days(self, test_db, service):
        test_db.add(AppSetting(key=SECOND_REMINDER_DAYS, value="0", category=SettingCategory.NOTIFICATIONS))
        await test_db.commit()

        assert (await service.circulation()).second_reminder_days == 0

    @pytest.mark.anyio
    async def test_get_int_unknown_key(self, service):
        with pytest.raises(NotFoundError):
            await service.get_int("UnknownKey")
        assert await service.get_int("UnknownKey", default=7) == 7


class TestUpdateSettings:

    @pytest.mark.anyio
    async def test_update_creates_row(self, service, ctx):
        row = await service.update(MAX_ACTIVE_LOANS, " 4 ", ctx)

        assert row.value == "4"
        assert row.category == SettingCategory.LOANS
        assert (await service.circulation()).max_active_loans == 4

    @pytest.mark.anyio
    async def test_update_rejects_invalid_value(self, service, ctx):
        with pytest.raises(ValidationError):
            await service.update(LOAN_DURATION_DAYS, "zero", ctx)
        with pytest.raises(ValidationError):
            await service.update(LOAN_DURATION_DAYS, "0", ctx)

    @pytest.mark.anyio
    async def test_update_unknown_missing_key(self, service, ctx):
        with pytest.raises(NotFoundError):
            await service.update("UnknownKey", "1", ctx)

    @pytest.mark.anyio
    async def test_ensure_defaults_is_idempotent(self, service, ctx):
        await service.update(LOAN_DURATION_DAYS, "21", ctx)

        created = await service.ensure_defaults()

        assert created == 5
        assert await service.ensure_defaults() == 0
        assert await service.get_int(LOAN_DURATION_DAYS) == 21
        assert len(await service.list()) == 6
        assert len(await service.list(SettingCategory.NOTIFICATIONS)) == 2


class TestSettingsCache:

    @pytest.mark.anyio
    async def test_circulation_is_cached(self, test_db, service, fake_redis):
        await service.circulation()

        assert "cache:settings:circulation" in fake_redis.data

        test_db.add(AppSetting(key=MAX_ACTIVE_LOANS, value="9", category=SettingCategory.LOANS))
        await test_db.commit()
        assert (await service.circulation()).max_active_loans == 3

    @pytest.mark.anyio
    async def test_update_invalidates_cache(self, service, ctx, fake_redis):
        await service.circulation()

        await service.update(MAX_ACTIVE_LOANS, "2", ctx)

        assert "cache:settings:circulation" not in fake_redis.data
        assert (await service.circulation()).max_active_loans == 2

    @pytest.mark.anyio
    async def test_redis_errors_fail_open(self, service):
        with patch.object(CacheService, "_client", return_value=BrokenRedis()):
            circulation = await service.circulation()

        assert circulation.loan_duration_days == 14


class TestAvailabilityCache:

    @pytest.mark.anyio
    async def test_set_get_invalidate(self, cache, fake_redis, make_title):
        title = await make_title()

        assert await cache.set_availability(title.id, {"available": 2}) is True
        assert await cache.get_availability(title.id) == {"available": 2}

        assert await cache.invalidate_availability(title.id) == 1
        assert await cache.get_availability(title.id) is None

    @pytest.mark.anyio
    async def test_without_redis_everything_is_a_miss(self, cache, make_title):
        title = await make_title()

        assert await cache.set_availability(title.id, {"available": 2}) is False
        assert await cache.get_availability(title.id) is None
        assert await cache.invalidate_availability(title.id) == 0
