"""
Service de configurações de circulação.

Regras:
    - Valores ficam na tabela app_settings, em texto
    - Chave ausente ou valor inválido (não numérico, menor que o mínimo)
      usa o default de ``Settings.DEFAULT_*``
    - Leituras passam pelo cache Redis; toda gravação invalida o cache
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.cache import CacheService, cache_service
from school_library.core.config import get_settings
from school_library.core.exceptions import NotFoundError, ValidationError
from school_library.db.transaction import atomic
from school_library.models.enums import AuditAction, SettingCategory
from school_library.models.setting import AppSetting
from school_library.repositories.setting import SettingRepository
from school_library.schemas.audit import AuditContext
from school_library.schemas.setting import CirculationSettings
from school_library.services.audit import AuditService

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class SettingDefinition:
    """Configuração numérica conhecida pelo motor."""
    key: str
    field: str
    default: int
    minimum: int
    category: SettingCategory
    description: str


LOAN_DURATION_DAYS = "LoanDurationDays"
MAX_ACTIVE_LOANS = "MaxActiveLoansPerStudent"
RESERVATION_DURATION_DAYS = "ReservationDurationDays"
MAX_ACTIVE_RESERVATIONS = "MaxActiveReservationsPerStudent"
FIRST_REMINDER_DAYS = "FirstReminderDays"
SECOND_REMINDER_DAYS = "SecondReminderDays"

DEFINITIONS: dict[str, SettingDefinition] = {
    d.key: d
    for d in (
        SettingDefinition(
            LOAN_DURATION_DAYS, "loan_duration_days", settings.DEFAULT_LOAN_DURATION_DAYS, 1,
            SettingCategory.LOANS, "Prazo padrão do empréstimo em dias",
        ),
        SettingDefinition(
            MAX_ACTIVE_LOANS, "max_active_loans", settings.DEFAULT_MAX_ACTIVE_LOANS, 1,
            SettingCategory.LOANS, "Máximo de empréstimos abertos por estudante",
        ),
        SettingDefinition(
            RESERVATION_DURATION_DAYS, "reservation_duration_days",
            settings.DEFAULT_RESERVATION_DURATION_DAYS, 1,
            SettingCategory.RESERVATIONS, "Prazo da reserva / retirada em dias",
        ),
        SettingDefinition(
            MAX_ACTIVE_RESERVATIONS, "max_active_reservations",
            settings.DEFAULT_MAX_ACTIVE_RESERVATIONS, 1,
            SettingCategory.RESERVATIONS, "Máximo de reservas ativas por estudante",
        ),
        SettingDefinition(
            FIRST_REMINDER_DAYS, "first_reminder_days", settings.DEFAULT_FIRST_REMINDER_DAYS, 0,
            SettingCategory.NOTIFICATIONS, "Dias antes do vencimento para o primeiro lembrete",
        ),
        SettingDefinition(
            SECOND_REMINDER_DAYS, "second_reminder_days", settings.DEFAULT_SECOND_REMINDER_DAYS, 0,
            SettingCategory.NOTIFICATIONS, "Dias antes do vencimento para o segundo lembrete",
        ),
    )
}


def _parse(definition: SettingDefinition, raw: str | None) -> int | None:
    """Converte o valor gravado; None se ausente ou inválido."""
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    if value < definition.minimum:
        return None
    return value


class SettingsService:
    """Service para leitura e alteração das configurações."""

    def __init__(self, db: AsyncSession, cache: CacheService | None = None):
        self.db = db
        self.setting_repo = SettingRepository(db)
        self.cache = cache or cache_service
        self.audit = AuditService(db)

    # ==========================================
    # Leitura
    # ==========================================

    async def get_int(self, key: str, default: int | None = None) -> int:
        """
        Valor numérico de uma configuração.

        Args:
            key: Nome da configuração
            default: Fallback; se None, usa o default da definição conhecida

        Raises:
            NotFoundError: Chave desconhecida e nenhum default informado
        """
        definition = DEFINITIONS.get(key)
        if default is None:
            if definition is None:
                raise NotFoundError(f"Configuração '{key}' desconhecida", {"key": key})
            default = definition.default

        row = await self.setting_repo.get_by_key(key)
        raw = row.value if row else None
        if definition is not None:
            value = _parse(definition, raw)
        else:
            try:
                value = int(raw) if raw is not None else None
            except ValueError:
                value = None

        if value is None:
            if raw is not None:
                logger.warning(f"Valor inválido para {key}: {raw!r}; usando default {default}")
            return default
        return value

    async def circulation(self) -> CirculationSettings:
        """
        Parâmetros de circulação efetivos.

        Lidos do cache quando possível; no miss, do banco (com fallback
        para os defaults) e gravados no cache.
        """
        cached = await self.cache.get_settings()
        if cached:
            try:
                return CirculationSettings.model_validate(cached)
            except ValueError:
                logger.warning("Cache de configurações inválido; relendo do banco")

        stored = await self.setting_repo.values_for(list(DEFINITIONS))
        values: dict[str, int] = {}
        for key, definition in DEFINITIONS.items():
            value = _parse(definition, stored.get(key))
            if value is None and key in stored:
                logger.warning(
                    f"Valor inválido para {key}: {stored[key]!r}; usando default {definition.default}"
                )
            values[definition.field] = definition.default if value is None else value

        result = CirculationSettings(**values)
        await self.cache.set_settings(result.model_dump())
        return result

    async def list(self, category: SettingCategory | None = None) -> list[AppSetting]:
        return await self.setting_repo.list_by_category(category)

    # ==========================================
    # Escrita
    # ==========================================

    async def update(self, key: str, value: str, ctx: AuditContext) -> AppSetting:
        """
        Grava o valor de uma configuração e invalida o cache.

        Chaves conhecidas são validadas (inteiro >= mínimo). Chaves
        desconhecidas precisam já existir na tabela.

        Raises:
            ValidationError: Valor inválido para a chave
            NotFoundError: Chave desconhecida e inexistente
        """
        definition = DEFINITIONS.get(key)
        if definition is not None and _parse(definition, value) is None:
            raise ValidationError(
                f"Valor inválido para {key}: deve ser inteiro >= {definition.minimum}",
                {"key": key, "value": value},
            )

        async with atomic(self.db):
            row = await self.setting_repo.get_by_key(key)
            old_value = row.value if row else None

            if row is None:
                if definition is None:
                    raise NotFoundError(f"Configuração '{key}' não encontrada", {"key": key})
                row = await self.setting_repo.create(
                    key=key,
                    value=value.strip(),
                    description=definition.description,
                    category=definition.category,
                    is_system_setting=False,
                )
            else:
                row = await self.setting_repo.update(row, value=value.strip())

            await self.audit.record(
                ctx,
                AuditAction.UPDATE,
                "AppSetting",
                row.id,
                {"key": key, "old_value": old_value, "new_value": row.value},
            )

        await self.cache.invalidate_settings()
        logger.info(f"Configuração {key} alterada: {old_value!r} -> {row.value!r}")
        return row

    async def ensure_defaults(self) -> int:
        """
        Cria as linhas ausentes com os valores default (usado no seed).

        Returns:
            Quantidade de linhas criadas
        """
        created = 0
        async with atomic(self.db):
            existing = await self.setting_repo.values_for(list(DEFINITIONS))
            for key, definition in DEFINITIONS.items():
                if key in existing:
                    continue
                await self.setting_repo.create(
                    key=key,
                    value=str(definition.default),
                    description=definition.description,
                    category=definition.category,
                    is_system_setting=False,
                )
                created += 1

        if created:
            await self.cache.invalidate_settings()
            logger.info(f"{created} configuração(ões) default criada(s)")
        return created
