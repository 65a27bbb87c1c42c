"""
Endpoints de Sistema (Admin).

Contratos:
    - POST /system/sweep-reservations: Libera cópias presas em reservas vencidas
    - GET /system/settings: Lista configurações
    - PUT /system/settings/{key}: Altera configuração

Autorização:
    - Todos os endpoints requerem ADMIN

Cache invalidation:
    - POST /system/sweep-reservations: invalida availability dos títulos afetados
    - PUT /system/settings/{key}: invalida o cache de configurações

Status codes:
    - 200: Sucesso
    - 401: Não autenticado
    - 403: Sem permissão (não é admin)
    - 404: Configuração desconhecida
    - 422: Valor inválido
"""

from fastapi import APIRouter, Query

from school_library.core.deps import AdminTeacher, Audit, DbSession
from school_library.models.enums import SettingCategory
from school_library.schemas.reservation import SweepResult
from school_library.schemas.setting import CirculationSettings, SettingRead, SettingUpdate
from school_library.services.reservation import ReservationService
from school_library.services.settings import SettingsService

router = APIRouter(prefix="/system", tags=["System (Admin)"])


@router.post(
    "/sweep-reservations",
    response_model=SweepResult,
    summary="Processar reservas vencidas",
    description="""
    Para cada reserva vencida que ainda segura uma cópia RESERVED, passa a
    cópia para a próxima reserva da fila ou devolve à estante.
    Pode ser chamado repetidamente (ex.: por um cron). **Requer ADMIN.**
    """,
)
async def sweep_reservations(db: DbSession, admin: AdminTeacher, ctx: Audit) -> SweepResult:
    service = ReservationService(db)
    return await service.sweep(ctx)


@router.get(
    "/settings",
    response_model=list[SettingRead],
    summary="Listar configurações",
)
async def list_settings(
    db: DbSession,
    admin: AdminTeacher,
    category: SettingCategory | None = Query(None, description="Filtrar por categoria"),
) -> list[SettingRead]:
    settings = await SettingsService(db).list(category)
    return [SettingRead.model_validate(s) for s in settings]


@router.get(
    "/settings/circulation",
    response_model=CirculationSettings,
    summary="Parâmetros de circulação efetivos",
)
async def circulation_settings(db: DbSession, admin: AdminTeacher) -> CirculationSettings:
    return await SettingsService(db).circulation()


@router.put(
    "/settings/{key}",
    response_model=SettingRead,
    summary="Alterar configuração",
)
async def update_setting(
    key: str,
    data: SettingUpdate,
    db: DbSession,
    admin: AdminTeacher,
    ctx: Audit,
) -> SettingRead:
    setting = await SettingsService(db).update(key, data.value, ctx)
    return SettingRead.model_validate(setting)
