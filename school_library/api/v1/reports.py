"""
Endpoints de relatórios e auditoria.

Contratos:
    - GET /reports/dashboard: Números gerais do acervo e da circulação
    - GET /reports/audit/{entity_type}/{entity_id}: Histórico de uma entidade (somente ADMIN)
"""

from uuid import UUID

from fastapi import APIRouter, Query

from school_library.core.deps import AdminTeacher, CurrentTeacher, DbSession
from school_library.schemas.audit import AuditLogRead
from school_library.schemas.report import DashboardStats
from school_library.services.reporting import ReportingService

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/dashboard", response_model=DashboardStats, summary="Painel da biblioteca")
async def dashboard(db: DbSession, teacher: CurrentTeacher) -> DashboardStats:
    return await ReportingService(db).dashboard()


@router.get(
    "/audit/{entity_type}/{entity_id}",
    response_model=list[AuditLogRead],
    summary="Histórico de auditoria",
    description="Registros mais recentes primeiro. **Requer ADMIN.**",
)
async def audit_trail(
    entity_type: str,
    entity_id: UUID,
    db: DbSession,
    admin: AdminTeacher,
    limit: int = Query(100, ge=1, le=1000),
) -> list[AuditLogRead]:
    logs = await ReportingService(db).audit_trail(entity_type, entity_id, limit)
    return [AuditLogRead.model_validate(log) for log in logs]
