"""
Endpoints de Cópias físicas (BookCopy).

Contratos:
    - GET /copies/by-qr/{qr_code}: Busca pela etiqueta
    - GET /copies/{id}: Detalhes
    - PATCH /copies/{id}: Conservação, localização, tombo
    - POST /copies/{id}/damaged: AVAILABLE -> DAMAGED
    - POST /copies/{id}/retire: Baixa definitiva (somente ADMIN)
    - POST /copies/{id}/repair: DAMAGED/LOST volta a circular
    - DELETE /copies/{id}: Soft delete (somente ADMIN)
    - POST /copies/{id}/restore: Desfaz soft delete (somente ADMIN)
"""

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, Field

from school_library.core.deps import AdminTeacher, Audit, CurrentTeacher, DbSession
from school_library.models.book import BookCopy
from school_library.models.enums import CopyCondition
from school_library.schemas.book import BookCopyRead, BookCopyUpdate
from school_library.services.catalog import CatalogService
from school_library.services.soft_delete import SoftDeleteService

router = APIRouter(prefix="/copies", tags=["Copies"])


class CopyStatusChange(BaseModel):
    """Motivo opcional de uma mudança de status."""
    reason: str | None = Field(None, max_length=200)


class CopyRepair(BaseModel):
    """Conservação da cópia ao voltar para a circulação."""
    condition: CopyCondition = CopyCondition.FAIR


@router.get("/by-qr/{qr_code}", response_model=BookCopyRead, summary="Buscar cópia pela etiqueta")
async def get_copy_by_qr(qr_code: str, db: DbSession, teacher: CurrentTeacher) -> BookCopyRead:
    service = CatalogService(db)
    return BookCopyRead.model_validate(await service.get_copy_by_qr_code(qr_code))


@router.get("/{copy_id}", response_model=BookCopyRead, summary="Detalhes da cópia")
async def get_copy(copy_id: UUID, db: DbSession, teacher: CurrentTeacher) -> BookCopyRead:
    service = CatalogService(db)
    return BookCopyRead.model_validate(await service.get_copy(copy_id))


@router.patch("/{copy_id}", response_model=BookCopyRead, summary="Atualizar cópia")
async def update_copy(copy_id: UUID, data: BookCopyUpdate, db: DbSession, ctx: Audit) -> BookCopyRead:
    service = CatalogService(db)
    return BookCopyRead.model_validate(await service.update_copy(copy_id, data, ctx))


@router.post("/{copy_id}/damaged", response_model=BookCopyRead, summary="Marcar cópia como danificada")
async def mark_damaged(
    copy_id: UUID,
    data: CopyStatusChange,
    db: DbSession,
    ctx: Audit,
) -> BookCopyRead:
    service = CatalogService(db)
    return BookCopyRead.model_validate(await service.mark_copy_damaged(copy_id, ctx, data.reason))


@router.post(
    "/{copy_id}/retire",
    response_model=BookCopyRead,
    summary="Dar baixa na cópia",
    description="Baixa definitiva de cópia AVAILABLE, DAMAGED ou LOST. **Requer ADMIN.**",
)
async def retire_copy(
    copy_id: UUID,
    data: CopyStatusChange,
    db: DbSession,
    admin: AdminTeacher,
    ctx: Audit,
) -> BookCopyRead:
    service = CatalogService(db)
    return BookCopyRead.model_validate(await service.retire_copy(copy_id, ctx, data.reason))


@router.post(
    "/{copy_id}/repair",
    response_model=BookCopyRead,
    summary="Devolver cópia à circulação",
    description="Cópia reparada ou encontrada volta para a fila de reservas ou para a estante.",
)
async def repair_copy(copy_id: UUID, data: CopyRepair, db: DbSession, ctx: Audit) -> BookCopyRead:
    service = CatalogService(db)
    return BookCopyRead.model_validate(
        await service.return_copy_to_circulation(copy_id, data.condition, ctx)
    )


@router.delete("/{copy_id}", response_model=BookCopyRead, summary="Remover cópia (soft delete)")
async def delete_copy(copy_id: UUID, db: DbSession, admin: AdminTeacher, ctx: Audit) -> BookCopyRead:
    service = SoftDeleteService(db)
    copy = await service.soft_delete(BookCopy, copy_id, ctx)
    await CatalogService(db).cache.invalidate_availability(copy.book_title_id)
    return BookCopyRead.model_validate(copy)


@router.post("/{copy_id}/restore", response_model=BookCopyRead, summary="Restaurar cópia removida")
async def restore_copy(copy_id: UUID, db: DbSession, admin: AdminTeacher, ctx: Audit) -> BookCopyRead:
    service = SoftDeleteService(db)
    copy = await service.restore(BookCopy, copy_id, ctx)
    await CatalogService(db).cache.invalidate_availability(copy.book_title_id)
    return BookCopyRead.model_validate(copy)
