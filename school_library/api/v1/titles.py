"""
Endpoints de Títulos (BookTitle) e suas cópias.

Contratos:
    - POST /titles: Cadastra título
    - GET /titles: Busca paginada com disponibilidade
    - GET /titles/popular: Mais emprestados no período
    - GET /titles/{id}: Detalhes
    - PATCH /titles/{id}: Atualiza título
    - DELETE /titles/{id}: Soft delete (somente ADMIN)
    - POST /titles/{id}/restore: Desfaz soft delete (somente ADMIN)
    - GET /titles/{id}/availability: Contagem de cópias por status (cache Redis)
    - GET /titles/{id}/copies: Lista cópias
    - POST /titles/{id}/copies: Cadastra cópia
    - GET /titles/{id}/reservations: Fila de reservas ativas

Status codes:
    - 200: Sucesso
    - 201: Criado com sucesso
    - 401: Não autenticado
    - 403: Sem permissão (não é admin)
    - 404: Título não encontrado
    - 409: ISBN/QR code duplicado
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from school_library.core.deps import AdminTeacher, Audit, CurrentTeacher, DbSession
from school_library.models.book import BookTitle
from school_library.schemas.base import PaginatedResponse
from school_library.schemas.book import (
    BookCopyCreate,
    BookCopyRead,
    BookTitleCreate,
    BookTitleRead,
    BookTitleUpdate,
    PopularTitle,
    TitleSearchItem,
    TitleStatistics,
)
from school_library.schemas.reservation import ReservationDetail
from school_library.services.catalog import CatalogService
from school_library.services.reporting import ReportingService
from school_library.services.soft_delete import SoftDeleteService

router = APIRouter(prefix="/titles", tags=["Titles"])


@router.post(
    "",
    response_model=BookTitleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Cadastrar título",
)
async def create_title(data: BookTitleCreate, db: DbSession, ctx: Audit) -> BookTitleRead:
    service = CatalogService(db)
    return BookTitleRead.model_validate(await service.create_title(data, ctx))


@router.get(
    "",
    response_model=PaginatedResponse[TitleSearchItem],
    summary="Buscar títulos",
    description="Busca em título, autor, ISBN, descrição e editora, com filtros.",
)
async def search_titles(
    db: DbSession,
    teacher: CurrentTeacher,
    page: int = Query(1, ge=1, description="Número da página"),
    page_size: int = Query(20, ge=1, le=100, description="Itens por página"),
    term: str | None = Query(None, description="Texto a buscar"),
    language: str | None = Query(None, description="Idioma (ex.: de)"),
    genre: str | None = Query(None, description="Gênero"),
    subject: str | None = Query(None, description="Disciplina"),
    available_only: bool = Query(False, description="Apenas títulos com cópia disponível"),
) -> PaginatedResponse[TitleSearchItem]:
    service = ReportingService(db)
    return await service.search_titles(
        term=term,
        language=language,
        genre=genre,
        subject=subject,
        available_only=available_only,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/popular",
    response_model=list[PopularTitle],
    summary="Títulos mais emprestados",
)
async def popular_titles(
    db: DbSession,
    teacher: CurrentTeacher,
    top: int = Query(10, ge=1, le=100),
    days_back: int = Query(30, ge=1, le=3650),
) -> list[PopularTitle]:
    return await ReportingService(db).popular_titles(top=top, days_back=days_back)


@router.get(
    "/{title_id}",
    response_model=BookTitleRead,
    summary="Detalhes do título",
)
async def get_title(title_id: UUID, db: DbSession, teacher: CurrentTeacher) -> BookTitleRead:
    service = CatalogService(db)
    return BookTitleRead.model_validate(await service.get_title(title_id))


@router.patch(
    "/{title_id}",
    response_model=BookTitleRead,
    summary="Atualizar título",
)
async def update_title(title_id: UUID, data: BookTitleUpdate, db: DbSession, ctx: Audit) -> BookTitleRead:
    service = CatalogService(db)
    return BookTitleRead.model_validate(await service.update_title(title_id, data, ctx))


@router.delete(
    "/{title_id}",
    response_model=BookTitleRead,
    summary="Remover título (soft delete)",
    description="Oculta o título. Cópias não são removidas em cascata. **Requer ADMIN.**",
)
async def delete_title(title_id: UUID, db: DbSession, admin: AdminTeacher, ctx: Audit) -> BookTitleRead:
    service = SoftDeleteService(db)
    return BookTitleRead.model_validate(await service.soft_delete(BookTitle, title_id, ctx))


@router.post(
    "/{title_id}/restore",
    response_model=BookTitleRead,
    summary="Restaurar título removido",
)
async def restore_title(title_id: UUID, db: DbSession, admin: AdminTeacher, ctx: Audit) -> BookTitleRead:
    service = SoftDeleteService(db)
    return BookTitleRead.model_validate(await service.restore(BookTitle, title_id, ctx))


@router.get(
    "/{title_id}/availability",
    response_model=TitleStatistics,
    summary="Disponibilidade do título",
    description="Contagem das cópias por status. Resposta em cache (Redis) por alguns segundos.",
)
async def title_availability(title_id: UUID, db: DbSession, teacher: CurrentTeacher) -> TitleStatistics:
    service = CatalogService(db)
    return await service.cached_statistics(title_id)


@router.get(
    "/{title_id}/copies",
    response_model=list[BookCopyRead],
    summary="Listar cópias do título",
)
async def list_copies(
    title_id: UUID,
    db: DbSession,
    teacher: CurrentTeacher,
    include_deleted: bool = Query(False, description="Incluir cópias removidas"),
) -> list[BookCopyRead]:
    service = CatalogService(db)
    copies = await service.list_copies(title_id, include_deleted=include_deleted)
    return [BookCopyRead.model_validate(c) for c in copies]


@router.post(
    "/{title_id}/copies",
    response_model=BookCopyRead,
    status_code=status.HTTP_201_CREATED,
    summary="Cadastrar cópia",
    description="Cadastra cópia física. Se houver reserva aguardando, a cópia já fica separada.",
)
async def add_copy(title_id: UUID, data: BookCopyCreate, db: DbSession, ctx: Audit) -> BookCopyRead:
    service = CatalogService(db)
    return BookCopyRead.model_validate(await service.add_copy(title_id, data, ctx))


@router.get(
    "/{title_id}/reservations",
    response_model=list[ReservationDetail],
    summary="Fila de reservas do título",
)
async def title_reservations(title_id: UUID, db: DbSession, teacher: CurrentTeacher) -> list[ReservationDetail]:
    await CatalogService(db).get_title(title_id)
    return await ReportingService(db).active_reservations(title_id)
