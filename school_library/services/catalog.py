"""
Service para lógica de negócio do catálogo (BookTitle e BookCopy).

Regras de negócio:
    - ISBN, QR code e número de tombo são únicos
    - Status de cópia nunca é editado diretamente: só muda por
      compare-and-set nas operações de circulação e de manutenção
      (danificada, baixa, retorno do reparo)
    - Metadados externos (ISBN) só preenchem campos vazios; falha do
      provedor não altera nada
"""

import logging
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.cache import CacheService, cache_service
from school_library.core.clock import Clock, utcnow
from school_library.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from school_library.db.transaction import atomic
from school_library.models.book import BookCopy, BookTitle
from school_library.models.enums import AuditAction, CopyCondition, CopyStatus
from school_library.repositories.book import BookCopyRepository, BookTitleRepository
from school_library.schemas.audit import AuditContext
from school_library.schemas.book import (
    BookCopyCreate,
    BookCopyUpdate,
    BookTitleCreate,
    BookTitleRead,
    BookTitleUpdate,
    MetadataLookupResult,
    TitleStatistics,
)
from school_library.services.audit import AuditService
from school_library.services.holds import HoldQueue
from school_library.services.settings import SettingsService

logger = logging.getLogger(__name__)

# Campos do título que a consulta de ISBN pode preencher
METADATA_FIELDS = (
    "title",
    "author",
    "publisher",
    "publication_year",
    "language",
    "genre",
    "subject",
    "description",
    "page_count",
    "age_recommendation",
)

# Status a partir dos quais uma cópia pode ser baixada
RETIRABLE_STATUSES = (CopyStatus.AVAILABLE, CopyStatus.DAMAGED, CopyStatus.LOST)

# Status a partir dos quais uma cópia volta a circular
RECOVERABLE_STATUSES = (CopyStatus.DAMAGED, CopyStatus.LOST)


class MetadataProvider(Protocol):
    """Fonte externa de metadados por ISBN (ex.: API de bibliotecas)."""

    async def lookup(self, isbn: str) -> dict[str, Any] | None:
        """Retorna os metadados do ISBN, ou None se não encontrado."""
        ...


class CatalogService:
    """Service para operações de catálogo."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow, cache: CacheService | None = None):
        self.db = db
        self.clock = clock
        self.cache = cache or cache_service
        self.title_repo = BookTitleRepository(db)
        self.copy_repo = BookCopyRepository(db)
        self.audit = AuditService(db)
        self.holds = HoldQueue(db)
        self.settings = SettingsService(db, self.cache)

    # ==========================================
    # Disponibilidade
    # ==========================================

    async def available_copies(self, title_id: UUID) -> int:
        """Quantidade de cópias AVAILABLE e não removidas do título."""
        return await self.copy_repo.count_available(title_id)

    async def best_available_copy(self, title_id: UUID) -> BookCopy | None:
        """
        Melhor cópia disponível (melhor conservação, depois a mais antiga).

        None não é erro: apenas não há cópia disponível agora.
        """
        return await self.copy_repo.best_available(title_id)

    async def statistics(self, title_id: UUID) -> TitleStatistics:
        """
        Contagem das cópias do título por status.

        Raises:
            NotFoundError: Título não existe ou foi removido
        """
        await self.get_title(title_id)
        counts = await self.copy_repo.statistics(title_id)
        return TitleStatistics(book_title_id=title_id, **counts)

    async def cached_statistics(self, title_id: UUID) -> TitleStatistics:
        """statistics() com cache Redis; usado pelo endpoint de disponibilidade."""
        cached = await self.cache.get_availability(title_id)
        if cached:
            return TitleStatistics.model_validate(cached)

        stats = await self.statistics(title_id)
        await self.cache.set_availability(title_id, stats.model_dump(mode="json"))
        return stats

    # ==========================================
    # BookTitle operations
    # ==========================================

    async def get_title(self, title_id: UUID, include_deleted: bool = False) -> BookTitle:
        """
        Busca título por ID.

        Raises:
            NotFoundError: Título não encontrado
        """
        title = await self.title_repo.get_by_id(title_id, include_deleted=include_deleted)
        if not title:
            raise NotFoundError("Livro não encontrado", {"book_title_id": str(title_id)})
        return title

    async def create_title(self, data: BookTitleCreate, ctx: AuditContext) -> BookTitle:
        """
        Cadastra um título.

        Raises:
            ConflictError: ISBN já cadastrado
        """
        async with atomic(self.db):
            if data.isbn and await self.title_repo.isbn_exists(data.isbn):
                raise ConflictError("ISBN já cadastrado", {"isbn": data.isbn})

            title = await self.title_repo.create(**data.model_dump())
            await self.audit.record(
                ctx, AuditAction.CREATE, "BookTitle", title.id, {"title": title.title}
            )

        logger.info(f"Título cadastrado: {title.title} ({title.id})")
        return title

    async def update_title(self, title_id: UUID, data: BookTitleUpdate, ctx: AuditContext) -> BookTitle:
        """
        Atualiza os campos informados do título.

        Raises:
            NotFoundError: Título não encontrado
            ConflictError: ISBN já usado por outro título
        """
        changes = data.model_dump(exclude_unset=True)

        async with atomic(self.db):
            title = await self.get_title(title_id)

            isbn = changes.get("isbn")
            if isbn and await self.title_repo.isbn_exists(isbn, exclude_id=title_id):
                raise ConflictError("ISBN já cadastrado", {"isbn": isbn})

            title = await self.title_repo.update(title, **changes)
            await self.audit.record(
                ctx, AuditAction.UPDATE, "BookTitle", title.id, {"fields": sorted(changes)}
            )

        return title

    async def apply_external_metadata(
        self,
        title_id: UUID,
        provider: MetadataProvider,
        ctx: AuditContext,
    ) -> MetadataLookupResult:
        """
        Consulta o provedor pelo ISBN e preenche os campos vazios do título.

        O resultado bruto fica em external_metadata. Se o provedor falhar
        ou não conhecer o ISBN, o título não é alterado.

        Raises:
            NotFoundError: Título não encontrado
            ValidationError: Título sem ISBN
        """
        title = await self.get_title(title_id)
        if not title.isbn:
            raise ValidationError("Título não possui ISBN", {"book_title_id": str(title_id)})

        try:
            metadata = await provider.lookup(title.isbn)
        except Exception as e:
            logger.warning(f"Falha na consulta de ISBN {title.isbn}: {e}")
            return MetadataLookupResult(
                title=BookTitleRead.model_validate(title),
                updated=False,
                message="Falha ao consultar o provedor de metadados",
            )

        if not metadata:
            return MetadataLookupResult(
                title=BookTitleRead.model_validate(title),
                updated=False,
                message="ISBN não encontrado no provedor",
            )

        now = self.clock()
        async with atomic(self.db):
            filled = {
                field: metadata[field]
                for field in METADATA_FIELDS
                if metadata.get(field) not in (None, "") and getattr(title, field) in (None, "")
            }
            title = await self.title_repo.update(
                title,
                **filled,
                external_metadata=metadata,
                last_isbn_lookup=now,
            )
            await self.audit.record(
                ctx,
                AuditAction.METADATA_LOOKUP,
                "BookTitle",
                title.id,
                {"isbn": title.isbn, "filled": sorted(filled)},
            )

        logger.info(f"Metadados aplicados ao título {title.id}: {sorted(filled)}")
        return MetadataLookupResult(
            title=BookTitleRead.model_validate(title),
            updated=True,
            message=f"{len(filled)} campo(s) preenchido(s)",
        )

    # ==========================================
    # BookCopy operations
    # ==========================================

    async def get_copy(self, copy_id: UUID, include_deleted: bool = False) -> BookCopy:
        """
        Busca cópia por ID.

        Raises:
            NotFoundError: Cópia não encontrada
        """
        copy = await self.copy_repo.get_by_id(copy_id, include_deleted=include_deleted)
        if not copy:
            raise NotFoundError("Cópia não encontrada", {"book_copy_id": str(copy_id)})
        return copy

    async def get_copy_by_qr_code(self, qr_code: str) -> BookCopy:
        copy = await self.copy_repo.get_by_qr_code(qr_code)
        if not copy:
            raise NotFoundError("Cópia não encontrada", {"qr_code": qr_code})
        return copy

    async def list_copies(self, title_id: UUID, include_deleted: bool = False) -> list[BookCopy]:
        await self.get_title(title_id)
        return await self.copy_repo.list_by_title(title_id, include_deleted=include_deleted)

    async def add_copy(self, title_id: UUID, data: BookCopyCreate, ctx: AuditContext) -> BookCopy:
        """
        Cadastra uma cópia física AVAILABLE para o título.

        Se houver reserva aguardando o título, a cópia nova vai direto
        para ela.

        Raises:
            NotFoundError: Título não encontrado
            ConflictError: QR code ou número de tombo já usados
        """
        async with atomic(self.db):
            await self.get_title(title_id)

            if await self.copy_repo.qr_code_exists(data.qr_code):
                raise ConflictError("QR code já cadastrado", {"qr_code": data.qr_code})
            if data.inventory_number and await self.copy_repo.inventory_number_exists(data.inventory_number):
                raise ConflictError(
                    "Número de tombo já cadastrado",
                    {"inventory_number": data.inventory_number},
                )

            copy = await self.copy_repo.create(
                book_title_id=title_id,
                status=CopyStatus.AVAILABLE,
                **data.model_dump(),
            )
            await self.audit.record(
                ctx, AuditAction.CREATE, "BookCopy", copy.id, {"qr_code": copy.qr_code}
            )

            circulation = await self.settings.circulation()
            outcome = await self.holds.release(
                copy, CopyStatus.AVAILABLE, self.clock(), circulation.reservation_duration_days
            )
            if outcome.status != CopyStatus.AVAILABLE:
                await self.copy_repo.refresh(copy)

        await self.cache.invalidate_availability(title_id)
        logger.info(f"Cópia {copy.qr_code} cadastrada para o título {title_id}")
        return copy

    async def update_copy(self, copy_id: UUID, data: BookCopyUpdate, ctx: AuditContext) -> BookCopy:
        """
        Atualiza conservação, localização ou tombo.

        Raises:
            NotFoundError: Cópia não encontrada
            ConflictError: Número de tombo já usado
            ValidationError: Condição DAMAGED deve usar mark_copy_damaged
        """
        changes = data.model_dump(exclude_unset=True)
        if changes.get("condition") == CopyCondition.DAMAGED:
            raise ValidationError(
                "Use a operação de cópia danificada para marcar DAMAGED",
                {"book_copy_id": str(copy_id)},
            )

        async with atomic(self.db):
            copy = await self.get_copy(copy_id)

            inventory_number = changes.get("inventory_number")
            if inventory_number and await self.copy_repo.inventory_number_exists(
                inventory_number, exclude_id=copy_id
            ):
                raise ConflictError(
                    "Número de tombo já cadastrado",
                    {"inventory_number": inventory_number},
                )

            copy = await self.copy_repo.update(copy, **changes)
            await self.audit.record(
                ctx, AuditAction.UPDATE, "BookCopy", copy.id, {"fields": sorted(changes)}
            )

        return copy

    async def _change_status(
        self,
        copy: BookCopy,
        new_status: CopyStatus,
        ctx: AuditContext,
        reason: str | None = None,
    ) -> BookCopy:
        """CAS do status atual para ``new_status`` + auditoria (dentro de atomic)."""
        old_status = copy.status
        if not await self.copy_repo.transition_status(copy.id, old_status, new_status, self.clock()):
            raise ConflictError(
                "Status da cópia mudou durante a operação",
                {"book_copy_id": str(copy.id), "expected_status": old_status.value},
            )
        await self.copy_repo.refresh(copy)
        await self.audit.record(
            ctx,
            AuditAction.COPY_STATUS,
            "BookCopy",
            copy.id,
            {"from": old_status.value, "to": new_status.value, "reason": reason},
        )
        return copy

    async def mark_copy_damaged(self, copy_id: UUID, ctx: AuditContext, reason: str | None = None) -> BookCopy:
        """
        Tira da estante uma cópia AVAILABLE danificada.

        Cópias emprestadas são marcadas como danificadas na devolução.

        Raises:
            NotFoundError: Cópia não encontrada
            InvalidStateError: Cópia não está AVAILABLE
        """
        async with atomic(self.db):
            copy = await self.get_copy(copy_id)
            if copy.status != CopyStatus.AVAILABLE:
                raise InvalidStateError(
                    f"Apenas cópias AVAILABLE podem ser marcadas como danificadas (atual: {copy.status.value})",
                    {"book_copy_id": str(copy_id), "status": copy.status.value},
                )
            copy = await self._change_status(copy, CopyStatus.DAMAGED, ctx, reason)
            copy = await self.copy_repo.update(copy, condition=CopyCondition.DAMAGED)

        await self.cache.invalidate_availability(copy.book_title_id)
        logger.info(f"Cópia {copy.qr_code} marcada como danificada")
        return copy

    async def retire_copy(self, copy_id: UUID, ctx: AuditContext, reason: str | None = None) -> BookCopy:
        """
        Dá baixa definitiva na cópia.

        Raises:
            NotFoundError: Cópia não encontrada
            InvalidStateError: Cópia emprestada, separada ou já baixada
        """
        async with atomic(self.db):
            copy = await self.get_copy(copy_id)
            if copy.status not in RETIRABLE_STATUSES:
                raise InvalidStateError(
                    f"Cópia {copy.status.value} não pode ser baixada",
                    {"book_copy_id": str(copy_id), "status": copy.status.value},
                )
            copy = await self._change_status(copy, CopyStatus.RETIRED, ctx, reason)

        await self.cache.invalidate_availability(copy.book_title_id)
        logger.info(f"Cópia {copy.qr_code} baixada")
        return copy

    async def return_copy_to_circulation(
        self,
        copy_id: UUID,
        condition: CopyCondition,
        ctx: AuditContext,
    ) -> BookCopy:
        """
        Devolve à circulação uma cópia DAMAGED (reparada) ou LOST (encontrada).

        A cópia é liberada como numa devolução: vai para a primeira
        reserva da fila ou fica AVAILABLE.

        Raises:
            NotFoundError: Cópia não encontrada
            ValidationError: Condição informada é DAMAGED
            InvalidStateError: Cópia não está DAMAGED nem LOST
        """
        if condition == CopyCondition.DAMAGED:
            raise ValidationError("Cópia ainda danificada não volta a circular")

        now = self.clock()
        async with atomic(self.db):
            copy = await self.get_copy(copy_id)
            old_status = copy.status
            if old_status not in RECOVERABLE_STATUSES:
                raise InvalidStateError(
                    f"Cópia {old_status.value} não está fora de circulação",
                    {"book_copy_id": str(copy_id), "status": old_status.value},
                )

            copy = await self.copy_repo.update(copy, condition=condition)
            circulation = await self.settings.circulation()
            outcome = await self.holds.release(
                copy, old_status, now, circulation.reservation_duration_days
            )
            await self.copy_repo.refresh(copy)
            await self.audit.record(
                ctx,
                AuditAction.COPY_STATUS,
                "BookCopy",
                copy.id,
                {
                    "from": old_status.value,
                    "to": outcome.status.value,
                    "reservation_id": outcome.reservation_id,
                },
            )

        await self.cache.invalidate_availability(copy.book_title_id)
        logger.info(f"Cópia {copy.qr_code} voltou à circulação como {outcome.status.value}")
        return copy
