"""
Service para cadastro de estudantes.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from school_library.db.transaction import atomic
from school_library.models.enums import AuditAction
from school_library.models.student import Student
from school_library.repositories.student import StudentRepository
from school_library.schemas.audit import AuditContext
from school_library.schemas.student import StudentCreate, StudentUpdate
from school_library.services.audit import AuditService

logger = logging.getLogger(__name__)


class StudentService:
    """Service para operações de Student."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.student_repo = StudentRepository(db)
        self.audit = AuditService(db)

    async def get(self, student_id: UUID, include_deleted: bool = False) -> Student:
        """
        Busca estudante por ID.

        Raises:
            NotFoundError: Estudante não encontrado
        """
        student = await self.student_repo.get_by_id(student_id, include_deleted=include_deleted)
        if not student:
            raise NotFoundError("Estudante não encontrado", {"student_id": str(student_id)})
        return student

    async def get_by_qr_code(self, qr_code: str) -> Student:
        """Busca pela carteirinha (leitura do QR no balcão)."""
        student = await self.student_repo.get_by_qr_code(qr_code)
        if not student:
            raise NotFoundError("Estudante não encontrado", {"qr_code": qr_code})
        return student

    async def list(
        self,
        class_code: str | None = None,
        term: str | None = None,
        active_only: bool = False,
        include_deleted: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Student], int]:
        return await self.student_repo.search(
            class_code=class_code,
            term=term,
            active_only=active_only,
            include_deleted=include_deleted,
            page=page,
            page_size=page_size,
        )

    async def create(self, data: StudentCreate, ctx: AuditContext) -> Student:
        """
        Cadastra estudante.

        Raises:
            ConflictError: QR code já usado
        """
        async with atomic(self.db):
            if await self.student_repo.qr_code_exists(data.qr_code):
                raise ConflictError("QR code já cadastrado", {"qr_code": data.qr_code})

            student = await self.student_repo.create(**data.model_dump(), is_active=True)
            await self.audit.record(
                ctx,
                AuditAction.CREATE,
                "Student",
                student.id,
                {"class_code": student.class_code},
            )

        logger.info(f"Estudante cadastrado: {student.id} ({student.class_code})")
        return student

    async def update(self, student_id: UUID, data: StudentUpdate, ctx: AuditContext) -> Student:
        """
        Atualiza nome, turma ou situação do estudante.

        Raises:
            NotFoundError: Estudante não encontrado
        """
        changes = data.model_dump(exclude_unset=True)

        async with atomic(self.db):
            student = await self.get(student_id)
            student = await self.student_repo.update(student, **changes)
            await self.audit.record(
                ctx, AuditAction.UPDATE, "Student", student.id, {"fields": sorted(changes)}
            )

        return student

    async def deactivate(self, student_id: UUID, ctx: AuditContext) -> Student:
        """
        Desativa o estudante (não pode mais emprestar nem reservar).

        Empréstimos e reservas já existentes não são alterados.

        Raises:
            NotFoundError: Estudante não encontrado
            InvalidStateError: Estudante já inativo
        """
        async with atomic(self.db):
            student = await self.get(student_id)
            if not student.is_active:
                raise InvalidStateError("Estudante já está inativo", {"student_id": str(student_id)})

            student.is_active = False
            await self.db.flush()
            await self.audit.record(
                ctx, AuditAction.UPDATE, "Student", student.id, {"is_active": False}
            )

        logger.info(f"Estudante {student.id} desativado")
        return student
