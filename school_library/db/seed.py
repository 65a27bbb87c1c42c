"""
Script de seed para criar dados iniciais no banco.

Uso:
    python -m school_library.db.seed

Cria as tabelas, o professor admin (se não existir) e as configurações
de circulação com os valores default.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from school_library.core.config import get_settings
from school_library.core.logging import setup_logging
from school_library.db.session import async_session_factory, init_models
from school_library.models.enums import TeacherRole
from school_library.repositories.teacher import TeacherRepository
from school_library.schemas.audit import SYSTEM_CONTEXT
from school_library.schemas.auth import TeacherCreate
from school_library.services.auth import AuthService
from school_library.services.settings import SettingsService

logger = logging.getLogger(__name__)
settings = get_settings()


async def create_admin(db: AsyncSession) -> None:
    """
    Cria o professor admin se não existir.

    Lê login e senha do .env (ADMIN_USERNAME, ADMIN_PASSWORD).
    """
    if await TeacherRepository(db).get_by_username(settings.ADMIN_USERNAME):
        logger.info(f"Admin já existe: {settings.ADMIN_USERNAME}")
        return

    admin = await AuthService(db).create_teacher(
        TeacherCreate(
            username=settings.ADMIN_USERNAME,
            password=settings.ADMIN_PASSWORD,
            first_name="Administrador",
            last_name="Biblioteca",
            role=TeacherRole.ADMIN,
        ),
        SYSTEM_CONTEXT,
    )
    logger.info(f"Admin criado: {admin.username} (ID: {admin.id})")


async def run_seeds(session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    """Executa todos os seeds (idempotente)."""
    async with (session_factory or async_session_factory)() as db:
        await create_admin(db)
        await SettingsService(db).ensure_defaults()


async def main() -> None:
    setup_logging()
    logger.info("Executando seeds...")
    await init_models()
    await run_seeds()
    logger.info("Seeds concluídos!")


if __name__ == "__main__":
    asyncio.run(main())
