"""
Configuração de sessão do banco de dados com SQLAlchemy async.

Este módulo fornece o engine async, a session factory, a classe base
declarativa e a dependency de sessão para os endpoints.

O banco padrão é um arquivo SQLite local (operação offline); PostgreSQL
via asyncpg é suportado apenas trocando DATABASE_URL.
"""

from typing import Any, AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from school_library.core.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Classe base para todos os modelos SQLAlchemy."""
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """SQLite só aplica FOREIGN KEY com o pragma ligado em cada conexão."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for(url: str, echo: bool = False, **kwargs: Any) -> AsyncEngine:
    """
    Cria engine async adequado ao dialeto.

    SQLite não aceita pool_size/max_overflow e precisa do pragma de FKs;
    os demais bancos usam pool com pre-ping.

    Args:
        url: URL async do banco
        echo: Loga SQL emitido
        **kwargs: Argumentos extras repassados ao create_async_engine
    """
    is_sqlite = make_url(url).get_backend_name() == "sqlite"

    engine_kwargs: dict[str, Any] = {"echo": echo}
    if not is_sqlite:
        engine_kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10)
    engine_kwargs.update(kwargs)

    new_engine = create_async_engine(url, **engine_kwargs)
    if is_sqlite:
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Factory de sessões usada pela aplicação e pelos testes."""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_engine_for(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
async_session_factory = create_session_factory(engine)


async def init_models(bind: AsyncEngine | None = None) -> None:
    """
    Cria as tabelas que ainda não existem.

    Importa o pacote de models para registrar todas as tabelas no metadata.
    """
    import school_library.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency que fornece uma sessão de banco de dados.

    Uso nos endpoints:
        @router.get("/items")
        async def get_items(db: DbSession):
            ...

    A sessão é fechada após o request; transações não confirmadas
    sofrem rollback no close.
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def check_database_connection() -> tuple[bool, str | None]:
    """
    Verifica se a conexão com o banco de dados está funcionando.

    Returns:
        Tupla (sucesso, mensagem_erro)
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True, None
    except Exception as e:
        return False, str(e)
