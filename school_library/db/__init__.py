"""
Módulo de banco de dados - conexões, sessões e transações.

Exports:
    - Base: Classe base para modelos SQLAlchemy
    - engine: Engine async do SQLAlchemy
    - get_db: Dependency para injeção de sessão
    - atomic: Fronteira transacional das operações de escrita
    - init_redis / close_redis: Ciclo de vida do cache
"""

from school_library.db.session import (
    Base,
    async_session_factory,
    engine,
    get_db,
    init_models,
)
from school_library.db.redis import close_redis, get_redis_client, init_redis
from school_library.db.transaction import atomic

__all__ = [
    "Base",
    "engine",
    "get_db",
    "init_models",
    "async_session_factory",
    "atomic",
    "get_redis_client",
    "init_redis",
    "close_redis",
]
