"""
Ponto de entrada da aplicação FastAPI.

Este módulo configura a aplicação FastAPI, inclui rotas, converte erros
de domínio em respostas HTTP e define handlers de ciclo de vida
(startup/shutdown).
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from school_library.api.v1.router import api_router
from school_library.core.config import get_settings
from school_library.core.exceptions import CirculationError
from school_library.core.logging import get_logger, setup_logging
from school_library.db.redis import check_redis_connection, close_redis, init_redis
from school_library.db.seed import run_seeds
from school_library.db.session import check_database_connection, engine, init_models
from school_library.schemas.base import ErrorResponse
from school_library.schemas.health import HealthResponse

settings = get_settings()
logger = get_logger(__name__)

# Tipo do erro de domínio -> status HTTP
ERROR_STATUS = {
    "NotFound": status.HTTP_404_NOT_FOUND,
    "Conflict": status.HTTP_409_CONFLICT,
    "LimitExceeded": status.HTTP_400_BAD_REQUEST,
    "InvalidState": status.HTTP_409_CONFLICT,
    "ValidationError": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "StorageFailure": status.HTTP_503_SERVICE_UNAVAILABLE,
    "Unauthorized": status.HTTP_401_UNAUTHORIZED,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gerencia o ciclo de vida da aplicação.

    Startup:
        - Configura logging
        - Conecta ao Redis (se CACHE_ENABLED)
        - Cria tabelas e roda os seeds (admin + configurações default)

    Shutdown:
        - Fecha conexão com Redis
        - Fecha pool de conexões do banco
    """
    # Startup
    setup_logging()
    logger.info(f"Iniciando {settings.APP_NAME} em ambiente {settings.ENVIRONMENT}")

    if settings.CACHE_ENABLED:
        await init_redis()
        if await check_redis_connection():
            logger.info("Conexão com Redis estabelecida")
        else:
            logger.warning("Redis não disponível - cache desabilitado")

    success, error = await check_database_connection()
    if success:
        await init_models()
        await run_seeds()
        logger.info("Banco de dados pronto")
    else:
        logger.error(f"Banco de dados não disponível: {error}")

    yield

    # Shutdown
    logger.info(f"Encerrando {settings.APP_NAME}")
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="API REST do motor de circulação da biblioteca escolar",
    version="0.1.0",
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Inclui rotas da API v1
app.include_router(api_router)


@app.exception_handler(CirculationError)
async def circulation_error_handler(request: Request, exc: CirculationError) -> JSONResponse:
    """Converte erros de domínio em ErrorResponse com o status correspondente."""
    status_code = ERROR_STATUS.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error(f"{exc.kind} em {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind} em {request.method} {request.url.path}: {exc.message}")

    body = ErrorResponse(error=exc.kind, message=exc.message, details=exc.details or None)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Verifica status da aplicação",
    description="Retorna o status da aplicação, do banco e do cache.",
)
async def health_check() -> HealthResponse:
    """
    Endpoint de healthcheck para monitoramento.

    O cache é opcional: Redis fora do ar não torna a aplicação unhealthy.
    """
    db_ok, _ = await check_database_connection()
    if not settings.CACHE_ENABLED:
        cache = "disabled"
    else:
        cache = "up" if await check_redis_connection() else "down"

    return HealthResponse(
        status="healthy" if db_ok else "unhealthy",
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        database="up" if db_ok else "down",
        cache=cache,
    )


def run() -> None:
    """Sobe o servidor HTTP (comando ``school-library``)."""
    uvicorn.run(
        "school_library.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
    )


if __name__ == "__main__":
    run()
