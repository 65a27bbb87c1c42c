"""
Configuração centralizada da aplicação via Pydantic Settings.

Carrega variáveis de ambiente do arquivo .env e valida tipos automaticamente.
Os parâmetros de circulação ajustáveis em produção ficam na tabela
``app_settings``; os valores ``DEFAULT_*`` abaixo são usados quando a
tabela não tem a chave ou o valor gravado é inválido.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configurações da aplicação carregadas de variáveis de ambiente.

    Attributes:
        APP_NAME: Nome da aplicação exibido na documentação
        DEBUG: Habilita modo debug (não usar em produção)
        ENVIRONMENT: Ambiente atual (development, staging, production)
        DATABASE_URL: URL de conexão async (SQLite local por padrão)
        DATABASE_ECHO: Loga SQL emitido pelo SQLAlchemy
        REDIS_URL: URL de conexão Redis
        CACHE_ENABLED: Habilita o cache Redis (configurações e disponibilidade)
        CACHE_SETTINGS_TTL_SECONDS: TTL do cache de configurações
        CACHE_AVAILABILITY_TTL_SECONDS: TTL do cache de disponibilidade por título
        JWT_SECRET: Chave secreta para assinatura JWT
        JWT_ALGORITHM: Algoritmo de assinatura JWT
        JWT_EXPIRES_MINUTES: Tempo de expiração do token JWT em minutos
        ADMIN_USERNAME: Usuário do admin seed
        ADMIN_PASSWORD: Senha do admin seed
        LOG_LEVEL: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "School Library"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./school_library.db"
    DATABASE_ECHO: bool = False

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    CACHE_SETTINGS_TTL_SECONDS: int = 60
    CACHE_AVAILABILITY_TTL_SECONDS: int = 30

    # JWT Authentication
    JWT_SECRET: str = "change-me-in-production-0f9c2a7e4b1d4c8e9a3f6b2d7e1c5a8f"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = 480

    # Admin Seed
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "Admin123!"

    # Circulação (fallback quando app_settings não tem a chave)
    DEFAULT_LOAN_DURATION_DAYS: int = 14
    DEFAULT_MAX_ACTIVE_LOANS: int = 3
    DEFAULT_RESERVATION_DURATION_DAYS: int = 3
    DEFAULT_MAX_ACTIVE_RESERVATIONS: int = 3
    DEFAULT_FIRST_REMINDER_DAYS: int = 3
    DEFAULT_SECOND_REMINDER_DAYS: int = 1

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def is_production(self) -> bool:
        """Verifica se está em ambiente de produção."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Retorna instância cacheada das configurações.

    Usa lru_cache para evitar recarregar .env em cada chamada.
    """
    return Settings()
