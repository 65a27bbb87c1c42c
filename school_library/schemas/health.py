"""
Schemas Pydantic para o endpoint de healthcheck.
"""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """
    Resposta do endpoint de healthcheck.

    Attributes:
        status: "healthy" se o banco responde, "unhealthy" caso contrário
        app_name: Nome da aplicação
        environment: Ambiente atual (development, staging, production)
        database: Estado da conexão com o banco
        cache: Estado do Redis ("up", "down" ou "disabled")
    """

    status: str
    app_name: str
    environment: str
    database: str
    cache: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "healthy",
                    "app_name": "School Library",
                    "environment": "development",
                    "database": "up",
                    "cache": "down",
                }
            ]
        }
    }
