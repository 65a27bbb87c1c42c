"""
Testes para o endpoint de healthcheck.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from school_library.core.config import get_settings


@pytest.fixture
def database_up():
    with patch("school_library.main.check_database_connection", AsyncMock(return_value=(True, None))):
        yield


@pytest.mark.anyio
async def test_health_check_returns_200(client: AsyncClient, database_up):
    """Verifica se o endpoint /health retorna status 200."""
    response = await client.get("/health")
    assert response.status_code == 200


@pytest.mark.anyio
async def test_health_check_returns_healthy_status(client: AsyncClient, database_up):
    """Redis fora do ar não deixa a aplicação unhealthy."""
    response = await client.get("/health")
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "up"
    assert data["cache"] in ("down", "disabled")


@pytest.mark.anyio
async def test_health_check_returns_app_info(client: AsyncClient, database_up):
    """Verifica se o endpoint /health retorna informações da aplicação."""
    response = await client.get("/health")
    data = response.json()
    assert data["app_name"] == get_settings().APP_NAME
    assert data["environment"] == get_settings().ENVIRONMENT


@pytest.mark.anyio
async def test_health_check_database_down(client: AsyncClient):
    with patch(
        "school_library.main.check_database_connection",
        AsyncMock(return_value=(False, "connection refused")),
    ):
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "unhealthy"
    assert response.json()["database"] == "down"


@pytest.mark.anyio
async def test_health_check_cache_disabled(client: AsyncClient, database_up):
    with patch.object(get_settings(), "CACHE_ENABLED", False):
        response = await client.get("/health")

    assert response.json()["cache"] == "disabled"
