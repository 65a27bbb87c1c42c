"""
Cache service usando Redis.

Implementa cache para:
    - Configurações de circulação (lidas em quase toda operação)
    - Disponibilidade por título (GET /titles/{id}/availability)

Configurável via variáveis de ambiente:
    - CACHE_ENABLED: bool (default: True)
    - CACHE_SETTINGS_TTL_SECONDS: int (default: 60)
    - CACHE_AVAILABILITY_TTL_SECONDS: int (default: 30)

Falhas do Redis nunca derrubam a operação: o cache "falha aberto" e o
valor é lido do banco.

Invalidação:
    - Após gravar uma configuração: invalidate_settings()
    - Após qualquer mudança de status de cópia (empréstimo, devolução,
      reserva, sweep, baixa): invalidate_availability(book_title_id)
"""

import json
import logging
from typing import Optional
from uuid import UUID

from school_library.core.config import get_settings
from school_library.db.redis import get_redis_client

logger = logging.getLogger(__name__)
settings = get_settings()


class CacheService:
    """Service para operações de cache usando Redis."""

    # Prefixos de chave
    PREFIX_SETTINGS = "cache:settings"
    PREFIX_AVAILABILITY = "cache:availability"

    def __init__(self, ttl: Optional[int] = None, availability_ttl: Optional[int] = None):
        """
        Inicializa o cache service.

        Args:
            ttl: TTL das configurações em segundos (default: config)
            availability_ttl: TTL da disponibilidade em segundos (default: config)
        """
        self.ttl = ttl or settings.CACHE_SETTINGS_TTL_SECONDS
        self.availability_ttl = availability_ttl or settings.CACHE_AVAILABILITY_TTL_SECONDS

    def _client(self):
        if not settings.CACHE_ENABLED:
            return None
        return get_redis_client()

    async def _get(self, key: str) -> Optional[dict]:
        client = self._client()
        if client is None:
            return None

        try:
            data = await client.get(key)
            if data:
                return json.loads(data)
            return None
        except Exception as e:
            logger.warning(f"Erro ao buscar cache {key}: {e}")
            return None

    async def _set(self, key: str, data: dict, ttl: int) -> bool:
        client = self._client()
        if client is None:
            return False

        try:
            await client.setex(key, ttl, json.dumps(data, default=str))
            return True
        except Exception as e:
            logger.warning(f"Erro ao salvar cache {key}: {e}")
            return False

    async def _delete_pattern(self, pattern: str) -> int:
        client = self._client()
        if client is None:
            return 0

        try:
            keys = [key async for key in client.scan_iter(match=pattern)]
            if keys:
                return await client.delete(*keys)
            return 0
        except Exception as e:
            logger.warning(f"Erro ao invalidar cache {pattern}: {e}")
            return 0

    # ==========================================
    # Settings Cache
    # ==========================================

    async def get_settings(self, name: str = "circulation") -> Optional[dict]:
        """
        Busca um bloco de configurações do cache.

        Returns:
            Dict salvo ou None se ausente/cache indisponível
        """
        return await self._get(f"{self.PREFIX_SETTINGS}:{name}")

    async def set_settings(self, data: dict, name: str = "circulation") -> bool:
        """
        Salva um bloco de configurações no cache.

        Returns:
            True se salvou com sucesso, False caso contrário
        """
        return await self._set(f"{self.PREFIX_SETTINGS}:{name}", data, self.ttl)

    async def invalidate_settings(self) -> int:
        """
        Remove todos os blocos de configurações do cache.

        Deve ser chamado após qualquer gravação em app_settings.

        Returns:
            Número de chaves removidas
        """
        return await self._delete_pattern(f"{self.PREFIX_SETTINGS}:*")

    # ==========================================
    # Availability Cache
    # ==========================================

    async def get_availability(self, book_title_id: UUID) -> Optional[dict]:
        """Busca as contagens de cópias do título, se em cache."""
        return await self._get(f"{self.PREFIX_AVAILABILITY}:{book_title_id}")

    async def set_availability(self, book_title_id: UUID, data: dict) -> bool:
        return await self._set(
            f"{self.PREFIX_AVAILABILITY}:{book_title_id}",
            data,
            self.availability_ttl,
        )

    async def invalidate_availability(self, *book_title_ids: UUID) -> int:
        """
        Invalida a disponibilidade dos títulos informados.

        Returns:
            Número de chaves removidas
        """
        client = self._client()
        if client is None or not book_title_ids:
            return 0

        try:
            return await client.delete(
                *[f"{self.PREFIX_AVAILABILITY}:{title_id}" for title_id in set(book_title_ids)]
            )
        except Exception as e:
            logger.warning(f"Erro ao invalidar cache availability: {e}")
            return 0


# Instância global para uso nos services
cache_service = CacheService()
