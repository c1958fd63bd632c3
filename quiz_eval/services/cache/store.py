"""
Cache store contract and backend selection.

A store exposes plain keys (used by the embedding cache) and per-key hash maps
(one hash per question, one field per normalized answer text). Every method
raises CacheUnavailableError when the backend cannot serve the call.
"""

from typing import Dict, Optional, Protocol, runtime_checkable

from quiz_eval.logging_config import logger


@runtime_checkable
class CacheStore(Protocol):
    backend: str

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def get_field(self, set_key: str, field_key: str) -> Optional[str]:
        ...

    async def get_all_fields(self, set_key: str) -> Dict[str, str]:
        ...

    async def set_field(self, set_key: str, field_key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        ...


async def create_cache_store(
    backend: str = "redis",
    redis_url: str = "redis://localhost:6379/0",
    field_expiry: bool = False,
) -> CacheStore:
    """
    Create the configured store.

    Falls back to the in-memory store when Redis cannot be reached, so a
    missing cache degrades latency rather than availability.
    """
    from quiz_eval.services.cache.memory_store import InMemoryCacheStore
    from quiz_eval.services.cache.redis_client import RedisConnector

    if backend == "memory":
        return InMemoryCacheStore()

    connector = RedisConnector(redis_url, field_expiry=field_expiry)
    if await connector.connect():
        return connector

    logger.warning("Redis unavailable, falling back to in-memory answer cache")
    return InMemoryCacheStore()
