import asyncio
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from redis import asyncio as aioredis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from quiz_eval.errors import CacheUnavailableError
from quiz_eval.logging_config import logger

T = TypeVar("T")

CACHE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class RedisConnector:
    """
    Manages the Redis connection and implements the CacheStore contract.

    Question records live in one hash per question; HSET refreshes the hash
    TTL. With field_expiry enabled each field also gets its own HEXPIRE
    (Redis >= 7.4).
    """
    backend = "redis"

    def __init__(
        self,
        url: str,
        field_expiry: bool = False,
        write_attempts: int = 3,
        retry_delay: float = 0.1,
    ):
        self.url = url
        self.field_expiry = field_expiry
        self.write_attempts = write_attempts
        self.retry_delay = retry_delay
        self.client: Optional[Redis] = None

    async def connect(self) -> bool:
        """Establish connection to Redis."""
        try:
            self.client = aioredis.from_url(self.url, decode_responses=True)
            await self.client.ping()
            logger.info("Redis connected successfully")
            return True
        except CACHE_ERRORS as e:
            logger.warning("Redis connection failed", extra={"error": str(e)})
            self.client = None
            return False

    async def close(self):
        """Close connection."""
        if self.client:
            await self.client.aclose()
            self.client = None

    def is_available(self) -> bool:
        """Check if Redis client is connected."""
        return self.client is not None

    def _require_client(self, operation: str) -> Redis:
        if self.client is None:
            raise CacheUnavailableError(
                f"Redis {operation} failed: not connected",
                stage=operation,
                collaborator="cache_store",
            )
        return self.client

    async def _read(self, operation: str, key: str, call: Callable[[Redis], Awaitable[T]]) -> T:
        client = self._require_client(operation)
        try:
            return await call(client)
        except CACHE_ERRORS as e:
            raise CacheUnavailableError(
                f"Redis {operation} failed for key {key}",
                stage=operation,
                collaborator="cache_store",
            ) from e

    async def _write(self, operation: str, key: str, call: Callable[[Redis], Awaitable[object]]) -> None:
        client = self._require_client(operation)
        for attempt in range(self.write_attempts):
            try:
                await call(client)
                return
            except CACHE_ERRORS as e:
                if attempt == self.write_attempts - 1:
                    logger.error(
                        f"Redis {operation} failed after {self.write_attempts} attempts",
                        extra={"key": key, "error": str(e)},
                    )
                    raise CacheUnavailableError(
                        f"Redis {operation} failed for key {key}",
                        stage=operation,
                        collaborator="cache_store",
                    ) from e
                await asyncio.sleep(self.retry_delay)

    async def ping(self) -> bool:
        return bool(await self._read("ping", "-", lambda c: c.ping()))

    async def get(self, key: str) -> Optional[str]:
        return await self._read("get", key, lambda c: c.get(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._write("setex", key, lambda c: c.setex(key, ttl_seconds, value))

    async def get_field(self, set_key: str, field_key: str) -> Optional[str]:
        return await self._read("hget", set_key, lambda c: c.hget(set_key, field_key))

    async def get_all_fields(self, set_key: str) -> Dict[str, str]:
        result = await self._read("hgetall", set_key, lambda c: c.hgetall(set_key))
        return result or {}

    async def set_field(self, set_key: str, field_key: str, value: str, ttl_seconds: int) -> None:
        async def _store(client: Redis):
            pipe = client.pipeline(transaction=True)
            pipe.hset(set_key, field_key, value)
            pipe.expire(set_key, ttl_seconds)
            if self.field_expiry:
                pipe.hexpire(set_key, ttl_seconds, field_key)
            await pipe.execute()

        await self._write("hset", set_key, _store)
