"""
Unit tests for cache stores.

Tests:
- In-memory store expiry and hash fields
- Redis connector commands, error mapping and write retries
- Backend selection with in-memory fallback
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from quiz_eval.errors import CacheUnavailableError
from quiz_eval.services.cache import redis_client
from quiz_eval.services.cache.memory_store import InMemoryCacheStore
from quiz_eval.services.cache.redis_client import RedisConnector
from quiz_eval.services.cache.store import CacheStore, create_cache_store


class TestInMemoryCacheStore:
    """Test the in-memory store."""

    async def test_set_and_get(self, store):
        await store.set("k", "v", 60)
        assert await store.get("k") == "v"

    async def test_get_nonexistent(self, store):
        assert await store.get("missing") is None
        assert await store.get_field("set", "missing") is None
        assert await store.get_all_fields("set") == {}

    async def test_value_expires(self, store, clock):
        """Values vanish once their TTL has elapsed."""
        await store.set("k", "v", 60)
        clock.advance(59)
        assert await store.get("k") == "v"
        clock.advance(1)
        assert await store.get("k") is None

    async def test_fields(self, store):
        await store.set_field("set", "a", "1", 60)
        await store.set_field("set", "b", "2", 60)
        assert await store.get_field("set", "a") == "1"
        assert await store.get_all_fields("set") == {"a": "1", "b": "2"}

    async def test_field_overwrite(self, store):
        await store.set_field("set", "a", "1", 60)
        await store.set_field("set", "a", "2", 60)
        assert await store.get_all_fields("set") == {"a": "2"}

    async def test_fields_expire_individually(self, store, clock):
        """Each field keeps its own expiry."""
        await store.set_field("set", "old", "1", 60)
        clock.advance(30)
        await store.set_field("set", "new", "2", 60)
        clock.advance(30)

        assert await store.get_all_fields("set") == {"new": "2"}
        assert await store.get_field("set", "old") is None

    async def test_clear_and_count(self, store):
        await store.set("k", "v", 60)
        await store.set_field("set", "a", "1", 60)
        assert store.count() == 2
        await store.close()
        assert store.count() == 0

    async def test_ping(self, store):
        assert await store.ping() is True

    def test_satisfies_protocol(self, store):
        assert isinstance(store, CacheStore)


def _connector(field_expiry: bool = False):
    connector = RedisConnector("redis://localhost:6379/0", field_expiry=field_expiry, retry_delay=0)
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.get = AsyncMock(return_value=None)
    client.setex = AsyncMock(return_value=True)
    client.hget = AsyncMock(return_value=None)
    client.hgetall = AsyncMock(return_value={})
    client.aclose = AsyncMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, True])
    client.pipeline.return_value = pipe
    connector.client = client
    return connector, client, pipe


class TestRedisConnector:
    """Test the Redis store against a mocked client."""

    async def test_connect_success(self, monkeypatch):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        monkeypatch.setattr(redis_client.aioredis, "from_url", MagicMock(return_value=client))

        connector = RedisConnector("redis://localhost:6379/0")
        assert await connector.connect() is True
        assert connector.is_available()

    async def test_connect_failure(self, monkeypatch):
        """An unreachable server leaves the connector disconnected."""
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
        monkeypatch.setattr(redis_client.aioredis, "from_url", MagicMock(return_value=client))

        connector = RedisConnector("redis://localhost:6379/0")
        assert await connector.connect() is False
        assert not connector.is_available()

    async def test_not_connected_raises(self):
        connector = RedisConnector("redis://localhost:6379/0")
        with pytest.raises(CacheUnavailableError) as exc_info:
            await connector.get_field("set", "a")
        assert exc_info.value.stage == "hget"
        assert exc_info.value.collaborator == "cache_store"

    async def test_get_field(self):
        connector, client, _ = _connector()
        client.hget.return_value = "{}"
        assert await connector.get_field("set", "a") == "{}"
        client.hget.assert_awaited_once_with("set", "a")

    async def test_get_all_fields_empty(self):
        connector, client, _ = _connector()
        client.hgetall.return_value = None
        assert await connector.get_all_fields("set") == {}

    async def test_read_error_is_mapped(self):
        """Redis errors surface as CacheUnavailableError with the cause chained."""
        connector, client, _ = _connector()
        client.hgetall.side_effect = RedisConnectionError("reset")

        with pytest.raises(CacheUnavailableError) as exc_info:
            await connector.get_all_fields("set")
        assert exc_info.value.stage == "hgetall"
        assert isinstance(exc_info.value.__cause__, RedisConnectionError)

    async def test_set_uses_setex(self):
        connector, client, _ = _connector()
        await connector.set("k", "v", 60)
        client.setex.assert_awaited_once_with("k", 60, "v")

    async def test_set_field_refreshes_key_ttl(self):
        """HSET and EXPIRE go through one transaction."""
        connector, client, pipe = _connector()
        await connector.set_field("set", "a", "1", 60)

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.hset.assert_called_once_with("set", "a", "1")
        pipe.expire.assert_called_once_with("set", 60)
        pipe.hexpire.assert_not_called()
        pipe.execute.assert_awaited_once()

    async def test_set_field_with_field_expiry(self):
        connector, _, pipe = _connector(field_expiry=True)
        await connector.set_field("set", "a", "1", 60)
        pipe.hexpire.assert_called_once_with("set", 60, "a")

    async def test_write_retries_then_succeeds(self):
        connector, _, pipe = _connector()
        pipe.execute.side_effect = [RedisConnectionError("x"), [1, True]]
        await connector.set_field("set", "a", "1", 60)
        assert pipe.execute.await_count == 2

    async def test_write_gives_up(self):
        """After the last attempt the error is raised."""
        connector, client, _ = _connector()
        client.setex.side_effect = RedisConnectionError("down")

        with pytest.raises(CacheUnavailableError):
            await connector.set("k", "v", 60)
        assert client.setex.await_count == connector.write_attempts

    async def test_close(self):
        connector, client, _ = _connector()
        await connector.close()
        client.aclose.assert_awaited_once()
        assert not connector.is_available()


class TestCreateCacheStore:
    """Test backend selection."""

    async def test_memory_backend(self):
        store = await create_cache_store(backend="memory")
        assert isinstance(store, InMemoryCacheStore)

    async def test_redis_backend(self, monkeypatch):
        monkeypatch.setattr(RedisConnector, "connect", AsyncMock(return_value=True))
        store = await create_cache_store(backend="redis", field_expiry=True)
        assert isinstance(store, RedisConnector)
        assert store.field_expiry is True

    async def test_falls_back_when_redis_down(self, monkeypatch):
        """Unreachable Redis degrades to the in-memory store."""
        monkeypatch.setattr(RedisConnector, "connect", AsyncMock(return_value=False))
        store = await create_cache_store(backend="redis")
        assert isinstance(store, InMemoryCacheStore)
