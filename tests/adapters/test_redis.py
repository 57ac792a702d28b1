"""Integration tests for the Redis adapter using testcontainers."""

import pytest

# Skip all tests if redis or testcontainers are not installed
pytest.importorskip("redis")
pytest.importorskip("testcontainers")

import redis.asyncio
from testcontainers.redis import RedisContainer

from relpage import RecordCache
from relpage.adapters.redis import AsyncRedisAdapter


@pytest.fixture(scope="module")
def redis_container():
    """Start a Redis container for the test module."""
    with RedisContainer() as container:
        yield container


@pytest.fixture
async def async_redis_client(redis_container):
    """Create an async Redis client, flushed after each test."""
    client = redis.asyncio.Redis(
        host=redis_container.get_container_host_ip(),
        port=redis_container.get_exposed_port(6379),
        decode_responses=False,
    )
    yield client
    await client.flushdb()
    await client.aclose()


@pytest.fixture
def async_redis_adapter(async_redis_client) -> AsyncRedisAdapter:
    """Create an AsyncRedisAdapter with a test prefix."""
    return AsyncRedisAdapter(async_redis_client, prefix="test")


class TestAsyncRedisAdapter:
    """Tests for AsyncRedisAdapter."""

    async def test_get_nonexistent_returns_none(
        self, async_redis_adapter: AsyncRedisAdapter
    ) -> None:
        assert await async_redis_adapter.get("missing") is None

    async def test_set_and_get(self, async_redis_adapter: AsyncRedisAdapter) -> None:
        await async_redis_adapter.set("comments:getOne:1", {"id": 1, "body": "hi"})
        record = await async_redis_adapter.get("comments:getOne:1")
        assert record == {"id": 1, "body": "hi"}

    async def test_key_prefix(
        self, async_redis_adapter: AsyncRedisAdapter, async_redis_client
    ) -> None:
        await async_redis_adapter.set("k", {"id": 1})
        assert await async_redis_client.exists("test:record:k") == 1

    async def test_set_if_absent(self, async_redis_adapter: AsyncRedisAdapter) -> None:
        """SET NX keeps the first record."""
        assert await async_redis_adapter.set_if_absent("k", {"id": 1, "v": "a"})
        assert not await async_redis_adapter.set_if_absent("k", {"id": 1, "v": "b"})
        assert await async_redis_adapter.get("k") == {"id": 1, "v": "a"}

    async def test_ttl(self, async_redis_client) -> None:
        adapter = AsyncRedisAdapter(async_redis_client, prefix="ttl", ttl_ms=60_000)
        await adapter.set("k", {"id": 1})
        ttl = await async_redis_client.pttl("ttl:record:k")
        assert 0 < ttl <= 60_000

    async def test_delete(self, async_redis_adapter: AsyncRedisAdapter) -> None:
        await async_redis_adapter.set("k", {"id": 1})
        await async_redis_adapter.delete("k")
        assert await async_redis_adapter.get("k") is None

    async def test_clear_only_touches_prefix(
        self, async_redis_adapter: AsyncRedisAdapter, async_redis_client
    ) -> None:
        await async_redis_adapter.set("k1", {"id": 1})
        await async_redis_adapter.set("k2", {"id": 2})
        await async_redis_client.set("other:key", "keep")

        await async_redis_adapter.clear()
        assert await async_redis_adapter.get("k1") is None
        assert await async_redis_adapter.get("k2") is None
        assert await async_redis_client.get("other:key") == b"keep"

    async def test_record_cache_over_redis(
        self, async_redis_adapter: AsyncRedisAdapter
    ) -> None:
        records = RecordCache(async_redis_adapter)
        assert await records.promote("comments", {"id": 7, "body": "x"})
        assert not await records.promote("comments", {"id": 7, "body": "y"})
        assert await records.get_one("comments", 7) == {"id": 7, "body": "x"}
