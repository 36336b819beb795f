import pytest

from src.core.service.cache.cache_service import CacheService


@pytest.fixture
def cache(redis_client):
    return CacheService(redis_client)


@pytest.mark.asyncio
async def test_set_and_get_json(cache, redis_client):
    await cache.set_json("portfolio:0xabc", {"core_balance": "1.5"}, ttl_seconds=30)

    assert await cache.get_json("portfolio:0xabc") == {"core_balance": "1.5"}
    assert "cache:portfolio:0xabc" in redis_client.data
    assert redis_client.ttl("cache:portfolio:0xabc") <= 30


@pytest.mark.asyncio
async def test_miss_returns_none(cache):
    assert await cache.get_json("missing") is None


@pytest.mark.asyncio
async def test_get_or_set_loads_once(cache):
    calls = []

    async def loader():
        calls.append(1)
        return {"value": "42"}

    assert await cache.get_or_set("answer", 30, loader) == {"value": "42"}
    assert await cache.get_or_set("answer", 30, loader) == {"value": "42"}
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_get_or_set_does_not_cache_none(cache, redis_client):
    async def loader():
        return None

    assert await cache.get_or_set("nothing", 30, loader) is None
    assert redis_client.data == {}


@pytest.mark.asyncio
async def test_read_failure_is_a_miss(cache, redis_client):
    await cache.set_json("key", {"a": 1}, ttl_seconds=30)
    redis_client.fail_on = {"get"}

    assert await cache.get_json("key") is None


@pytest.mark.asyncio
async def test_write_failure_is_swallowed(cache, redis_client):
    redis_client.fail_on = {"set"}

    async def loader():
        return {"a": 1}

    assert await cache.get_or_set("key", 30, loader) == {"a": 1}
    assert redis_client.data == {}


@pytest.mark.asyncio
async def test_undecodable_entry_is_a_miss(cache, redis_client):
    redis_client.data["cache:key"] = "{not json"

    assert await cache.get_json("key") is None
