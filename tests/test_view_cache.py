import pytest

from app.services.view_cache import MemoryViewCache, RedisViewCache, view_key
from tests.conftest import FakeClock


def test_view_key_layout():
    assert view_key("post", 7, "1.2.3.4|ua") == "viewed:post:7:1.2.3.4|ua"


@pytest.mark.asyncio
async def test_memory_cache_dedups_within_ttl():
    clock = FakeClock()
    cache = MemoryViewCache(ttl_seconds=10, clock=clock)

    assert (await cache.record_view(1, "c1")).already_counted is False
    assert (await cache.record_view(1, "c1")).already_counted is True
    # other client / other content are independent
    assert (await cache.record_view(1, "c2")).already_counted is False
    assert (await cache.record_view(2, "c1")).already_counted is False

    clock.advance(11)
    assert (await cache.record_view(1, "c1")).already_counted is False


class FakeRedis:
    def __init__(self):
        self.calls = []
        self.keys = set()

    async def set(self, key, value, ex=None, nx=False):
        self.calls.append((key, value, ex, nx))
        if nx and key in self.keys:
            return None
        self.keys.add(key)
        return True


@pytest.mark.asyncio
async def test_redis_cache_uses_set_nx_ex():
    client = FakeRedis()
    cache = RedisViewCache(client, namespace="post", ttl_seconds=86400)

    first = await cache.record_view(3, "abc")
    second = await cache.record_view(3, "abc")

    assert first.already_counted is False
    assert second.already_counted is True
    assert client.calls[0] == ("viewed:post:3:abc", "1", 86400, True)
