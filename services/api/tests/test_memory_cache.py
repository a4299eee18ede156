import asyncio

import pytest

from app.stores.memory import ExpiringCache, cache_key


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ExpiringCache:
    return ExpiringCache(120, clock=clock, name="test")


def test_get_returns_fresh_value(cache: ExpiringCache, clock: FakeClock):
    cache.set("k", [1, 2, 3])
    clock.advance(60)
    assert cache.get("k") == [1, 2, 3]


def test_entry_expires_at_ttl(cache: ExpiringCache, clock: FakeClock):
    cache.set("k", "v")
    clock.advance(119)
    assert cache.get("k") == "v"
    clock.advance(1)
    assert cache.get("k") is None
    assert cache.get("k", "fallback") == "fallback"


def test_missing_key(cache: ExpiringCache):
    assert cache.get("nope") is None
    assert "nope" not in cache


def test_set_restarts_ttl(cache: ExpiringCache, clock: FakeClock):
    cache.set("k", 1)
    clock.advance(100)
    cache.set("k", 2)
    clock.advance(100)
    assert cache.get("k") == 2


def test_clear_removes_everything(cache: ExpiringCache):
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()
    assert cache.get("a") is None
    assert len(cache) == 0


def test_delete(cache: ExpiringCache):
    cache.set("a", 1)
    assert cache.delete("a") is True
    assert cache.delete("a") is False


def test_get_stale_ignores_expiry(cache: ExpiringCache, clock: FakeClock):
    cache.set("k", "old")
    clock.advance(500)
    assert cache.get("k") is None
    assert cache.get_stale("k") == "old"


def test_purge_expired(cache: ExpiringCache, clock: FakeClock):
    cache.set("old", 1)
    clock.advance(100)
    cache.set("new", 2)
    clock.advance(30)
    assert cache.purge_expired() == 1
    assert cache.get_stale("old") is None
    assert cache.get("new") == 2


def test_stats(cache: ExpiringCache, clock: FakeClock):
    cache.set("a", 1)
    clock.advance(150)
    cache.set("b", 2)
    stats = cache.stats()
    assert stats["name"] == "test"
    assert stats["ttl_seconds"] == 120
    assert stats["size"] == 2
    assert sorted(stats["keys"]) == ["a", "b"]
    fresh = {e["key"]: e["fresh"] for e in stats["entries"]}
    assert fresh == {"a": False, "b": True}


def test_separate_instances_have_separate_ttls(clock: FakeClock):
    short = ExpiringCache(10, clock=clock)
    long = ExpiringCache(300, clock=clock)
    short.set("k", 1)
    long.set("k", 1)
    clock.advance(60)
    assert short.get("k") is None
    assert long.get("k") == 1


def test_rejects_non_positive_ttl():
    with pytest.raises(ValueError):
        ExpiringCache(0)


def test_cache_key():
    assert cache_key("dashboard") == "dashboard"
    assert cache_key("products", offset=0, limit=10) == cache_key("products", limit=10, offset=0)
    assert cache_key("products", brand=None) != cache_key("products", brand="sony")


@pytest.mark.asyncio
async def test_get_or_load_deduplicates_concurrent_loads(cache: ExpiringCache):
    calls = 0

    async def loader() -> str:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return "loaded"

    results = await asyncio.gather(*(cache.get_or_load("k", loader) for _ in range(5)))
    assert results == ["loaded"] * 5
    assert calls == 1


@pytest.mark.asyncio
async def test_get_or_load_reloads_after_expiry(cache: ExpiringCache, clock: FakeClock):
    values = iter(["first", "second"])

    async def loader() -> str:
        return next(values)

    assert await cache.get_or_load("k", loader) == "first"
    assert await cache.get_or_load("k", loader) == "first"
    clock.advance(121)
    assert await cache.get_or_load("k", loader) == "second"


@pytest.mark.asyncio
async def test_get_or_load_failure_is_not_cached(cache: ExpiringCache):
    async def failing() -> str:
        raise RuntimeError("origin down")

    async def working() -> str:
        return "ok"

    with pytest.raises(RuntimeError):
        await cache.get_or_load("k", failing)
    assert "k" not in cache
    assert await cache.get_or_load("k", working) == "ok"


@pytest.mark.asyncio
async def test_get_or_load_releases_per_key_locks(cache: ExpiringCache):
    async def loader() -> int:
        await asyncio.sleep(0)
        return 1

    await asyncio.gather(*(cache.get_or_load(f"k{i}", loader) for i in range(1000)))
    await asyncio.gather(*(cache.get_or_load("shared", loader) for _ in range(10)))
    assert cache.stats()["in_flight"] == 0

    cache.clear()
    assert cache.stats() == {
        "name": "test",
        "ttl_seconds": 120,
        "size": 0,
        "keys": [],
        "entries": [],
        "in_flight": 0,
    }
