from __future__ import annotations

import asyncio

import pytest

from src.core.dedup_store import InMemoryDedupStore, RedisDedupStore, build_dedup_store


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeRedis:
    """Minimal async stand-in for redis.asyncio.Redis SET NX / DELETE."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.set_calls: list[dict] = []
        self.closed = False

    async def set(self, name, value, nx=False, ex=None):
        self.set_calls.append({"name": name, "nx": nx, "ex": ex})
        if nx and name in self.values:
            return None
        self.values[name] = value
        return True

    async def delete(self, name):
        return 1 if self.values.pop(name, None) is not None else 0

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_admit_is_true_once_per_window():
    store = InMemoryDedupStore(ttl_seconds=900, clock=FakeClock())

    assert await store.admit("hash:abc") is True
    assert await store.admit("hash:abc") is False
    assert await store.admit("hash:abc") is False
    assert await store.admit("hash:other") is True


@pytest.mark.asyncio
async def test_expired_key_is_admitted_again_without_sweep():
    clock = FakeClock()
    store = InMemoryDedupStore(ttl_seconds=900, clock=clock)
    await store.admit("hdr:1")

    clock.now += 899
    assert await store.admit("hdr:1") is False

    clock.now += 1
    assert await store.admit("hdr:1") is True


@pytest.mark.asyncio
async def test_per_call_ttl_overrides_default():
    clock = FakeClock()
    store = InMemoryDedupStore(ttl_seconds=900, clock=clock)
    await store.admit("update:5", ttl=10)

    clock.now += 10
    assert await store.admit("update:5") is True


@pytest.mark.asyncio
async def test_concurrent_admission_has_single_winner():
    store = InMemoryDedupStore(ttl_seconds=900)
    results = await asyncio.gather(*(store.admit("hash:same") for _ in range(20)))
    assert results.count(True) == 1


@pytest.mark.asyncio
async def test_sweep_removes_only_expired_records():
    clock = FakeClock()
    store = InMemoryDedupStore(ttl_seconds=100, clock=clock)
    await store.admit("old")
    clock.now += 50
    await store.admit("new")
    clock.now += 60

    removed = await store.sweep()

    assert removed == 1
    assert len(store) == 1
    assert await store.admit("new") is False


@pytest.mark.asyncio
async def test_forget_readmits_key():
    store = InMemoryDedupStore(ttl_seconds=900, clock=FakeClock())
    await store.admit("hash:abc")
    await store.forget("hash:abc")
    assert await store.admit("hash:abc") is True


@pytest.mark.asyncio
async def test_forget_unknown_key_is_noop():
    store = InMemoryDedupStore(ttl_seconds=900)
    await store.forget("missing")
    assert len(store) == 0


@pytest.mark.asyncio
async def test_redis_store_uses_set_nx_ex():
    client = FakeRedis()
    store = RedisDedupStore("redis://unused", ttl_seconds=900, client=client)

    assert await store.admit("hdr:1") is True
    assert await store.admit("hdr:1") is False
    assert client.set_calls[0] == {"name": "relay:dedup:hdr:1", "nx": True, "ex": 900}


@pytest.mark.asyncio
async def test_redis_store_forget_and_close():
    client = FakeRedis()
    store = RedisDedupStore("redis://unused", ttl_seconds=0.5, client=client)

    await store.admit("k")
    assert client.set_calls[0]["ex"] == 1

    await store.forget("k")
    assert await store.admit("k") is True

    await store.close()
    assert client.closed is True


def test_build_dedup_store_memory():
    store = build_dedup_store("memory", ttl_seconds=60)
    assert isinstance(store, InMemoryDedupStore)
    assert store.ttl_seconds == 60


def test_build_dedup_store_unknown_backend():
    with pytest.raises(ValueError, match="Unknown dedup backend"):
        build_dedup_store("sqlite", ttl_seconds=60)
