"""
Tests for the TTL cache, durable entity cache and row stores.
"""
import asyncio

import pytest

from catalog.cache import (
    DurableEntityCache,
    MemoryStore,
    RequestCoalescer,
    SqlStore,
    TTLCache,
    extract_version_ids,
)
from catalog.db import init_db, make_engine, make_session_factory

from fakes import FakeClock


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'cache.db'}")
    init_db(engine)
    return make_session_factory(engine)


@pytest.fixture
def model():
    return {
        "id": 100,
        "name": "Detail Tweaker",
        "modelVersions": [{"id": 1001, "name": "v1"}, {"id": 1002, "name": "v2"}],
    }


# =============================================================================
# TTLCache
# =============================================================================

def test_get_after_set_returns_value(clock):
    cache = TTLCache(60, clock=clock)
    cache.set("k", {"a": 1})
    assert cache.get("k") == {"a": 1}


def test_absent_key_is_miss(clock):
    cache = TTLCache(60, clock=clock)
    assert cache.get("missing") is None


def test_entry_expires_after_ttl(clock):
    cache = TTLCache(60, clock=clock)
    cache.set("k", "v")
    clock.advance(59.9)
    assert cache.get("k") == "v"
    clock.advance(0.1)
    assert cache.get("k") is None


def test_expired_entry_is_kept_until_overwritten(clock):
    """Expiry is lazy: the row stays in the store"""
    store = MemoryStore()
    cache = TTLCache(10, store=store, clock=clock)
    cache.set("k", "old")
    clock.advance(30)
    assert cache.get("k") is None
    assert len(store) == 1

    cache.set("k", "new")
    assert cache.get("k") == "new"


def test_set_overwrites_fresh_entry(clock):
    cache = TTLCache(60, clock=clock)
    cache.set("k", 1)
    clock.advance(30)
    cache.set("k", 2)
    clock.advance(45)
    # Timestamp was reset by the second set
    assert cache.get("k") == 2


def test_invalidate_all_clears_everything(clock):
    cache = TTLCache(60, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.invalidate_all() == 2
    assert cache.get("a") is None
    assert cache.get("b") is None


def test_stats_track_hits_and_misses(clock):
    cache = TTLCache(60, clock=clock)
    cache.get("k")
    cache.set("k", 1)
    cache.get("k")
    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["entries"] == 1
    assert stats["hit_rate_percent"] == 50.0


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        TTLCache(0)


def test_ttl_cache_over_sql_store(session_factory, clock):
    """Persisted rows survive a new cache instance over the same table"""
    cache = TTLCache(60, store=SqlStore(session_factory, "search"), clock=clock)
    cache.set("k", {"items": [1, 2]})

    reopened = TTLCache(60, store=SqlStore(session_factory, "search"), clock=clock)
    assert reopened.get("k") == {"items": [1, 2]}

    clock.advance(60)
    assert reopened.get("k") is None


# =============================================================================
# Row stores
# =============================================================================

def test_sql_store_namespaces_are_separate(session_factory):
    search = SqlStore(session_factory, "search")
    lora = SqlStore(session_factory, "lora")
    search.save("k", "search-value", 1.0)
    lora.save("k", "lora-value", 1.0, parent_id="7")

    assert search.load("k").value == "search-value"
    assert lora.load("k").parent_id == "7"

    assert search.clear() == 1
    assert search.load("k") is None
    assert lora.load("k").value == "lora-value"
    assert len(lora) == 1


def test_sql_store_overwrites_in_place(session_factory):
    store = SqlStore(session_factory, "search")
    store.save("k", 1, 1.0)
    store.save("k", 2, 2.0)
    row = store.load("k")
    assert row.value == 2
    assert row.stored_at == 2.0
    assert len(store) == 1


# =============================================================================
# DurableEntityCache
# =============================================================================

def test_record_parent_maps_every_child(model):
    durable = DurableEntityCache()
    written = durable.record_parent(model, extract_version_ids, parent_id=model["id"])
    assert written == 2
    assert durable.get(1001) == model
    assert durable.get("1002") == model
    assert durable.get_entry(1001).parent_id == "100"


def test_record_parent_with_no_children_is_noop():
    store = MemoryStore()
    durable = DurableEntityCache(store=store)
    assert durable.record_parent({"id": 1, "modelVersions": []}, extract_version_ids) == 0
    assert durable.record_parent({"id": 1}, lambda parent: []) == 0
    assert len(store) == 0


@pytest.mark.parametrize("parent", [
    None,
    "not a model",
    {"id": 1, "modelVersions": "nope"},
    {"id": 1, "modelVersions": [None, 5, {"name": "no id"}]},
    {"id": 1, "modelVersions": [{"id": ""}, {"id": True}]},
])
def test_malformed_children_are_noop(parent):
    store = MemoryStore()
    durable = DurableEntityCache(store=store)
    assert durable.record_parent(parent, extract_version_ids) == 0
    assert len(store) == 0


def test_raising_extractor_is_noop():
    def broken(parent):
        return parent["missing"]

    durable = DurableEntityCache()
    assert durable.record_parent({"id": 1}, broken) == 0
    assert durable.get_stats()["skipped_parents"] == 1


def test_later_write_overwrites_same_child(model):
    durable = DurableEntityCache()
    durable.record_parent(model, extract_version_ids)
    updated = {**model, "name": "Detail Tweaker XL"}
    durable.record_parent(updated, extract_version_ids)
    assert durable.get(1001)["name"] == "Detail Tweaker XL"


def test_durable_entries_never_expire(session_factory, model):
    clock = FakeClock()
    durable = DurableEntityCache(store=SqlStore(session_factory, "lora"), clock=clock)
    durable.record_parent(model, extract_version_ids, parent_id=100)
    clock.advance(10 ** 9)
    assert durable.get(1002) == model


# =============================================================================
# RequestCoalescer
# =============================================================================

def test_concurrent_fetches_share_one_call():
    calls = []

    async def fetch():
        calls.append(1)
        await asyncio.sleep(0.01)
        return {"ok": True}

    async def scenario():
        coalescer = RequestCoalescer()
        results = await asyncio.gather(*[
            coalescer.get_or_fetch("k", fetch) for _ in range(5)
        ])
        return results, coalescer.active_requests

    results, active = asyncio.run(scenario())
    assert len(calls) == 1
    assert all(r == {"ok": True} for r in results)
    assert active == 0


def test_errors_reach_every_waiter():
    async def fetch():
        await asyncio.sleep(0)
        raise RuntimeError("boom")

    async def scenario():
        coalescer = RequestCoalescer()
        return await asyncio.gather(
            coalescer.get_or_fetch("k", fetch),
            coalescer.get_or_fetch("k", fetch),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())
    assert all(isinstance(r, RuntimeError) for r in results)


def test_cancelled_waiter_does_not_cancel_shared_fetch():
    async def fetch():
        await asyncio.sleep(0.02)
        return "done"

    async def scenario():
        coalescer = RequestCoalescer()
        first = asyncio.ensure_future(coalescer.get_or_fetch("k", fetch))
        second = asyncio.ensure_future(coalescer.get_or_fetch("k", fetch))
        await asyncio.sleep(0)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        return await second

    assert asyncio.run(scenario()) == "done"
