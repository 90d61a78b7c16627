import asyncio
from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from workshop_crm.database import SessionLocal
from workshop_crm.domain.tracker.cache import StatusTrackerCache
from workshop_crm.domain.tracker.repository import TrackerRepository
from workshop_crm.domain.tracker.schemas import TrackerEntry, TrackerStatusItem
from workshop_crm.normalize import utcnow


class MemoryStore:
    def __init__(self, rows=None):
        self.rows = dict(rows or {})
        self.write_calls = 0

    def fetch_all(self):
        return dict(self.rows)

    def write_entries(self, entries):
        self.write_calls += 1
        self.rows.update(entries)
        return {}


class FailingStore:
    def fetch_all(self):
        raise OperationalError("SELECT 1", {}, Exception("down"))

    def write_entries(self, entries):
        raise OperationalError("UPDATE welcome_call_status", {}, Exception("down"))


def pending(timestamp=None):
    return TrackerStatusItem(status="pending", timestamp=timestamp)


def done():
    return TrackerStatusItem(status="done")


def test_done_is_sticky_for_bulk_and_single_updates():
    async def scenario():
        cache = StatusTrackerCache(TrackerRepository(SessionLocal), save_delay=0)
        await cache.apply_bulk_update({"b1-0": done(), "b1-1": pending()})
        before = cache.get("b1-0")
        bulk = await cache.apply_bulk_update({"b1-0": pending(), "b1-1": done()})
        single = await cache.apply_update("b1-0", pending())
        await cache.wait_for_pending_save()
        return cache, before, bulk, single

    cache, before, bulk, single = asyncio.run(scenario())

    assert bulk.skipped == ["b1-0"]
    assert bulk.applied == ["b1-1"]
    assert single.skipped == ["b1-0"]
    assert cache.get("b1-0") == before
    stored = TrackerRepository(SessionLocal).fetch_all()
    assert {k: e.status for k, e in stored.items()} == {"b1-0": "done", "b1-1": "done"}


def test_done_transition_records_operation_time():
    now = datetime(2024, 5, 1, 12, 0)
    client_hint = datetime(2024, 4, 1, 9, 0)

    async def scenario():
        cache = StatusTrackerCache(MemoryStore(), save_delay=60)
        await cache.apply_update("b1-0", pending(client_hint), now=now - timedelta(days=1))
        await cache.apply_update("b1-0", TrackerStatusItem(status="done", timestamp=client_hint), now=now)
        return cache.get("b1-0")

    entry = asyncio.run(scenario())

    assert entry.createdAt == now
    assert entry.lastUpdatedAt == now


def test_pending_updates_keep_first_created_at():
    first = datetime(2024, 5, 1, 12, 0)
    hint = datetime(2024, 5, 2, 8, 0)

    async def scenario():
        cache = StatusTrackerCache(MemoryStore(), save_delay=60)
        await cache.apply_update("b1-0", pending(), now=first)
        await cache.apply_update("b1-0", pending(hint), now=first + timedelta(days=2))
        return cache.get("b1-0")

    entry = asyncio.run(scenario())

    assert entry.createdAt == first
    assert entry.lastUpdatedAt == hint


def test_storage_rejects_overwriting_done():
    async def scenario():
        store = TrackerRepository(SessionLocal)
        cache = StatusTrackerCache(store, save_delay=0)
        await cache.load()

        # another worker marks the row done after this cache loaded
        at = datetime(2024, 5, 1, 12, 0)
        store.write_entries({"b1-0": TrackerEntry(status="done", createdAt=at, lastUpdatedAt=at)})

        result = await cache.apply_update("b1-0", pending())
        await cache.wait_for_pending_save()
        return cache, result

    cache, result = asyncio.run(scenario())

    assert result.applied == ["b1-0"]
    assert cache.get("b1-0").status == "done"
    assert TrackerRepository(SessionLocal).fetch_all()["b1-0"].status == "done"


def test_load_keeps_memory_but_honours_stored_done():
    at = datetime(2024, 5, 1, 12, 0)
    store = MemoryStore(
        {
            "b1-0": TrackerEntry(status="done", createdAt=at, lastUpdatedAt=at),
            "b1-1": TrackerEntry(status="pending", createdAt=at, lastUpdatedAt=at),
            "b2-0": TrackerEntry(status="pending", createdAt=at, lastUpdatedAt=at),
        }
    )

    async def scenario():
        cache = StatusTrackerCache(store, save_delay=60)
        await cache.load()
        await cache.apply_bulk_update({"b1-1": done()}, now=at + timedelta(hours=1))
        store.rows["b2-0"] = TrackerEntry(status="done", createdAt=at, lastUpdatedAt=at)
        store.rows["b1-1"] = TrackerEntry(status="pending", createdAt=at, lastUpdatedAt=at)
        entries, stale = await cache.snapshot(force=True)
        await cache.close()
        return entries, stale

    entries, stale = asyncio.run(scenario())

    assert stale is False
    assert entries["b1-1"].status == "done"
    assert entries["b2-0"].status == "done"


def test_failing_store_serves_memory_and_stops_writing():
    async def scenario():
        cache = StatusTrackerCache(FailingStore(), save_delay=0, max_save_failures=2)
        entries, stale = await cache.snapshot()
        result = await cache.apply_update("b1-0", done())
        await cache.wait_for_pending_save()
        return cache, entries, stale, result

    cache, entries, stale, result = asyncio.run(scenario())

    assert entries == {}
    assert stale is True
    assert result.applied == ["b1-0"]
    assert result.stale is True
    assert cache.memory_only is True
    assert cache.consecutive_failures == 2
    assert cache.pending_writes == 1
    assert cache.get("b1-0").status == "done"


def test_debounced_saves_are_coalesced():
    store = MemoryStore()

    async def scenario():
        cache = StatusTrackerCache(store, save_delay=0.05)
        await cache.apply_update("b1-0", pending())
        await cache.apply_update("b1-1", done())
        await cache.apply_update("b2-0", pending())
        await cache.wait_for_pending_save()

    asyncio.run(scenario())

    assert store.write_calls == 1
    assert set(store.rows) == {"b1-0", "b1-1", "b2-0"}


def test_flush_writes_in_batches():
    store = MemoryStore()

    async def scenario():
        cache = StatusTrackerCache(store, save_delay=60, batch_size=2)
        await cache.apply_bulk_update({f"b{i}-0": pending() for i in range(5)})
        await cache.close()
        return cache

    cache = asyncio.run(scenario())

    assert store.write_calls == 3
    assert cache.pending_writes == 0


def test_cleanup_never_evicts_done_entries():
    now = utcnow()
    store = MemoryStore()

    async def scenario():
        cache = StatusTrackerCache(store, max_entries=10, save_delay=60)
        updates = {f"done-{i}": done() for i in range(5)}
        updates.update({f"pending-{i}": pending(now - timedelta(minutes=i)) for i in range(15)})
        await cache.apply_bulk_update(updates, now=now)
        # unsaved entries survive the size-triggered cleanup
        size_before_flush = len(cache)
        await cache.flush()
        return cache, size_before_flush

    cache, size_before_flush = asyncio.run(scenario())

    assert size_before_flush == 20
    assert len(cache) <= cache.target_entries
    assert all(f"done-{i}" in cache for i in range(5))
    assert len(store.rows) == 20


def test_memory_only_cache_stays_bounded():
    now = utcnow()

    async def scenario():
        cache = StatusTrackerCache(FailingStore(), max_entries=10, save_delay=0, max_save_failures=1)
        await cache.apply_update("done-0", done(), now=now)
        await cache.wait_for_pending_save()
        assert cache.memory_only
        await cache.apply_bulk_update({f"pending-{i}": pending(now - timedelta(minutes=i)) for i in range(40)}, now=now)
        return cache

    cache = asyncio.run(scenario())

    assert len(cache) <= cache.target_entries
    assert "done-0" in cache
    assert "pending-0" in cache
    assert "pending-39" not in cache
    assert cache.pending_writes <= len(cache)


def test_cleanup_evicts_expired_pending_entries():
    now = datetime(2024, 6, 1, 12, 0)
    old = now - timedelta(days=40)

    async def scenario():
        cache = StatusTrackerCache(MemoryStore(), retention_days=30, save_delay=60)
        await cache.apply_update("old-pending", pending(old), now=old)
        await cache.apply_update("old-done", done(), now=old)
        await cache.apply_update("fresh", pending(now), now=now)
        await cache.flush()
        return cache, cache.cleanup(now)

    cache, evicted = asyncio.run(scenario())

    assert evicted == 1
    assert "old-pending" not in cache
    assert "old-done" in cache
    assert "fresh" in cache
