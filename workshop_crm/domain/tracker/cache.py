"""
Status tracker cache - in-memory overlay of welcome-call status entries

Read-through from the welcome_call_status table, write-behind with a debounced
flush. Entries whose status is done are permanent: later updates for the same
key are dropped, both here and by the conditional write in the repository.
"""

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from ...config import (
    TRACKER_BATCH_SIZE,
    TRACKER_MAX_ENTRIES,
    TRACKER_MAX_SAVE_FAILURES,
    TRACKER_RETENTION_DAYS,
    TRACKER_SAVE_DEBOUNCE_SECONDS,
)
from ...normalize import normalize_datetime, utcnow
from .repository import TrackerRepository
from .schemas import DONE, TrackerEntry, TrackerStatusItem, TrackerUpdateResult

logger = logging.getLogger(__name__)


class StatusTrackerCache:
    """Tracker entries keyed by child-row id ("<bookingId>-<childIndex>")"""

    def __init__(
        self,
        store: TrackerRepository,
        max_entries: int = TRACKER_MAX_ENTRIES,
        retention_days: int = TRACKER_RETENTION_DAYS,
        batch_size: int = TRACKER_BATCH_SIZE,
        save_delay: float = TRACKER_SAVE_DEBOUNCE_SECONDS,
        max_save_failures: int = TRACKER_MAX_SAVE_FAILURES,
    ):
        self.store = store
        self.max_entries = max_entries
        self.target_entries = max_entries // 2
        self.retention = timedelta(days=retention_days)
        self.batch_size = batch_size
        self.save_delay = save_delay
        self.max_save_failures = max_save_failures

        self._entries: dict[str, TrackerEntry] = {}
        self._dirty: set[str] = set()
        self._loaded = False
        self._save_task: Optional[asyncio.Task] = None
        self._flush_lock = asyncio.Lock()
        self.consecutive_failures = 0
        self.memory_only = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def pending_writes(self) -> int:
        return len(self._dirty)

    def get(self, key: str) -> Optional[TrackerEntry]:
        return self._entries.get(key)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load(self, force: bool = False) -> bool:
        """
        Merge persisted entries into memory on first use or when forced.

        Returns True when the store could not be read and memory is being
        served as-is (stale).
        """
        if self._loaded and not force:
            return False
        if self.memory_only:
            return True

        try:
            persisted = await run_in_threadpool(self.store.fetch_all)
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Tracker store unavailable, serving memory: {e}")
            return True

        for key, stored in persisted.items():
            current = self._entries.get(key)
            if current is None:
                self._entries[key] = stored
            elif stored.status == DONE and current.status != DONE:
                # done in the store is final even if memory was touched later
                self._entries[key] = stored
                self._dirty.discard(key)

        self._loaded = True
        logger.info(f"✅ Tracker cache loaded {len(persisted)} persisted entries ({len(self._entries)} in memory)")
        return False

    async def snapshot(self, force: bool = False) -> tuple[dict[str, TrackerEntry], bool]:
        """Return (entries, stale)"""
        stale = await self.load(force=force)
        return dict(self._entries), stale or self.memory_only

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def apply_bulk_update(
        self,
        updates: Mapping[str, TrackerStatusItem],
        updated_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TrackerUpdateResult:
        """
        Apply client-submitted statuses.

        Keys already done are skipped. A transition to done records the
        operation time as both createdAt and lastUpdatedAt; other statuses keep
        the first createdAt and take the client timestamp (or now) as
        lastUpdatedAt.
        """
        stale = await self.load()
        now = now or utcnow()
        applied: list[str] = []
        skipped: list[str] = []

        for key, item in updates.items():
            existing = self._entries.get(key)
            if existing is not None and existing.status == DONE:
                skipped.append(key)
                continue

            if item.status == DONE:
                entry = TrackerEntry(status=DONE, createdAt=now, lastUpdatedAt=now, updatedBy=updated_by)
            else:
                entry = TrackerEntry(
                    status=item.status,
                    createdAt=existing.createdAt if existing else now,
                    lastUpdatedAt=normalize_datetime(item.timestamp) or now,
                    updatedBy=updated_by,
                )
            self._entries[key] = entry
            self._dirty.add(key)
            applied.append(key)

        if skipped:
            logger.info(f"🔒 Dropped {len(skipped)} update(s) for entries already done")
        if applied:
            self.save()
        if len(self._entries) > self.max_entries:
            self.cleanup(now)

        return TrackerUpdateResult(applied=applied, skipped=skipped, stale=stale or self.memory_only)

    async def apply_update(
        self,
        key: str,
        item: TrackerStatusItem,
        updated_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TrackerUpdateResult:
        return await self.apply_bulk_update({key: item}, updated_by=updated_by, now=now)

    def save(self) -> Optional[asyncio.Task]:
        """
        Schedule a flush after the debounce delay.

        Calls made while a flush is already scheduled join that flush.
        """
        if self.memory_only:
            return None
        if self._save_task is None or self._save_task.done():
            self._save_task = asyncio.get_running_loop().create_task(self._debounced_flush())
        return self._save_task

    async def _debounced_flush(self) -> None:
        await asyncio.sleep(self.save_delay)
        self._save_task = None
        await self.flush()

    async def wait_for_pending_save(self) -> None:
        while self._save_task is not None:
            await asyncio.shield(self._save_task)

    async def flush(self) -> bool:
        """
        Write all dirty entries in fixed-size batches.

        On failure the unwritten entries stay dirty and another save is
        scheduled; after max_save_failures consecutive failures the cache
        stops writing and runs from memory for the rest of the process.
        """
        if self.memory_only or not self._dirty:
            return True

        async with self._flush_lock:
            pending = {k: self._entries[k] for k in sorted(self._dirty) if k in self._entries}
            self._dirty.difference_update(pending)
            items = list(pending.items())
            written = 0

            try:
                for start in range(0, len(items), self.batch_size):
                    chunk = dict(items[start : start + self.batch_size])
                    conflicts = await run_in_threadpool(self.store.write_entries, chunk)
                    for key, stored in conflicts.items():
                        self._entries[key] = stored
                    written += len(chunk)
            except SQLAlchemyError as e:
                self._dirty.update(k for k, _ in items[written:])
                self.consecutive_failures += 1
                if self.consecutive_failures >= self.max_save_failures:
                    self.memory_only = True
                    logger.error(
                        f"❌ Tracker store failed {self.consecutive_failures} times; continuing in memory only: {e}"
                    )
                else:
                    logger.warning(
                        f"🔄 Tracker save failed ({self.consecutive_failures}/{self.max_save_failures}), will retry: {e}"
                    )
                    self.save()
                return False

        self.consecutive_failures = 0
        logger.debug(f"✅ Tracker cache flushed {written} entries")
        if len(self._entries) > self.max_entries:
            self.cleanup()
        return True

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """
        Evict non-done entries older than the retention window, then, if still
        above max_entries, the oldest non-done entries until at target size.

        Done entries are never evicted. Entries with unsaved changes are kept
        until written, except in memory-only mode where nothing will write them.
        """
        now = now or utcnow()
        cutoff = now - self.retention

        def evictable(key: str, entry: TrackerEntry) -> bool:
            return entry.status != DONE and (self.memory_only or key not in self._dirty)

        expired = [k for k, e in self._entries.items() if evictable(k, e) and e.lastUpdatedAt < cutoff]
        for key in expired:
            del self._entries[key]
            self._dirty.discard(key)

        evicted = len(expired)
        if len(self._entries) > self.max_entries:
            candidates = sorted(
                (k for k, e in self._entries.items() if evictable(k, e)),
                key=lambda k: self._entries[k].lastUpdatedAt,
            )
            for key in candidates:
                if len(self._entries) <= self.target_entries:
                    break
                del self._entries[key]
                self._dirty.discard(key)
                evicted += 1

        if evicted:
            logger.info(f"🧹 Tracker cache evicted {evicted} entries ({len(self._entries)} remain)")
        return evicted

    async def run_cleanup_loop(self, interval_seconds: float) -> None:
        """Periodic cleanup; started as a background task at application startup"""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.cleanup()
            except Exception as e:
                logger.error(f"❌ Tracker cleanup failed: {e}")

    async def close(self) -> None:
        """Cancel the debounce timer and write whatever is pending"""
        if self._save_task is not None:
            self._save_task.cancel()
            self._save_task = None
        await self.flush()
