"""Endpoint response cache with a freshness window and durable persistence."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import anyio

from .models import CacheEntry, now_ms
from .statistics import CacheStatistics
from ...constants import CACHE_STORAGE_KEYS, DEFAULT_CACHE_FRESHNESS_MS
from ...domain.exceptions import StorageError
from ...enums import CacheFamily
from ...infrastructure.storage import DurableStore
from ...logging import debug, warning, LogRecord, LogEvent


class ResourceCache:
    """
    Per-endpoint response cache for one cache family.

    All endpoint entries of a family live in one shared durable mapping
    (``{endpoint: {data, timestamp}}``). Writes re-read that mapping and merge
    the new entry into it, so entries written by other caches sharing the same
    store survive. Entries are never evicted; they only go stale.
    """

    def __init__(
        self,
        store: DurableStore,
        family: CacheFamily,
        freshness_ms: int = DEFAULT_CACHE_FRESHNESS_MS,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Initialize the cache.

        Args:
            store: Durable storage shared with the rest of the session
            family: Cache family, selects the storage key
            freshness_ms: Age at which an entry becomes stale
            clock: Epoch-millisecond clock
        """
        self.family = family
        self.storage_key = CACHE_STORAGE_KEYS[family]
        self.freshness_ms = freshness_ms
        self._store = store
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._statistics = CacheStatistics()
        self._lock = anyio.Lock()

    @property
    def statistics(self) -> CacheStatistics:
        return self._statistics

    def init(self) -> None:
        """Load this family's entries from durable storage."""
        self._entries = {}
        for key, raw in self._read_stored_mapping().items():
            entry = CacheEntry.from_dict(raw)
            if entry is not None:
                self._entries[key] = entry
        debug(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message=f"Loaded {len(self._entries)} {self.storage_key} entries",
            )
        )

    def _read_stored_mapping(self) -> Dict[str, Any]:
        raw = self._store.get_item(self.storage_key)
        if not raw:
            return {}
        try:
            mapping = json.loads(raw)
        except ValueError:
            warning(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message=f"Discarding unreadable {self.storage_key}",
                )
            )
            return {}
        return mapping if isinstance(mapping, dict) else {}

    def now(self) -> int:
        return self._clock()

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` regardless of age."""
        return self._entries.get(key)

    def lookup(self, key: str) -> Tuple[Optional[CacheEntry], bool]:
        """
        Look up ``key`` and record the outcome.

        Returns:
            The entry (stale entries included) and whether it is fresh
        """
        entry = self._entries.get(key)
        if entry is None:
            self._statistics.record_miss()
            return None, False
        if entry.is_stale(self.freshness_ms, self._clock()):
            self._statistics.record_stale()
            return entry, False
        self._statistics.record_hit()
        return entry, True

    def get_fresh(self, key: str) -> Optional[CacheEntry]:
        entry, fresh = self.lookup(key)
        return entry if fresh else None

    async def put(self, key: str, data: Any) -> CacheEntry:
        """
        Store a successful response and persist it.

        The read-merge-write of the shared mapping runs under a lock. A failed
        disk write is logged and leaves the in-memory entry in place.
        """
        async with self._lock:
            entry = CacheEntry(data=data, timestamp=self._clock())

            stored = self._read_stored_mapping()
            stored[key] = entry.to_dict()
            self._store.set_item(self.storage_key, json.dumps(stored))

            # Pick up entries other writers added or refreshed since init()
            for other_key, raw in stored.items():
                other_entry = CacheEntry.from_dict(raw)
                if other_entry is None:
                    continue
                held = self._entries.get(other_key)
                if held is None or other_entry.timestamp > held.timestamp:
                    self._entries[other_key] = other_entry
            self._entries[key] = entry
            self._statistics.record_write()

            try:
                await self._store.flush()
            except StorageError as e:
                self._statistics.record_persist_failure()
                warning(
                    LogRecord(
                        event=LogEvent.CACHE_EVENT.value,
                        message=f"Failed to save {self.storage_key}",
                        endpoint=key,
                    ),
                    exc=e,
                )
        return entry

    def invalidate(self, key: str) -> None:
        """Forget ``key`` in memory and in durable storage."""
        self._entries.pop(key, None)
        stored = self._read_stored_mapping()
        if stored.pop(key, None) is not None:
            self._store.set_item(self.storage_key, json.dumps(stored))

    def clear(self) -> None:
        """Drop every entry of this family."""
        self._entries.clear()
        self._store.remove_item(self.storage_key)
        debug(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message=f"{self.storage_key} cleared",
            )
        )

    def keys(self) -> List[str]:
        return list(self._entries)

    async def flush(self) -> None:
        await self._store.flush()
