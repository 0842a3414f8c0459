"""Lookup and write counters for one cache family."""

import time
from typing import Any, Dict


class CacheStatistics:
    """Counts fresh hits, stale hits, misses, writes and failed disk writes."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.hits = 0
        self.stale_hits = 0
        self.misses = 0
        self.writes = 0
        self.persist_failures = 0
        self.since = time.monotonic()

    def record_hit(self) -> None:
        self.hits += 1

    def record_stale(self) -> None:
        self.stale_hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def record_write(self) -> None:
        self.writes += 1

    def record_persist_failure(self) -> None:
        self.persist_failures += 1

    @property
    def lookups(self) -> int:
        return self.hits + self.stale_hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Share of lookups answered without a network call."""
        return self.hits / self.lookups if self.lookups else 0.0

    def get_stats(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "stale_hits": self.stale_hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate, 3),
            "writes": self.writes,
            "persist_failures": self.persist_failures,
            "window_seconds": round(time.monotonic() - self.since, 1),
        }
