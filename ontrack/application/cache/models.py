"""Data models for the cache module."""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class CacheEntry:
    """A cached endpoint response with the time it was fetched."""

    data: Any
    timestamp: int

    def age_ms(self, now: Optional[int] = None) -> int:
        return (now_ms() if now is None else now) - self.timestamp

    def is_stale(self, freshness_ms: int, now: Optional[int] = None) -> bool:
        """An entry is stale once its age reaches the freshness window."""
        return self.age_ms(now) >= freshness_ms

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["CacheEntry"]:
        """Build an entry from its stored form, or ``None`` when malformed."""
        if not isinstance(raw, dict) or "data" not in raw:
            return None
        timestamp = raw.get("timestamp")
        if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
            return None
        return cls(data=raw["data"], timestamp=int(timestamp))
