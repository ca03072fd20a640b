"""Hit, miss and write counters for a blob store."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

_FIELDS = ("hits", "misses", "blobs_written")


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache counters at a point in time."""

    hits: int = 0
    misses: int = 0
    blobs_written: int = 0

    @classmethod
    def zero(cls) -> CacheStats:
        """All counters at zero."""
        return cls()

    def to_dict(self) -> dict[str, int]:
        """Plain mapping suitable for JSON encoding."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CacheStats:
        """Build a snapshot from a mapping with the three counter fields."""
        values = {}
        for name in _FIELDS:
            if name not in data:
                raise ValueError(f"missing field {name!r}")
            value = data[name]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"field {name!r} must be a non-negative integer")
            values[name] = value
        return cls(**values)


class CacheCounters:
    """Thread-safe counters owned by a store; :meth:`snapshot` reads them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._blobs_written = 0

    def record_hit(self) -> None:
        with self._lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def record_write(self) -> None:
        with self._lock:
            self._blobs_written += 1

    def snapshot(self) -> CacheStats:
        """Current counter values."""
        with self._lock:
            return CacheStats(self._hits, self._misses, self._blobs_written)