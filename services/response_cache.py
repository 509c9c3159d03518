"""
Response cache for read-path queries.

Short-lived memoization of listing results, keyed by endpoint namespace plus
normalized query parameters.

Rules:
- An entry older than the TTL is a miss and is dropped on that lookup.
- clear() drops everything; the marketplace calls it after every committed
  mutation.
- Every clear() bumps a generation counter. A reader grabs the generation
  before querying storage and hands it back to set(); a result computed
  before a clear is discarded instead of stored, so no entry from before a
  mutation can be served after it.
- All access is guarded by one lock; clear() during reads is safe.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional


def make_key(namespace: str, params: Mapping[str, Any]) -> str:
    """
    Canonical cache key: namespace plus parameters sorted by name.

    Parameter order never matters; distinct namespaces never collide.

    Example:
        make_key("coins", {"limit": 30, "page": 1})
        # 'coins:{"limit":30,"page":1}'
    """
    encoded = json.dumps(dict(params), sort_keys=True, separators=(",", ":"), default=str)
    return f"{namespace}:{encoded}"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: Any
    stored_at: float


class ResponseCache:
    """Thread-safe TTL cache with whole-cache invalidation."""

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        """Token to pass to set() for a value computed from storage now."""
        with self._lock:
            return self._generation

    def get(self, key: str) -> Optional[Any]:
        """Cached value for key, or None on miss or expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.stored_at >= self._ttl:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, generation: Optional[int] = None) -> bool:
        """
        Store value under key.

        Returns:
            False if a clear() happened since `generation` was read, in which
            case nothing is stored.
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock())
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["CacheEntry", "ResponseCache", "make_key"]
