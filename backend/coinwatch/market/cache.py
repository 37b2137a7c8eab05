"""Thread-safe bounded cache of raw API responses."""

from __future__ import annotations

from collections import OrderedDict
from threading import Lock


class ResponseCache:
    """Thread-safe LRU cache of response bodies keyed by request signature.

    Bounded by entry count and total byte size. There is no TTL: callers
    decide when data is stale and bypass the cache themselves.

    Writers/readers: PricingClient request pipeline (possibly from several
    concurrent tasks at once).
    """

    def __init__(self, max_entries: int = 100, max_bytes: int = 10 * 1024 * 1024) -> None:
        self._entries: OrderedDict[str, bytes] = OrderedDict()
        self._lock = Lock()
        self._max_entries = max_entries
        self._max_bytes = max_bytes
        self._total_bytes = 0

    def get(self, key: str) -> bytes | None:
        """Return the cached body for key, or None. Marks the entry as recently used."""
        with self._lock:
            body = self._entries.get(key)
            if body is not None:
                self._entries.move_to_end(key)
            return body

    def put(self, key: str, body: bytes) -> None:
        """Store a body, evicting least recently used entries to stay within bounds.

        Bodies larger than the whole byte limit are not cached.
        """
        size = len(body)
        with self._lock:
            self._discard(key)
            if size > self._max_bytes or self._max_entries < 1:
                return
            while self._entries and (
                len(self._entries) >= self._max_entries
                or self._total_bytes + size > self._max_bytes
            ):
                _, evicted = self._entries.popitem(last=False)
                self._total_bytes -= len(evicted)
            self._entries[key] = body
            self._total_bytes += size

    def evict(self, key: str) -> None:
        """Drop a single entry (e.g., one that failed to decode)."""
        with self._lock:
            self._discard(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._total_bytes = 0

    @property
    def total_bytes(self) -> int:
        return self._total_bytes

    def _discard(self, key: str) -> None:
        """Remove key if present. Caller holds the lock."""
        body = self._entries.pop(key, None)
        if body is not None:
            self._total_bytes -= len(body)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
