"""Persisted set of favorite coins, keyed by nameid."""

from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock, RLock

from .interface import KeyValueStore, StoreValue
from .models import Coin

logger = logging.getLogger(__name__)

FAVORITES_KEY = "FavoriteCryptocurrencies"

Listener = Callable[[frozenset[str]], None]


def _nameid(coin_or_nameid: Coin | str) -> str:
    return coin_or_nameid.nameid if isinstance(coin_or_nameid, Coin) else coin_or_nameid


class FavoritesStore:
    """Thread-safe favorite nameid set backed by a KeyValueStore.

    Favorites are keyed by nameid rather than the numeric id, so two Coin
    snapshots with the same nameid share one favorite entry. The set is
    persisted as a sorted list; display order is applied by the reader.

    Writes made through another FavoritesStore on the same backing store
    (e.g., a companion widget) are picked up via store observation. For a
    JsonFileStore shared between processes that happens on its reload().
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._lock = Lock()
        # Serializes change + store write. Reentrant for listeners that toggle.
        self._write_lock = RLock()
        self._listeners: list[Listener] = []
        self._nameids: set[str] = self._decode(store.get(FAVORITES_KEY))
        self._unobserve = store.observe(FAVORITES_KEY, self._on_store_changed)
        logger.info("Loaded %d favorites", len(self._nameids))

    def nameids(self) -> frozenset[str]:
        """Snapshot of the current favorite nameids."""
        with self._lock:
            return frozenset(self._nameids)

    def is_favorite(self, coin: Coin | str) -> bool:
        with self._lock:
            return _nameid(coin) in self._nameids

    def toggle(self, coin: Coin | str) -> bool:
        """Flip membership. Returns True if the coin is now a favorite."""
        nameid = _nameid(coin)
        with self._write_lock:
            with self._lock:
                added = nameid not in self._nameids
                if added:
                    self._nameids.add(nameid)
                else:
                    self._nameids.discard(nameid)
                snapshot = sorted(self._nameids)
            self._save(snapshot)
        logger.info("%s %s favorites", "Added to" if added else "Removed from", nameid)
        return added

    def add(self, coin: Coin | str) -> None:
        nameid = _nameid(coin)
        with self._write_lock:
            with self._lock:
                if nameid in self._nameids:
                    return
                self._nameids.add(nameid)
                snapshot = sorted(self._nameids)
            self._save(snapshot)

    def remove(self, coin: Coin | str) -> None:
        nameid = _nameid(coin)
        with self._write_lock:
            with self._lock:
                if nameid not in self._nameids:
                    return
                self._nameids.discard(nameid)
                snapshot = sorted(self._nameids)
            self._save(snapshot)

    def clear(self) -> None:
        with self._write_lock:
            with self._lock:
                self._nameids.clear()
            self._save([])

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener(nameids) after every change. Returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Stop observing the backing store."""
        self._unobserve()

    def __len__(self) -> int:
        with self._lock:
            return len(self._nameids)

    def __contains__(self, coin: Coin | str) -> bool:
        return self.is_favorite(coin)

    # --- Internal ---

    def _save(self, snapshot: list[str]) -> None:
        # The store echoes the write back through _on_store_changed, which
        # updates our copy (a no-op here) and notifies listeners.
        self._store.set(FAVORITES_KEY, snapshot)

    def _on_store_changed(self, key: str, value: StoreValue | None) -> None:
        nameids = self._decode(value)
        with self._lock:
            self._nameids = set(nameids)
            listeners = list(self._listeners)
        snapshot = frozenset(nameids)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Favorites listener failed")

    @staticmethod
    def _decode(value: StoreValue | None) -> set[str]:
        if isinstance(value, list):
            return {v for v in value if v}
        return set()
