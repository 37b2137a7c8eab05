"""Abstract interface for local persisted state."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

StoreValue = str | list[str]
Observer = Callable[[str, StoreValue | None], None]


class KeyValueStore(ABC):
    """Contract for the local key/value store holding favorites and settings.

    Values are either a string (scalar preferences) or a list of strings
    (string sets such as favorite nameids). Implementations may be shared by
    several consumers, e.g. the app and a companion glanceable surface, so
    every write is announced to observers of that key.

    Usage:
        store = JsonFileStore(path)
        unsubscribe = store.observe("currency_preference", on_change)
        store.set("currency_preference", "eur")   # on_change("currency_preference", "eur")
        unsubscribe()
    """

    @abstractmethod
    def get(self, key: str) -> StoreValue | None:
        """Return the stored value, or None if the key was never written."""

    @abstractmethod
    def set(self, key: str, value: StoreValue) -> None:
        """Persist a value and notify observers of key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. No-op if absent. Observers receive None."""

    @abstractmethod
    def observe(self, key: str, observer: Observer) -> Callable[[], None]:
        """Call observer(key, value) after every write to key.

        Returns a callable that removes the observer.
        """
