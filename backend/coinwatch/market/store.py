"""In-memory and JSON-file implementations of KeyValueStore."""

from __future__ import annotations

import json
import logging
import os
from collections import defaultdict
from collections.abc import Callable
from pathlib import Path
from threading import RLock

from .interface import KeyValueStore, Observer, StoreValue

logger = logging.getLogger(__name__)


class MemoryStore(KeyValueStore):
    """Thread-safe in-process store. Nothing survives a restart."""

    def __init__(self, initial: dict[str, StoreValue] | None = None) -> None:
        self._data: dict[str, StoreValue] = {}
        self._observers: dict[str, list[Observer]] = defaultdict(list)
        self._lock = RLock()
        for key, value in (initial or {}).items():
            self._data[key] = _copy(value)

    def get(self, key: str) -> StoreValue | None:
        with self._lock:
            return _copy(self._data.get(key))

    def set(self, key: str, value: StoreValue) -> None:
        with self._lock:
            self._data[key] = _copy(value)
            self._persist(key)
            observers = list(self._observers.get(key, ()))
        self._notify(observers, key, _copy(value))

    def delete(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            del self._data[key]
            self._persist(key)
            observers = list(self._observers.get(key, ()))
        self._notify(observers, key, None)

    def observe(self, key: str, observer: Observer) -> Callable[[], None]:
        with self._lock:
            self._observers[key].append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers.get(key, ()):
                    self._observers[key].remove(observer)

        return unsubscribe

    def _persist(self, key: str) -> None:
        """Hook for durable subclasses. Called with the lock held after key changed."""

    @staticmethod
    def _notify(observers: list[Observer], key: str, value: StoreValue | None) -> None:
        for observer in observers:
            try:
                observer(key, value)
            except Exception:
                logger.exception("Store observer for %s failed", key)


class JsonFileStore(MemoryStore):
    """Store persisted as one JSON document, shareable between processes.

    Each write re-reads the file and replaces only the key that changed
    before rewriting it atomically (temp file + rename), so writes made by
    another process to other keys survive. reload() picks up those writes
    in memory. A missing or unreadable file starts empty.

    Two processes writing at the same instant can still race between the
    re-read and the rename; the later rename wins for that write.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        super().__init__(self._load())

    @property
    def path(self) -> Path:
        return self._path

    def reload(self) -> None:
        """Re-read the file and notify observers of every key whose value changed."""
        with self._lock:
            fresh = self._load()
            changed = sorted(
                key for key in self._data.keys() | fresh.keys() if self._data.get(key) != fresh.get(key)
            )
            self._data = fresh
            pending = [(list(self._observers.get(key, ())), key, _copy(fresh.get(key))) for key in changed]
        if changed:
            logger.debug("Reloaded %s, changed keys: %s", self._path, ", ".join(changed))
        for observers, key, value in pending:
            self._notify(observers, key, value)

    def _load(self) -> dict[str, StoreValue]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable store %s: %s", self._path, e)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring store %s: top level is not an object", self._path)
            return {}

        data: dict[str, StoreValue] = {}
        for key, value in raw.items():
            if isinstance(value, str):
                data[key] = value
            elif isinstance(value, list) and all(isinstance(v, str) for v in value):
                data[key] = list(value)
            else:
                logger.warning("Skipping store key %s with unsupported value", key)
        return data

    def _persist(self, key: str) -> None:
        document = self._load()
        if key in self._data:
            document[key] = _copy(self._data[key])
        else:
            document.pop(key, None)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(f"{self._path.name}.{os.getpid()}.tmp")
        tmp.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._path)


def _copy(value: StoreValue | None) -> StoreValue | None:
    return list(value) if isinstance(value, list) else value
