"""Network reachability flag observed by the pricing client."""

from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock

logger = logging.getLogger(__name__)

Listener = Callable[[bool], None]


class ReachabilityMonitor:
    """Tracks whether the network path is usable.

    The monitor does not poll. The host platform pushes path changes into
    update() from whatever thread its network callback runs on; listeners are
    notified only when the value actually changes.
    """

    def __init__(self, reachable: bool = True) -> None:
        self._reachable = reachable
        self._listeners: list[Listener] = []
        self._lock = Lock()

    @property
    def is_reachable(self) -> bool:
        return self._reachable

    def update(self, reachable: bool) -> None:
        """Record a new path status and notify listeners if it changed."""
        with self._lock:
            if reachable == self._reachable:
                return
            self._reachable = reachable
            listeners = list(self._listeners)

        logger.info("Network %s", "reachable" if reachable else "unreachable")
        for listener in listeners:
            try:
                listener(reachable)
            except Exception:
                logger.exception("Reachability listener failed")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
