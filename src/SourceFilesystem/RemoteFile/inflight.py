"""Keyed registry of pending futures used to coalesce duplicate work.

Both the front door (per URL) and the task queue (per task key) hold one of
these. Entries are inserted with an atomic test-and-set and removed as soon
as the registered future resolves, whatever the result.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Dict, Optional, Tuple

__all__ = ["InFlightRegistry"]

LOGGER = logging.getLogger(__name__)


class InFlightRegistry:
    """Thread-safe map from key to the future representing its running work."""

    def __init__(self, name: str = "inflight") -> None:
        self.name = name
        self._entries: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def get(self, key: str) -> Optional[Future]:
        with self._lock:
            future = self._entries.get(key)
            if future is not None and future.done():
                return None
            return future

    def get_or_create(self, key: str, factory: Callable[[], Future]) -> Tuple[Future, bool]:
        """Return the future registered for ``key``, creating it if absent.

        ``factory`` runs under the registry lock, so it must only schedule
        work and return quickly. The entry is dropped automatically once the
        future completes.

        Returns:
            ``(future, created)`` where ``created`` is ``False`` when the caller
            attached to an existing entry.
        """

        with self._lock:
            existing = self._entries.get(key)
            # A finished future whose done-callback has not run yet is stale.
            if existing is not None and not existing.done():
                return existing, False
            future = factory()
            self._entries[key] = future

        # Registered outside the lock: add_done_callback runs inline when the
        # future has already finished.
        future.add_done_callback(lambda done, key=key: self.discard(key, done))
        return future, True

    def discard(self, key: str, future: Future) -> None:
        """Remove ``key`` if it still maps to ``future``."""
        with self._lock:
            if self._entries.get(key) is future:
                del self._entries[key]
                LOGGER.debug(f"{self.name}: released {key}")
