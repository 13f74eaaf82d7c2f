# === NAVMAP v1 ===
# {
#   "module": "SourceFilesystem.RemoteFile.task_queue",
#   "purpose": "Bounded worker pool merging tasks that share a key",
#   "sections": [
#     {"id": "keyedtask", "name": "KeyedTask", "anchor": "class-keyedtask", "kind": "class"},
#     {"id": "boundedtaskqueue", "name": "BoundedTaskQueue", "anchor": "class-boundedtaskqueue", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Bounded worker pool with key-based task merging.

Tasks run on a :class:`concurrent.futures.ThreadPoolExecutor` whose worker
count is the concurrency ceiling; tasks beyond it wait in submission order.
A task pushed while another with the same key is queued or running is merged
into it: the caller receives the original task's future and no second
execution happens. Worker exceptions are converted to ``Failed`` outcomes so
one bad task never disturbs the others.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Generic, Hashable, Optional, Protocol, TypeVar

from .inflight import InFlightRegistry
from .outcomes import Failed, Outcome

__all__ = ["BoundedTaskQueue", "KeyedTask"]

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 200


class KeyedTask(Protocol):
    @property
    def key(self) -> str: ...


T = TypeVar("T", bound=KeyedTask)


class BoundedTaskQueue(Generic[T]):
    """Execute keyed tasks with at most ``max_concurrency`` running at once."""

    def __init__(
        self,
        worker: Callable[[T], Outcome],
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        name: str = "remote-file",
    ) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.name = name
        self.max_concurrency = max_concurrency
        self._worker = worker
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrency, thread_name_prefix=f"{name}-worker"
        )
        self._registry = InFlightRegistry(f"{name}-queue")
        self._counts_lock = threading.Lock()
        self.submitted = 0
        self.merged = 0

    def __enter__(self) -> "BoundedTaskQueue[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)

    def push(self, task: T) -> "Future[Outcome]":
        """Admit ``task`` or merge it into the admitted task with the same key."""
        future, created = self._registry.get_or_create(
            task.key, lambda: self._executor.submit(self._run, task)
        )
        with self._counts_lock:
            if created:
                self.submitted += 1
            else:
                self.merged += 1
        if not created:
            LOGGER.debug(f"{self.name}: merged duplicate task {task.key}")
        return future

    def pending(self, key: Hashable) -> Optional["Future[Outcome]"]:
        return self._registry.get(str(key))

    def _run(self, task: T) -> Outcome:
        try:
            return self._worker(task)
        except Exception as exc:
            LOGGER.warning(f"{self.name}: task {task.key} failed: {exc}")
            return Failed(url=task.key, reason=f"{type(exc).__name__}: {exc}", error=exc)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
