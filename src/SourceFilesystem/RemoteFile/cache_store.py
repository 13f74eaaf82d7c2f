"""Persistent cache and metadata store implementations.

The pipeline only needs ``get``/``set`` from its cache and a
``program_directory`` from its metadata store. These implementations cover
in-process use (tests, one-shot scripts) and on-disk use (the CLI).
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, Iterator, Union

__all__ = ["MemoryCache", "SqliteCache", "StaticStore"]

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class StaticStore:
    """Metadata store exposing a fixed program directory."""

    def __init__(self, program_directory: PathLike) -> None:
        self.program_directory = Path(program_directory)

    def __repr__(self) -> str:
        return f"StaticStore({str(self.program_directory)!r})"


class MemoryCache:
    """Thread-safe in-memory key/value cache."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class SqliteCache:
    """JSON values stored in a single SQLite table.

    A short-lived connection is opened per call so the cache can be shared by
    worker threads without a connection pool.
    """

    _SCHEMA = "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"

    def __init__(self, path: PathLike, *, timeout: float = 30.0) -> None:
        self.path = Path(path)
        self.timeout = timeout
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(self._SCHEMA)

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.path), timeout=self.timeout)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def get(self, key: str) -> Any:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            LOGGER.warning(f"Discarding corrupt cache value for {key!r} in {self.path}")
            return None

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, sort_keys=True)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, payload),
            )

    def delete(self, key: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        return cur.rowcount > 0
