"""Test doubles shared by the remote file tests."""

from __future__ import annotations

import threading
from typing import Any, List, Optional, Tuple

from SourceFilesystem.RemoteFile.config.models import RemoteFileConfig

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
GIF_BYTES = b"GIF89a" + b"\x01" * 64


class NodeSink:
    """Collects nodes registered by the pipeline."""

    def __init__(self) -> None:
        self.calls: List[Tuple[Any, Optional[str]]] = []
        self._lock = threading.Lock()

    def __call__(self, node: Any, owner: Optional[str] = None) -> None:
        with self._lock:
            self.calls.append((node, owner))


def node_id(seed: str) -> str:
    return f"node-{seed}"


def fast_config(**overrides: Any) -> RemoteFileConfig:
    """Default config with retry waits disabled."""
    data = {"retry": {"max_attempts": 5, "wait_initial_s": 0, "wait_max_s": 0}}
    data.update(overrides)
    return RemoteFileConfig.model_validate(data)
