"""Default node factory turning a file on disk into a ``File`` node."""

from __future__ import annotations

import hashlib
import mimetypes
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Protocol

__all__ = ["FileNode", "NodeFactory", "NodeInternal", "create_file_node", "pretty_size"]

_DIGEST_CHUNK = 1 << 20
_UNITS = ("B", "kB", "MB", "GB", "TB", "PB")


class NodeFactory(Protocol):
    def __call__(
        self, path: str, create_node_id: Callable[..., str], options: Mapping[str, Any]
    ) -> Any: ...


@dataclass
class NodeInternal:
    type: str
    content_digest: str
    media_type: str
    description: str = ""
    owner: Optional[str] = None


@dataclass
class FileNode:
    id: str
    absolute_path: str
    relative_path: str
    source_instance_name: str
    name: str
    base: str
    ext: str
    extension: str
    dir: str
    size: int
    pretty_size: str
    modified_time: str
    change_time: str
    access_time: str
    internal: NodeInternal
    parent: Optional[str] = None
    children: List[str] = field(default_factory=list)


def pretty_size(num_bytes: int) -> str:
    """Human readable size using decimal units (``1.5 kB``)."""
    if num_bytes < 1000:
        return f"{num_bytes} B"
    value = float(num_bytes)
    unit = _UNITS[0]
    for unit in _UNITS[1:]:
        value /= 1000.0
        if value < 1000:
            break
    return f"{value:.1f} {unit}"


def _md5_file(path: Path) -> str:
    digest = hashlib.md5()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_DIGEST_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def create_file_node(
    path: str,
    create_node_id: Callable[..., str],
    options: Optional[Mapping[str, Any]] = None,
) -> FileNode:
    """Build a :class:`FileNode` describing ``path``.

    Args:
        path: File to describe; must exist.
        create_node_id: Generator returning a stable node id for a path.
        options: ``name`` sets the source instance name; ``path`` is the root
            used for ``relative_path`` (defaults to the current directory).
    """

    opts = dict(options or {})
    file_path = Path(path).resolve()
    stats = file_path.stat()
    root = Path(opts.get("path") or os.getcwd()).resolve()
    try:
        relative = file_path.relative_to(root).as_posix()
    except ValueError:
        relative = file_path.as_posix()

    media_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    return FileNode(
        id=create_node_id(str(file_path)),
        absolute_path=str(file_path),
        relative_path=relative,
        source_instance_name=opts.get("name") or "__PROGRAMMATIC__",
        name=file_path.stem,
        base=file_path.name,
        ext=file_path.suffix,
        extension=file_path.suffix.lstrip(".").lower(),
        dir=str(file_path.parent),
        size=stats.st_size,
        pretty_size=pretty_size(stats.st_size),
        modified_time=_iso(stats.st_mtime),
        change_time=_iso(stats.st_ctime),
        access_time=_iso(stats.st_atime),
        internal=NodeInternal(
            type="File",
            content_digest=_md5_file(file_path),
            media_type=media_type,
            description=f'File "{relative}"',
        ),
    )
