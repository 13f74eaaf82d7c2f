"""Outcome types delivered to every caller attached to a fetch.

A fetch ends in exactly one of four states:

``Fetched``
    The origin returned fresh content (HTTP 200) and it was materialized.
``NotModified``
    Nothing new arrived and the previously materialized file is reused. This
    is normally a 304; a bodiless 2xx other than 200 is reported the same way
    with its own ``status_code``.
``Skipped``
    There was nothing to fetch (for instance the URL was not a web URL).
``Failed``
    Anything else. The exception is kept for diagnostics but never raised.

Only ``Fetched`` and ``NotModified`` carry an artifact.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from .types import FileArtifact

__all__ = ["Fetched", "NotModified", "Skipped", "Failed", "Outcome"]


@dataclass(frozen=True)
class Fetched:
    url: str
    artifact: FileArtifact

    ok = True

    @property
    def node(self) -> Any:
        return self.artifact.node


@dataclass(frozen=True)
class NotModified:
    url: str
    artifact: FileArtifact
    status_code: int = 304

    ok = True

    @property
    def node(self) -> Any:
        return self.artifact.node


@dataclass(frozen=True)
class Skipped:
    url: str
    reason: str

    ok = False
    artifact: Optional[FileArtifact] = None

    @property
    def node(self) -> Any:
        return None


@dataclass(frozen=True)
class Failed:
    url: str
    reason: str
    error: Optional[BaseException] = None

    ok = False
    artifact: Optional[FileArtifact] = None

    @property
    def node(self) -> Any:
        return None


Outcome = Union[Fetched, NotModified, Skipped, Failed]
