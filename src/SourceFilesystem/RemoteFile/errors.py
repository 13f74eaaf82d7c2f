"""Exception hierarchy for the remote file pipeline.

Configuration problems are programmer errors and surface immediately from the
public entry points. Everything that goes wrong while a URL is being fetched
is raised inside the worker and converted into a ``Failed`` outcome at the
queue boundary, so callers never see these unless they drive the executor or
materializer directly.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "RemoteFileError",
    "ConfigurationError",
    "FetchError",
    "MaterializationError",
]


class RemoteFileError(Exception):
    """Base class for all remote file pipeline errors."""


class ConfigurationError(RemoteFileError, TypeError):
    """A required collaborator is missing or has the wrong shape."""


class FetchError(RemoteFileError):
    """The origin answered with a status the pipeline cannot use.

    Attributes:
        url: Requested URL.
        status_code: HTTP status returned by the origin, if a response arrived.
    """

    def __init__(self, url: str, status_code: Optional[int], message: str = "") -> None:
        self.url = url
        self.status_code = status_code
        detail = message or f"Unexpected HTTP status {status_code} for {url}"
        super().__init__(detail)


class MaterializationError(RemoteFileError):
    """The downloaded payload could not be turned into a final file."""
