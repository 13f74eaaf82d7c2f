# === NAVMAP v1 ===
# {
#   "module": "SourceFilesystem.RemoteFile.header_cache",
#   "purpose": "Namespaced ETag storage over the shared persistent cache",
#   "sections": [
#     {"id": "persistentcache", "name": "PersistentCache", "anchor": "class-persistentcache", "kind": "class"},
#     {"id": "cache-id", "name": "cache_id", "anchor": "function-cache-id", "kind": "function"},
#     {"id": "cachedheaders", "name": "CachedHeaders", "anchor": "class-cachedheaders", "kind": "class"},
#     {"id": "headercache", "name": "HeaderCache", "anchor": "class-headercache", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""
Conditional Request Metadata

Persists the response headers of the last successful (HTTP 200) download of
each URL so that the next request can be made conditional with
``If-None-Match``. The data lives in the caller supplied persistent cache
under a namespaced key, which keeps it apart from unrelated consumers of the
same store.

Usage:
    from SourceFilesystem.RemoteFile.header_cache import HeaderCache

    headers = HeaderCache(cache)
    cached = headers.get(url)
    request_headers = cached.conditional_headers() if cached else {}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

__all__ = ["CACHE_KEY_PREFIX", "CachedHeaders", "HeaderCache", "PersistentCache", "cache_id"]

LOGGER = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "remote-file-node-"


@runtime_checkable
class PersistentCache(Protocol):
    """Durable key/value store shared with other cache consumers."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


def cache_id(url: str) -> str:
    """Namespace ``url`` for storage in the shared persistent cache."""
    return f"{CACHE_KEY_PREFIX}{url}"


@dataclass
class CachedHeaders:
    """Response metadata remembered for one URL.

    Attributes:
        etag: Entity tag from the last 200 response, if the origin sent one.
        headers: All response headers of that response, lower-cased names.
        path: File the 200 payload was materialized into.
    """

    etag: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    path: Optional[str] = None

    @classmethod
    def from_response_headers(
        cls, headers: Mapping[str, str], path: Optional[str] = None
    ) -> "CachedHeaders":
        lowered = {str(k).lower(): str(v) for k, v in headers.items()}
        return cls(etag=lowered.get("etag"), headers=lowered, path=path)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CachedHeaders":
        headers = data.get("headers") or {}
        if not isinstance(headers, Mapping):
            raise TypeError(f"headers must be a mapping, was {type(headers).__name__}")
        etag = data.get("etag")
        path = data.get("path")
        return cls(
            etag=str(etag) if etag else None,
            headers={str(k): str(v) for k, v in headers.items()},
            path=str(path) if path else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"etag": self.etag, "headers": dict(self.headers), "path": self.path}

    def conditional_headers(self) -> Dict[str, str]:
        """Return the request headers that make the next GET conditional."""
        if self.etag:
            return {"If-None-Match": self.etag}
        return {}


class HeaderCache:
    """Typed view over the persistent cache for :class:`CachedHeaders`."""

    def __init__(self, cache: PersistentCache) -> None:
        self._cache = cache

    def get(self, url: str) -> Optional[CachedHeaders]:
        raw = self._cache.get(cache_id(url))
        if raw is None:
            return None
        if isinstance(raw, CachedHeaders):
            return raw
        if not isinstance(raw, Mapping):
            LOGGER.warning(f"Ignoring cached headers for {url}: unexpected {type(raw).__name__}")
            return None
        # Bare header mappings (no "headers" key) are accepted as well.
        if "headers" not in raw:
            return CachedHeaders.from_response_headers(raw)
        try:
            return CachedHeaders.from_dict(raw)
        except TypeError as exc:
            LOGGER.warning(f"Ignoring cached headers for {url}: {exc}")
            return None

    def set(self, url: str, cached: CachedHeaders) -> None:
        self._cache.set(cache_id(url), cached.to_dict())
        LOGGER.debug(f"Stored headers for {url} (etag={cached.etag!r})")
