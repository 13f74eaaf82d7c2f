"""Per-URL processing: conditional fetch followed by materialization."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .fetch import AtomicFetchExecutor, build_request_headers
from .header_cache import CachedHeaders, HeaderCache
from .materialize import FileMaterializer
from .outcomes import Fetched, NotModified, Outcome
from .types import FetchRequest

__all__ = ["RemoteFilePipeline"]

LOGGER = logging.getLogger(__name__)


class RemoteFilePipeline:
    """Run one :class:`FetchRequest` end to end.

    Failures propagate as exceptions; the task queue turns them into
    ``Failed`` outcomes.
    """

    def __init__(
        self,
        *,
        header_cache: HeaderCache,
        executor: AtomicFetchExecutor,
        materializer: FileMaterializer,
    ) -> None:
        self.header_cache = header_cache
        self.executor = executor
        self.materializer = materializer

    def _conditional_source(self, url: str, cached: Optional[CachedHeaders]) -> Optional[CachedHeaders]:
        if cached is None or not cached.etag:
            return None
        # A 304 is only useful while the file it refers to is still on disk.
        if not cached.path or not Path(cached.path).is_file():
            LOGGER.debug(f"Cached file for {url} is gone; sending unconditional request")
            return None
        return cached

    def process(self, request: FetchRequest) -> Outcome:
        url = request.url
        self.materializer.cache_dir.mkdir(parents=True, exist_ok=True)

        header_cache = request.header_cache or self.header_cache
        cached = header_cache.get(url)
        conditional = self._conditional_source(url, cached)
        headers = build_request_headers(conditional, request.auth)

        ext = self.materializer.name_extension(request)
        temp_path = self.materializer.temp_path(url, ext)

        response = self.executor.fetch(url, headers, temp_path)
        artifact = self.materializer.materialize(request, response, temp_path, conditional)

        if not response.fresh:
            return NotModified(url=url, artifact=artifact, status_code=response.status_code)

        header_cache.set(
            url, CachedHeaders.from_response_headers(response.headers, path=artifact.path)
        )
        return Fetched(url=url, artifact=artifact)
