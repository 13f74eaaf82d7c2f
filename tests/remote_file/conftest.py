"""Shared fixtures for the remote file pipeline tests.

All HTTP goes through ``httpx.MockTransport`` so the suite never touches the
network. Retry sleeps are disabled via the fetcher's ``sleep`` hook.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator, List, Optional

import httpx
import pytest

from SourceFilesystem.RemoteFile.api import RemoteFileFetcher
from SourceFilesystem.RemoteFile.cache_store import MemoryCache, StaticStore
from SourceFilesystem.RemoteFile.config.models import RemoteFileConfig

from .helpers import NodeSink, fast_config

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def store(tmp_path: Path) -> StaticStore:
    return StaticStore(tmp_path / "site")


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def sink() -> NodeSink:
    return NodeSink()


@pytest.fixture
def make_fetcher(store: StaticStore, cache: MemoryCache) -> Iterator[Callable[..., RemoteFileFetcher]]:
    """Factory building fetchers over a MockTransport; closed after the test."""
    created: List[RemoteFileFetcher] = []

    def _make(handler: Handler, config: Optional[RemoteFileConfig] = None) -> RemoteFileFetcher:
        fetcher = RemoteFileFetcher(
            store=store,
            cache=cache,
            config=config or fast_config(),
            transport=httpx.MockTransport(handler),
            sleep=lambda _seconds: None,
        )
        created.append(fetcher)
        return fetcher

    yield _make
    for fetcher in created:
        fetcher.close()
