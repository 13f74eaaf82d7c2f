# === NAVMAP v1 ===
# {
#   "module": "SourceFilesystem.RemoteFile.api",
#   "purpose": "Deduplicating entry point for remote file downloads",
#   "sections": [
#     {"id": "is-web-url", "name": "is_web_url", "anchor": "function-is-web-url", "kind": "function"},
#     {"id": "remotefilefetcher", "name": "RemoteFileFetcher", "anchor": "class-remotefilefetcher", "kind": "class"},
#     {"id": "create-remote-file-node", "name": "create_remote_file_node", "anchor": "function-create-remote-file-node", "kind": "function"},
#     {"id": "reset-default-fetchers", "name": "reset_default_fetchers", "anchor": "function-reset-default-fetchers", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Deduplicating front door of the remote file pipeline.

**Contract**
------------
``RemoteFileFetcher.submit(url, ...)`` returns a
:class:`concurrent.futures.Future` resolving to an
:data:`~SourceFilesystem.RemoteFile.outcomes.Outcome`:

- missing or non-callable ``create_node``/``create_node_id`` raise
  :class:`ConfigurationError` immediately;
- a URL that is not an absolute http(s) URL resolves at once to ``Skipped``;
- a URL already in flight returns the very same future;
- otherwise a task is queued; its entry is dropped the moment the future
  resolves, so a later request for the URL starts a new fetch.

Failures never raise through the future; they resolve to ``Failed``.

:func:`create_remote_file_node` is the functional entry point: it keeps one
fetcher per program directory, passes the caller's cache with each request,
shares one URL-keyed in-flight registry across all of them, and resolves to
the produced node or ``None``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit

import httpx

from .config.models import RemoteFileConfig
from .errors import ConfigurationError
from .extensions import ExtensionResolver
from .fetch import AtomicFetchExecutor
from .header_cache import HeaderCache
from .inflight import InFlightRegistry
from .materialize import FileMaterializer
from .net.client import build_http_client
from .outcomes import Outcome, Skipped
from .pipeline import RemoteFilePipeline
from .task_queue import BoundedTaskQueue
from .types import AuthLike, FetchRequest, coerce_auth

__all__ = [
    "RemoteFileFetcher",
    "create_remote_file_node",
    "is_web_url",
    "reset_default_fetchers",
]

LOGGER = logging.getLogger(__name__)


def is_web_url(url: Any) -> bool:
    """Return ``True`` for absolute ``http``/``https`` URLs with a host."""
    if not isinstance(url, str) or not url or url != url.strip():
        return False
    if any(ch.isspace() for ch in url):
        return False
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(hostname)


def _validate_cache(cache: Any) -> None:
    for method in ("get", "set"):
        if not callable(getattr(cache, method, None)):
            raise ConfigurationError(
                f"cache must provide callable get/set, was {type(cache).__name__}"
            )


def _validate_collaborators(store: Any, cache: Any) -> None:
    if store is None or not hasattr(store, "program_directory"):
        raise ConfigurationError(
            f"store must expose program_directory, was {type(store).__name__}"
        )
    _validate_cache(cache)


def _validate_callables(create_node: Any, create_node_id: Any) -> None:
    if not callable(create_node_id):
        raise ConfigurationError(
            f"create_node_id must be a function, was {type(create_node_id).__name__}"
        )
    if not callable(create_node):
        raise ConfigurationError(
            f"create_node must be a function, was {type(create_node).__name__}"
        )


def _resolved(outcome: Outcome) -> "Future[Outcome]":
    future: "Future[Outcome]" = Future()
    future.set_result(outcome)
    return future


class RemoteFileFetcher:
    """Download remote files once per URL, bounded and conditional.

    Args:
        store: Metadata store exposing ``program_directory``.
        cache: Persistent key/value cache used for response headers.
        config: Pipeline configuration; defaults to :class:`RemoteFileConfig`.
        client: HTTPX client to use. When omitted one is built (and owned).
        transport: Transport for the built client (``httpx.MockTransport``).
        node_factory: ``(path, create_node_id, options) -> node``.
        inflight: Registry holding in-flight URLs; injectable for sharing.
        sleep: Sleep function between retry attempts.
    """

    def __init__(
        self,
        *,
        store: Any,
        cache: Any,
        config: Optional[RemoteFileConfig] = None,
        client: Optional[httpx.Client] = None,
        transport: Optional[httpx.BaseTransport] = None,
        node_factory: Optional[Callable[..., Any]] = None,
        inflight: Optional[InFlightRegistry] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        _validate_collaborators(store, cache)
        self.config = config or RemoteFileConfig()
        self.store = store
        self.cache = cache
        self._owns_client = client is None
        self.client = client or build_http_client(self.config, transport=transport)
        self.cache_dir = (
            Path(store.program_directory) / self.config.cache_dir_name / self.config.plugin_name
        )

        materializer = FileMaterializer(
            self.cache_dir,
            plugin_name=self.config.plugin_name,
            resolver=ExtensionResolver(sniff_limit=self.config.download.sniff_bytes),
            node_factory=node_factory,
        )
        self.pipeline = RemoteFilePipeline(
            header_cache=HeaderCache(cache),
            executor=AtomicFetchExecutor.from_config(self.client, self.config, sleep=sleep),
            materializer=materializer,
        )
        self.queue: BoundedTaskQueue[FetchRequest] = BoundedTaskQueue(
            self.pipeline.process,
            max_concurrency=self.config.queue.max_concurrency,
            name=self.config.plugin_name,
        )
        self.inflight = inflight if inflight is not None else InFlightRegistry("remote-file")

    def __enter__(self) -> "RemoteFileFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def submit(
        self,
        url: str,
        *,
        create_node: Callable[..., Any],
        create_node_id: Callable[..., str],
        auth: AuthLike = None,
        ext: Optional[str] = None,
        cache: Any = None,
    ) -> "Future[Outcome]":
        """Fetch ``url`` (or join the fetch already running for it).

        Args:
            cache: Header cache for this request only; defaults to the
                fetcher's cache.
        """

        _validate_callables(create_node, create_node_id)
        if cache is not None:
            _validate_cache(cache)

        if not is_web_url(url):
            LOGGER.debug(f"Skipping invalid URL {url!r}")
            return _resolved(Skipped(url=str(url), reason="not an absolute http(s) URL"))

        request = FetchRequest(
            url=url,
            create_node_id=create_node_id,
            create_node=create_node,
            ext=ext,
            auth=coerce_auth(auth),
            header_cache=HeaderCache(cache) if cache is not None else None,
        )
        future, created = self.inflight.get_or_create(url, lambda: self.queue.push(request))
        if not created:
            LOGGER.debug(f"Joining in-flight fetch for {url}")
        return future

    def close(self) -> None:
        """Wait for queued work, then close the HTTP client if owned."""
        self.queue.shutdown(wait=True)
        if self._owns_client:
            self.client.close()


# ============================================================================
# Functional entry point
# ============================================================================

# One fetcher per program directory; the caller's cache travels with each
# request. The in-flight registry is process wide and keyed by URL only.
_DEFAULT_FETCHERS: Dict[str, RemoteFileFetcher] = {}
_DEFAULT_INFLIGHT = InFlightRegistry("remote-file")
_DEFAULT_LOCK = threading.Lock()


def _default_fetcher(store: Any, cache: Any) -> RemoteFileFetcher:
    key = str(Path(store.program_directory).resolve())
    with _DEFAULT_LOCK:
        fetcher = _DEFAULT_FETCHERS.get(key)
        if fetcher is None:
            fetcher = RemoteFileFetcher(store=store, cache=cache, inflight=_DEFAULT_INFLIGHT)
            _DEFAULT_FETCHERS[key] = fetcher
        return fetcher


def reset_default_fetchers() -> None:
    """Close and forget the fetchers created by :func:`create_remote_file_node`."""
    with _DEFAULT_LOCK:
        fetchers = list(_DEFAULT_FETCHERS.values())
        _DEFAULT_FETCHERS.clear()
    for fetcher in fetchers:
        fetcher.close()


def _node_future(source: "Future[Outcome]") -> "Future[Any]":
    result: "Future[Any]" = Future()

    def _copy(done: "Future[Outcome]") -> None:
        try:
            outcome = done.result()
        except BaseException as exc:
            result.set_exception(exc)
            return
        result.set_result(outcome.node)

    source.add_done_callback(_copy)
    return result


def create_remote_file_node(
    url: str,
    *,
    store: Any,
    cache: Any,
    create_node: Callable[..., Any],
    create_node_id: Callable[..., str],
    auth: AuthLike = None,
    ext: Optional[str] = None,
) -> "Future[Any]":
    """Download ``url`` and resolve to its ``File`` node, or ``None``.

    Raises:
        ConfigurationError: A collaborator is missing or not callable.
    """

    _validate_callables(create_node, create_node_id)
    _validate_collaborators(store, cache)
    fetcher = _default_fetcher(store, cache)
    outcome = fetcher.submit(
        url,
        create_node=create_node,
        create_node_id=create_node_id,
        auth=auth,
        ext=ext,
        cache=cache,
    )
    return _node_future(outcome)
