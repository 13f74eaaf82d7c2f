"""End-to-end behaviour of the deduplicating fetcher over a MockTransport."""

from __future__ import annotations

import base64
import threading
import time
from pathlib import Path
from typing import Dict, List

import httpx
import pytest

from SourceFilesystem.RemoteFile.api import (
    RemoteFileFetcher,
    create_remote_file_node,
    is_web_url,
    reset_default_fetchers,
)
from SourceFilesystem.RemoteFile.cache_store import MemoryCache, StaticStore
from SourceFilesystem.RemoteFile.errors import ConfigurationError
from SourceFilesystem.RemoteFile.header_cache import HeaderCache
from SourceFilesystem.RemoteFile.materialize import url_digest
from SourceFilesystem.RemoteFile.outcomes import Failed, Fetched, NotModified, Skipped

from .helpers import PNG_BYTES, NodeSink, fast_config, node_id


def _cache_dir(store: StaticStore) -> Path:
    return store.program_directory / ".cache" / "source-filesystem"


def _tmp_files(store: StaticStore) -> List[Path]:
    root = _cache_dir(store)
    return sorted(root.glob("tmp-*")) if root.exists() else []


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://example.com/a.png", True),
        ("http://example.com", True),
        ("HTTP://EXAMPLE.COM/x", True),
        ("ftp://example.com/a.png", False),
        ("example.com/a.png", False),
        ("/local/file.png", False),
        ("https://", False),
        ("https://exa mple.com/a", False),
        (" https://example.com/a", False),
        ("https://example.com:99999999/a", False),
        ("", False),
        (None, False),
        (42, False),
    ],
)
def test_is_web_url(url, expected) -> None:
    assert is_web_url(url) is expected


def test_missing_callables_raise(make_fetcher, sink) -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(200))
    with pytest.raises(ConfigurationError):
        fetcher.submit("https://example.com/a", create_node=sink, create_node_id=None)
    with pytest.raises(ConfigurationError):
        fetcher.submit("https://example.com/a", create_node="nope", create_node_id=node_id)
    with pytest.raises(TypeError):
        fetcher.submit("https://example.com/a", create_node=None, create_node_id=node_id)


def test_collaborators_are_validated(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        RemoteFileFetcher(store=object(), cache=MemoryCache())
    with pytest.raises(ConfigurationError):
        RemoteFileFetcher(store=StaticStore(tmp_path), cache={"get": 1})


def test_invalid_url_is_skipped_without_side_effects(make_fetcher, store, sink) -> None:
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    fetcher = make_fetcher(handler)
    future = fetcher.submit("not a url", create_node=sink, create_node_id=node_id)

    assert future.done()
    outcome = future.result()
    assert isinstance(outcome, Skipped)
    assert outcome.node is None
    assert requests == []
    assert sink.calls == []
    assert not store.program_directory.exists()


def test_fresh_download_is_materialized(make_fetcher, store, cache, sink) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"ETag": '"v1"'}, content=PNG_BYTES)

    url = "https://cdn.example.com/img/logo"
    outcome = make_fetcher(handler).submit(url, create_node=sink, create_node_id=node_id).result(5)

    assert isinstance(outcome, Fetched)
    expected = _cache_dir(store) / url_digest(url) / "logo.png"
    assert Path(outcome.artifact.path) == expected
    assert expected.read_bytes() == PNG_BYTES
    assert outcome.node is sink.calls[0][0]
    assert sink.calls[0][1] == "source-filesystem"
    assert _tmp_files(store) == []

    cached = HeaderCache(cache).get(url)
    assert cached.etag == '"v1"'
    assert cached.path == str(expected)


def test_concurrent_duplicates_share_one_fetch(make_fetcher, sink) -> None:
    release = threading.Event()
    requests: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        release.wait(5)
        return httpx.Response(200, content=b"body")

    fetcher = make_fetcher(handler)
    url = "https://example.com/file.txt"
    futures = [
        fetcher.submit(url, create_node=sink, create_node_id=node_id) for _ in range(10)
    ]
    assert all(f is futures[0] for f in futures)
    assert url in fetcher.inflight

    release.set()
    outcome = futures[0].result(5)

    assert isinstance(outcome, Fetched)
    assert requests == [url]
    assert len(sink.calls) == 1
    assert url not in fetcher.inflight


def test_revalidation_sends_etag_and_keeps_file(make_fetcher, store, sink) -> None:
    seen: List[Dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.headers))
        if request.headers.get("If-None-Match") == '"v1"':
            return httpx.Response(304)
        return httpx.Response(200, headers={"ETag": '"v1"'}, content=b"first")

    fetcher = make_fetcher(handler)
    url = "https://example.com/notes.txt"
    first = fetcher.submit(url, create_node=sink, create_node_id=node_id).result(5)
    path = Path(first.artifact.path)
    mtime = path.stat().st_mtime_ns

    second = fetcher.submit(url, create_node=sink, create_node_id=node_id).result(5)

    assert isinstance(first, Fetched)
    assert isinstance(second, NotModified)
    assert second.status_code == 304
    assert "if-none-match" not in seen[0]
    assert seen[1]["if-none-match"] == '"v1"'
    assert second.artifact.path == first.artifact.path
    assert path.read_bytes() == b"first"
    assert path.stat().st_mtime_ns == mtime
    assert len(sink.calls) == 2
    assert _tmp_files(store) == []


def test_missing_previous_file_triggers_full_download(make_fetcher, sink) -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, headers={"ETag": '"v1"'}, content=b"data")

    fetcher = make_fetcher(handler)
    url = "https://example.com/data.bin"
    first = fetcher.submit(url, create_node=sink, create_node_id=node_id).result(5)
    Path(first.artifact.path).unlink()

    second = fetcher.submit(url, create_node=sink, create_node_id=node_id).result(5)

    assert isinstance(second, Fetched)
    assert "If-None-Match" not in seen[1].headers
    assert Path(second.artifact.path).read_bytes() == b"data"


def test_basic_auth_header(make_fetcher, sink) -> None:
    captured: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request.headers.get("Authorization", ""))
        return httpx.Response(200, content=b"secret")

    fetcher = make_fetcher(handler)
    outcome = fetcher.submit(
        "https://private.example.com/doc.txt",
        create_node=sink,
        create_node_id=node_id,
        auth={"htaccess_user": "alice", "htaccess_pass": "pw"},
    ).result(5)

    assert isinstance(outcome, Fetched)
    scheme, token = captured[0].split(" ", 1)
    assert scheme == "Basic"
    assert base64.b64decode(token) == b"alice:pw"


def test_explicit_extension_is_used(make_fetcher, sink) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"GIF89a-not-really-png")

    outcome = make_fetcher(handler).submit(
        "https://example.com/pic.jpg", create_node=sink, create_node_id=node_id, ext="png"
    ).result(5)

    assert Path(outcome.artifact.path).name == "pic.png"


def test_http_error_yields_failed_and_cleans_up(make_fetcher, store, cache, sink) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, content=b"oops")

    fetcher = make_fetcher(handler)
    url = "https://example.com/broken.png"
    outcome = fetcher.submit(url, create_node=sink, create_node_id=node_id).result(5)

    assert isinstance(outcome, Failed)
    assert "500" in outcome.reason
    assert outcome.node is None
    assert sink.calls == []
    assert _tmp_files(store) == []
    assert HeaderCache(cache).get(url) is None
    assert url not in fetcher.inflight


def test_transport_failure_exhausts_retries(make_fetcher, store, sink) -> None:
    attempts: List[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectError("refused", request=request)

    outcome = make_fetcher(handler).submit(
        "https://down.example.com/x", create_node=sink, create_node_id=node_id
    ).result(5)

    assert isinstance(outcome, Failed)
    assert isinstance(outcome.error, httpx.ConnectError)
    assert len(attempts) == 5
    assert _tmp_files(store) == []


def test_concurrency_ceiling_end_to_end(make_fetcher, sink) -> None:
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.02)
        with lock:
            state["active"] -= 1
        return httpx.Response(200, content=b"x")

    fetcher = make_fetcher(handler, config=fast_config(queue={"max_concurrency": 4}))
    futures = [
        fetcher.submit(f"https://example.com/f{i}.txt", create_node=sink, create_node_id=node_id)
        for i in range(20)
    ]
    outcomes = [f.result(10) for f in futures]

    assert all(isinstance(o, Fetched) for o in outcomes)
    assert 1 <= state["peak"] <= 4
    assert len(sink.calls) == 20


def test_failure_of_one_url_does_not_affect_others(make_fetcher, sink) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/bad":
            return httpx.Response(404)
        return httpx.Response(200, content=b"ok")

    fetcher = make_fetcher(handler)
    bad = fetcher.submit("https://example.com/bad", create_node=sink, create_node_id=node_id)
    good = fetcher.submit("https://example.com/good.txt", create_node=sink, create_node_id=node_id)

    assert isinstance(bad.result(5), Failed)
    assert isinstance(good.result(5), Fetched)


def test_bodiless_success_reuses_previous_file(make_fetcher, sink) -> None:
    statuses = iter([200, 204])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        if status == 200:
            return httpx.Response(200, headers={"ETag": '"v1"'}, content=b"kept")
        return httpx.Response(status)

    fetcher = make_fetcher(handler)
    url = "https://example.com/kept.txt"
    first = fetcher.submit(url, create_node=sink, create_node_id=node_id).result(5)
    second = fetcher.submit(url, create_node=sink, create_node_id=node_id).result(5)

    assert isinstance(second, NotModified)
    assert second.status_code == 204
    assert second.artifact.path == first.artifact.path
    assert Path(first.artifact.path).read_bytes() == b"kept"


def test_malformed_auth_raises_configuration_error(make_fetcher, sink) -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(200))
    with pytest.raises(ConfigurationError):
        fetcher.submit("https://example.com/a", create_node=sink, create_node_id=node_id, auth=42)


def test_per_request_cache_overrides_default(make_fetcher, cache, sink) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"ETag": '"own"'}, content=b"x")

    own = MemoryCache()
    url = "https://example.com/own.txt"
    make_fetcher(handler).submit(
        url, create_node=sink, create_node_id=node_id, cache=own
    ).result(5)

    assert HeaderCache(own).get(url).etag == '"own"'
    assert HeaderCache(cache).get(url) is None


def _mock_network(monkeypatch, handler) -> None:
    import SourceFilesystem.RemoteFile.api as api_module

    original = api_module.build_http_client

    def patched(config, *, transport=None):
        return original(config, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(api_module, "build_http_client", patched)


class TestCreateRemoteFileNode:
    @pytest.fixture(autouse=True)
    def _reset(self):
        reset_default_fetchers()
        yield
        reset_default_fetchers()

    def test_invalid_url_resolves_to_none(self, tmp_path: Path) -> None:
        sink = NodeSink()
        future = create_remote_file_node(
            "mailto:someone@example.com",
            store=StaticStore(tmp_path),
            cache=MemoryCache(),
            create_node=sink,
            create_node_id=node_id,
        )
        assert future.result(5) is None
        assert sink.calls == []

    def test_rejects_bad_collaborators(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            create_remote_file_node(
                "https://example.com/a",
                store=None,
                cache=MemoryCache(),
                create_node=NodeSink(),
                create_node_id=node_id,
            )
        with pytest.raises(ConfigurationError):
            create_remote_file_node(
                "https://example.com/a",
                store=StaticStore(tmp_path),
                cache=MemoryCache(),
                create_node=NodeSink(),
                create_node_id="id",
            )

    def test_resolves_to_node(self, tmp_path: Path, monkeypatch) -> None:
        _mock_network(monkeypatch, lambda request: httpx.Response(200, content=PNG_BYTES))
        sink = NodeSink()

        node = create_remote_file_node(
            "https://example.com/logo",
            store=StaticStore(tmp_path),
            cache=MemoryCache(),
            create_node=sink,
            create_node_id=node_id,
        ).result(5)

        assert node is sink.calls[0][0]
        assert node.ext == ".png"
        assert node.internal.owner == "source-filesystem"

    def test_same_url_with_distinct_caches_is_fetched_once(
        self, tmp_path: Path, monkeypatch
    ) -> None:
        release = threading.Event()
        requests: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(str(request.url))
            release.wait(5)
            return httpx.Response(200, content=b"shared")

        _mock_network(monkeypatch, handler)
        store = StaticStore(tmp_path)
        sink = NodeSink()
        futures = [
            create_remote_file_node(
                "https://example.com/shared.bin",
                store=store,
                cache=MemoryCache(),
                create_node=sink,
                create_node_id=node_id,
            )
            for _ in range(3)
        ]
        release.set()
        nodes = [future.result(5) for future in futures]

        assert requests == ["https://example.com/shared.bin"]
        assert all(node is nodes[0] for node in nodes)
        assert nodes[0] is not None
        assert len(sink.calls) == 1
        assert list(_cache_dir(store).glob("tmp-*")) == []

    def test_fresh_caches_reuse_one_fetcher_per_directory(
        self, tmp_path: Path, monkeypatch
    ) -> None:
        import SourceFilesystem.RemoteFile.api as api_module

        _mock_network(
            monkeypatch,
            lambda request: httpx.Response(200, headers={"ETag": '"e"'}, content=b"x"),
        )
        store = StaticStore(tmp_path)
        caches = [MemoryCache() for _ in range(5)]
        for cache in caches:
            create_remote_file_node(
                "https://example.com/repeat.txt",
                store=store,
                cache=cache,
                create_node=NodeSink(),
                create_node_id=node_id,
            ).result(5)

        assert len(api_module._DEFAULT_FETCHERS) == 1
        assert all(
            HeaderCache(cache).get("https://example.com/repeat.txt").etag == '"e"'
            for cache in caches
        )
