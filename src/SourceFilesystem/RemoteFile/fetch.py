# === NAVMAP v1 ===
# {
#   "module": "SourceFilesystem.RemoteFile.fetch",
#   "purpose": "Single GET with transport retries, streamed to a temporary file",
#   "sections": [
#     {"id": "fetchresponse", "name": "FetchResponse", "anchor": "class-fetchresponse", "kind": "class"},
#     {"id": "build-request-headers", "name": "build_request_headers", "anchor": "function-build-request-headers", "kind": "function"},
#     {"id": "atomicfetchexecutor", "name": "AtomicFetchExecutor", "anchor": "class-atomicfetchexecutor", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Streaming fetch executor.

**Responsibilities**
--------------------
- Issue one HTTP GET per fetch with the caller's headers
- Retry transient transport failures (connect errors, timeouts, read errors)
  with Tenacity, never HTTP status responses
- Stream the body straight to a temporary file, chunk by chunk
- Remove the temporary file on every failure path and on 304
- Classify the result as fresh content (200) or not modified (304)

Request header construction (conditional and authorization headers) is done
by :func:`build_request_headers`, which the pipeline calls before handing the
headers to :meth:`AtomicFetchExecutor.fetch`.
"""

from __future__ import annotations

import base64
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .config.models import RemoteFileConfig
from .errors import FetchError
from .header_cache import CachedHeaders
from .types import BasicAuthCredentials

__all__ = ["AtomicFetchExecutor", "FetchResponse", "build_request_headers"]

LOGGER = logging.getLogger(__name__)

PROGRESS_EVERY_CHUNKS = 64


@dataclass(frozen=True)
class FetchResponse:
    """Status and headers of the final attempt.

    Attributes:
        url: Requested URL.
        status_code: HTTP status of the response that was consumed.
        headers: Response headers (lower-cased names).
        bytes_written: Payload bytes written to the temporary file.
        elapsed_s: Wall time across all attempts.
    """

    url: str
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    bytes_written: int = 0
    elapsed_s: float = 0.0

    @property
    def fresh(self) -> bool:
        """``True`` when the temporary file holds a new payload."""
        return self.status_code == 200

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304


def build_request_headers(
    cached: Optional[CachedHeaders],
    auth: Optional[BasicAuthCredentials],
) -> Dict[str, str]:
    """Build conditional and authorization headers for one fetch."""

    headers: Dict[str, str] = {}
    if auth:
        token = base64.b64encode(auth.token().encode("utf-8")).decode("ascii")
        headers["Authorization"] = f"Basic {token}"
    if cached is not None:
        headers.update(cached.conditional_headers())
    return headers


def _remove(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


class AtomicFetchExecutor:
    """Run one GET with a retry budget and stream the payload to disk.

    Args:
        client: HTTPX client to issue requests with.
        max_attempts: Total attempts for transient transport failures.
        wait_initial_s: Multiplier of the randomized exponential backoff.
        wait_max_s: Ceiling for a single backoff wait.
        chunk_size: Bytes requested per ``iter_bytes`` step.
        sleep: Sleep function used between attempts (tests pass a no-op).
    """

    def __init__(
        self,
        client: httpx.Client,
        *,
        max_attempts: int = 5,
        wait_initial_s: float = 0.5,
        wait_max_s: float = 10.0,
        chunk_size: int = 1 << 16,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.client = client
        self.max_attempts = max_attempts
        self.wait_initial_s = wait_initial_s
        self.wait_max_s = wait_max_s
        self.chunk_size = chunk_size
        self._sleep = sleep or time.sleep

    @classmethod
    def from_config(
        cls,
        client: httpx.Client,
        config: RemoteFileConfig,
        *,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> "AtomicFetchExecutor":
        return cls(
            client,
            max_attempts=config.retry.max_attempts,
            wait_initial_s=config.retry.wait_initial_s,
            wait_max_s=config.retry.wait_max_s,
            chunk_size=config.download.chunk_size_bytes,
            sleep=sleep,
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(multiplier=self.wait_initial_s, max=self.wait_max_s),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(LOGGER, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

    def fetch(self, url: str, headers: Mapping[str, str], temp_path: Path) -> FetchResponse:
        """Fetch ``url`` into ``temp_path``.

        Returns:
            :class:`FetchResponse` for a 200 (payload in ``temp_path``) or a
            304 (``temp_path`` removed).

        Raises:
            FetchError: The origin answered with any other non-2xx status.
            httpx.TransportError: The retry budget was exhausted.
            OSError: Writing the temporary file failed.
        """

        temp_path = Path(temp_path)
        temp_path.parent.mkdir(parents=True, exist_ok=True)
        started = time.monotonic()

        for attempt in self._retrying():
            with attempt:
                result = self._attempt(url, headers, temp_path)
                elapsed = time.monotonic() - started
                return FetchResponse(
                    url=result.url,
                    status_code=result.status_code,
                    headers=result.headers,
                    bytes_written=result.bytes_written,
                    elapsed_s=elapsed,
                )

        raise AssertionError("unreachable: tenacity either returns or raises")

    def _attempt(self, url: str, headers: Mapping[str, str], temp_path: Path) -> FetchResponse:
        try:
            with self.client.stream("GET", url, headers=dict(headers)) as response:
                status = response.status_code
                response_headers = {k.lower(): v for k, v in response.headers.items()}

                if status == 304:
                    LOGGER.debug(f"Not modified: {url}")
                    _remove(temp_path)
                    return FetchResponse(url=url, status_code=status, headers=response_headers)

                if not 200 <= status < 300:
                    raise FetchError(url, status)

                total = response.headers.get("content-length", "?")
                written = 0
                chunks = 0
                with temp_path.open("wb") as handle:
                    for chunk in response.iter_bytes(chunk_size=self.chunk_size):
                        if not chunk:
                            continue
                        handle.write(chunk)
                        written += len(chunk)
                        chunks += 1
                        if chunks % PROGRESS_EVERY_CHUNKS == 0:
                            LOGGER.debug(f"Download progress {url}: {written}/{total} bytes")
                    handle.flush()
                    os.fsync(handle.fileno())

                LOGGER.debug(f"Streamed {written} bytes from {url} to {temp_path}")
                if status != 200:
                    # Only a 200 carries a payload worth keeping.
                    _remove(temp_path)
                return FetchResponse(
                    url=url,
                    status_code=status,
                    headers=response_headers,
                    bytes_written=written,
                )
        except BaseException:
            _remove(temp_path)
            raise
