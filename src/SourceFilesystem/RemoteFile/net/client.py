"""
HTTPX Client Factory.

Builds the ``httpx.Client`` shared by every fetch of one
:class:`~SourceFilesystem.RemoteFile.api.RemoteFileFetcher`:

- One timeout applied to connect/read/write/pool (per attempt)
- Connection pool sized to the queue's concurrency ceiling
- No transport-level retries; the fetch executor owns the retry budget
- Event hooks emitting ``net.request`` debug records per attempt
"""

from __future__ import annotations

import logging
import os
import time
from typing import Optional

import httpx

from ..config.models import RemoteFileConfig

__all__ = ["build_http_client"]

logger = logging.getLogger(__name__)


def build_http_client(
    config: RemoteFileConfig,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Build a new HTTPX client from config.

    Args:
        config: Pipeline configuration.
        transport: Optional transport override (``httpx.MockTransport`` in tests).

    Returns:
        Configured ``httpx.Client``. The caller owns it and must close it.
    """
    http = config.http
    max_connections = config.queue.max_concurrency

    client = httpx.Client(
        transport=transport,
        timeout=httpx.Timeout(http.timeout_s),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=min(max_connections, 20),
        ),
        headers={"User-Agent": http.user_agent, "Accept": "*/*"},
        follow_redirects=http.follow_redirects,
        max_redirects=http.max_redirects,
    )
    client.event_hooks["request"] = [_on_request]
    client.event_hooks["response"] = [_on_response]

    logger.debug(
        f"HTTPX client created: timeout={http.timeout_s}s, max_connections={max_connections}"
    )
    return client


# ============================================================================
# Event Hooks (Telemetry)
# ============================================================================


def _on_request(request: httpx.Request) -> None:
    """Hook: capture request start time and id."""
    request.extensions["t0_perf"] = time.perf_counter()
    request.extensions["request_id"] = os.urandom(8).hex()


def _on_response(response: httpx.Response) -> None:
    """Hook: emit net.request debug record once headers arrive."""
    req = response.request
    t0 = req.extensions.get("t0_perf", time.perf_counter())
    elapsed_ms = (time.perf_counter() - t0) * 1000.0
    logger.debug(
        f"net.request: method={req.method} url={req.url} status={response.status_code} "
        f"elapsed_ms={elapsed_ms:.1f} request_id={req.extensions.get('request_id')}"
    )
