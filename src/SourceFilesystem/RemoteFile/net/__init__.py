"""
Network layer for RemoteFile.

Provides the HTTPX client factory used by the fetch executor. Retries live in
``SourceFilesystem.RemoteFile.fetch`` (Tenacity), not in the transport.
"""

from .client import build_http_client

__all__ = ["build_http_client"]
