"""
Remote file downloads for SourceFilesystem.

Fetches a URL once regardless of concurrent duplicate requests, revalidates
with ``If-None-Match``, writes through a temporary file and an atomic rename,
and infers a file extension when neither the caller nor the URL supplies one.

Usage:
    from SourceFilesystem.RemoteFile import MemoryCache, RemoteFileFetcher, StaticStore

    with RemoteFileFetcher(store=StaticStore("."), cache=MemoryCache()) as fetcher:
        outcome = fetcher.submit(
            "https://example.com/logo.png",
            create_node=register,
            create_node_id=make_id,
        ).result()
"""

from .api import RemoteFileFetcher, create_remote_file_node, is_web_url, reset_default_fetchers
from .cache_store import MemoryCache, SqliteCache, StaticStore
from .config import RemoteFileConfig, load_config
from .errors import ConfigurationError, FetchError, MaterializationError, RemoteFileError
from .nodes import FileNode, create_file_node
from .outcomes import Failed, Fetched, NotModified, Outcome, Skipped
from .types import BasicAuthCredentials, FetchRequest, FileArtifact

__all__ = [
    "BasicAuthCredentials",
    "ConfigurationError",
    "Failed",
    "FetchError",
    "FetchRequest",
    "Fetched",
    "FileArtifact",
    "FileNode",
    "MaterializationError",
    "MemoryCache",
    "NotModified",
    "Outcome",
    "RemoteFileConfig",
    "RemoteFileError",
    "RemoteFileFetcher",
    "Skipped",
    "SqliteCache",
    "StaticStore",
    "create_file_node",
    "create_remote_file_node",
    "is_web_url",
    "load_config",
    "reset_default_fetchers",
]
