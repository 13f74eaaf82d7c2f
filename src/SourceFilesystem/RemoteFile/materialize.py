# === NAVMAP v1 ===
# {
#   "module": "SourceFilesystem.RemoteFile.materialize",
#   "purpose": "Promote downloaded payloads to their content-addressed path",
#   "sections": [
#     {"id": "url-digest", "name": "url_digest", "anchor": "function-url-digest", "kind": "function"},
#     {"id": "filematerializer", "name": "FileMaterializer", "anchor": "class-filematerializer", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Promote a completed fetch to its content-addressed location.

Layout below the plugin cache directory::

    tmp-<md5(url)><ext>              transient download target
    <md5(url)>/<filename><ext>       materialized payload

The temporary file is renamed with ``os.replace`` so a reader never observes
a partially written final file. A 304 leaves the previously materialized
file untouched.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Any, Callable, MutableMapping, Optional

from .errors import MaterializationError
from .extensions import ExtensionResolver, get_remote_file_name
from .fetch import FetchResponse
from .header_cache import CachedHeaders
from .nodes import create_file_node
from .types import FetchRequest, FileArtifact

__all__ = ["FileMaterializer", "url_digest"]

LOGGER = logging.getLogger(__name__)


def url_digest(url: str) -> str:
    """md5 hex digest naming the directory that holds ``url``'s payload."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()


def _annotate(node: Any, description: str, owner: str) -> None:
    """Record description and owner on the node's ``internal`` metadata."""
    internal = node.get("internal") if isinstance(node, MutableMapping) else getattr(
        node, "internal", None
    )
    if internal is None:
        return
    if isinstance(internal, MutableMapping):
        internal["description"] = description
        internal["owner"] = owner
    else:
        internal.description = description
        internal.owner = owner


class FileMaterializer:
    """Move fetched payloads into place and build their nodes.

    Args:
        cache_dir: Plugin cache directory (``<root>/.cache/<plugin>``).
        plugin_name: Owner recorded on produced nodes.
        resolver: Extension strategy chain.
        node_factory: ``(path, create_node_id, options) -> node``.
    """

    def __init__(
        self,
        cache_dir: Path,
        *,
        plugin_name: str,
        resolver: Optional[ExtensionResolver] = None,
        node_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.plugin_name = plugin_name
        self.resolver = resolver or ExtensionResolver()
        self.node_factory = node_factory or create_file_node

    def temp_path(self, url: str, ext: str) -> Path:
        return self.cache_dir / f"tmp-{url_digest(url)}{ext}"

    def final_path(self, url: str, ext: str) -> Path:
        return self.cache_dir / url_digest(url) / f"{get_remote_file_name(url)}{ext}"

    def name_extension(self, request: FetchRequest) -> str:
        """Extension known before any byte is downloaded (explicit or URL)."""
        return self.resolver.without_payload(request.url, explicit=request.ext)

    def materialize(
        self,
        request: FetchRequest,
        response: FetchResponse,
        temp_path: Path,
        cached: Optional[CachedHeaders] = None,
    ) -> FileArtifact:
        """Produce the artifact for a finished fetch.

        Raises:
            MaterializationError: Nothing fresh was fetched and no earlier
                file for the URL exists.
            OSError: The rename failed.
        """

        if response.fresh:
            ext = self.resolver.resolve(
                request.url, explicit=request.ext, payload_path=Path(temp_path)
            )
            final = self.final_path(request.url, ext)
            final.parent.mkdir(parents=True, exist_ok=True)
            try:
                os.replace(temp_path, final)
            except OSError:
                Path(temp_path).unlink(missing_ok=True)
                raise
            LOGGER.info(f"Downloaded {request.url} -> {final} ({response.bytes_written} bytes)")
        else:
            Path(temp_path).unlink(missing_ok=True)
            previous = cached.path if cached is not None else None
            if not previous or not Path(previous).is_file():
                raise MaterializationError(
                    f"{request.url} answered {response.status_code} but no earlier file exists"
                )
            final = Path(previous)
            LOGGER.debug(f"Reusing {final} for {request.url} (status {response.status_code})")

        return self.build_artifact(request, final)

    def build_artifact(self, request: FetchRequest, path: Path) -> FileArtifact:
        """Create, annotate and register the node for ``path``."""
        description = f'File "{request.url}"'
        node = self.node_factory(str(path), request.create_node_id, {})
        _annotate(node, description, self.plugin_name)
        request.create_node(node, owner=self.plugin_name)
        return FileArtifact(
            url=request.url,
            path=str(path),
            size=path.stat().st_size,
            description=description,
            owner=self.plugin_name,
            node=node,
        )
