# === NAVMAP v1 ===
# {
#   "module": "SourceFilesystem.RemoteFile.extensions",
#   "purpose": "File name and extension inference from caller, URL and content",
#   "sections": [
#     {"id": "get-remote-file-extension", "name": "get_remote_file_extension", "anchor": "function-get-remote-file-extension", "kind": "function"},
#     {"id": "get-remote-file-name", "name": "get_remote_file_name", "anchor": "function-get-remote-file-name", "kind": "function"},
#     {"id": "normalize-extension", "name": "normalize_extension", "anchor": "function-normalize-extension", "kind": "function"},
#     {"id": "sniff-bytes", "name": "sniff_bytes", "anchor": "function-sniff-bytes", "kind": "function"},
#     {"id": "sniff-extension", "name": "sniff_extension", "anchor": "function-sniff-extension", "kind": "function"},
#     {"id": "resolutioncontext", "name": "ResolutionContext", "anchor": "class-resolutioncontext", "kind": "class"},
#     {"id": "explicit-strategy", "name": "explicit_strategy", "anchor": "function-explicit-strategy", "kind": "function"},
#     {"id": "url-strategy", "name": "url_strategy", "anchor": "function-url-strategy", "kind": "function"},
#     {"id": "sniff-strategy", "name": "sniff_strategy", "anchor": "function-sniff-strategy", "kind": "function"},
#     {"id": "default-strategies", "name": "default_strategies", "anchor": "function-default-strategies", "kind": "function"},
#     {"id": "extensionresolver", "name": "ExtensionResolver", "anchor": "class-extensionresolver", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""File name and extension inference for remote resources.

Extensions are resolved through an explicit, ordered list of strategies:

1. the extension the caller passed in,
2. the dotted suffix of the URL path,
3. a signature sniff of the downloaded bytes,

and finally ``""`` (unknown). Strategies are evaluated lazily and the first
non-empty answer wins, so the payload is only read from disk when neither the
caller nor the URL say anything.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Optional, Sequence, Tuple
from urllib.parse import unquote, urlsplit

__all__ = [
    "MINIMUM_BYTES",
    "ExtensionResolver",
    "ExtensionStrategy",
    "ResolutionContext",
    "default_strategies",
    "get_remote_file_extension",
    "get_remote_file_name",
    "normalize_extension",
    "sniff_bytes",
    "sniff_extension",
]

LOGGER = logging.getLogger(__name__)

MINIMUM_BYTES = 4100
DEFAULT_FILE_NAME = "index"

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9][A-Za-z0-9_-]{0,15}$")

# ============================================================================
# URL helpers
# ============================================================================


def _url_path(url: str) -> PurePosixPath:
    return PurePosixPath(unquote(urlsplit(url).path))


def get_remote_file_extension(url: str) -> str:
    """Return the dotted suffix of the URL path, or ``""`` when implausible.

    >>> get_remote_file_extension("https://example.com/img/logo.PNG?size=2")
    '.PNG'
    >>> get_remote_file_extension("https://example.com/download")
    ''
    """

    suffix = _url_path(url).suffix
    if suffix and _EXTENSION_RE.match(suffix):
        return suffix
    return ""


def get_remote_file_name(url: str) -> str:
    """Return the URL path's file name without its extension.

    Bare directory URLs (``https://example.com/``) map to ``index``.
    """

    path = _url_path(url)
    name = path.name
    if not name:
        return DEFAULT_FILE_NAME
    suffix = get_remote_file_extension(url)
    if suffix:
        name = name[: -len(suffix)]
    return name or DEFAULT_FILE_NAME


def normalize_extension(ext: Optional[str]) -> str:
    """Ensure a non-empty extension carries its leading dot."""
    if not ext:
        return ""
    ext = ext.strip()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return ext


# ============================================================================
# Content sniffing
# ============================================================================

# (extension, offset, magic bytes); first match wins, so longer/more specific
# signatures come before shorter ones that share a prefix.
_SIGNATURES: Tuple[Tuple[str, int, bytes], ...] = (
    (".png", 0, b"\x89PNG\r\n\x1a\n"),
    (".jpg", 0, b"\xff\xd8\xff"),
    (".gif", 0, b"GIF87a"),
    (".gif", 0, b"GIF89a"),
    (".bmp", 0, b"BM"),
    (".tif", 0, b"II*\x00"),
    (".tif", 0, b"MM\x00*"),
    (".ico", 0, b"\x00\x00\x01\x00"),
    (".psd", 0, b"8BPS"),
    (".pdf", 0, b"%PDF-"),
    (".ps", 0, b"%!"),
    (".zip", 0, b"PK\x03\x04"),
    (".zip", 0, b"PK\x05\x06"),
    (".gz", 0, b"\x1f\x8b\x08"),
    (".bz2", 0, b"BZh"),
    (".xz", 0, b"\xfd7zXZ\x00"),
    (".7z", 0, b"7z\xbc\xaf\x27\x1c"),
    (".rar", 0, b"Rar!\x1a\x07"),
    (".zst", 0, b"\x28\xb5\x2f\xfd"),
    (".tar", 257, b"ustar"),
    (".wasm", 0, b"\x00asm"),
    (".sqlite", 0, b"SQLite format 3\x00"),
    (".mp3", 0, b"ID3"),
    (".flac", 0, b"fLaC"),
    (".ogg", 0, b"OggS"),
    (".mid", 0, b"MThd"),
    (".woff", 0, b"wOFF"),
    (".woff2", 0, b"wOF2"),
    (".otf", 0, b"OTTO"),
    (".ttf", 0, b"\x00\x01\x00\x00\x00"),
    (".exe", 0, b"MZ"),
    (".elf", 0, b"\x7fELF"),
)

_RIFF_FORMS = {b"WEBP": ".webp", b"WAVE": ".wav", b"AVI ": ".avi"}

_FTYP_BRANDS = {
    b"avif": ".avif",
    b"heic": ".heic",
    b"heix": ".heic",
    b"mif1": ".heic",
    b"qt  ": ".mov",
    b"M4A ": ".m4a",
    b"M4V ": ".m4v",
    b"3gp4": ".3gp",
    b"3gp5": ".3gp",
}


def sniff_bytes(head: bytes) -> str:
    """Map a payload prefix to a canonical extension, or ``""`` if unknown."""

    if not head:
        return ""

    if head[:4] == b"RIFF" and len(head) >= 12:
        return _RIFF_FORMS.get(head[8:12], "")

    if head[4:8] == b"ftyp" and len(head) >= 12:
        return _FTYP_BRANDS.get(head[8:12], ".mp4")

    if head[:4] == b"\x1a\x45\xdf\xa3":
        return ".webm" if b"webm" in head[:64] else ".mkv"

    for ext, offset, magic in _SIGNATURES:
        if head[offset : offset + len(magic)] == magic:
            return ext

    # MPEG audio frame sync without an ID3 tag.
    if len(head) >= 2 and head[0] == 0xFF and head[1] & 0xE0 == 0xE0:
        return ".mp3"

    return ""


def sniff_extension(path: "os.PathLike[str] | str", minimum_bytes: int = MINIMUM_BYTES) -> str:
    """Read at most ``minimum_bytes`` from ``path`` and sniff its signature."""
    try:
        with open(path, "rb") as handle:
            head = handle.read(minimum_bytes)
    except FileNotFoundError:
        return ""
    ext = sniff_bytes(head)
    LOGGER.debug(f"Sniffed {path}: {ext or 'unrecognized'}")
    return ext


# ============================================================================
# Strategy chain
# ============================================================================


@dataclass(frozen=True)
class ResolutionContext:
    """Inputs available to extension strategies."""

    url: str
    explicit: Optional[str] = None
    payload_path: Optional[Path] = None
    sniff_limit: int = MINIMUM_BYTES


ExtensionStrategy = Callable[[ResolutionContext], str]


def explicit_strategy(ctx: ResolutionContext) -> str:
    return normalize_extension(ctx.explicit)


def url_strategy(ctx: ResolutionContext) -> str:
    return get_remote_file_extension(ctx.url)


def sniff_strategy(ctx: ResolutionContext) -> str:
    if ctx.payload_path is None:
        return ""
    return sniff_extension(ctx.payload_path, ctx.sniff_limit)


def default_strategies() -> Tuple[ExtensionStrategy, ...]:
    return (explicit_strategy, url_strategy, sniff_strategy)


class ExtensionResolver:
    """Evaluate extension strategies in order, stopping at the first hit."""

    def __init__(
        self,
        strategies: Optional[Sequence[ExtensionStrategy]] = None,
        *,
        sniff_limit: int = MINIMUM_BYTES,
    ) -> None:
        self.strategies: Tuple[ExtensionStrategy, ...] = tuple(
            strategies if strategies is not None else default_strategies()
        )
        self.sniff_limit = sniff_limit

    def resolve(
        self,
        url: str,
        *,
        explicit: Optional[str] = None,
        payload_path: Optional[Path] = None,
    ) -> str:
        ctx = ResolutionContext(
            url=url,
            explicit=explicit,
            payload_path=payload_path,
            sniff_limit=self.sniff_limit,
        )
        for strategy in self.strategies:
            ext = strategy(ctx)
            if ext:
                return ext
        return ""

    def without_payload(self, url: str, *, explicit: Optional[str] = None) -> str:
        """Resolve using only name-based strategies (nothing on disk yet)."""
        return self.resolve(url, explicit=explicit, payload_path=None)
