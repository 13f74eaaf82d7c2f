"""Value types shared by the remote file pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Union

from .errors import ConfigurationError

if TYPE_CHECKING:
    from .header_cache import HeaderCache

__all__ = [
    "AuthLike",
    "BasicAuthCredentials",
    "FetchRequest",
    "FileArtifact",
    "coerce_auth",
]


@dataclass(frozen=True)
class BasicAuthCredentials:
    """Username/password pair sent as HTTP basic authentication."""

    username: str = ""
    password: str = ""

    def __bool__(self) -> bool:
        return bool(self.username or self.password)

    def token(self) -> str:
        """Return the ``user:pass`` form carried by the Authorization header."""
        return f"{self.username}:{self.password}"


AuthLike = Union[BasicAuthCredentials, Mapping[str, Optional[str]], None]


def coerce_auth(auth: AuthLike) -> Optional[BasicAuthCredentials]:
    """Normalise caller supplied credentials.

    Accepts :class:`BasicAuthCredentials`, a mapping with ``htaccess_user`` and
    ``htaccess_pass`` (or ``username``/``password``) keys, or ``None``. Returns
    ``None`` when neither a username nor a password is present.
    """

    if auth is None:
        return None
    if isinstance(auth, BasicAuthCredentials):
        return auth if auth else None
    if isinstance(auth, Mapping):
        user = auth.get("htaccess_user") or auth.get("username") or ""
        password = auth.get("htaccess_pass") or auth.get("password") or ""
        creds = BasicAuthCredentials(username=str(user), password=str(password))
        return creds if creds else None
    raise ConfigurationError(
        f"auth must be BasicAuthCredentials or a mapping, was {type(auth).__name__}"
    )


@dataclass(frozen=True)
class FetchRequest:
    """One unit of work admitted into the queue, keyed by ``url``.

    Attributes:
        url: Absolute http(s) URL to fetch. Unique queue key.
        create_node_id: Caller supplied id generator handed to the node factory.
        create_node: Caller supplied sink that registers the produced node.
        ext: Explicit extension (``".png"``) overriding every inference step.
        auth: Optional basic-auth credentials.
        header_cache: Header cache for this request, overriding the pipeline's.
    """

    url: str
    create_node_id: Callable[..., str]
    create_node: Callable[..., Any]
    ext: Optional[str] = None
    auth: Optional[BasicAuthCredentials] = None
    header_cache: Optional["HeaderCache"] = None

    @property
    def key(self) -> str:
        return self.url


@dataclass(frozen=True)
class FileArtifact:
    """A materialized file together with the node built from it."""

    url: str
    path: str
    size: int
    description: str
    owner: str
    node: Any = None
