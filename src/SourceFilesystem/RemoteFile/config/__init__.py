"""Configuration models and loader for the remote file pipeline."""

from .loader import load_config
from .models import (
    DownloadSettings,
    HttpSettings,
    QueueSettings,
    RemoteFileConfig,
    RetrySettings,
)

__all__ = [
    "DownloadSettings",
    "HttpSettings",
    "QueueSettings",
    "RemoteFileConfig",
    "RetrySettings",
    "load_config",
]
