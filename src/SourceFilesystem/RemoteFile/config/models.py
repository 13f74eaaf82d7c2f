"""
Pydantic v2 Configuration Models for RemoteFile

Provides strict, typed configuration for the remote file pipeline:
- HTTP client settings (per-attempt timeout, redirects, user agent)
- Transport retry budget and backoff
- Queue concurrency ceiling
- Download streaming and content sniffing sizes
- Top-level RemoteFileConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and CLI overrides follow: file < env < CLI precedence (see ``loader``).
"""

from __future__ import annotations

import hashlib
import json
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# Subsystem Models
# ============================================================================


class HttpSettings(BaseModel):
    """HTTP client configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    timeout_s: float = Field(default=30.0, description="Connect/read timeout per attempt")
    user_agent: str = Field(
        default="SourceFilesystem-RemoteFile/0.1",
        description="User-Agent header sent with every request",
    )
    follow_redirects: bool = Field(default=True, description="Follow 3xx responses")
    max_redirects: int = Field(default=10, ge=0, description="Maximum redirect hops")

    @field_validator("timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_s must be > 0")
        return v


class RetrySettings(BaseModel):
    """Transport-level retry budget (connection errors and timeouts only)."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=5, description="Total attempts including the first")
    wait_initial_s: float = Field(default=0.5, ge=0, description="Backoff multiplier")
    wait_max_s: float = Field(default=10.0, ge=0, description="Backoff ceiling per wait")

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be >= 1")
        return v


class QueueSettings(BaseModel):
    """Worker pool configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    max_concurrency: int = Field(default=200, description="Simultaneous fetches")

    @field_validator("max_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrency must be >= 1")
        return v


class DownloadSettings(BaseModel):
    """Streaming and sniffing configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    chunk_size_bytes: int = Field(default=1 << 16, gt=0, description="Stream chunk size")
    sniff_bytes: int = Field(
        default=4100, gt=0, description="Prefix size read when sniffing file signatures"
    )


# ============================================================================
# Top-Level Configuration
# ============================================================================


class RemoteFileConfig(BaseModel):
    """
    Single source of truth for RemoteFile configuration.

    Loaded from file (YAML/JSON), overlaid with environment variables,
    and finally overridden by CLI arguments. Precedence: file < env < CLI.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", validate_assignment=True)

    plugin_name: str = Field(
        default="source-filesystem",
        description="Owner recorded on produced nodes and name of the cache subdirectory",
    )
    cache_dir_name: str = Field(default=".cache", description="Cache root below the program dir")
    http: HttpSettings = Field(default_factory=HttpSettings, description="HTTP client")
    retry: RetrySettings = Field(default_factory=RetrySettings, description="Retry budget")
    queue: QueueSettings = Field(default_factory=QueueSettings, description="Worker pool")
    download: DownloadSettings = Field(
        default_factory=DownloadSettings, description="Streaming and sniffing"
    )

    @field_validator("plugin_name", "cache_dir_name")
    @classmethod
    def validate_path_component(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"must be a single path component, got {v!r}")
        return v

    def config_hash(self) -> str:
        """
        Compute deterministic SHA256 hash of config for reproducibility.

        Returns:
            Hex-encoded SHA256 hash of normalized config JSON.
        """
        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()
