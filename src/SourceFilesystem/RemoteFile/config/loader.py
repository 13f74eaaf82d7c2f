"""
Configuration Loading with File/Env/CLI Precedence

Implements three-level config composition:
1. **File level** (YAML/JSON) - base configuration
2. **Environment level** - SFS_* prefixed variables override file
3. **CLI level** - programmatic overrides win

Environment variables use double-underscore notation:
  SFS_HTTP__TIMEOUT_S=10          ->  http.timeout_s=10
  SFS_QUEUE__MAX_CONCURRENCY=50   ->  queue.max_concurrency=50

JSON values are automatically parsed; strings are type-coerced when possible.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .models import RemoteFileConfig

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "SFS_"

# ============================================================================
# Helpers
# ============================================================================


def _read_file(path: str) -> dict[str, Any]:
    """
    Read YAML or JSON config file.

    Args:
        path: File path (suffix determines format: .yaml/.yml or .json)

    Returns:
        Parsed config dictionary

    Raises:
        ValueError: If file cannot be read or parsed
    """
    p = Path(path)
    if not p.exists():
        raise ValueError(f"Config file not found: {path}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read config file {path}: {e}") from e

    suffix = p.suffix.lower()
    if suffix in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e

    raise ValueError(f"Unsupported file format: {suffix}. Use .yaml or .json")


def _assign_nested(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    """Assign ``value`` into ``data`` following a dot-separated path."""
    keys = dotted_key.split(".")
    current = data

    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]

    current[keys[-1]] = value


def _coerce_env_value(value: str) -> Any:
    """
    Attempt to coerce environment variable string to appropriate type.

    Tries JSON parsing first (handles lists, dicts, bools, numbers).
    Falls back to the raw string.
    """
    try:
        return json.loads(value)
    except ValueError:
        pass

    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    return value


def _merge_env_overrides(
    data: dict[str, Any],
    env_prefix: str = DEFAULT_ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    Overlay environment variables onto config dict.

    Args:
        data: Base config dict (modified in place)
        env_prefix: Environment variable prefix (default: SFS_)
        environ: Mapping to read instead of ``os.environ``

    Returns:
        Modified data dict
    """
    env = os.environ if environ is None else environ
    for env_key, env_value in env.items():
        if not env_key.startswith(env_prefix):
            continue

        relative_key = env_key[len(env_prefix) :].lower()
        dotted_key = relative_key.replace("__", ".")
        coerced_value = _coerce_env_value(env_value)
        _assign_nested(data, dotted_key, coerced_value)
        _LOGGER.debug(f"Environment override: {env_key} -> {dotted_key} = {coerced_value!r}")

    return data


def _merge_cli_overrides(
    data: dict[str, Any], cli_overrides: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Recursively merge CLI overrides into base config dict. Later values win."""
    if not cli_overrides:
        return data

    for key, value in cli_overrides.items():
        if isinstance(value, Mapping) and isinstance(data.get(key), dict):
            data[key] = _merge_cli_overrides(data[key], value)
        elif isinstance(value, Mapping):
            data[key] = dict(value)
        else:
            data[key] = value
        _LOGGER.debug(f"CLI override: {key} = {value!r}")

    return data


# ============================================================================
# Public API
# ============================================================================


def load_config(
    path: str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_overrides: Mapping[str, Any] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> RemoteFileConfig:
    """
    Load RemoteFileConfig from file, environment, and CLI with proper precedence.

    **Precedence:** file < environment < CLI

    Args:
        path: Path to YAML/JSON config file (optional)
        env_prefix: Environment variable prefix (default: SFS_)
        cli_overrides: CLI overrides dict (optional)
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        Validated RemoteFileConfig instance

    Raises:
        ValueError: If config is invalid or file cannot be read
    """
    data: dict[str, Any] = {}

    if path:
        data = _read_file(path)
        _LOGGER.info(f"Loaded config from {path}")

    data = _merge_env_overrides(data, env_prefix, environ)
    data = _merge_cli_overrides(data, cli_overrides)

    config = RemoteFileConfig.model_validate(data)
    _LOGGER.debug(f"Configuration validated. Config hash: {config.config_hash()[:8]}...")
    return config
