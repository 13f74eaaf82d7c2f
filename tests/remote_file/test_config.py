"""Configuration defaults, file loading, and override precedence."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from SourceFilesystem.RemoteFile.config import RemoteFileConfig, load_config


def test_defaults() -> None:
    cfg = RemoteFileConfig()
    assert cfg.plugin_name == "source-filesystem"
    assert cfg.cache_dir_name == ".cache"
    assert cfg.http.timeout_s == 30.0
    assert cfg.retry.max_attempts == 5
    assert cfg.queue.max_concurrency == 200
    assert cfg.download.sniff_bytes == 4100


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ValidationError):
        RemoteFileConfig.model_validate({"http": {"timeout": 3}})


@pytest.mark.parametrize(
    "data",
    [
        {"queue": {"max_concurrency": 0}},
        {"retry": {"max_attempts": 0}},
        {"http": {"timeout_s": 0}},
        {"plugin_name": "../escape"},
        {"cache_dir_name": ""},
    ],
)
def test_invalid_values(data) -> None:
    with pytest.raises(ValidationError):
        RemoteFileConfig.model_validate(data)


def test_yaml_file(tmp_path: Path) -> None:
    path = tmp_path / "remote.yaml"
    path.write_text("queue:\n  max_concurrency: 8\nhttp:\n  timeout_s: 5\n", encoding="utf-8")

    cfg = load_config(str(path), environ={})

    assert cfg.queue.max_concurrency == 8
    assert cfg.http.timeout_s == 5.0
    assert cfg.retry.max_attempts == 5


def test_json_file(tmp_path: Path) -> None:
    path = tmp_path / "remote.json"
    path.write_text('{"retry": {"max_attempts": 2}}', encoding="utf-8")
    assert load_config(str(path), environ={}).retry.max_attempts == 2


def test_env_overrides_file(tmp_path: Path) -> None:
    path = tmp_path / "remote.yaml"
    path.write_text("queue:\n  max_concurrency: 8\n", encoding="utf-8")

    cfg = load_config(
        str(path),
        environ={
            "SFS_QUEUE__MAX_CONCURRENCY": "16",
            "SFS_HTTP__FOLLOW_REDIRECTS": "false",
            "SFS_HTTP__USER_AGENT": "tester/1.0",
            "OTHER_QUEUE__MAX_CONCURRENCY": "1",
        },
    )

    assert cfg.queue.max_concurrency == 16
    assert cfg.http.follow_redirects is False
    assert cfg.http.user_agent == "tester/1.0"


def test_cli_overrides_env() -> None:
    cfg = load_config(
        environ={"SFS_QUEUE__MAX_CONCURRENCY": "16"},
        cli_overrides={"queue": {"max_concurrency": 2}},
    )
    assert cfg.queue.max_concurrency == 2


@pytest.mark.parametrize(
    "name, body",
    [
        ("missing.yaml", None),
        ("bad.yaml", "queue: [unclosed"),
        ("bad.json", "{not json"),
        ("conf.toml", "x = 1"),
    ],
)
def test_unreadable_files(tmp_path: Path, name: str, body) -> None:
    path = tmp_path / name
    if body is not None:
        path.write_text(body, encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path), environ={})


def test_config_hash_is_stable() -> None:
    a = RemoteFileConfig()
    b = RemoteFileConfig.model_validate({"queue": {"max_concurrency": 200}})
    c = RemoteFileConfig.model_validate({"queue": {"max_concurrency": 10}})
    assert a.config_hash() == b.config_hash()
    assert a.config_hash() != c.config_hash()
