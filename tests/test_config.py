"""Tests for SyncConfig validation, JSON loading and environment overrides."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from catalogsync.config import (
    ENV_BASE_PATH,
    ENV_GUARD_WINDOW_MS,
    ConfigError,
    SyncConfig,
    config_from_env,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(ENV_GUARD_WINDOW_MS, raising=False)
    monkeypatch.delenv(ENV_BASE_PATH, raising=False)


def test_defaults():
    config = SyncConfig()
    assert config.guard_window_seconds == 0.1
    assert config.base_path == "/shop"
    assert config.log_dir is None
    assert config.log_level == "WARNING"


def test_log_level_uppercased():
    assert SyncConfig(log_level="debug").log_level == "DEBUG"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"guard_window_seconds": -1},
        {"guard_window_seconds": "fast"},
        {"guard_window_seconds": True},
        {"base_path": "shop"},
    ],
)
def test_invalid_values_raise(kwargs):
    with pytest.raises(ConfigError):
        SyncConfig(**kwargs)


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv(ENV_GUARD_WINDOW_MS, "250")
    monkeypatch.setenv(ENV_BASE_PATH, "/store")
    config = config_from_env()
    assert config.guard_window_seconds == 0.25
    assert config.base_path == "/store"


def test_env_bad_number(monkeypatch):
    monkeypatch.setenv(ENV_GUARD_WINDOW_MS, "soon")
    with pytest.raises(ConfigError):
        config_from_env()


def test_env_invalid_path_rejected(monkeypatch):
    monkeypatch.setenv(ENV_BASE_PATH, "store")
    with pytest.raises(ConfigError):
        config_from_env()


def test_load_missing_file_gives_defaults(tmp_path: Path):
    assert load_config(tmp_path / "missing.json") == SyncConfig()
    assert load_config(None) == SyncConfig()


def test_load_file_merges_and_ignores_unknown_keys(tmp_path: Path):
    path = tmp_path / "catalogsync.json"
    path.write_text(json.dumps({"guard_window_seconds": 0.15, "theme": "dark"}))
    config = load_config(path)
    assert config.guard_window_seconds == 0.15
    assert config.base_path == "/shop"


def test_env_wins_over_file(tmp_path: Path, monkeypatch):
    path = tmp_path / "catalogsync.json"
    path.write_text(json.dumps({"base_path": "/file"}))
    monkeypatch.setenv(ENV_BASE_PATH, "/env")
    assert load_config(path).base_path == "/env"


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_load_bad_file_raises(tmp_path: Path, content):
    path = tmp_path / "catalogsync.json"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(path)
