"""Configuration loading and validation for the sync engine."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

from catalogsync.constants import DEFAULT_BASE_PATH, GUARD_WINDOW_SECONDS

ENV_GUARD_WINDOW_MS = "CATALOGSYNC_GUARD_WINDOW_MS"
ENV_BASE_PATH = "CATALOGSYNC_BASE_PATH"


class ConfigError(ValueError):
    """Raised when a configuration value is out of range or malformed."""


@dataclass
class SyncConfig:
    """Sync engine settings with defaults matching the storefront."""

    guard_window_seconds: float = GUARD_WINDOW_SECONDS
    base_path: str = DEFAULT_BASE_PATH
    log_dir: str | None = None
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        """Validate ranges and formats."""
        if isinstance(self.guard_window_seconds, bool) or not isinstance(
            self.guard_window_seconds, (int, float)
        ):
            raise ConfigError(
                f"guard_window_seconds must be a number, got {self.guard_window_seconds!r}"
            )
        if self.guard_window_seconds < 0:
            raise ConfigError(
                f"guard_window_seconds must be >= 0, got {self.guard_window_seconds}"
            )
        if not isinstance(self.base_path, str) or not self.base_path.startswith("/"):
            raise ConfigError(f"base_path must start with '/', got {self.base_path!r}")
        self.log_level = str(self.log_level).upper()


def config_from_env(base: SyncConfig | None = None) -> SyncConfig:
    """Apply ``CATALOGSYNC_*`` environment overrides on top of *base*."""
    config = base if base is not None else SyncConfig()
    overrides: dict[str, object] = {}

    window_ms = os.environ.get(ENV_GUARD_WINDOW_MS)
    if window_ms:
        try:
            overrides["guard_window_seconds"] = float(window_ms) / 1000.0
        except ValueError:
            raise ConfigError(f"{ENV_GUARD_WINDOW_MS} must be a number, got {window_ms!r}") from None

    base_path = os.environ.get(ENV_BASE_PATH)
    if base_path:
        overrides["base_path"] = base_path

    return replace(config, **overrides) if overrides else config


def load_config(config_path: Path | None = None) -> SyncConfig:
    """Load settings from JSON, merged over defaults, then environment overrides.

    Unknown keys are ignored. A missing file yields the defaults.

    Args:
        config_path: Path to a JSON object such as
            ``{"guard_window_seconds": 0.15, "base_path": "/shop"}``.

    Returns:
        Validated SyncConfig.
    """
    data: dict = {}
    if config_path is not None and Path(config_path).exists():
        with open(config_path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"{config_path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a JSON object")

    field_names = {f.name for f in fields(SyncConfig)}
    kwargs = {k: v for k, v in data.items() if k in field_names}
    return config_from_env(SyncConfig(**kwargs))
