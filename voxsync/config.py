"""Persisted configuration management."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

from .models import Config

CONFIG_PATH = (Path.home() / ".voxsync" / "config.json").expanduser()


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or saved."""


def load_config() -> Config:
    if not CONFIG_PATH.exists():
        return Config()
    try:
        payload = json.loads(CONFIG_PATH.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
    known = {f.name for f in fields(Config)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration key(s) in {CONFIG_PATH}: {', '.join(unknown)}")
    return Config(**payload)


def save_config(config: Config) -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    data = {k: v for k, v in asdict(config).items() if v is not None}
    # Write beside the target and rename so readers never see a partial file.
    fd, tmp_name = tempfile.mkstemp(dir=CONFIG_PATH.parent, prefix=".config-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as handle:
            handle.write(json.dumps(data, indent=2))
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, CONFIG_PATH)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise ConfigError(f"Failed to write configuration file: {exc}") from exc


def update_config(**kwargs: Any) -> Config:
    config = load_config()
    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            raise ConfigError(f"Unknown configuration key: {key}")
    save_config(config)
    return config
