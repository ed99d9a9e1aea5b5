"""Config loader: reads YAML, applies COMMODITY_* env var overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from commodity_core.config.schema import AppConfig

_ENV_OVERRIDES = {
    "COMMODITY_DATABASE_URL": ("database", "url"),
    "COMMODITY_LOG_LEVEL": ("logging", "level"),
    "COMMODITY_LOG_FORMAT": ("logging", "format"),
}


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, then apply env var overrides.

    If *path* is None or the file doesn't exist, returns defaults.

    Environment variable overrides:
        COMMODITY_DATABASE_URL  -> database.url
        COMMODITY_LOG_LEVEL     -> logging.level
        COMMODITY_LOG_FORMAT    -> logging.format
    """
    data: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}

    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})[key] = value

    return AppConfig.model_validate(data)
