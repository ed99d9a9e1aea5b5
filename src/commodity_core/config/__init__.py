"""Configuration system."""

from commodity_core.config.loader import load_config
from commodity_core.config.schema import AppConfig

__all__ = ["AppConfig", "load_config"]
