"""Structured logging."""

from commodity_core.logging.setup import bind_context, setup_logging

__all__ = ["bind_context", "setup_logging"]
