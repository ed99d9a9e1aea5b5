"""Tool registry: decorated scorer classes are auto-registered."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from commodity_core.analysis.base import ToolScorer

TOOL_REGISTRY: dict[str, type[ToolScorer]] = {}


def register(cls: type[ToolScorer]) -> type[ToolScorer]:
    """Class decorator that adds a tool scorer to the global registry."""
    if not hasattr(cls, "name") or not cls.name:
        raise ValueError(f"Tool class {cls.__name__} must define a 'name' attribute")
    if cls.name in TOOL_REGISTRY:
        raise ValueError(f"Duplicate tool name: {cls.name!r}")
    TOOL_REGISTRY[cls.name] = cls
    return cls
