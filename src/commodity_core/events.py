"""In-process event channel for signal activations."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import Any

import structlog

log = structlog.get_logger("events")

SIGNAL_ACTIVATED = "signal.activated"

Listener = Callable[[dict[str, Any]], None]


class EventChannel:
    """Topic-keyed callbacks, invoked synchronously after a commit.

    A failing listener is logged and skipped; publishers never see it.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, topic: str, callback: Listener) -> None:
        """Register a callback for *topic*."""
        self._listeners[topic].append(callback)

    def publish(self, topic: str, payload: dict[str, Any]) -> int:
        """Deliver *payload* to every listener; returns how many succeeded."""
        delivered = 0
        for cb in list(self._listeners.get(topic, [])):
            try:
                cb(payload)
                delivered += 1
            except Exception:
                log.exception("event_listener_error", topic=topic)
        return delivered
