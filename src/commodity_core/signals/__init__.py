"""Signal publishing and reads."""

from commodity_core.signals.publisher import SignalPublisher, signal_type_for, strength_for
from commodity_core.signals.store import get_active_signal, list_signals

__all__ = [
    "SignalPublisher",
    "get_active_signal",
    "list_signals",
    "signal_type_for",
    "strength_for",
]
