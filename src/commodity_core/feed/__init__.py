"""Price feed store: append-only minute ticks."""

from commodity_core.feed.store import append_tick, get_latest_price, load_window

__all__ = ["append_tick", "get_latest_price", "load_window"]
