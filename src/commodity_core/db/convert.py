"""Row value helpers shared by the stores."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal


def as_utc(ts: datetime) -> datetime:
    """Normalise to aware UTC; SQLite hands back naive datetimes."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def as_decimal(value) -> Decimal | None:
    """Numeric column value -> Decimal, going through str to avoid float noise."""
    if value is None:
        return None
    return Decimal(str(value))
