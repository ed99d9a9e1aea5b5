"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import BigInteger, Integer, JSON, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session

from commodity_core.db.base import Base

# Import all table modules so Base.metadata sees them
import commodity_core.db.tables  # noqa: F401
from commodity_core.models import IndicatorSnapshot, MarketContext, PriceTick

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)  # a Monday


def _sqlite_engine(url: str, **kwargs):
    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec):
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    # SQLite doesn't support schemas, JSONB, or BigInteger autoincrement
    for table in Base.metadata.tables.values():
        table.schema = None
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()
            if isinstance(col.type, BigInteger):
                col.type = Integer()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session():
    """In-memory SQLite session with all schemas/tables created.

    Patches JSONB→JSON and BigInteger→Integer for SQLite compatibility.
    """
    engine = _sqlite_engine("sqlite:///:memory:")
    session = Session(engine)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def session_pair(tmp_path):
    """Two independent sessions on one file-backed SQLite database.

    Used where two workers or publishers must contend for the same rows.
    """
    engine = _sqlite_engine(f"sqlite:///{tmp_path / 'race.db'}")
    first, second = Session(engine), Session(engine)
    yield first, second
    first.close()
    second.close()
    engine.dispose()


def make_ticks(
    closes,
    start: datetime = T0,
    step: timedelta = timedelta(minutes=1),
    spread: float = 0.1,
) -> list[PriceTick]:
    """Oldest-first ticks with the given closes and a symmetric high/low spread."""
    ticks = []
    prev = None
    for i, close in enumerate(closes):
        c = Decimal(str(close))
        o = prev if prev is not None else c
        s = Decimal(str(spread))
        ticks.append(
            PriceTick(
                timestamp=start + step * i,
                open=o,
                high=max(o, c) + s,
                low=min(o, c) - s,
                close=c,
            )
        )
        prev = c
    return ticks


def make_context(ticks, ts=None, macro=None, **indicators) -> MarketContext:
    """Context over *ticks* with only the given indicator fields set."""
    latest = ticks[-1]
    return MarketContext(
        ts=ts or latest.timestamp,
        ticks=ticks,
        indicators=IndicatorSnapshot(timestamp=latest.timestamp, **indicators),
        current_price=latest.close,
        macro=macro or {},
    )


@pytest.fixture
def tick_factory():
    return make_ticks


@pytest.fixture
def context_factory():
    return make_context
