"""Tests for the read-only HTTP API."""

from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from commodity_core.api.app import app, get_db
from commodity_core.db.tables.signals import SignalRow
from commodity_core.execution.queue import enqueue_for_signal
from commodity_core.feed import append_tick
from commodity_core.paper.ledger import PositionLedger

from conftest import T0, _sqlite_engine, make_ticks

REQUIRED_DOC_KEYS = {"thesis", "data", "risk"}


@pytest.fixture
def api_session():
    """One in-memory connection shared with the TestClient's worker thread."""
    engine = _sqlite_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session = Session(engine)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def client(api_session):
    app.dependency_overrides[get_db] = lambda: api_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _seed_signal(session, active: bool = True) -> int:
    row = SignalRow(
        timestamp=T0,
        signal_type="BUY",
        strength="STRONG",
        probability_up=70,
        probability_down=30,
        confidence=75,
        current_price=70,
        target_price=70.7,
        stop_loss=68.6,
        reasoning="BUY_BULL (composite +40.0)",
        is_active=active,
    )
    session.add(row)
    session.commit()
    return row.id


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


# ── Signals ─────────────────────────────────────────────────────


class TestSignals:
    def test_no_active_signal(self, client):
        resp = client.get("/api/signals/active")
        assert resp.status_code == 200
        assert resp.json() == {"signal": None}

    def test_active_signal(self, client, api_session):
        _seed_signal(api_session, active=False)
        active_id = _seed_signal(api_session)
        data = client.get("/api/signals/active").json()["signal"]
        assert data["id"] == active_id
        assert data["signalType"] == "BUY"
        assert data["isActive"] is True
        assert data["targetPrice"] == pytest.approx(70.7)
        assert data["indicatorsUsed"] == {}

    def test_recent_signals(self, client, api_session):
        for _ in range(3):
            _seed_signal(api_session, active=False)
        resp = client.get("/api/signals", params={"limit": 2})
        assert len(resp.json()["signals"]) == 2


# ── Queue ───────────────────────────────────────────────────────


class TestQueue:
    def test_stats_and_recent(self, client, api_session):
        ledger = PositionLedger()
        ledger.ensure_settings(api_session, "alice", auto_trading=True)
        ledger.ensure_settings(api_session, "bob", auto_trading=True)
        signal_id = _seed_signal(api_session)
        enqueue_for_signal(api_session, signal_id, T0)
        api_session.commit()

        assert client.get("/api/queue/stats").json() == {
            "pending": 2,
            "processing": 0,
            "completed": 0,
            "failed": 0,
        }
        items = client.get("/api/queue/recent").json()["items"]
        assert {i["userId"] for i in items} == {"alice", "bob"}
        assert all(i["signalId"] == signal_id for i in items)


# ── Positions ───────────────────────────────────────────────────


class TestPositions:
    def _open(self, session, user_id: str = "alice"):
        ledger = PositionLedger()
        ledger.ensure_settings(session, user_id)
        return ledger, ledger.open_position(session, user_id, "BULL", Decimal("70"), Decimal("1000"), now=T0)

    def test_list_and_filter(self, client, api_session):
        self._open(api_session, "alice")
        self._open(api_session, "bob")
        assert len(client.get("/api/positions").json()["positions"]) == 2
        only_bob = client.get("/api/positions", params={"user_id": "bob"}).json()["positions"]
        assert [p["userId"] for p in only_bob] == ["bob"]
        assert only_bob[0]["direction"] == "LONG"

    def test_unrealized_pl(self, client, api_session):
        _, pos = self._open(api_session)
        for tick in make_ticks([74, 75]):
            append_tick(api_session, tick)
        data = client.get(f"/api/positions/{pos.id}/pl").json()
        assert data["status"] == "OPEN"
        assert data["price"] == 75.0
        assert data["plAbsolute"] == pytest.approx(71.43)
        assert data["plPercent"] == pytest.approx(7.142857, rel=1e-6)

    def test_realized_pl_for_closed(self, client, api_session):
        ledger, pos = self._open(api_session)
        ledger.close_position(api_session, pos.id, Decimal("65"))
        data = client.get(f"/api/positions/{pos.id}/pl").json()
        assert data["status"] == "CLOSED"
        assert data["plAbsolute"] == pytest.approx(-71.43)

    def test_no_price_available(self, client, api_session):
        _, pos = self._open(api_session)
        assert client.get(f"/api/positions/{pos.id}/pl").status_code == 503

    def test_unknown_position(self, client):
        assert client.get("/api/positions/999/pl").status_code == 404


# ── Tools ───────────────────────────────────────────────────────


class TestTools:
    def test_list_tools(self, client):
        tools = client.get("/api/tools").json()["tools"]
        assert len(tools) == 9
        assert [t["name"] for t in tools] == sorted(t["name"] for t in tools)
        assert all(t["enabled"] for t in tools)

    def test_docs_endpoint_returns_structure(self, client):
        resp = client.get("/api/tools/reversal_meter/docs")
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "reversal_meter"
        assert data["label"] == "Reversal Meter"
        assert set(data["docs"]) == REQUIRED_DOC_KEYS

    def test_docs_endpoint_404_unknown(self, client):
        assert client.get("/api/tools/nonexistent/docs").status_code == 404
