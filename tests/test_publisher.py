"""Tests for the signal publisher: single active signal, retries, enqueueing."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from commodity_core.config.schema import PublisherConfig
from commodity_core.db.tables.execution import QueueItemRow
from commodity_core.db.tables.signals import SignalRow
from commodity_core.errors import ActivationConflictError
from commodity_core.events import SIGNAL_ACTIVATED, EventChannel
from commodity_core.models import (
    CombinedRecommendation,
    IndicatorSnapshot,
    ToolResult,
    TradeStrategy,
)
from commodity_core.paper.ledger import PositionLedger
from commodity_core.signals.publisher import SignalPublisher, signal_type_for, strength_for
from commodity_core.signals.store import get_active_signal, list_signals

from conftest import T0


def _rec(action: str = "BUY_BULL", confidence: float = 70.0, composite: float = 40.0) -> CombinedRecommendation:
    entry = Decimal("70")
    bearish = action in ("BUY_BEAR", "SELL_BULL")
    return CombinedRecommendation(
        action=action,
        confidence=confidence,
        composite=composite,
        factors=[
            ToolResult(name="momentum_pulse", score=composite, confidence=confidence,
                       signal="SELL" if bearish else "BUY", reasoning="pulse"),
            ToolResult.fallback("correlation_radar", "Insufficient data: none"),
        ],
        strategy=TradeStrategy(
            entry=entry,
            target=Decimal("69.3") if bearish else Decimal("70.7"),
            stop_loss=Decimal("71.4") if bearish else Decimal("68.6"),
            suggested_hold_time="15-60 min",
        ),
    )


def _active_count(session) -> int:
    return session.query(SignalRow).filter(SignalRow.is_active.is_(True)).count()


# ── Mapping helpers ─────────────────────────────────────────────


class TestMapping:
    @pytest.mark.parametrize(
        "action, expected",
        [("BUY_BULL", "BUY"), ("SELL_BEAR", "BUY"), ("BUY_BEAR", "SELL"), ("SELL_BULL", "SELL"), ("HOLD", "HOLD")],
    )
    def test_signal_type(self, action, expected):
        assert signal_type_for(action) == expected

    def test_strength_bands(self):
        config = PublisherConfig()
        assert strength_for(80, config) == "STRONG"
        assert strength_for(70, config) == "STRONG"
        assert strength_for(55, config) == "MODERATE"
        assert strength_for(40, config) == "WEAK"

    def test_build_signal(self):
        snapshot = IndicatorSnapshot(timestamp=T0, rsi_14=Decimal("55.5"))
        signal = SignalPublisher().build_signal(_rec(), T0, snapshot)
        assert signal.signal_type == "BUY"
        assert signal.probability_up == 70.0
        assert signal.probability_down == 30.0
        assert signal.target_price == Decimal("70.7")
        assert signal.indicators_used["rsi_14"] == 55.5
        assert signal.indicators_used["macd"] is None
        assert signal.indicators_used["action"] == "BUY_BULL"
        assert [f["name"] for f in signal.indicators_used["factors"]] == ["momentum_pulse", "correlation_radar"]
        assert "momentum_pulse: pulse" in signal.reasoning
        assert "correlation_radar" not in signal.reasoning

    def test_hold_signal_has_no_prices(self):
        signal = SignalPublisher().build_signal(_rec("HOLD", 20, 2), T0)
        assert signal.target_price is None
        assert signal.stop_loss is None


# ── Publishing ──────────────────────────────────────────────────


class TestPublish:
    def test_first_signal_becomes_active(self, db_session):
        published = SignalPublisher().publish(db_session, _rec(), T0)
        assert published is not None
        assert published.id is not None
        assert published.is_active
        active = get_active_signal(db_session)
        assert active.id == published.id
        assert active.timestamp == T0

    def test_new_signal_replaces_active(self, db_session):
        publisher = SignalPublisher()
        first = publisher.publish(db_session, _rec(), T0)
        second = publisher.publish(db_session, _rec("BUY_BEAR", 65, -40), T0)
        assert second.signal_type == "SELL"
        assert _active_count(db_session) == 1
        assert get_active_signal(db_session).id == second.id
        history = {s.id: s for s in list_signals(db_session)}
        assert history[first.id].is_active is False

    def test_duplicate_type_suppressed(self, db_session):
        publisher = SignalPublisher()
        first = publisher.publish(db_session, _rec(), T0)
        assert publisher.publish(db_session, _rec(confidence=90), T0) is None
        assert db_session.query(SignalRow).count() == 1
        assert get_active_signal(db_session).id == first.id

    def test_duplicates_allowed_when_configured(self, db_session):
        publisher = SignalPublisher(PublisherConfig(suppress_duplicates=False))
        publisher.publish(db_session, _rec(), T0)
        second = publisher.publish(db_session, _rec(), T0)
        assert second is not None
        assert _active_count(db_session) == 1
        assert get_active_signal(db_session).id == second.id

    def test_hold_not_recorded_by_default(self, db_session):
        assert SignalPublisher().publish(db_session, _rec("HOLD", 20, 2), T0) is None
        assert db_session.query(SignalRow).count() == 0

    def test_hold_recorded_inactive(self, db_session):
        publisher = SignalPublisher(PublisherConfig(record_hold=True))
        active = publisher.publish(db_session, _rec(), T0)
        hold = publisher.publish(db_session, _rec("HOLD", 20, 2), T0)
        assert hold.signal_type == "HOLD"
        assert hold.is_active is False
        assert get_active_signal(db_session).id == active.id

    def test_below_min_confidence_skipped(self, db_session):
        publisher = SignalPublisher(PublisherConfig(min_confidence=75))
        assert publisher.publish(db_session, _rec(confidence=70), T0) is None
        assert get_active_signal(db_session) is None

    def test_event_emitted_after_commit(self, db_session):
        events = EventChannel()
        received = []
        events.subscribe(SIGNAL_ACTIVATED, received.append)
        published = SignalPublisher(events=events).publish(db_session, _rec(), T0)
        assert len(received) == 1
        assert received[0]["id"] == published.id
        assert received[0]["signal_type"] == "BUY"

    def test_no_event_when_suppressed(self, db_session):
        events = EventChannel()
        received = []
        events.subscribe(SIGNAL_ACTIVATED, received.append)
        publisher = SignalPublisher(events=events)
        publisher.publish(db_session, _rec(), T0)
        publisher.publish(db_session, _rec(), T0)
        assert len(received) == 1


# ── Enqueueing ──────────────────────────────────────────────────


class TestEnqueue:
    def test_one_item_per_auto_trading_user(self, db_session):
        ledger = PositionLedger()
        ledger.ensure_settings(db_session, "alice", auto_trading=True)
        ledger.ensure_settings(db_session, "bob", auto_trading=True)
        ledger.ensure_settings(db_session, "carol", auto_trading=False)

        published = SignalPublisher().publish(db_session, _rec(), T0)
        items = db_session.query(QueueItemRow).order_by(QueueItemRow.user_id).all()
        assert [i.user_id for i in items] == ["alice", "bob"]
        assert all(i.signal_id == published.id for i in items)
        assert all(i.status == "PENDING" and i.attempt == 1 for i in items)

    def test_suppressed_signal_enqueues_nothing(self, db_session):
        PositionLedger().ensure_settings(db_session, "alice", auto_trading=True)
        publisher = SignalPublisher()
        publisher.publish(db_session, _rec(), T0)
        publisher.publish(db_session, _rec(), T0)
        assert db_session.query(QueueItemRow).count() == 1

    def test_hold_enqueues_nothing(self, db_session):
        PositionLedger().ensure_settings(db_session, "alice", auto_trading=True)
        SignalPublisher(PublisherConfig(record_hold=True)).publish(db_session, _rec("HOLD", 20, 2), T0)
        assert db_session.query(QueueItemRow).count() == 0


# ── Single-active guarantee ─────────────────────────────────────


def _conflict() -> IntegrityError:
    return IntegrityError("INSERT INTO signals", {}, Exception("uq_signals_single_active"))


class TestActivationConflicts:
    def test_index_rejects_second_active_row(self, db_session):
        for _ in range(2):
            db_session.add(
                SignalRow(
                    timestamp=T0, signal_type="BUY", strength="STRONG",
                    probability_up=70, probability_down=30, confidence=70,
                    current_price=70, is_active=True,
                )
            )
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_persistent_conflict_raises(self, db_session):
        publisher = SignalPublisher(PublisherConfig(max_activation_retries=3))
        with patch.object(publisher, "_swap", side_effect=_conflict()) as swap:
            with pytest.raises(ActivationConflictError):
                publisher.publish(db_session, _rec(), T0)
        assert swap.call_count == 3
        assert get_active_signal(db_session) is None

    def test_single_conflict_then_success(self, db_session):
        publisher = SignalPublisher()
        real_swap = publisher._swap
        calls = []

        def flaky(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise _conflict()
            return real_swap(*args, **kwargs)

        with patch.object(publisher, "_swap", side_effect=flaky):
            published = publisher.publish(db_session, _rec(), T0)
        assert len(calls) == 2
        assert published.is_active
        assert _active_count(db_session) == 1

    def test_two_publishers_leave_one_active(self, session_pair):
        first, second = session_pair
        a = SignalPublisher(PublisherConfig(suppress_duplicates=False)).publish(first, _rec(), T0)
        b = SignalPublisher(PublisherConfig(suppress_duplicates=False)).publish(second, _rec("BUY_BEAR", 65, -40), T0)
        first.expire_all()
        assert _active_count(first) == 1
        assert get_active_signal(first).id == b.id
        assert a.id != b.id
