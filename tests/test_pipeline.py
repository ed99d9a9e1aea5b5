"""End-to-end pipeline passes over a seeded SQLite feed."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from commodity_core.analysis.bank import ScorerBank
from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import TOOL_REGISTRY
from commodity_core.config.schema import AppConfig
from commodity_core.db.tables.execution import QueueItemRow
from commodity_core.db.tables.market_data import IndicatorRow
from commodity_core.errors import InsufficientDataError
from commodity_core.events import SIGNAL_ACTIVATED, EventChannel
from commodity_core.execution.queue import ExecutionQueue
from commodity_core.feed import append_tick
from commodity_core.paper.ledger import PositionLedger
from commodity_core.pipeline.runner import Pipeline
from commodity_core.pipeline.snapshot import build_context
from commodity_core.signals.store import get_active_signal

from conftest import T0, make_ticks


class _Vote(ToolScorer):
    label = "Vote"

    def __init__(self, name: str, score: float, confidence: float, signal: str):
        super().__init__()
        self.name = name
        self._vote = (score, confidence, signal)

    def score(self, context):
        return self.result(*self._vote, reasoning="fixed vote")


def _bank(score: float = 50, confidence: float = 80, signal: str = "BUY", count: int = 9) -> ScorerBank:
    return ScorerBank([_Vote(f"vote_{i}", score, confidence, signal) for i in range(count)])


def _seed_feed(session, closes):
    for tick in make_ticks(closes):
        append_tick(session, tick)


@pytest.fixture
def seeded(db_session):
    _seed_feed(db_session, [70 + 0.02 * i for i in range(120)])
    return db_session


class TestBuildContext:
    def test_empty_feed(self, db_session):
        with pytest.raises(InsufficientDataError):
            build_context(db_session)

    def test_context_from_feed(self, seeded):
        ctx = build_context(seeded, window=50)
        assert len(ctx.ticks) == 50
        assert ctx.ts == ctx.ticks[-1].timestamp
        assert ctx.current_price == ctx.ticks[-1].close
        assert ctx.indicators.rsi_14 is not None
        assert seeded.query(IndicatorRow).count() == 1

    def test_snapshot_cached_once(self, seeded):
        build_context(seeded)
        build_context(seeded)
        assert seeded.query(IndicatorRow).count() == 1


class TestRunPass:
    def test_empty_feed_skips(self, db_session):
        assert Pipeline(AppConfig(), bank=_bank()).run_pass(db_session) is None

    def test_bullish_pass_publishes_and_enqueues(self, seeded):
        PositionLedger().ensure_settings(seeded, "alice", auto_trading=True)
        events = EventChannel()
        received = []
        events.subscribe(SIGNAL_ACTIVATED, received.append)

        result = Pipeline(AppConfig(), bank=_bank(), events=events).run_pass(seeded)
        assert result.recommendation.action == "BUY_BULL"
        assert result.signal is not None
        assert result.signal.signal_type == "BUY"
        assert get_active_signal(seeded).id == result.signal.id
        assert received[0]["id"] == result.signal.id
        assert seeded.query(QueueItemRow).count() == 1

    def test_same_data_twice_suppressed(self, seeded):
        pipeline = Pipeline(AppConfig(), bank=_bank())
        first = pipeline.run_pass(seeded)
        second = pipeline.run_pass(seeded)
        assert first.signal is not None
        assert second.signal is None
        assert second.recommendation == first.recommendation
        assert get_active_signal(seeded).id == first.signal.id

    def test_pass_uses_latest_tick_timestamp(self, seeded):
        result = Pipeline(AppConfig(), bank=_bank()).run_pass(seeded)
        assert result.ts == T0 + timedelta(minutes=119)
        assert result.signal.timestamp == result.ts

    def test_hold_leaves_active_signal(self, seeded):
        first = Pipeline(AppConfig(), bank=_bank()).run_pass(seeded)
        hold = Pipeline(AppConfig(), bank=_bank(0, 40, "HOLD")).run_pass(seeded)
        assert hold.recommendation.action == "HOLD"
        assert hold.signal is None
        assert get_active_signal(seeded).id == first.signal.id

    def test_aggregation_failure_aborts_pass(self, seeded):
        first = Pipeline(AppConfig(), bank=_bank()).run_pass(seeded)
        broken = Pipeline(AppConfig(), bank=_bank(-50, 80, "SELL", count=8))
        assert broken.run_pass(seeded) is None
        assert get_active_signal(seeded).id == first.signal.id

    def test_holding_bull_turns_into_sell(self, seeded):
        result = Pipeline(AppConfig(), bank=_bank(-50, 80, "SELL")).run_pass(seeded, holding="BULL")
        assert result.recommendation.action == "SELL_BULL"
        assert result.signal.signal_type == "SELL"

    def test_sell_bull_exit_closes_held_position(self, seeded):
        ledger = PositionLedger()
        ledger.ensure_settings(seeded, "alice", auto_trading=True)
        held = ledger.open_position(seeded, "alice", "BULL", Decimal("70"), Decimal("1000"), now=T0)

        result = Pipeline(AppConfig(), bank=_bank(-60, 80, "SELL")).run_pass(seeded, holding="BULL")
        assert result.recommendation.action == "SELL_BULL"

        (item,) = ExecutionQueue().run_batch(seeded, now=result.ts)
        assert item.status == "COMPLETED"
        assert item.result["closed_position_ids"] == [held.id]
        positions = ledger.list_positions(seeded)
        assert [(p.id, p.instrument_type, p.status) for p in positions] == [(held.id, "BULL", "CLOSED")]

    def test_exits_checked_each_pass(self, seeded):
        ledger = PositionLedger()
        ledger.ensure_settings(seeded, "alice")
        pos = ledger.open_position(
            seeded, "alice", "BULL", Decimal("70"), Decimal("1000"),
            target_price=Decimal("71"), now=T0,
        )
        result = Pipeline(AppConfig(), bank=_bank(0, 40, "HOLD")).run_pass(seeded)
        assert [p.id for p in result.exits] == [pos.id]
        assert result.exits[0].exit_reason == "take_profit"

    def test_registry_bank_scores_all_tools(self, seeded):
        result = Pipeline(AppConfig()).run_pass(seeded)
        assert [f.name for f in result.recommendation.factors] == sorted(TOOL_REGISTRY)
        assert -100 <= result.recommendation.composite <= 100
