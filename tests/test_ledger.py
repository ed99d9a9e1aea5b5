"""Tests for the position ledger and the P/L functions behind it."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from commodity_core.config.schema import PaperConfig
from commodity_core.db.tables.execution import UserSettingsRow
from commodity_core.db.tables.paper import PositionRow
from commodity_core.errors import ExecutionFailure, LedgerInvariantViolation
from commodity_core.feed import append_tick
from commodity_core.paper.ledger import PositionLedger
from commodity_core.paper.pnl import (
    compute_pl,
    direction_for,
    exit_reason_at,
    pl_absolute,
    pl_percent,
    settlement,
)

from conftest import T0, make_ticks

D = Decimal


@pytest.fixture
def ledger(db_session):
    ledger = PositionLedger(PaperConfig(starting_balance=100000))
    ledger.ensure_settings(db_session, "alice")
    return ledger


def _balance(session, user_id: str = "alice", paper: bool = True) -> float:
    session.expire_all()
    row = session.query(UserSettingsRow).filter(UserSettingsRow.user_id == user_id).one()
    return float(row.paper_balance if paper else row.current_capital)


def _open(ledger, session, instrument="BULL", entry="70", value="1000", **kw):
    return ledger.open_position(session, "alice", instrument, D(entry), D(value), now=T0, **kw)


# ── P/L functions ───────────────────────────────────────────────


class TestPnl:
    def test_directions(self):
        assert direction_for("BULL") == "LONG"
        assert direction_for("BEAR") == "SHORT"

    def test_bull_gain(self):
        pl = compute_pl("BULL", D("70"), D("75"), D("1000"))
        assert float(pl.pl_percent) == pytest.approx(7.142857142857)
        assert pl.pl_absolute == D("71.43")

    def test_bear_gain_mirrors_bull(self):
        bull = compute_pl("BULL", D("70"), D("75"), D("1000"))
        bear = compute_pl("BEAR", D("70"), D("65"), D("1000"))
        assert bear.pl_percent == bull.pl_percent
        assert bear.pl_absolute == bull.pl_absolute

    def test_bear_loss(self):
        assert pl_percent("BEAR", D("70"), D("77")) == D("-10")

    def test_half_cent_rounds_up(self):
        assert pl_absolute(D("1000"), D("0.0005")) == D("0.01")
        assert pl_absolute(D("1000"), D("-0.0005")) == D("-0.01")

    def test_settlement(self):
        pl = compute_pl("BULL", D("70"), D("75"), D("1000"))
        assert settlement(D("1000"), pl) == D("1071.43")

    @pytest.mark.parametrize(
        "direction, price, expected",
        [
            ("LONG", "68.6", "stop_loss"),
            ("LONG", "70.7", "take_profit"),
            ("LONG", "70", None),
            ("SHORT", "71.4", "stop_loss"),
            ("SHORT", "69.3", "take_profit"),
            ("SHORT", "70", None),
        ],
    )
    def test_exit_reason(self, direction, price, expected):
        if direction == "LONG":
            target, stop = D("70.7"), D("68.6")
        else:
            target, stop = D("69.3"), D("71.4")
        assert exit_reason_at(direction, D(price), target, stop) == expected

    def test_stop_checked_before_target(self):
        # degenerate levels where one price crosses both
        assert exit_reason_at("LONG", D("70"), D("69"), D("71")) == "stop_loss"


# ── Opening ─────────────────────────────────────────────────────


class TestOpen:
    def test_open_deducts_balance(self, ledger, db_session):
        pos = _open(ledger, db_session)
        assert pos.status == "OPEN"
        assert pos.direction == "LONG"
        assert pos.is_paper is True
        assert pos.entry_timestamp == T0
        assert _balance(db_session) == pytest.approx(99000)

    def test_bear_is_short(self, ledger, db_session):
        assert _open(ledger, db_session, "BEAR").direction == "SHORT"

    def test_insufficient_balance(self, ledger, db_session):
        with pytest.raises(ExecutionFailure, match="Insufficient paper balance"):
            _open(ledger, db_session, value="100001")
        assert db_session.query(PositionRow).count() == 0
        assert _balance(db_session) == pytest.approx(100000)

    def test_exact_balance_allowed(self, ledger, db_session):
        _open(ledger, db_session, value="100000")
        assert _balance(db_session) == pytest.approx(0)

    def test_unknown_user(self, ledger, db_session):
        with pytest.raises(ExecutionFailure, match="User settings not found"):
            ledger.open_position(db_session, "nobody", "BULL", D("70"), D("1000"))

    @pytest.mark.parametrize("entry, value", [("70", "0"), ("70", "-5"), ("0", "1000")])
    def test_invalid_amounts(self, ledger, db_session, entry, value):
        with pytest.raises(LedgerInvariantViolation):
            _open(ledger, db_session, entry=entry, value=value)

    def test_live_position_draws_capital(self, ledger, db_session):
        _open(ledger, db_session, is_paper=False)
        assert _balance(db_session, paper=False) == pytest.approx(-1000)
        assert _balance(db_session) == pytest.approx(100000)

    def test_ensure_settings_idempotent(self, ledger, db_session):
        first = ledger.ensure_settings(db_session, "alice")
        second = ledger.ensure_settings(db_session, "alice", auto_trading=True)
        assert first.id == second.id
        assert second.auto_trading_enabled is False


# ── Closing ─────────────────────────────────────────────────────


class TestClose:
    def test_bull_close_credits_value_plus_result(self, ledger, db_session):
        pos = _open(ledger, db_session)
        closed = ledger.close_position(db_session, pos.id, D("75"), now=T0 + timedelta(minutes=30))
        assert closed.status == "CLOSED"
        assert closed.exit_reason == "manual"
        assert closed.exit_timestamp == T0 + timedelta(minutes=30)
        assert closed.profit_loss == D("71.43")
        assert float(closed.profit_loss_percent) == pytest.approx(7.142857)
        assert _balance(db_session) == pytest.approx(100071.43)

    def test_bear_close(self, ledger, db_session):
        pos = _open(ledger, db_session, "BEAR")
        closed = ledger.close_position(db_session, pos.id, D("65"))
        assert closed.profit_loss == D("71.43")
        assert _balance(db_session) == pytest.approx(100071.43)

    def test_losing_close(self, ledger, db_session):
        pos = _open(ledger, db_session)
        closed = ledger.close_position(db_session, pos.id, D("63"))
        assert closed.profit_loss == D("-100")
        assert _balance(db_session) == pytest.approx(99900)

    def test_double_close_rejected(self, ledger, db_session):
        pos = _open(ledger, db_session)
        first = ledger.close_position(db_session, pos.id, D("75"))
        with pytest.raises(LedgerInvariantViolation):
            ledger.close_position(db_session, pos.id, D("80"))
        again = PositionLedger.get_position(db_session, pos.id)
        assert again.exit_price == first.exit_price
        assert again.profit_loss == first.profit_loss
        assert _balance(db_session) == pytest.approx(100071.43)

    def test_unknown_exit_reason_rejected_before_write(self, ledger, db_session):
        pos = _open(ledger, db_session)
        with pytest.raises(LedgerInvariantViolation, match="unknown exit reason"):
            ledger.close_position(db_session, pos.id, D("75"), reason="target_hit")
        db_session.expire_all()
        row = db_session.get(PositionRow, pos.id)
        assert (row.status, row.exit_reason, row.exit_price) == ("OPEN", None, None)
        assert _balance(db_session) == pytest.approx(99000)

    def test_signal_exit_reason_accepted(self, ledger, db_session):
        pos = _open(ledger, db_session)
        closed = ledger.close_position(db_session, pos.id, D("75"), reason="signal")
        assert closed.exit_reason == "signal"

    def test_close_missing_position(self, ledger, db_session):
        with pytest.raises(LedgerInvariantViolation):
            ledger.close_position(db_session, 999, D("70"))

    def test_close_at_latest_tick(self, ledger, db_session):
        for tick in make_ticks([70, 72]):
            append_tick(db_session, tick)
        pos = _open(ledger, db_session)
        closed = ledger.close_position(db_session, pos.id)
        assert closed.exit_price == D("72")

    def test_close_without_market_price(self, ledger, db_session):
        pos = _open(ledger, db_session)
        with pytest.raises(ExecutionFailure):
            ledger.close_position(db_session, pos.id)
        assert PositionLedger.get_position(db_session, pos.id).status == "OPEN"

    def test_live_close_credits_capital(self, ledger, db_session):
        pos = _open(ledger, db_session, is_paper=False)
        ledger.close_position(db_session, pos.id, D("75"))
        assert _balance(db_session, paper=False) == pytest.approx(71.43)


# ── Exits and valuation ─────────────────────────────────────────


class TestExits:
    def test_check_exits_closes_crossed_positions(self, ledger, db_session):
        long_pos = _open(ledger, db_session, target_price=D("73.5"), stop_loss=D("68.6"))
        short_pos = _open(ledger, db_session, "BEAR", target_price=D("66.5"), stop_loss=D("71.4"))
        untouched = _open(ledger, db_session, target_price=D("80"), stop_loss=D("60"))

        closed = {p.id: p for p in ledger.check_exits(db_session, D("74"), T0)}
        assert closed[long_pos.id].exit_reason == "take_profit"
        assert closed[short_pos.id].exit_reason == "stop_loss"
        assert untouched.id not in closed
        assert PositionLedger.get_position(db_session, untouched.id).status == "OPEN"

    def test_no_levels_never_exit(self, ledger, db_session):
        _open(ledger, db_session)
        assert ledger.check_exits(db_session, D("1"), T0) == []

    def test_close_all(self, ledger, db_session):
        _open(ledger, db_session)
        _open(ledger, db_session, "BEAR")
        closed = ledger.close_all(db_session, D("70"), now=T0)
        assert {p.exit_reason for p in closed} == {"session_close"}
        assert PositionLedger.list_positions(db_session, status="OPEN") == []
        assert _balance(db_session) == pytest.approx(100000)

    def test_unrealized_does_not_touch_storage(self, ledger, db_session):
        pos = _open(ledger, db_session)
        pl = PositionLedger.unrealized_pl(pos, D("75"))
        assert pl.pl_absolute == D("71.43")
        assert PositionLedger.get_position(db_session, pos.id).status == "OPEN"

    def test_portfolio_summary(self, ledger, db_session):
        closed = _open(ledger, db_session)
        ledger.close_position(db_session, closed.id, D("75"))
        _open(ledger, db_session, "BEAR")

        summary = ledger.portfolio_summary(db_session, "alice", price=D("65"))
        assert summary.open_positions == 1
        assert summary.realized_pl == D("71.43")
        assert summary.unrealized_pl == D("71.43")
        assert float(summary.balance) == pytest.approx(99071.43)

    def test_list_positions_filters(self, ledger, db_session):
        ledger.ensure_settings(db_session, "bob")
        _open(ledger, db_session)
        ledger.open_position(db_session, "bob", "BULL", D("70"), D("1000"), now=T0)
        assert len(PositionLedger.list_positions(db_session, user_id="bob")) == 1
        assert len(PositionLedger.list_positions(db_session, limit=1)) == 1
        assert len(PositionLedger.list_positions(db_session)) == 2
