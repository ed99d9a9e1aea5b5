"""Create schemas and initial tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Schemas are created by env.py before migrations run.

    # --- commodity_market_data ---
    op.create_table(
        "price_data",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("open", sa.Numeric, nullable=False),
        sa.Column("high", sa.Numeric, nullable=False),
        sa.Column("low", sa.Numeric, nullable=False),
        sa.Column("close", sa.Numeric, nullable=False),
        sa.Column("volume", sa.Numeric, nullable=True),
        sa.Column("source", sa.Text, nullable=True),
        sa.UniqueConstraint("timestamp"),
        schema="commodity_market_data",
    )
    op.create_index(
        "ix_price_data_timestamp",
        "price_data",
        ["timestamp"],
        schema="commodity_market_data",
    )

    op.create_table(
        "technical_indicators",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rsi_14", sa.Numeric, nullable=True),
        sa.Column("macd", sa.Numeric, nullable=True),
        sa.Column("macd_signal", sa.Numeric, nullable=True),
        sa.Column("macd_histogram", sa.Numeric, nullable=True),
        sa.Column("ema_12", sa.Numeric, nullable=True),
        sa.Column("ema_26", sa.Numeric, nullable=True),
        sa.Column("sma_5", sa.Numeric, nullable=True),
        sa.Column("sma_20", sa.Numeric, nullable=True),
        sa.Column("bollinger_upper", sa.Numeric, nullable=True),
        sa.Column("bollinger_middle", sa.Numeric, nullable=True),
        sa.Column("bollinger_lower", sa.Numeric, nullable=True),
        sa.Column("missing", postgresql.JSONB, nullable=True),
        sa.UniqueConstraint("timestamp"),
        schema="commodity_market_data",
    )

    # --- commodity_signals ---
    op.create_table(
        "signals",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("signal_type", sa.Text, nullable=False),
        sa.Column("strength", sa.Text, nullable=False),
        sa.Column("probability_up", sa.Numeric, nullable=False),
        sa.Column("probability_down", sa.Numeric, nullable=False),
        sa.Column("confidence", sa.Numeric, nullable=False),
        sa.Column("current_price", sa.Numeric, nullable=False),
        sa.Column("target_price", sa.Numeric, nullable=True),
        sa.Column("stop_loss", sa.Numeric, nullable=True),
        sa.Column("reasoning", sa.Text, nullable=False, server_default=""),
        sa.Column("indicators_used", postgresql.JSONB, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("auto_executed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("execution_result", postgresql.JSONB, nullable=True),
        schema="commodity_signals",
    )
    # At most one active signal
    op.create_index(
        "uq_signals_single_active",
        "signals",
        ["is_active"],
        unique=True,
        schema="commodity_signals",
        postgresql_where=sa.text("is_active"),
    )

    # --- commodity_execution ---
    op.create_table(
        "user_settings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("auto_trading_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("paper_trading_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("paper_balance", sa.Numeric, nullable=False, server_default="100000"),
        sa.Column("current_capital", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("position_size", sa.Numeric, nullable=True),
        sa.Column("preferred_bull_id", sa.Text, nullable=True),
        sa.Column("preferred_bear_id", sa.Text, nullable=True),
        sa.UniqueConstraint("user_id"),
        schema="commodity_execution",
    )

    op.create_table(
        "trade_execution_queue",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "signal_id",
            sa.BigInteger,
            sa.ForeignKey("commodity_signals.signals.id"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="PENDING"),
        sa.Column("attempt", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("available_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("result", postgresql.JSONB, nullable=True),
        sa.UniqueConstraint("signal_id", "user_id", "attempt"),
        schema="commodity_execution",
    )
    op.create_index(
        "ix_trade_execution_queue_status",
        "trade_execution_queue",
        ["status"],
        schema="commodity_execution",
    )

    # --- commodity_paper ---
    op.create_table(
        "positions",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column(
            "signal_id",
            sa.BigInteger,
            sa.ForeignKey("commodity_signals.signals.id"),
            nullable=True,
        ),
        sa.Column("direction", sa.Text, nullable=False),
        sa.Column("instrument_type", sa.Text, nullable=False),
        sa.Column("is_paper", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("entry_price", sa.Numeric, nullable=False),
        sa.Column("entry_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("exit_price", sa.Numeric, nullable=True),
        sa.Column("exit_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("exit_reason", sa.Text, nullable=True),
        sa.Column("position_value", sa.Numeric, nullable=False),
        sa.Column("target_price", sa.Numeric, nullable=True),
        sa.Column("stop_loss", sa.Numeric, nullable=True),
        sa.Column("profit_loss", sa.Numeric, nullable=True),
        sa.Column("profit_loss_percent", sa.Numeric, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="OPEN"),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        schema="commodity_paper",
    )
    op.create_index(
        "ix_positions_user_id",
        "positions",
        ["user_id"],
        schema="commodity_paper",
    )


def downgrade() -> None:
    op.drop_index("ix_positions_user_id", table_name="positions", schema="commodity_paper")
    op.drop_table("positions", schema="commodity_paper")
    op.drop_index(
        "ix_trade_execution_queue_status",
        table_name="trade_execution_queue",
        schema="commodity_execution",
    )
    op.drop_table("trade_execution_queue", schema="commodity_execution")
    op.drop_table("user_settings", schema="commodity_execution")
    op.drop_index("uq_signals_single_active", table_name="signals", schema="commodity_signals")
    op.drop_table("signals", schema="commodity_signals")
    op.drop_table("technical_indicators", schema="commodity_market_data")
    op.drop_index("ix_price_data_timestamp", table_name="price_data", schema="commodity_market_data")
    op.drop_table("price_data", schema="commodity_market_data")
