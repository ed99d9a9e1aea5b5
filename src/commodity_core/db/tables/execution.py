"""SQLAlchemy ORM models for the commodity_execution schema."""

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from commodity_core.db.base import Base

SCHEMA = "commodity_execution"


class UserSettingsRow(Base):
    """Per-user trading flags and tracked balances (owned by settings storage)."""

    __tablename__ = "user_settings"
    __table_args__ = (
        UniqueConstraint("user_id"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    auto_trading_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paper_trading_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    paper_balance: Mapped[float] = mapped_column(Numeric, nullable=False, default=100000)
    current_capital: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    position_size: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    preferred_bull_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    preferred_bear_id: Mapped[str | None] = mapped_column(Text, nullable=True)


class QueueItemRow(Base):
    __tablename__ = "trade_execution_queue"
    __table_args__ = (
        UniqueConstraint("signal_id", "user_id", "attempt"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    signal_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("commodity_signals.signals.id"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="PENDING", index=True)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    available_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    claimed_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    result: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
