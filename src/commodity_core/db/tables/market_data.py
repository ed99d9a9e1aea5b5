"""SQLAlchemy ORM models for the commodity_market_data schema."""

from sqlalchemy import BigInteger, Numeric, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from commodity_core.db.base import Base

SCHEMA = "commodity_market_data"


class PriceTickRow(Base):
    __tablename__ = "price_data"
    __table_args__ = (
        UniqueConstraint("timestamp"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    timestamp: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    open: Mapped[float] = mapped_column(Numeric, nullable=False)
    high: Mapped[float] = mapped_column(Numeric, nullable=False)
    low: Mapped[float] = mapped_column(Numeric, nullable=False)
    close: Mapped[float] = mapped_column(Numeric, nullable=False)
    volume: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    source: Mapped[str | None] = mapped_column(Text, nullable=True)


class IndicatorRow(Base):
    """Indicator snapshot cached by the timestamp of the tick it describes."""

    __tablename__ = "technical_indicators"
    __table_args__ = (
        UniqueConstraint("timestamp"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    timestamp: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    rsi_14: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    macd: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    macd_signal: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    macd_histogram: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    ema_12: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    ema_26: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    sma_5: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    sma_20: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    bollinger_upper: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    bollinger_middle: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    bollinger_lower: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    missing: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
