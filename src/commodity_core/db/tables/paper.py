"""SQLAlchemy ORM models for the commodity_paper schema."""

from sqlalchemy import BigInteger, Boolean, ForeignKey, Numeric, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from commodity_core.db.base import Base

SCHEMA = "commodity_paper"


class PositionRow(Base):
    __tablename__ = "positions"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    signal_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("commodity_signals.signals.id"),
        nullable=True,
    )
    direction: Mapped[str] = mapped_column(Text, nullable=False)
    instrument_type: Mapped[str] = mapped_column(Text, nullable=False)
    is_paper: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    entry_price: Mapped[float] = mapped_column(Numeric, nullable=False)
    entry_timestamp: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    exit_price: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    exit_timestamp: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    exit_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    position_value: Mapped[float] = mapped_column(Numeric, nullable=False)
    target_price: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    stop_loss: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    profit_loss: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    profit_loss_percent: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="OPEN")
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
