"""Trade record model."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fxjournal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Trade(Base):
    """One journaled trade.

    Entry and exit timing are stored as separate UTC date (YYYY-MM-DD) and
    time-of-day (HH:MM:SS) strings because broker exports arrive as local
    date + time pairs. Numeric columns are nullable: None means "not entered
    yet", which is different from zero.
    """

    __tablename__ = "trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    symbol: Mapped[int | None] = mapped_column(ForeignKey("symbols.id"), nullable=True)
    entry_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    entry_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    exit_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    exit_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    hold_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    entry_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    exit_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    lot_size: Mapped[float | None] = mapped_column(Float, nullable=True)  # 10,000-unit lots
    pips: Mapped[float | None] = mapped_column(Float, nullable=True)
    profit_loss: Mapped[float | None] = mapped_column(Float, nullable=True)
    trade_type: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)  # 0 buy, 1 sell
    trade_memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("ix_trades_user_entry_date", "user_id", "entry_date"),
        Index("ix_trades_user_exit_date", "user_id", "exit_date"),
    )
