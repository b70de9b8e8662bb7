"""Per-period performance rollup model."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fxjournal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PerformanceMetric(Base):
    """One row per (user, period_type, period_value), updated incrementally.

    Losses are stored as positive magnitudes in loss_loss / loss_pips.
    current_*_streak is the run length as of the most recently applied trade
    (the opposite run resets to 0); max_*_streak is the longest run seen.
    """

    __tablename__ = "user_performance_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    period_type: Mapped[str] = mapped_column(String(10), nullable=False)  # hourly .. total
    period_value: Mapped[str] = mapped_column(String(16), nullable=False)  # 2025-06-13T14, 2025-W24, total
    win_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    loss_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    win_profit: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    loss_loss: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    win_pips: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    loss_pips: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_win_holding_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_loss_holding_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    current_win_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_loss_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_win_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_loss_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "period_type", "period_value", name="uq_performance_metric_period"
        ),
    )
