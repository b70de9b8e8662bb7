"""Incremental per-period performance rollups.

Every applied trade touches six rows in ``user_performance_metrics`` (hourly,
daily, weekly, monthly, yearly, total), keyed by its exit instant in the
calendar timezone. Rows are updated with read-modify-write and incremental
means, never recomputed from raw trades, so:

- trades for one user must be applied one at a time (``apply_batch`` is
  sequential on purpose; two concurrent applies to the same row lose an
  update and corrupt the running averages);
- ``remove`` is only exact for a trade that was applied earlier with the
  same P/L, pips and hold time;
- streaks follow processing order. ``current_*_streak`` is the run as of the
  latest applied trade, ``max_*_streak`` the longest run seen. Removal leaves
  both untouched, so treat them as approximate once trades are edited or
  deleted.
"""

import asyncio
import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Iterable

from fxjournal.services.metrics.periods import PeriodType, period_keys
from fxjournal.services.store import RecordNotFoundError, TradeStore, eq
from fxjournal.services.trade_types import MetricInput

logger = logging.getLogger(__name__)

METRICS_TABLE = "user_performance_metrics"

EMPTY_METRIC: dict[str, Any] = {
    "win_count": 0,
    "loss_count": 0,
    "win_profit": 0.0,
    "loss_loss": 0.0,
    "win_pips": 0.0,
    "loss_pips": 0.0,
    "avg_win_holding_time": 0.0,
    "avg_loss_holding_time": 0.0,
    "current_win_streak": 0,
    "current_loss_streak": 0,
    "max_win_streak": 0,
    "max_loss_streak": 0,
}


def _sides(trade: MetricInput) -> tuple[str, str]:
    return ("win", "loss") if trade.is_win else ("loss", "win")


def _amount_column(side: str) -> str:
    return "win_profit" if side == "win" else "loss_loss"


def _number(metric: dict[str, Any], column: str) -> float:
    return float(metric.get(column) or 0)


def _count(metric: dict[str, Any], column: str) -> int:
    return int(metric.get(column) or 0)


def apply_to_metric(metric: dict[str, Any], trade: MetricInput) -> dict[str, Any]:
    """Columns that change when ``trade`` is added to ``metric``.

    Losses accumulate as positive magnitudes. The average holding time uses
    ``(old_avg * old_count + value) / new_count``.
    """
    side, other = _sides(trade)
    amount = _amount_column(side)
    old_count = _count(metric, f"{side}_count")
    new_count = old_count + 1
    old_avg = _number(metric, f"avg_{side}_holding_time")
    streak = _count(metric, f"current_{side}_streak") + 1

    return {
        f"{side}_count": new_count,
        amount: _number(metric, amount) + abs(trade.profit_loss),
        f"{side}_pips": _number(metric, f"{side}_pips") + abs(trade.pips or 0),
        f"avg_{side}_holding_time": (old_avg * old_count + (trade.hold_time or 0)) / new_count,
        f"current_{side}_streak": streak,
        f"current_{other}_streak": 0,
        f"max_{side}_streak": max(_count(metric, f"max_{side}_streak"), streak),
    }


def remove_from_metric(metric: dict[str, Any], trade: MetricInput) -> dict[str, Any]:
    """Columns that change when a previously applied ``trade`` is taken out.

    Counts and sums are floored at zero. The average is rebuilt from the
    pre-removal total (``old_avg * old_count``). Streaks are not touched.
    """
    side, _ = _sides(trade)
    amount = _amount_column(side)
    old_count = _count(metric, f"{side}_count")
    new_count = max(0, old_count - 1)
    remaining_hold = _number(metric, f"avg_{side}_holding_time") * old_count - (trade.hold_time or 0)

    return {
        f"{side}_count": new_count,
        amount: max(0.0, _number(metric, amount) - abs(trade.profit_loss)),
        f"{side}_pips": max(0.0, _number(metric, f"{side}_pips") - abs(trade.pips or 0)),
        f"avg_{side}_holding_time": max(0.0, remaining_hold / new_count) if new_count else 0.0,
    }


class PerformanceAggregator:
    """Maintains the rollup rows for applied, edited and deleted trades."""

    def __init__(self, store: TradeStore, tz: tzinfo = timezone.utc) -> None:
        self._store = store
        self._tz = tz

    async def apply(self, trade: MetricInput) -> None:
        """Add one trade to its six period rows.

        The periods are independent and updated concurrently; the first
        failure aborts the call.
        """
        keys = period_keys(trade.exit_instant, self._tz)
        logger.debug(
            "Applying trade to metrics: user=%s pl=%s pips=%s exit=%s",
            trade.user_id, trade.profit_loss, trade.pips, trade.exit_instant,
        )
        await asyncio.gather(
            *(self._apply_period(trade, period_type, value) for period_type, value in keys.items())
        )

    async def apply_batch(self, trades: Iterable[MetricInput]) -> int:
        """Apply trades strictly in order, one at a time. Returns how many were applied."""
        applied = 0
        for trade in trades:
            await self.apply(trade)
            applied += 1
        return applied

    async def remove(self, trade: MetricInput) -> None:
        """Take a previously applied trade back out of its six period rows."""
        keys = period_keys(trade.exit_instant, self._tz)
        logger.debug(
            "Removing trade from metrics: user=%s pl=%s pips=%s exit=%s",
            trade.user_id, trade.profit_loss, trade.pips, trade.exit_instant,
        )
        await asyncio.gather(
            *(self._remove_period(trade, period_type, value) for period_type, value in keys.items())
        )

    async def update(self, old: MetricInput, new: MetricInput) -> None:
        """Replace a trade's contribution: remove the old version, apply the new one."""
        await self.remove(old)
        await self.apply(new)

    async def fetch(self, user_id: str, period_type: PeriodType, period_value: str) -> dict[str, Any] | None:
        """Stored rollup row, or None when no trade has touched that period yet."""
        try:
            return await self._store.select_one(
                METRICS_TABLE, self._key_filters(user_id, period_type, period_value)
            )
        except RecordNotFoundError:
            return None

    async def _apply_period(self, trade: MetricInput, period_type: PeriodType, period_value: str) -> None:
        existing = await self.fetch(trade.user_id, period_type, period_value)
        now = datetime.now(timezone.utc)

        if existing is None:
            record = {
                "user_id": trade.user_id,
                "period_type": period_type.value,
                "period_value": period_value,
                **EMPTY_METRIC,
                **apply_to_metric(EMPTY_METRIC, trade),
                "created_at": now,
                "updated_at": now,
            }
            await self._store.insert(METRICS_TABLE, record)
            return

        patch = apply_to_metric(existing, trade)
        patch["updated_at"] = now
        await self._store.update(
            METRICS_TABLE, self._key_filters(trade.user_id, period_type, period_value), patch
        )

    async def _remove_period(self, trade: MetricInput, period_type: PeriodType, period_value: str) -> None:
        existing = await self.fetch(trade.user_id, period_type, period_value)
        if existing is None:
            logger.debug("No %s metric %s to remove trade from", period_type.value, period_value)
            return

        patch = remove_from_metric(existing, trade)
        patch["updated_at"] = datetime.now(timezone.utc)
        await self._store.update(
            METRICS_TABLE, self._key_filters(trade.user_id, period_type, period_value), patch
        )

    @staticmethod
    def _key_filters(user_id: str, period_type: PeriodType, period_value: str) -> list:
        return [
            eq("user_id", user_id),
            eq("period_type", period_type.value),
            eq("period_value", period_value),
        ]
