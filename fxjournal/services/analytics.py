"""On-demand analytics computed from raw trade rows.

Breakdowns bucket trades by their *entry* instant in the calendar timezone,
whereas the rollups in ``fxjournal.services.metrics`` are keyed by *exit*
instant. A trade opened on the 31st and closed on the 1st therefore lands in
different months here and in the rollup table.

Wins are ``profit_loss > 0`` and losses ``< 0``; break-even trades count in
neither and are left out of the trade count.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Iterable

from fxjournal.services.datetime_utils import join_utc
from fxjournal.services.labels import LabelResolver
from fxjournal.services.metrics import PerformanceAggregator, PeriodType
from fxjournal.services.store import TradeStore, eq, gte, lte

logger = logging.getLogger(__name__)

# Stored dates are UTC; the calendar day can start up to a day earlier or later
FETCH_MARGIN = timedelta(days=1)


@dataclass
class BucketStats:
    """Win/loss statistics for one month (1-12) or hour of day (0-23)."""

    bucket: int
    trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    total_profit: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0  # negative
    avg_win_pips: float = 0.0
    avg_loss_pips: float = 0.0
    avg_win_hold_time: float = 0.0
    avg_loss_hold_time: float = 0.0


@dataclass
class SummaryStats:
    """Key stats over a date range, as on the analysis dashboard."""

    trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    total_profit: float = 0.0
    total_pips: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    avg_win_pips: float = 0.0
    avg_loss_pips: float = 0.0
    avg_win_hold_time: float = 0.0
    avg_loss_hold_time: float = 0.0
    payoff_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0


@dataclass
class RollupStats:
    """A stored rollup row with its derived ratios."""

    period_type: str
    period_value: str
    trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    total_profit: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    avg_win_pips: float = 0.0
    avg_loss_pips: float = 0.0
    avg_win_hold_time: float = 0.0
    avg_loss_hold_time: float = 0.0
    payoff_ratio: float = 0.0
    streaks: dict[str, int] = field(default_factory=dict)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def payoff_ratio(avg_win: float, avg_loss: float) -> float:
    """Average win over average loss magnitude, 0 without losses."""
    return avg_win / abs(avg_loss) if avg_loss else 0.0


def trade_stats(trades: list[dict[str, Any]]) -> dict[str, Any]:
    """Counts and averages shared by breakdown buckets and the summary."""
    wins = [t for t in trades if (t.get("profit_loss") or 0) > 0]
    losses = [t for t in trades if (t.get("profit_loss") or 0) < 0]
    total = len(wins) + len(losses)

    return {
        "trades": total,
        "wins": len(wins),
        "losses": len(losses),
        "win_rate": len(wins) / total * 100 if total else 0.0,
        "total_profit": sum(t["profit_loss"] for t in wins) + sum(t["profit_loss"] for t in losses),
        "avg_win": _mean([t["profit_loss"] for t in wins]),
        "avg_loss": _mean([t["profit_loss"] for t in losses]),
        "avg_win_pips": _mean([t["pips"] for t in wins if t.get("pips") is not None]),
        "avg_loss_pips": _mean([t["pips"] for t in losses if t.get("pips") is not None]),
        "avg_win_hold_time": _mean([t["hold_time"] for t in wins if (t.get("hold_time") or 0) > 0]),
        "avg_loss_hold_time": _mean([t["hold_time"] for t in losses if (t.get("hold_time") or 0) > 0]),
    }


def max_drawdown(profits: Iterable[float]) -> float:
    """Largest peak-to-trough drop of the cumulative P/L curve, starting flat."""
    equity = 0.0
    peak = 0.0
    worst = 0.0
    for profit in profits:
        equity += profit
        peak = max(peak, equity)
        worst = max(worst, peak - equity)
    return worst


def max_streaks(profits: Iterable[float]) -> tuple[int, int]:
    """Longest runs of wins and of losses. Break-even trades do not break a run."""
    max_wins = max_losses = 0
    current_wins = current_losses = 0
    for profit in profits:
        if profit > 0:
            current_wins += 1
            current_losses = 0
            max_wins = max(max_wins, current_wins)
        elif profit < 0:
            current_losses += 1
            current_wins = 0
            max_losses = max(max_losses, current_losses)
    return max_wins, max_losses


def matches_labels(
    trade_tags: set[str],
    trade_emotions: set[str],
    tags: Iterable[str] | None = None,
    emotions: Iterable[str] | None = None,
) -> bool:
    """Any of ``tags`` AND any of ``emotions``; an empty filter matches everything."""
    wanted_tags = set(tags or ())
    wanted_emotions = set(emotions or ())
    if wanted_tags and not trade_tags & wanted_tags:
        return False
    if wanted_emotions and not trade_emotions & wanted_emotions:
        return False
    return True


class AnalyticsService:
    def __init__(
        self,
        store: TradeStore,
        tz: tzinfo = timezone.utc,
        tags: LabelResolver | None = None,
        emotions: LabelResolver | None = None,
    ) -> None:
        self._store = store
        self._tz = tz
        self._tags = tags or LabelResolver.tags(store)
        self._emotions = emotions or LabelResolver.emotions(store)
        self._aggregator = PerformanceAggregator(store, tz)

    async def monthly_breakdown(
        self,
        user_id: str,
        year: int,
        tags: list[str] | None = None,
        emotions: list[str] | None = None,
    ) -> list[BucketStats]:
        """Twelve buckets, January first, for trades entered in ``year``."""
        trades = await self._fetch(user_id, date(year, 1, 1), date(year, 12, 31), tags, emotions)

        buckets: dict[int, list[dict]] = {month: [] for month in range(1, 13)}
        for trade, local in trades:
            if local.year == year:
                buckets[local.month].append(trade)

        return [BucketStats(bucket=month, **trade_stats(rows)) for month, rows in buckets.items()]

    async def hourly_breakdown(
        self,
        user_id: str,
        year: int,
        month: int,
        tags: list[str] | None = None,
        emotions: list[str] | None = None,
    ) -> list[BucketStats]:
        """Twenty-four buckets by hour of entry, for trades entered in that month."""
        last_day = calendar.monthrange(year, month)[1]
        trades = await self._fetch(
            user_id, date(year, month, 1), date(year, month, last_day), tags, emotions
        )

        buckets: dict[int, list[dict]] = {hour: [] for hour in range(24)}
        for trade, local in trades:
            if local.year == year and local.month == month:
                buckets[local.hour].append(trade)

        return [BucketStats(bucket=hour, **trade_stats(rows)) for hour, rows in buckets.items()]

    async def summary(
        self,
        user_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
        tags: list[str] | None = None,
        emotions: list[str] | None = None,
    ) -> SummaryStats:
        """Key stats for trades entered between the two calendar dates (inclusive).

        Drawdown and streaks follow exit order; trades still missing an exit
        are ordered by entry.
        """
        trades = await self._fetch(user_id, start_date, end_date, tags, emotions)
        rows = [
            trade for trade, local in trades
            if (start_date is None or local.date() >= start_date)
            and (end_date is None or local.date() <= end_date)
        ]
        rows.sort(key=_exit_order)
        profits = [row["profit_loss"] for row in rows if row.get("profit_loss") is not None]

        stats = trade_stats(rows)
        most_wins, most_losses = max_streaks(profits)
        return SummaryStats(
            **stats,
            total_pips=sum(row.get("pips") or 0 for row in rows),
            payoff_ratio=payoff_ratio(stats["avg_win"], stats["avg_loss"]),
            max_drawdown=max_drawdown(profits),
            max_consecutive_wins=most_wins,
            max_consecutive_losses=most_losses,
        )

    async def rollup(self, user_id: str, period_type: PeriodType, period_value: str) -> RollupStats | None:
        """Derived view of one stored rollup row, or None if it does not exist."""
        row = await self._aggregator.fetch(user_id, period_type, period_value)
        if row is None:
            return None

        wins = row["win_count"] or 0
        losses = row["loss_count"] or 0
        total = wins + losses
        avg_win = row["win_profit"] / wins if wins else 0.0
        avg_loss = -row["loss_loss"] / losses if losses else 0.0
        return RollupStats(
            period_type=row["period_type"],
            period_value=row["period_value"],
            trades=total,
            wins=wins,
            losses=losses,
            win_rate=wins / total * 100 if total else 0.0,
            total_profit=row["win_profit"] - row["loss_loss"],
            avg_win=avg_win,
            avg_loss=avg_loss,
            avg_win_pips=row["win_pips"] / wins if wins else 0.0,
            avg_loss_pips=-row["loss_pips"] / losses if losses else 0.0,
            avg_win_hold_time=row["avg_win_holding_time"] or 0.0,
            avg_loss_hold_time=row["avg_loss_holding_time"] or 0.0,
            payoff_ratio=payoff_ratio(avg_win, avg_loss),
            streaks={
                "current_win": row["current_win_streak"] or 0,
                "current_loss": row["current_loss_streak"] or 0,
                "max_win": row["max_win_streak"] or 0,
                "max_loss": row["max_loss_streak"] or 0,
            },
        )

    async def _fetch(
        self,
        user_id: str,
        start: date | None,
        end: date | None,
        tags: list[str] | None,
        emotions: list[str] | None,
    ) -> list[tuple[dict, datetime]]:
        """Candidate trades paired with their local entry instant.

        The stored UTC date range is widened by a day either side; callers
        narrow it again on the local calendar fields.
        """
        filters = [eq("user_id", user_id)]
        if start is not None:
            filters.append(gte("entry_date", (start - FETCH_MARGIN).isoformat()))
        if end is not None:
            filters.append(lte("entry_date", (end + FETCH_MARGIN).isoformat()))
        rows = await self._store.select("trades", filters, order_by=("entry_date", "entry_time"))
        rows = await self._filter_by_labels(rows, tags, emotions)

        result = []
        for row in rows:
            entry = join_utc(row.get("entry_date"), row.get("entry_time"))
            if entry is None:
                continue
            result.append((row, entry.astimezone(self._tz)))
        logger.debug("Analytics fetch for user=%s: %d candidate trades", user_id, len(result))
        return result

    async def _filter_by_labels(
        self,
        rows: list[dict],
        tags: list[str] | None,
        emotions: list[str] | None,
    ) -> list[dict]:
        if not tags and not emotions:
            return rows
        ids = [row["id"] for row in rows]
        tag_names = await self._tags.names_by_trade(ids) if tags else {}
        emotion_names = await self._emotions.names_by_trade(ids) if emotions else {}
        return [
            row for row in rows
            if matches_labels(
                tag_names.get(row["id"], set()),
                emotion_names.get(row["id"], set()),
                tags,
                emotions,
            )
        ]


def _exit_order(row: dict) -> datetime:
    instant = join_utc(row.get("exit_date"), row.get("exit_time")) or join_utc(
        row.get("entry_date"), row.get("entry_time")
    )
    return instant or datetime.min.replace(tzinfo=timezone.utc)
