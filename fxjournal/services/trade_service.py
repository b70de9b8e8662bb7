"""Trade lifecycle: create, edit, label and delete trades, keeping rollups in step.

A trade write spans several store calls (trade row, tag links, emotion links,
six rollup rows) with no transaction around them. ``create_trade`` undoes the
trade and its links if a later step fails. Rollup rows already updated
before the failure are not reverted.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable

from fxjournal.services.datetime_utils import format_hold_time, hold_seconds, join_utc
from fxjournal.services.labels import LabelResolver, SymbolResolver
from fxjournal.services.metrics import PerformanceAggregator
from fxjournal.services.store import StoreError, TradeStore, eq, gte, lte
from fxjournal.services.trade_types import (
    MetricInput,
    TradeDraft,
    TradeNotFoundError,
    TradePatch,
    TradeValidationError,
)

logger = logging.getLogger(__name__)

TRADES_TABLE = "trades"

# Leading characters a spreadsheet would evaluate as a formula
FORMULA_PREFIXES = ("=", "+", "-", "@")

TIMING_FIELDS = {"entry_date", "entry_time", "exit_date", "exit_time"}
METRIC_FIELDS = {"exit_date", "exit_time", "profit_loss", "pips", "hold_time"}


def sanitize_memo(value: str | None) -> str:
    """Trim and neutralise formula-looking memo text with a leading quote."""
    text = (value or "").strip()
    if text and text[0] in FORMULA_PREFIXES:
        return "'" + text
    return text


class TradeService:
    def __init__(
        self,
        store: TradeStore,
        aggregator: PerformanceAggregator,
        symbols: SymbolResolver | None = None,
        tags: LabelResolver | None = None,
        emotions: LabelResolver | None = None,
    ) -> None:
        self._store = store
        self.aggregator = aggregator
        self.symbols = symbols or SymbolResolver(store)
        self.tags = tags or LabelResolver.tags(store)
        self.emotions = emotions or LabelResolver.emotions(store)

    async def create_trade(self, user_id: str, draft: TradeDraft, apply_metrics: bool = True) -> dict[str, Any]:
        """Insert a trade with its tag and emotion links, then update the rollups.

        Pass ``apply_metrics=False`` when the caller batches rollup updates
        itself (CSV import). Returns the stored trade row.
        """
        symbol_id = await self.symbols.resolve(draft.symbol_name) if draft.symbol_name else None
        now = datetime.now(timezone.utc)
        record = draft.to_record(user_id, symbol_id)
        record["trade_memo"] = sanitize_memo(record["trade_memo"])
        record["created_at"] = now
        record["updated_at"] = now

        created = await self._store.insert(TRADES_TABLE, record)
        trade_id = created["id"]
        try:
            await self.tags.link(trade_id, await self.tags.resolve_many(user_id, draft.tags))
            await self.emotions.link(trade_id, await self.emotions.resolve_many(user_id, draft.emotions))
            if apply_metrics:
                metric = MetricInput.from_record(created)
                if metric is not None:
                    await self.aggregator.apply(metric)
        except Exception:
            logger.error("Creating trade %s failed after insert, rolling back", trade_id)
            await self._discard(trade_id)
            raise

        logger.info("Created trade %s for user %s", trade_id, user_id)
        return created

    async def update_trade(self, user_id: str, trade_id: int, patch: TradePatch) -> dict[str, Any]:
        """Apply a partial update and move the trade's rollup contribution.

        Hold time is recomputed from the timing unless the patch sets it.
        Raises TradeValidationError when the result would exit before entry.
        """
        existing = await self._get_owned(user_id, trade_id)
        changes = patch.changes()
        if "symbol_name" in patch.model_fields_set:
            changes["symbol"] = (
                await self.symbols.resolve(patch.symbol_name) if patch.symbol_name else None
            )
        if "trade_memo" in changes:
            changes["trade_memo"] = sanitize_memo(changes["trade_memo"])
        if not changes:
            return existing

        merged = {**existing, **changes}
        try:
            entry = join_utc(merged.get("entry_date"), merged.get("entry_time"))
            exit = join_utc(merged.get("exit_date"), merged.get("exit_time"))
        except ValueError as e:
            raise TradeValidationError(f"Invalid trade timing: {e}") from e
        if entry is not None and exit is not None:
            if exit < entry:
                raise TradeValidationError("exit timing precedes entry timing")
            if TIMING_FIELDS & changes.keys() and "hold_time" not in changes:
                changes["hold_time"] = hold_seconds(entry, exit)

        changes["updated_at"] = datetime.now(timezone.utc)
        await self._store.update(TRADES_TABLE, [eq("id", trade_id), eq("user_id", user_id)], changes)
        updated = {**existing, **changes}

        if METRIC_FIELDS & changes.keys():
            await self._move_metrics(existing, updated)

        logger.info("Updated trade %s (%s)", trade_id, ", ".join(sorted(changes)))
        return updated

    async def set_tags(self, user_id: str, trade_id: int, names: Iterable[str]) -> None:
        await self._get_owned(user_id, trade_id)
        tag_ids = await self.tags.resolve_many(user_id, names)
        await self.tags.unlink_all(trade_id)
        await self.tags.link(trade_id, tag_ids)

    async def set_emotions(self, user_id: str, trade_id: int, names: Iterable[str]) -> None:
        await self._get_owned(user_id, trade_id)
        emotion_ids = await self.emotions.resolve_many(user_id, names)
        await self.emotions.unlink_all(trade_id)
        await self.emotions.link(trade_id, emotion_ids)

    async def delete_trade(self, user_id: str, trade_id: int) -> None:
        """Delete emotion links, tag links, the trade, then its rollup contribution."""
        existing = await self._get_owned(user_id, trade_id)
        await self.emotions.unlink_all(trade_id)
        await self.tags.unlink_all(trade_id)
        await self._store.delete(TRADES_TABLE, [eq("id", trade_id), eq("user_id", user_id)])

        metric = MetricInput.from_record(existing)
        if metric is not None:
            await self.aggregator.remove(metric)
        logger.info("Deleted trade %s for user %s", trade_id, user_id)

    async def get_trade(self, user_id: str, trade_id: int) -> dict[str, Any]:
        row = await self._get_owned(user_id, trade_id)
        return (await self._enrich([row]))[0]

    async def list_trades(
        self,
        user_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[dict[str, Any]]:
        """Trades by stored (UTC) entry date, newest first."""
        filters = [eq("user_id", user_id)]
        if start_date is not None:
            filters.append(gte("entry_date", start_date.isoformat()))
        if end_date is not None:
            filters.append(lte("entry_date", end_date.isoformat()))
        rows = await self._store.select(TRADES_TABLE, filters, order_by=("-entry_date", "-entry_time"))
        return await self._enrich(rows)

    async def _get_owned(self, user_id: str, trade_id: int) -> dict[str, Any]:
        rows = await self._store.select(
            TRADES_TABLE, [eq("id", trade_id), eq("user_id", user_id)], limit=1
        )
        if not rows:
            raise TradeNotFoundError(trade_id)
        return rows[0]

    async def _enrich(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        trade_ids = [row["id"] for row in rows]
        symbol_names = await self.symbols.names(row["symbol"] for row in rows)
        tag_names = await self.tags.names_by_trade(trade_ids)
        emotion_names = await self.emotions.names_by_trade(trade_ids)
        return [
            {
                **row,
                "symbol_name": symbol_names.get(row["symbol"]),
                "tags": sorted(tag_names.get(row["id"], ())),
                "emotions": sorted(emotion_names.get(row["id"], ())),
                "hold_time_display": format_hold_time(row.get("hold_time")),
            }
            for row in rows
        ]

    async def _move_metrics(self, old_row: dict[str, Any], new_row: dict[str, Any]) -> None:
        old = MetricInput.from_record(old_row)
        new = MetricInput.from_record(new_row)
        if old is not None and new is not None:
            await self.aggregator.update(old, new)
        elif old is not None:
            await self.aggregator.remove(old)
        elif new is not None:
            await self.aggregator.apply(new)

    async def _discard(self, trade_id: int) -> None:
        try:
            await self.emotions.unlink_all(trade_id)
            await self.tags.unlink_all(trade_id)
            await self._store.delete(TRADES_TABLE, [eq("id", trade_id)])
        except StoreError as e:
            logger.error("Could not roll back trade %s: %s", trade_id, e)
