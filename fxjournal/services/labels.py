"""Get-or-create resolution for symbols, tags and emotions.

Symbols are shared by every user. Tags and emotions are per user and attach
to trades through link tables that the caller maintains explicitly.
"""

import logging
from typing import Iterable

from fxjournal.services.store import RecordNotFoundError, TradeStore, eq, in_

logger = logging.getLogger(__name__)


async def get_or_create(store: TradeStore, table: str, match: dict[str, object]) -> int:
    """Id of the row matching ``match`` exactly, inserting it when absent.

    Concurrent first references may both insert; the unique constraint then
    rejects one of them with a StoreError.
    """
    try:
        row = await store.select_one(table, [eq(column, value) for column, value in match.items()])
        return row["id"]
    except RecordNotFoundError:
        pass

    created = await store.insert(table, dict(match))
    logger.info("Created %s row %s for %s", table, created["id"], match)
    return created["id"]


class SymbolResolver:
    """Maps a free-text instrument name to its symbol id, creating it on first use."""

    def __init__(self, store: TradeStore) -> None:
        self._store = store
        self._cache: dict[str, int] = {}

    async def resolve(self, name: str) -> int:
        key = name.strip()
        if not key:
            raise ValueError("Symbol name must not be empty")
        if key not in self._cache:
            self._cache[key] = await get_or_create(self._store, "symbols", {"symbol": key})
        return self._cache[key]

    async def names(self, symbol_ids: Iterable[int]) -> dict[int, str]:
        ids = {i for i in symbol_ids if i is not None}
        if not ids:
            return {}
        rows = await self._store.select("symbols", [in_("id", ids)])
        return {row["id"]: row["symbol"] for row in rows}


class LabelResolver:
    """User-scoped labels (tags or emotions) and their trade links."""

    def __init__(
        self,
        store: TradeStore,
        table: str,
        name_column: str,
        link_table: str,
        link_column: str,
    ) -> None:
        self._store = store
        self.table = table
        self.name_column = name_column
        self.link_table = link_table
        self.link_column = link_column

    @classmethod
    def tags(cls, store: TradeStore) -> "LabelResolver":
        return cls(store, "trade_tags", "tag_name", "trade_tag_links", "tag_id")

    @classmethod
    def emotions(cls, store: TradeStore) -> "LabelResolver":
        return cls(store, "emotions", "emotion", "trade_emotion_links", "emotion_id")

    async def resolve(self, user_id: str, name: str) -> int:
        return await get_or_create(
            self._store, self.table, {"user_id": user_id, self.name_column: name.strip()}
        )

    async def resolve_many(self, user_id: str, names: Iterable[str]) -> list[int]:
        ids: list[int] = []
        seen: set[str] = set()
        for name in names:
            cleaned = name.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            ids.append(await self.resolve(user_id, cleaned))
        return ids

    async def link(self, trade_id: int, label_ids: Iterable[int]) -> None:
        for label_id in label_ids:
            await self._store.insert(
                self.link_table, {"trade_id": trade_id, self.link_column: label_id}
            )

    async def unlink_all(self, trade_id: int) -> None:
        await self._store.delete(self.link_table, [eq("trade_id", trade_id)])

    async def names_by_trade(self, trade_ids: Iterable[int]) -> dict[int, set[str]]:
        """Label names attached to each trade, via the link table."""
        ids = set(trade_ids)
        if not ids:
            return {}
        links = await self._store.select(self.link_table, [in_("trade_id", ids)])
        label_ids = {link[self.link_column] for link in links}
        if not label_ids:
            return {}
        labels = await self._store.select(self.table, [in_("id", label_ids)])
        name_by_id = {row["id"]: row[self.name_column] for row in labels}

        result: dict[int, set[str]] = {}
        for link in links:
            name = name_by_id.get(link[self.link_column])
            if name:
                result.setdefault(link["trade_id"], set()).add(name)
        return result
