"""Shared test fixtures."""

import itertools
from zoneinfo import ZoneInfo

import pytest

from fxjournal.services.analytics import AnalyticsService
from fxjournal.services.importer.csv_reader import HIROSE_COLUMNS, HIROSE_HEADER_LINE
from fxjournal.services.metrics import PerformanceAggregator
from fxjournal.services.store import (
    CONSTRAINT_VIOLATION,
    Filter,
    RecordNotFoundError,
    StoreError,
)
from fxjournal.services.trade_service import TradeService

TOKYO = ZoneInfo("Asia/Tokyo")

# Column sets that must stay unique, mirroring the table constraints
UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "symbols": ("symbol",),
    "trade_tags": ("user_id", "tag_name"),
    "emotions": ("user_id", "emotion"),
    "user_performance_metrics": ("user_id", "period_type", "period_value"),
}


def _matches(row: dict, f: Filter) -> bool:
    value = row.get(f.column)
    if f.op == "eq":
        return value == f.value
    if f.op == "gte":
        return value is not None and value >= f.value
    if f.op == "lte":
        return value is not None and value <= f.value
    if f.op == "in":
        return value in f.value
    raise StoreError(f"Unsupported filter op: {f.op}", code="invalid_query")


class InMemoryStore:
    """TradeStore double keeping rows in dicts.

    ``fail(op, table)`` makes the next matching call raise, to exercise
    error propagation and rollback paths.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self._ids = itertools.count(1)
        self._failures: dict[tuple[str, str], StoreError] = {}

    def fail(self, op: str, table: str, error: StoreError | None = None) -> None:
        self._failures[(op, table)] = error or StoreError(f"{op} {table} failed")

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])

    def _check(self, op: str, table: str) -> None:
        self.calls.append((op, table))
        error = self._failures.pop((op, table), None)
        if error is not None:
            raise error

    async def insert(self, table: str, record: dict) -> dict:
        self._check("insert", table)
        rows = self.tables.setdefault(table, [])
        key = UNIQUE_KEYS.get(table)
        if key and any(all(r.get(c) == record.get(c) for c in key) for r in rows):
            raise StoreError(f"duplicate key in {table}", code=CONSTRAINT_VIOLATION)
        row = {**record, "id": next(self._ids)}
        rows.append(row)
        return dict(row)

    async def update(self, table: str, filters, patch: dict) -> None:
        self._check("update", table)
        for row in self.rows(table):
            if all(_matches(row, f) for f in filters):
                row.update(patch)

    async def delete(self, table: str, filters) -> None:
        self._check("delete", table)
        self.tables[table] = [
            row for row in self.rows(table) if not all(_matches(row, f) for f in filters)
        ]

    async def select(self, table: str, filters=(), order_by=(), limit=None) -> list[dict]:
        self._check("select", table)
        rows = [dict(row) for row in self.rows(table) if all(_matches(row, f) for f in filters)]
        for name in reversed(order_by):
            column = name.lstrip("-")
            rows.sort(
                key=lambda r: (r.get(column) is not None, r.get(column) or 0),
                reverse=name.startswith("-"),
            )
        return rows[:limit] if limit is not None else rows

    async def select_one(self, table: str, filters) -> dict:
        rows = await self.select(table, filters, limit=1)
        if not rows:
            raise RecordNotFoundError(table, filters)
        return rows[0]


def hirose_row(**overrides: str) -> str:
    """One data line in Hirose column order. Defaults describe a winning USD/JPY trade."""
    values = {
        "決済約定日時": "2025/06/13 14:05:00",
        "注文番号": "10001",
        "ポジション番号": "20001",
        "通貨ペア": "USD/JPY",
        "両建区分": "なし",
        "注文手法": "成行",
        "約定区分": "決済",
        "執行条件": "成行",
        "指定レート": "",
        "売買": "売",
        "Lot数": "1.0",
        "新規約定日時": "2025/06/13 13:55:00",
        "新規約定値": "150.000",
        "決済約定値": "150.300",
        "pip損益": "30",
        "円換算レート": "1",
        "売買損益": "3000",
        "手数料": "0",
        "スワップ損益": "0",
        "決済損益": "3000",
        "チャネル": "PC",
    }
    values.update(overrides)
    return ",".join(values[column] for column in HIROSE_COLUMNS)


def hirose_csv(*rows: str, preamble: tuple[str, ...] = (), encoding: str = "utf-8") -> bytes:
    lines = [*preamble, HIROSE_HEADER_LINE, *rows]
    return ("\r\n".join(lines) + "\r\n").encode(encoding)


@pytest.fixture
def store() -> InMemoryStore:
    """Fresh in-memory store for each test."""
    return InMemoryStore()


@pytest.fixture
def aggregator(store: InMemoryStore) -> PerformanceAggregator:
    return PerformanceAggregator(store, TOKYO)


@pytest.fixture
def service(store: InMemoryStore, aggregator: PerformanceAggregator) -> TradeService:
    return TradeService(store, aggregator)


@pytest.fixture
def analytics(store: InMemoryStore) -> AnalyticsService:
    return AnalyticsService(store, TOKYO)


@pytest.fixture
def make_row():
    """Builder for Hirose data lines, see ``hirose_row``."""
    return hirose_row


@pytest.fixture
def make_csv():
    """Builder for complete Hirose CSV files as bytes, see ``hirose_csv``."""
    return hirose_csv
