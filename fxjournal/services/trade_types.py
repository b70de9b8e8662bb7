"""Canonical trade value types.

CSV rows, API payloads and stored rows all become one of these at the
ingestion seam. Nothing past that seam re-interprets loosely shaped dicts.
"""

from datetime import datetime, timezone
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from fxjournal.services.datetime_utils import hold_seconds, join_utc

_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
_TIME_PATTERN = r"^\d{2}:\d{2}(:\d{2})?$"


class TradeSide(IntEnum):
    """Stored trade direction code."""

    BUY = 0
    SELL = 1


class TradeValidationError(ValueError):
    """A trade fails a consistency check, e.g. exit before entry."""


def _clean_symbol_name(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("symbol_name must not be blank")
    return value


class TradeNotFoundError(LookupError):
    def __init__(self, trade_id: int) -> None:
        super().__init__(f"Trade {trade_id} not found")
        self.trade_id = trade_id


class _Timing(BaseModel):
    entry_date: str | None = Field(default=None, pattern=_DATE_PATTERN)
    entry_time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    exit_date: str | None = Field(default=None, pattern=_DATE_PATTERN)
    exit_time: str | None = Field(default=None, pattern=_TIME_PATTERN)

    @field_validator("entry_time", "exit_time")
    @classmethod
    def _full_seconds(cls, value: str | None) -> str | None:
        # Stored times sort as strings, so HH:MM becomes HH:MM:SS
        if value is not None and len(value) == 5:
            return value + ":00"
        return value

    @property
    def entry_instant(self) -> datetime | None:
        return join_utc(self.entry_date, self.entry_time)

    @property
    def exit_instant(self) -> datetime | None:
        return join_utc(self.exit_date, self.exit_time)


class TradeDraft(_Timing):
    """A complete trade about to be written for the first time."""

    symbol_name: str | None = Field(default=None, max_length=32)
    hold_time: int | None = Field(default=None, ge=0)
    entry_price: float | None = None
    exit_price: float | None = None
    lot_size: float | None = None
    pips: float | None = None
    profit_loss: float | None = None
    trade_type: TradeSide = TradeSide.BUY
    trade_memo: str = Field(default="", max_length=5000)
    tags: list[str] = Field(default_factory=list)
    emotions: list[str] = Field(default_factory=list)

    _strip_symbol = field_validator("symbol_name")(_clean_symbol_name)

    @model_validator(mode="after")
    def _check_timing(self) -> "TradeDraft":
        entry, exit = self.entry_instant, self.exit_instant
        if entry is not None and exit is not None:
            if exit < entry:
                raise ValueError("exit timing precedes entry timing")
            if self.hold_time is None:
                self.hold_time = hold_seconds(entry, exit)
        return self

    def to_record(self, user_id: str, symbol_id: int | None) -> dict[str, Any]:
        """Columns of the ``trades`` table for this draft."""
        return {
            "user_id": user_id,
            "symbol": symbol_id,
            "entry_date": self.entry_date,
            "entry_time": self.entry_time,
            "exit_date": self.exit_date,
            "exit_time": self.exit_time,
            "hold_time": self.hold_time,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "lot_size": self.lot_size,
            "pips": self.pips,
            "profit_loss": self.profit_loss,
            "trade_type": int(self.trade_type),
            "trade_memo": self.trade_memo,
        }


class TradePatch(_Timing):
    """Partial update. Only fields explicitly set are written."""

    symbol_name: str | None = Field(default=None, max_length=32)
    hold_time: int | None = Field(default=None, ge=0)
    entry_price: float | None = None
    exit_price: float | None = None
    lot_size: float | None = None
    pips: float | None = None
    profit_loss: float | None = None
    trade_type: TradeSide | None = None
    trade_memo: str | None = Field(default=None, max_length=5000)

    _strip_symbol = field_validator("symbol_name")(_clean_symbol_name)

    def changes(self) -> dict[str, Any]:
        """Explicitly provided fields, trades-table column names as keys."""
        data = self.model_dump(include=self.model_fields_set, exclude={"symbol_name"})
        if "trade_type" in data and data["trade_type"] is not None:
            data["trade_type"] = int(data["trade_type"])
        return data


class MetricInput(BaseModel):
    """What the performance aggregator needs to know about one trade."""

    user_id: str
    exit_instant: datetime
    profit_loss: float
    pips: float | None = None
    hold_time: int | None = None
    trade_type: TradeSide | None = None
    entry_instant: datetime | None = None

    @field_validator("exit_instant", "entry_instant")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_win(self) -> bool:
        return self.profit_loss >= 0

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "MetricInput | None":
        """Build from a ``trades`` row; None when exit timing or P/L is missing."""
        exit_instant = join_utc(record.get("exit_date"), record.get("exit_time"))
        if exit_instant is None or record.get("profit_loss") is None:
            return None
        trade_type = record.get("trade_type")
        return cls(
            user_id=record["user_id"],
            exit_instant=exit_instant,
            profit_loss=record["profit_loss"],
            pips=record.get("pips"),
            hold_time=record.get("hold_time"),
            trade_type=TradeSide(trade_type) if trade_type is not None else None,
            entry_instant=join_utc(record.get("entry_date"), record.get("entry_time")),
        )
