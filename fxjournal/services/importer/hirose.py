"""Map Hirose CSV rows onto the canonical trade shape."""

import logging
import math

from pydantic import ValidationError

from fxjournal.services.datetime_utils import (
    TimezonePolicy,
    hold_seconds,
    parse_broker_datetime,
    split_utc,
)
from fxjournal.services.importer.csv_reader import CsvRow
from fxjournal.services.trade_types import TradeDraft, TradeSide

logger = logging.getLogger(__name__)

# Hirose quotes lots of 1,000 units; the journal uses 10,000-unit lots
LOT_DIVISOR = 10
# Hirose pip P/L is reported at 10x the journal's pip scale
PIP_DIVISOR = 10

# The 売買 column is the closing action, the opposite of the opening side
SELL_MARKER = "売"


class RowMappingError(ValueError):
    """One CSV row cannot be turned into a trade."""


def convert_lot_size(raw: str) -> float:
    """``"1.0"`` (1,000-unit lots) -> ``0.1`` (10,000-unit lots)."""
    return _parse_number(raw, "lot size") / LOT_DIVISOR


def convert_pips(raw: str) -> float:
    """Blank or unparseable pip values count as zero."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value / PIP_DIVISOR


def convert_trade_type(raw: str) -> TradeSide:
    """売 -> BUY (0), anything else (買) -> SELL (1)."""
    return TradeSide.BUY if raw.strip() == SELL_MARKER else TradeSide.SELL


def map_hirose_row(row: CsvRow, policy: TimezonePolicy = TimezonePolicy.JST) -> TradeDraft:
    """Build a TradeDraft from one Hirose row.

    Raises RowMappingError when a price, lot or P/L cell is not numeric.
    Unparseable datetimes do not raise; see parse_broker_datetime.
    """
    values = row.values
    entry = parse_broker_datetime(values["新規約定日時"], policy)
    exit = parse_broker_datetime(values["決済約定日時"], policy)
    entry_date, entry_time = split_utc(entry)
    exit_date, exit_time = split_utc(exit)

    try:
        return TradeDraft(
            symbol_name=values["通貨ペア"],
            entry_date=entry_date,
            entry_time=entry_time,
            exit_date=exit_date,
            exit_time=exit_time,
            hold_time=hold_seconds(entry, exit),
            entry_price=_parse_number(values["新規約定値"], "entry price"),
            exit_price=_parse_number(values["決済約定値"], "exit price"),
            lot_size=convert_lot_size(values["Lot数"]),
            pips=convert_pips(values["pip損益"]),
            profit_loss=_parse_number(values["売買損益"], "profit/loss"),
            trade_type=convert_trade_type(values["売買"]),
            trade_memo="",
        )
    except ValidationError as e:
        raise RowMappingError(f"line {row.line_number}: {e}") from e


def _parse_number(raw: str, label: str) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise RowMappingError(f"Invalid {label}: {raw!r}") from None
    if not math.isfinite(value):
        raise RowMappingError(f"Invalid {label}: {raw!r}")
    return value
