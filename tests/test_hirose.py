"""Tests for mapping Hirose rows onto trade drafts."""

from datetime import datetime, timezone

import pytest

from fxjournal.services.datetime_utils import TimezonePolicy
from fxjournal.services.importer.csv_reader import HIROSE_COLUMNS, CsvRow
from fxjournal.services.importer.hirose import (
    RowMappingError,
    convert_lot_size,
    convert_pips,
    convert_trade_type,
    map_hirose_row,
)
from fxjournal.services.trade_types import TradeSide


def make_csv_row(**overrides: str) -> CsvRow:
    values = {column: "" for column in HIROSE_COLUMNS}
    values.update({
        "決済約定日時": "2025/06/13 14:05:00",
        "通貨ペア": "USD/JPY",
        "売買": "売",
        "Lot数": "1.0",
        "新規約定日時": "2025/06/13 13:55:00",
        "新規約定値": "150.000",
        "決済約定値": "150.300",
        "pip損益": "30",
        "売買損益": "3000",
    })
    values.update(overrides)
    return CsvRow(line_number=2, values=values)


class TestConversions:
    def test_lot_size_scaled_to_ten_thousand_units(self):
        assert convert_lot_size("1.0") == pytest.approx(0.1)

    def test_pips_scaled_down(self):
        assert convert_pips("50") == pytest.approx(5)

    def test_negative_pips(self):
        assert convert_pips("-15") == pytest.approx(-1.5)

    @pytest.mark.parametrize("raw", ["", "abc", "nan"])
    def test_blank_or_bad_pips_are_zero(self, raw):
        assert convert_pips(raw) == 0.0

    def test_sell_marker_maps_to_buy(self):
        assert convert_trade_type("売") == TradeSide.BUY

    def test_buy_marker_maps_to_sell(self):
        assert convert_trade_type("買") == TradeSide.SELL

    def test_bad_lot_size_raises(self):
        with pytest.raises(RowMappingError):
            convert_lot_size("one")


class TestMapRow:
    def test_maps_all_fields(self):
        draft = map_hirose_row(make_csv_row())

        assert draft.symbol_name == "USD/JPY"
        assert (draft.entry_date, draft.entry_time) == ("2025-06-13", "04:55:00")
        assert (draft.exit_date, draft.exit_time) == ("2025-06-13", "05:05:00")
        assert draft.hold_time == 600
        assert draft.entry_price == pytest.approx(150.0)
        assert draft.exit_price == pytest.approx(150.3)
        assert draft.lot_size == pytest.approx(0.1)
        assert draft.pips == pytest.approx(3.0)
        assert draft.profit_loss == pytest.approx(3000)
        assert draft.trade_type == TradeSide.BUY
        assert draft.trade_memo == ""

    def test_system_local_policy(self):
        draft = map_hirose_row(make_csv_row(), TimezonePolicy.SYSTEM_LOCAL)
        assert draft.hold_time == 600

    def test_non_numeric_profit_raises(self):
        with pytest.raises(RowMappingError, match="profit/loss"):
            map_hirose_row(make_csv_row(**{"売買損益": "n/a"}))

    def test_non_numeric_price_raises(self):
        with pytest.raises(RowMappingError, match="entry price"):
            map_hirose_row(make_csv_row(**{"新規約定値": "-"}))

    def test_exit_before_entry_is_rejected(self):
        row = make_csv_row(**{"新規約定日時": "2025/06/13 15:00:00"})
        with pytest.raises(RowMappingError, match="line 2"):
            map_hirose_row(row)

    def test_unparseable_exit_falls_back_to_now(self):
        row = make_csv_row(**{"決済約定日時": "broken"})
        draft = map_hirose_row(row)
        assert draft.exit_date == datetime.now(timezone.utc).strftime("%Y-%m-%d")
        assert draft.hold_time > 600

    def test_unparseable_entry_after_exit_is_rejected(self):
        # Entry falls back to now, which is after the 2025 exit
        with pytest.raises(RowMappingError):
            map_hirose_row(make_csv_row(**{"新規約定日時": "broken"}))
