"""End-to-end tests for the Hirose CSV import pipeline."""

import pytest

from fxjournal.services.importer import CsvFormatError, ImportResult, import_hirose_csv
from fxjournal.services.metrics import METRICS_TABLE
from fxjournal.services.store import StoreError

LOSS = {
    "決済約定日時": "2025/06/13 15:10:00",
    "新規約定日時": "2025/06/13 15:05:00",
    "pip損益": "-15",
    "売買損益": "-1500",
    "決済損益": "-1500",
}


def daily(store, day: str = "2025-06-13") -> dict:
    return next(
        r for r in store.rows(METRICS_TABLE)
        if r["period_type"] == "daily" and r["period_value"] == day
    )


class TestImportResult:
    def test_message(self):
        assert ImportResult(success_count=3, error_count=1).message == "3 imported, 1 errors"


class TestImportPipeline:
    @pytest.mark.asyncio
    async def test_win_and_loss_land_in_daily_rollup(self, store, service, aggregator, make_row, make_csv):
        raw = make_csv(make_row(), make_row(**LOSS))

        result = await import_hirose_csv(raw, "alice", service, aggregator)

        assert (result.success_count, result.error_count) == (2, 0)
        assert result.message == "2 imported, 0 errors"
        assert len(store.rows("trades")) == 2

        row = daily(store)
        assert row["user_id"] == "alice"
        assert row["win_count"] == 1
        assert row["loss_count"] == 1
        assert row["win_profit"] == pytest.approx(3000)
        assert row["loss_loss"] == pytest.approx(1500)
        assert row["win_pips"] == pytest.approx(3)
        assert row["loss_pips"] == pytest.approx(1.5)
        assert row["avg_win_holding_time"] == pytest.approx(600)
        assert row["avg_loss_holding_time"] == pytest.approx(300)
        assert row["current_loss_streak"] == 1
        assert row["current_win_streak"] == 0

    @pytest.mark.asyncio
    async def test_trades_stored_in_utc(self, store, service, aggregator, make_row, make_csv):
        await import_hirose_csv(make_csv(make_row()), "alice", service, aggregator)
        trade = store.rows("trades")[0]
        assert (trade["entry_date"], trade["entry_time"]) == ("2025-06-13", "04:55:00")
        assert (trade["exit_date"], trade["exit_time"]) == ("2025-06-13", "05:05:00")
        assert trade["hold_time"] == 600
        assert trade["lot_size"] == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_bad_rows_are_counted_not_fatal(self, store, service, aggregator, make_row, make_csv):
        raw = make_csv(
            make_row(),
            make_row(**{"売買損益": "abc"}),
            make_row(**{"新規約定日時": "2025/06/13 15:00:00"}),  # exit before entry
            make_row(**LOSS),
        )

        result = await import_hirose_csv(raw, "alice", service, aggregator)

        assert result.message == "2 imported, 2 errors"
        assert len(store.rows("trades")) == 2

    @pytest.mark.asyncio
    async def test_rows_missing_essentials_are_skipped(self, service, aggregator, make_row, make_csv):
        raw = make_csv(make_row(), make_row(**{"通貨ペア": ""}), "")
        result = await import_hirose_csv(raw, "alice", service, aggregator)
        assert result.success_count == 1
        assert result.skipped_count == 1
        assert result.error_count == 0

    @pytest.mark.asyncio
    async def test_insert_failure_counts_as_error(self, store, service, aggregator, make_row, make_csv):
        store.fail("insert", "trades")
        result = await import_hirose_csv(make_csv(make_row(), make_row(**LOSS)), "alice", service, aggregator)

        assert (result.success_count, result.error_count) == (1, 1)
        assert daily(store)["loss_count"] == 1
        assert daily(store)["win_count"] == 0

    @pytest.mark.asyncio
    async def test_rollup_failure_keeps_trades_and_reraises(
        self, store, service, aggregator, make_row, make_csv, caplog
    ):
        store.fail("insert", METRICS_TABLE)
        raw = make_csv(make_row(), make_row(**LOSS))

        with caplog.at_level("ERROR", logger="fxjournal.services.importer.pipeline"):
            with pytest.raises(StoreError):
                await import_hirose_csv(raw, "alice", service, aggregator)

        assert len(store.rows("trades")) == 2
        assert "missing up to 2 imported trades" in caplog.text

    @pytest.mark.asyncio
    async def test_preamble_and_shift_jis(self, store, service, aggregator, make_row, make_csv):
        raw = make_csv(make_row(), preamble=("取引履歴", "口座番号,123"), encoding="shift_jis")
        result = await import_hirose_csv(raw, "alice", service, aggregator)
        assert result.success_count == 1
        assert store.rows("symbols")[0]["symbol"] == "USD/JPY"

    @pytest.mark.asyncio
    async def test_too_large_file_rejected(self, store, service, aggregator, make_row, make_csv):
        raw = make_csv(make_row())
        with pytest.raises(CsvFormatError, match="too large"):
            await import_hirose_csv(raw, "alice", service, aggregator, max_bytes=len(raw) - 1)
        assert store.rows("trades") == []

    @pytest.mark.asyncio
    async def test_missing_header_rejected(self, service, aggregator, make_row):
        raw = ("\r\n".join(["no header here", make_row()])).encode("utf-8")
        with pytest.raises(CsvFormatError, match="header"):
            await import_hirose_csv(raw, "alice", service, aggregator)

    @pytest.mark.asyncio
    async def test_row_limit(self, service, aggregator, make_row, make_csv):
        raw = make_csv(make_row(), make_row(), make_row())
        with pytest.raises(CsvFormatError, match="Row limit"):
            await import_hirose_csv(raw, "alice", service, aggregator, max_rows=2)

    @pytest.mark.asyncio
    async def test_labels_not_created_by_import(self, store, service, aggregator, make_row, make_csv):
        await import_hirose_csv(make_csv(make_row()), "alice", service, aggregator)
        assert store.rows("trade_tag_links") == []
        assert store.rows("trade_emotion_links") == []
