"""Tests for Hirose CSV decoding, header detection and row extraction."""

import pytest

from fxjournal.services.importer.csv_reader import (
    HIROSE_HEADER_LINE,
    CsvFormatError,
    decode_csv_bytes,
    is_header_line,
    locate_header,
    parse_hirose_csv,
)


class TestDecode:
    def test_utf8_passes_through(self):
        assert decode_csv_bytes("通貨ペア,売買".encode("utf-8")) == "通貨ペア,売買"

    def test_bom_and_nul_bytes_are_dropped(self):
        raw = "\ufeff決済約定日時,通貨ペア".encode("utf-8") + b"\x00"
        assert decode_csv_bytes(raw) == "決済約定日時,通貨ペア"

    def test_shift_jis_fallback(self):
        text = HIROSE_HEADER_LINE + "\r\n"
        assert decode_csv_bytes(text.encode("shift_jis")) == text

    def test_cp932_only_characters(self):
        # NEC special characters exist in CP932 but not in plain Shift-JIS
        text = "①決済約定日時,通貨ペア"
        assert decode_csv_bytes(text.encode("cp932")) == text

    def test_undecodable_bytes_still_return_text(self):
        raw = b"\xff\xfe\xfd\x80\x81"
        assert isinstance(decode_csv_bytes(raw), str)


class TestHeaderDetection:
    def test_exact_header_line(self):
        assert is_header_line(HIROSE_HEADER_LINE)

    def test_quoted_exact_header_line(self):
        quoted = ",".join(f'"{c}"' for c in HIROSE_HEADER_LINE.split(","))
        assert is_header_line(quoted)

    def test_three_of_four_tokens_is_enough(self):
        reworded = HIROSE_HEADER_LINE.replace("通貨ペア", "通貨")
        assert is_header_line(reworded)

    def test_reworded_pair_token_counts(self):
        assert is_header_line("決済約定日時,注文番号,通貨,売買")

    def test_reworded_profit_token_counts(self):
        assert is_header_line("決済約定日時,注文番号,通貨,損益")

    def test_all_reworded_tokens_below_metadata(self):
        assert locate_header(["meta", "決済約定日,通貨,売買区分,損益"]) == 1

    def test_two_of_four_tokens_is_rejected(self):
        assert not is_header_line("決済約定日時,通貨ペア,数量")

    def test_two_reworded_tokens_are_rejected(self):
        assert not is_header_line("決済約定日,注文番号,通貨")

    def test_header_found_below_metadata(self):
        lines = ["取引履歴", "期間: 2025/06/01-2025/06/30", HIROSE_HEADER_LINE, "data"]
        assert locate_header(lines) == 2

    def test_header_outside_scan_window(self):
        lines = [f"meta {i}" for i in range(10)] + [HIROSE_HEADER_LINE]
        with pytest.raises(CsvFormatError):
            locate_header(lines)

    def test_scan_window_is_configurable(self):
        lines = [f"meta {i}" for i in range(10)] + [HIROSE_HEADER_LINE]
        assert locate_header(lines, scan_lines=11) == 10

    def test_missing_header_message(self):
        with pytest.raises(CsvFormatError, match="header"):
            parse_hirose_csv("a,b,c\n1,2,3\n")


class TestParse:
    def test_rows_keyed_by_column(self, make_csv, make_row):
        text = make_csv(make_row(), make_row(**{"通貨ペア": "EUR/USD"})).decode("utf-8")
        parsed = parse_hirose_csv(text)

        assert parsed.header_index == 0
        assert [r.values["通貨ペア"] for r in parsed.rows] == ["USD/JPY", "EUR/USD"]
        assert parsed.rows[0].values["Lot数"] == "1.0"
        assert parsed.rows[0].line_number == 2

    def test_quotes_are_stripped(self, make_csv, make_row):
        row = make_row(**{"通貨ペア": '"GBP/JPY"'})
        parsed = parse_hirose_csv(make_csv(row).decode("utf-8"))
        assert parsed.rows[0].values["通貨ペア"] == "GBP/JPY"

    def test_blank_lines_are_ignored(self, make_csv, make_row):
        parsed = parse_hirose_csv(make_csv(make_row(), "", "   ", make_row()).decode("utf-8"))
        assert len(parsed.rows) == 2
        assert parsed.skipped == 0

    def test_rows_missing_essentials_are_skipped(self, make_csv, make_row):
        text = make_csv(
            make_row(),
            make_row(**{"売買損益": ""}),
            make_row(**{"通貨ペア": ""}),
        ).decode("utf-8")
        parsed = parse_hirose_csv(text)
        assert len(parsed.rows) == 1
        assert parsed.skipped == 2

    def test_short_rows_are_padded_then_skipped(self, make_csv):
        parsed = parse_hirose_csv(make_csv("2025/06/13 14:05:00,1,2").decode("utf-8"))
        assert parsed.rows == []
        assert parsed.skipped == 1

    def test_row_limit(self, make_csv, make_row):
        text = make_csv(*[make_row() for _ in range(3)]).decode("utf-8")
        with pytest.raises(CsvFormatError, match="Row limit exceeded"):
            parse_hirose_csv(text, max_rows=2)

    def test_shift_jis_file_with_preamble(self, make_csv, make_row):
        raw = make_csv(make_row(), preamble=("ヒロセ通商 決済履歴",), encoding="shift_jis")
        parsed = parse_hirose_csv(decode_csv_bytes(raw))
        assert parsed.header_index == 1
        assert parsed.rows[0].values["売買"] == "売"
