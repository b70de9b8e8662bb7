"""Hirose CSV decoding and row extraction.

Broker exports arrive as UTF-8 or one of the Japanese legacy encodings and
may carry metadata lines above the header. Rows are split naively on commas
with quotes stripped: the broker's fixed format never embeds commas inside
quoted fields, so this must not be reused for general CSV.
"""

import codecs
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Exact column order of the Hirose settlement history export
HIROSE_COLUMNS: tuple[str, ...] = (
    "決済約定日時",  # settlement datetime
    "注文番号",  # order number
    "ポジション番号",  # position number
    "通貨ペア",  # currency pair
    "両建区分",  # hedge flag
    "注文手法",  # order method
    "約定区分",  # fill classification
    "執行条件",  # execution condition
    "指定レート",  # specified rate
    "売買",  # buy/sell (closing side)
    "Lot数",  # lot count, 1,000-unit lots
    "新規約定日時",  # new-contract datetime
    "新規約定値",  # new-contract value
    "決済約定値",  # settlement value
    "pip損益",  # pip P/L, broker scale
    "円換算レート",  # yen conversion rate
    "売買損益",  # buy/sell P/L
    "手数料",  # commission
    "スワップ損益",  # swap P/L
    "決済損益",  # settlement P/L
    "チャネル",  # channel
)

HIROSE_HEADER_LINE = ",".join(HIROSE_COLUMNS)

# Key header tokens with the reworded forms some exports use for them
REQUIRED_HEADER_TOKENS: tuple[tuple[str, ...], ...] = (
    ("決済約定日時", "決済約定日"),
    ("通貨ペア", "通貨"),
    ("売買",),
    ("売買損益", "損益"),
)
MIN_HEADER_TOKENS = 3

# A row without any of these cannot become a trade
ESSENTIAL_COLUMNS: tuple[str, ...] = ("通貨ペア", "売買損益", "新規約定日時", "決済約定日時")

FALLBACK_ENCODINGS: tuple[str, ...] = ("shift_jis", "cp932", "euc_jp", "iso2022_jp")

REPLACEMENT_CHAR = "\ufffd"


class CsvFormatError(ValueError):
    """The file as a whole cannot be imported (no header, too large, ...)."""


@dataclass
class CsvRow:
    line_number: int  # 1-based line in the decoded file
    values: dict[str, str]


@dataclass
class ParsedCsv:
    header_index: int  # 0-based line index of the header
    rows: list[CsvRow] = field(default_factory=list)
    skipped: int = 0  # data rows missing an essential column


def decode_csv_bytes(raw: bytes) -> str:
    """Decode broker CSV bytes, falling back to Japanese legacy encodings.

    UTF-8 is tried first. If that produced replacement characters the raw
    bytes are re-decoded with Shift-JIS, CP932, EUC-JP then ISO-2022-JP and
    the first clean decode wins. When none is clean the first available
    legacy decoder is used with replacement. A BOM and NUL bytes are dropped.
    """
    text = raw.decode("utf-8", errors="replace")
    if REPLACEMENT_CHAR in text:
        text = _decode_legacy(raw, text)
    return text.lstrip("\ufeff").replace("\x00", "")


def _decode_legacy(raw: bytes, utf8_text: str) -> str:
    first_available: str | None = None
    for encoding in FALLBACK_ENCODINGS:
        try:
            codecs.lookup(encoding)
        except LookupError:
            logger.debug("Decoder %s unavailable", encoding)
            continue
        first_available = first_available or encoding
        try:
            text = raw.decode(encoding)
        except UnicodeDecodeError:
            logger.debug("CSV is not valid %s", encoding)
            continue
        logger.info("Decoded CSV as %s", encoding)
        return text

    if first_available is None:
        return utf8_text
    logger.warning("No clean decode for CSV, using %s with replacement", first_available)
    return raw.decode(first_available, errors="replace")


def split_line(line: str) -> list[str]:
    """Naive comma split with whitespace trimmed and quotes removed."""
    return [cell.strip().replace('"', "") for cell in line.split(",")]


def is_header_line(line: str) -> bool:
    """True for the exact Hirose header or a line carrying 3 of the 4 key tokens.

    A token counts when any of its accepted forms appears, so ``通貨`` stands
    in for ``通貨ペア`` and ``損益`` for ``売買損益``.
    """
    if ",".join(split_line(line)) == HIROSE_HEADER_LINE:
        return True
    present = sum(1 for forms in REQUIRED_HEADER_TOKENS if any(form in line for form in forms))
    return present >= MIN_HEADER_TOKENS


def locate_header(lines: list[str], scan_lines: int = 10) -> int:
    """Index of the header among the first ``scan_lines`` lines.

    Raises CsvFormatError when no line qualifies.
    """
    for index, line in enumerate(lines[:scan_lines]):
        if is_header_line(line):
            return index
    raise CsvFormatError(
        "Could not locate the Hirose header row "
        f"(need {MIN_HEADER_TOKENS} of {', '.join(forms[0] for forms in REQUIRED_HEADER_TOKENS)} "
        f"in the first {scan_lines} lines)"
    )


def parse_hirose_csv(text: str, scan_lines: int = 10, max_rows: int | None = None) -> ParsedCsv:
    """Locate the header and turn every following non-blank line into a CsvRow.

    Values are assigned by position in the fixed Hirose column order. Rows
    missing any essential column are skipped and counted, not rejected.
    """
    lines = text.splitlines()
    header_index = locate_header(lines, scan_lines)
    parsed = ParsedCsv(header_index=header_index)

    data_lines = [
        (number, line)
        for number, line in enumerate(lines[header_index + 1 :], start=header_index + 2)
        if line.strip()
    ]
    if max_rows is not None and len(data_lines) > max_rows:
        raise CsvFormatError(
            f"Row limit exceeded ({len(data_lines)}). Max {max_rows}. Split the file and retry."
        )

    for line_number, line in data_lines:
        cells = split_line(line)
        values = {
            column: cells[i] if i < len(cells) else ""
            for i, column in enumerate(HIROSE_COLUMNS)
        }
        if not all(values[column] for column in ESSENTIAL_COLUMNS):
            logger.debug("Skipping CSV line %d: missing essential data", line_number)
            parsed.skipped += 1
            continue
        parsed.rows.append(CsvRow(line_number=line_number, values=values))

    logger.info(
        "Parsed Hirose CSV: header at line %d, %d rows, %d skipped",
        header_index + 1, len(parsed.rows), parsed.skipped,
    )
    return parsed
