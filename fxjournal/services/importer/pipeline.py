"""Hirose CSV import: decode, parse, map, insert, then update rollups.

Import is not transactional. Rows that fail to map or insert are counted
and logged; rows already inserted stay. Only a file that is too large or
has no recognisable header fails as a whole (CsvFormatError). A rollup
failure after the inserts leaves the trades in place and re-raises.
"""

import logging
from dataclasses import dataclass

from fxjournal.services.datetime_utils import TimezonePolicy
from fxjournal.services.importer.csv_reader import (
    CsvFormatError,
    decode_csv_bytes,
    parse_hirose_csv,
)
from fxjournal.services.importer.hirose import RowMappingError, map_hirose_row
from fxjournal.services.metrics import PerformanceAggregator
from fxjournal.services.store import StoreError
from fxjournal.services.trade_service import TradeService
from fxjournal.services.trade_types import MetricInput

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0  # rows without symbol, P/L or timing

    @property
    def message(self) -> str:
        return f"{self.success_count} imported, {self.error_count} errors"


async def import_hirose_csv(
    raw: bytes,
    user_id: str,
    service: TradeService,
    aggregator: PerformanceAggregator,
    policy: TimezonePolicy = TimezonePolicy.JST,
    max_bytes: int | None = None,
    max_rows: int | None = None,
    scan_lines: int = 10,
) -> ImportResult:
    """Import one Hirose export for ``user_id``.

    Trades are inserted in file order and then applied to the rollups with
    ``apply_batch``. A rollup failure is logged and re-raised with the trades
    already stored, so the rollups may be missing some of those trades.
    """
    if max_bytes is not None and len(raw) > max_bytes:
        raise CsvFormatError(f"File too large ({len(raw)} bytes). Max {max_bytes} bytes.")

    text = decode_csv_bytes(raw)
    parsed = parse_hirose_csv(text, scan_lines=scan_lines, max_rows=max_rows)
    result = ImportResult(skipped_count=parsed.skipped)
    metrics: list[MetricInput] = []

    for row in parsed.rows:
        try:
            draft = map_hirose_row(row, policy)
        except RowMappingError as e:
            logger.warning("CSV line %d not imported: %s", row.line_number, e)
            result.error_count += 1
            continue

        try:
            created = await service.create_trade(user_id, draft, apply_metrics=False)
        except StoreError as e:
            logger.error("CSV line %d insert failed (%s): %s", row.line_number, e.code, e)
            result.error_count += 1
            continue

        result.success_count += 1
        metric = MetricInput.from_record(created)
        if metric is not None:
            metrics.append(metric)

    if metrics:
        try:
            await aggregator.apply_batch(metrics)
        except StoreError as e:
            logger.error(
                "Rollups for user %s may be missing up to %d imported trades: %s",
                user_id, len(metrics), e,
            )
            raise

    logger.info("Hirose import for user %s: %s, %d skipped", user_id, result.message, result.skipped_count)
    return result
