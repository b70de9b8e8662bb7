"""Broker CSV import."""

from fxjournal.services.importer.csv_reader import CsvFormatError, decode_csv_bytes, parse_hirose_csv
from fxjournal.services.importer.hirose import RowMappingError, map_hirose_row
from fxjournal.services.importer.pipeline import ImportResult, import_hirose_csv

__all__ = [
    "CsvFormatError",
    "ImportResult",
    "RowMappingError",
    "decode_csv_bytes",
    "import_hirose_csv",
    "map_hirose_row",
    "parse_hirose_csv",
]
