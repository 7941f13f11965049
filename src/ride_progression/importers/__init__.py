"""Parsers for pasted or exported ride data."""

from .csv_import import CsvParseResult, parse_csv
from .json_import import parse_snapshot, read_snapshot_file

__all__ = [
    "CsvParseResult",
    "parse_csv",
    "parse_snapshot",
    "read_snapshot_file",
]
