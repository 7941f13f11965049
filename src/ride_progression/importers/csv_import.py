"""
CSV import for activity exports (intervals.icu, TrainingPeaks and similar).

Column names differ between tools, so headers are matched loosely:
case-insensitive substring match against a few known spellings. Rows that
lack a date, normalized power or training load are skipped and counted.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..exceptions import ImportFormatError
from ..models.workouts import ImportCandidate, parse_record_date

logger = logging.getLogger(__name__)

SOURCE_NAME = "csv"

# Checked in this order; the first header containing a keyword wins
DATE_KEYS = ("date",)
POWER_KEYS = ("normalized", "weighted", "np")
LOAD_KEYS = ("load", "tss")
DURATION_KEYS = ("moving", "duration", "time")
NAME_KEYS = ("name", "title")


@dataclass
class CsvParseResult:
    candidates: List[ImportCandidate] = field(default_factory=list)
    skipped_rows: int = 0
    total_rows: int = 0
    missing_columns: List[str] = field(default_factory=list)


def sniff_delimiter(header_line: str) -> str:
    return "\t" if "\t" in header_line else ","


def find_column(headers: Sequence[str], keys: Sequence[str], exclude: Sequence[int] = ()) -> Optional[int]:
    """Index of the first header containing any of ``keys``."""
    for key in keys:
        for index, header in enumerate(headers):
            if index in exclude:
                continue
            if key in header:
                return index
    return None


def _parse_number(value: str) -> Optional[float]:
    value = (value or "").strip().replace(",", "")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_duration_minutes(value: str) -> int:
    """Minutes from either a plain number or an ``h:mm:ss``/``mm:ss`` clock."""
    value = (value or "").strip()
    if ":" in value:
        parts = value.split(":")
        try:
            numbers = [float(part) for part in parts]
        except ValueError:
            return 0
        seconds = 0.0
        for number in numbers:
            seconds = seconds * 60 + number
        if len(numbers) == 2:
            seconds *= 60  # h:mm
        return round(seconds / 60)
    number = _parse_number(value)
    return round(number) if number else 0


def parse_csv(text: str) -> CsvParseResult:
    """
    Parse CSV or TSV text into import candidates.

    A required column missing from the header leaves every row without that
    value, so every row is skipped and ``missing_columns`` names the column.

    Raises:
        ImportFormatError: If there is no data row
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if len(lines) < 2:
        raise ImportFormatError("CSV must have a header row and at least one data row")

    reader = csv.reader(io.StringIO("\n".join(lines)), delimiter=sniff_delimiter(lines[0]))
    rows = list(reader)
    headers = [header.strip().lower() for header in rows[0]]

    date_col = find_column(headers, DATE_KEYS)
    power_col = find_column(headers, POWER_KEYS, exclude=[date_col])
    load_col = find_column(headers, LOAD_KEYS, exclude=[date_col, power_col])
    duration_col = find_column(headers, DURATION_KEYS, exclude=[date_col, power_col, load_col])
    name_col = find_column(headers, NAME_KEYS, exclude=[date_col, power_col, load_col, duration_col])

    missing = [
        label
        for label, column in (("date", date_col), ("normalized power", power_col), ("training load", load_col))
        if column is None
    ]
    result = CsvParseResult(missing_columns=missing)
    if missing:
        logger.warning("CSV header %s has no column for: %s", headers, ", ".join(missing))

    for row in rows[1:]:
        result.total_rows += 1

        def cell(column: Optional[int]) -> str:
            if column is None or column >= len(row):
                return ""
            return row[column].strip()

        raw_date = cell(date_col)
        parsed_date = parse_record_date(raw_date)
        normalized_power = _parse_number(cell(power_col))
        load = _parse_number(cell(load_col))
        if parsed_date is None or not normalized_power or load is None:
            result.skipped_rows += 1
            continue

        result.candidates.append(ImportCandidate(
            date=parsed_date.isoformat(),
            normalized_power=normalized_power,
            duration=parse_duration_minutes(cell(duration_col)),
            tss=load,
            name=cell(name_col),
            source=SOURCE_NAME,
        ))

    logger.info(
        "Parsed %d CSV rows: %d candidates, %d skipped",
        result.total_rows,
        len(result.candidates),
        result.skipped_rows,
    )
    return result
