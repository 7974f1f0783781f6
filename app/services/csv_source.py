"""
Enrollment CSV source - reads every CSV file in a directory into records.

Column order: date (DD-MM-YYYY), state, district, pincode, age_0_5,
age_5_17, age_18_greater. The first row of each file is a header.
"""
import asyncio
import csv
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

from app.models.enrollment import EnrollmentRecord
from app.utils.date_utils import format_csv_date, parse_date_string

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = 7


class SourceUnavailableError(Exception):
    """The record directory is missing or cannot be listed."""


@dataclass
class LoadStats:
    """Counters for one pass over the source directory."""
    files_read: int = 0
    files_failed: int = 0
    rows_read: int = 0
    rows_dropped: int = 0  # Too few columns or unparseable date
    fields_defaulted: int = 0  # Non-numeric counts replaced by 0
    source_available: bool = True

    def merge(self, other: "LoadStats") -> None:
        self.files_read += other.files_read
        self.files_failed += other.files_failed
        self.rows_read += other.rows_read
        self.rows_dropped += other.rows_dropped
        self.fields_defaulted += other.fields_defaulted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files_read": self.files_read,
            "files_failed": self.files_failed,
            "rows_read": self.rows_read,
            "rows_dropped": self.rows_dropped,
            "fields_defaulted": self.fields_defaulted,
            "source_available": self.source_available
        }


@dataclass
class SourceReadResult:
    records: List[EnrollmentRecord] = field(default_factory=list)
    stats: LoadStats = field(default_factory=LoadStats)


def clean_int(value: str) -> Tuple[int, bool]:
    """
    Clean integer values.

    Returns (value, ok). Unparseable values become 0 and negatives are
    clamped to 0; ok is False only when parsing failed.
    """
    try:
        return max(0, int(float(value))), True
    except (ValueError, TypeError, OverflowError):
        return 0, False


def parse_row(cols: List[str], stats: LoadStats):
    """Turn one CSV row into a record, or None when the row is dropped."""
    if len(cols) < REQUIRED_COLUMNS:
        stats.rows_dropped += 1
        return None

    cols = [c.strip() for c in cols]
    calendar_date = parse_date_string(cols[0])
    if calendar_date is None:
        stats.rows_dropped += 1
        return None

    counts = []
    for raw in cols[4:7]:
        value, ok = clean_int(raw)
        if not ok:
            stats.fields_defaulted += 1
        counts.append(value)

    return EnrollmentRecord(
        date=format_csv_date(calendar_date),
        calendar_date=calendar_date,
        state=cols[1],
        district=cols[2],
        pincode=cols[3],
        age_0_5=counts[0],
        age_5_17=counts[1],
        age_18_plus=counts[2],
    )


def read_csv_file(path: Path) -> SourceReadResult:
    """Parse a single CSV file, skipping its header row."""
    result = SourceReadResult()
    stats = result.stats

    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        next(reader, None)  # header
        for cols in reader:
            if not cols or not any(c.strip() for c in cols):
                continue  # blank line
            stats.rows_read += 1
            record = parse_row(cols, stats)
            if record is not None:
                result.records.append(record)

    stats.files_read = 1
    return result


class CSVRecordSource:
    """Reads enrollment records from a directory of CSV files."""

    def __init__(self, csv_dir):
        self.csv_dir = Path(csv_dir)

    def list_files(self) -> List[Path]:
        """Return the CSV files in the directory, sorted by name."""
        try:
            names = os.listdir(self.csv_dir)
        except OSError as e:
            raise SourceUnavailableError(f"Cannot read CSV directory {self.csv_dir}: {e}") from e
        return sorted(self.csv_dir / name for name in names if name.endswith(".csv"))

    async def _read_one(self, path: Path) -> SourceReadResult:
        try:
            return await asyncio.to_thread(read_csv_file, path)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.error(f"  Error processing {path.name}: {e}")
            failed = SourceReadResult()
            failed.stats.files_failed = 1
            return failed

    async def read_all(self) -> SourceReadResult:
        """
        Read every CSV file concurrently and concatenate the records.

        Raises:
            SourceUnavailableError: the directory is missing or unreadable
        """
        files = self.list_files()
        if not files:
            logger.warning(f"No CSV files found in {self.csv_dir}")
            return SourceReadResult()

        logger.info(f"Loading {len(files)} CSV files from {self.csv_dir}")
        results = await asyncio.gather(*(self._read_one(path) for path in files))

        combined = SourceReadResult()
        for result in results:
            combined.records.extend(result.records)
            combined.stats.merge(result.stats)
        return combined
