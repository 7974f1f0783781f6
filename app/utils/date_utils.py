"""
Date utility functions for the enrollment CSV date format.
"""
from datetime import date, datetime, timedelta
from typing import Optional


# DD-MM-YYYY is the CSV format; the rest are accepted from API callers
DATE_FORMATS = [
    "%d-%m-%Y",  # DD-MM-YYYY (CSV format)
    "%Y-%m-%d",  # YYYY-MM-DD (ISO format)
    "%d/%m/%Y",  # DD/MM/YYYY
    "%Y/%m/%d",  # YYYY/MM/DD
]

# Supported alert/trend time windows
TIME_RANGES = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "365d": 365,
}


def parse_date_string(date_str: str) -> Optional[date]:
    """
    Parse date string to date object.
    Handles multiple formats.

    Args:
        date_str: Date string to parse

    Returns:
        Parsed date or None if invalid
    """
    if not date_str:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(date_str.strip(), fmt).date()
        except ValueError:
            continue

    return None


def format_csv_date(value: date) -> str:
    """Format a date the way the source CSV files write it (DD-MM-YYYY)."""
    return value.strftime("%d-%m-%Y")


def csv_date_sort_key(value: str) -> date:
    """Sort key for DD-MM-YYYY strings; unparseable dates sort first."""
    return parse_date_string(value) or date.min


def time_range_days(time_range: str) -> int:
    """Resolve a time window selector such as '30d' to a day count."""
    if time_range not in TIME_RANGES:
        raise ValueError(
            f"Unsupported time range {time_range!r}; expected one of {sorted(TIME_RANGES)}"
        )
    return TIME_RANGES[time_range]


def forecast_dates(start: date, horizon: int):
    """Yield the `horizon` calendar days following `start`."""
    for offset in range(1, horizon + 1):
        yield start + timedelta(days=offset)
