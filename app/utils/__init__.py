"""
Utils package initialization.
"""
from app.utils.date_utils import (
    parse_date_string,
    format_csv_date,
    time_range_days,
    TIME_RANGES,
)

__all__ = [
    "parse_date_string",
    "format_csv_date",
    "time_range_days",
    "TIME_RANGES",
]
