"""
Data aggregation utility functions.
"""
import pandas as pd
from typing import Iterable, List, Literal, Optional

from app.models.enrollment import AggregatedMetrics, AgeGroupTotals, EnrollmentRecord, district_key
from app.schemas.common import EnrollmentFilter
from app.utils.date_utils import csv_date_sort_key


def filter_records(
    records: Iterable[EnrollmentRecord],
    filters: Optional[EnrollmentFilter] = None
) -> List[EnrollmentRecord]:
    """
    Apply filter predicates in order: state, district, start date, end date.

    Dates are compared by calendar value, not as DD-MM-YYYY strings.
    """
    data = list(records)
    if filters is None or filters.is_empty:
        return data

    if filters.state:
        data = [r for r in data if r.state == filters.state]
    if filters.district:
        data = [r for r in data if r.district == filters.district]
    if filters.start_date:
        data = [r for r in data if r.calendar_date >= filters.start_date]
    if filters.end_date:
        data = [r for r in data if r.calendar_date <= filters.end_date]

    return data


def reduce_records(records: Iterable[EnrollmentRecord]) -> AggregatedMetrics:
    """Single pass over the records into grouped totals."""
    by_state = {}
    by_district = {}
    by_date = {}
    age_0_5 = age_5_17 = age_18_plus = 0

    for record in records:
        total = record.total
        by_state[record.state] = by_state.get(record.state, 0) + total

        key = district_key(record.state, record.district)
        by_district[key] = by_district.get(key, 0) + total

        by_date[record.date] = by_date.get(record.date, 0) + total

        age_0_5 += record.age_0_5
        age_5_17 += record.age_5_17
        age_18_plus += record.age_18_plus

    return AggregatedMetrics(
        total_count=age_0_5 + age_5_17 + age_18_plus,
        by_state=by_state,
        by_district=by_district,
        by_date=by_date,
        by_age_group=AgeGroupTotals(age_0_5, age_5_17, age_18_plus),
    )


def sorted_daily_counts(by_date: dict) -> List[dict]:
    """Daily totals as [{date, count}] in calendar order."""
    return [
        {"date": d, "count": by_date[d]}
        for d in sorted(by_date, key=csv_date_sort_key)
    ]


def aggregate_by_view_mode(
    df: pd.DataFrame,
    view_mode: Literal["daily", "monthly", "quarterly"],
    date_column: str = 'date',
    value_columns: List[str] = None
) -> pd.DataFrame:
    """
    Aggregate DataFrame by view mode (daily/monthly/quarterly).

    Args:
        df: Input DataFrame with date column
        view_mode: Aggregation level
        date_column: Name of date column
        value_columns: Columns to aggregate (sum). If None, aggregates all numeric columns.

    Returns:
        Aggregated DataFrame sorted by period start
    """
    if df.empty:
        return df

    df = df.copy()
    df[date_column] = pd.to_datetime(df[date_column])

    # Determine value columns if not specified
    if value_columns is None:
        value_columns = df.select_dtypes(include=['int64', 'float64']).columns.tolist()

    if view_mode in ("monthly", "quarterly"):
        freq = 'M' if view_mode == "monthly" else 'Q'
        df['period'] = df[date_column].dt.to_period(freq)
        agg_df = df.groupby('period')[value_columns].sum().reset_index()
        agg_df[date_column] = agg_df['period'].dt.to_timestamp()
        agg_df = agg_df.drop('period', axis=1)
    else:  # daily
        agg_df = df.groupby(date_column)[value_columns].sum().reset_index()

    return agg_df.sort_values(date_column).reset_index(drop=True)
