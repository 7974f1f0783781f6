"""
Aggregation engine - grouped totals over the enrollment snapshot.

Every result is cached under a key derived from its parameters. All keys
share the `enrollment:agg:` prefix so a snapshot reload clears them at once.
"""
import logging
from typing import Any, Dict, List, Literal, Optional

import pandas as pd

from app.models.enrollment import AggregatedMetrics
from app.schemas.common import EnrollmentFilter
from app.services.cache_manager import CacheManager
from app.services.data_loader import CACHE_PREFIX, EnrollmentDataLoader
from app.utils.aggregators import (
    aggregate_by_view_mode,
    filter_records,
    reduce_records,
    sorted_daily_counts,
)

logger = logging.getLogger(__name__)

AGG_PREFIX = f"{CACHE_PREFIX}agg:"


class AggregationEngine:
    """Business logic for enrollment aggregation queries."""

    def __init__(self, loader: EnrollmentDataLoader, cache: CacheManager, ttl_seconds: int = 600):
        self.loader = loader
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def _store(self, key: str, value) -> None:
        # An empty view from an unreadable source must not outlive the outage
        if self.loader.source_unavailable:
            return
        await self.cache.set(key, value, self.ttl_seconds)

    @staticmethod
    def _filter_key(filters: Optional[EnrollmentFilter]) -> str:
        return (filters or EnrollmentFilter()).cache_key()

    async def aggregate(self, filters: Optional[EnrollmentFilter] = None) -> AggregatedMetrics:
        """
        Grouped totals for the records matching `filters`.

        Args:
            filters: Optional state/district/date-range filter

        Returns:
            AggregatedMetrics over the filtered records
        """
        cache_key = f"{AGG_PREFIX}metrics:{self._filter_key(filters)}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return AggregatedMetrics.from_dict(cached)

        records = await self.loader.load_all()
        metrics = reduce_records(filter_records(records, filters))

        await self._store(cache_key, metrics.to_dict())
        return metrics

    async def top_states(
        self,
        limit: int = 10,
        filters: Optional[EnrollmentFilter] = None
    ) -> List[Dict[str, Any]]:
        """States ranked by total count, largest first."""
        cache_key = f"{AGG_PREFIX}top_states:{limit}:{self._filter_key(filters)}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        metrics = await self.aggregate(filters)
        ranked = sorted(metrics.by_state.items(), key=lambda item: item[1], reverse=True)
        result = [{"state": state, "count": count} for state, count in ranked[:limit]]

        await self._store(cache_key, result)
        return result

    async def daily_series(
        self,
        days: int = 30,
        filters: Optional[EnrollmentFilter] = None
    ) -> List[Dict[str, Any]]:
        """
        The most recent `days` entries of the calendar-sorted daily series.

        Short histories return fewer than `days` points; there is no
        calendar cutoff.
        """
        cache_key = f"{AGG_PREFIX}daily_series:{days}:{self._filter_key(filters)}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        metrics = await self.aggregate(filters)
        series = sorted_daily_counts(metrics.by_date)
        result = series[-days:] if days > 0 else []

        await self._store(cache_key, result)
        return result

    async def period_series(
        self,
        view_mode: Literal["daily", "monthly", "quarterly"] = "daily",
        filters: Optional[EnrollmentFilter] = None
    ) -> List[Dict[str, Any]]:
        """Full series rolled up by day, month or quarter, with age breakdown."""
        cache_key = f"{AGG_PREFIX}period_series:{view_mode}:{self._filter_key(filters)}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        records = filter_records(await self.loader.load_all(), filters)
        if not records:
            return []

        df = pd.DataFrame([{
            'date': r.calendar_date,
            'age_0_5': r.age_0_5,
            'age_5_17': r.age_5_17,
            'age_18_plus': r.age_18_plus,
            'total': r.total
        } for r in records])

        value_columns = ['age_0_5', 'age_5_17', 'age_18_plus', 'total']
        agg_df = aggregate_by_view_mode(df, view_mode, 'date', value_columns)

        result = [{
            "date": row.date.date().isoformat(),
            "age_0_5": int(row.age_0_5),
            "age_5_17": int(row.age_5_17),
            "age_18_plus": int(row.age_18_plus),
            "total": int(row.total)
        } for row in agg_df.itertuples(index=False)]

        await self._store(cache_key, result)
        return result

    async def states(self) -> List[str]:
        """Get list of all states in the data."""
        metrics = await self.aggregate()
        return sorted(metrics.by_state)

    async def districts(self, state: Optional[str] = None) -> List[str]:
        """Get list of districts, optionally filtered by state."""
        metrics = await self.aggregate(EnrollmentFilter(state=state))
        return sorted({key.split("|", 1)[1] for key in metrics.by_district})

    async def preload(self) -> None:
        """Warm the snapshot and the default views."""
        logger.info("🚀 Preloading enrollment data...")
        await self.loader.load_all()
        await self.aggregate()
        await self.top_states()
        await self.daily_series()
        logger.info("✅ Enrollment data preloaded")
