"""
Tests for filtering, reduction and the aggregation engine's cached views.
"""
from datetime import date

import pytest
from pydantic import ValidationError

from app.schemas.common import EnrollmentFilter
from app.services.aggregation_engine import AggregationEngine
from app.services.csv_source import CSVRecordSource
from app.services.data_loader import EnrollmentDataLoader
from app.utils.aggregators import filter_records, reduce_records, sorted_daily_counts
from conftest import FakeSource, daily_records, write_csv


@pytest.fixture
def engine(local_cache, sample_records):
    loader = EnrollmentDataLoader(FakeSource(sample_records), local_cache)
    return AggregationEngine(loader, local_cache)


class TestEnrollmentFilter:

    def test_accepts_csv_and_iso_dates(self):
        f = EnrollmentFilter(start_date="01-03-2025", end_date="2025-03-31")
        assert f.start_date == date(2025, 3, 1)
        assert f.end_date == date(2025, 3, 31)

    def test_rejects_inverted_range(self):
        with pytest.raises(ValidationError):
            EnrollmentFilter(start_date="2025-04-01", end_date="2025-03-01")

    def test_cache_key_is_canonical(self):
        a = EnrollmentFilter(state="Goa", start_date="01-03-2025")
        b = EnrollmentFilter(start_date=date(2025, 3, 1), state="Goa")
        assert a.cache_key() == b.cache_key()
        assert a.cache_key() != EnrollmentFilter(state="Goa").cache_key()

    def test_blank_state_is_no_filter(self):
        assert EnrollmentFilter(state="  ").is_empty


class TestReduce:

    def test_totals_agree(self, sample_records):
        metrics = reduce_records(sample_records)

        assert metrics.total_count == sum(r.total for r in sample_records)
        assert metrics.total_count == metrics.by_age_group.total
        assert sum(metrics.by_state.values()) == metrics.total_count
        assert sum(metrics.by_district.values()) == metrics.total_count
        assert sum(metrics.by_date.values()) == metrics.total_count

    def test_district_keys_include_state(self, sample_records):
        metrics = reduce_records(sample_records)
        assert metrics.by_district["Karnataka|Mysuru"] == 4 * 6

    def test_empty(self):
        metrics = reduce_records([])
        assert metrics.total_count == 0
        assert metrics.by_state == {}

    def test_date_range_compares_calendar_values(self):
        # "15-02-2025" sorts after "01-03-2025" as a string
        records = daily_records([1] * 30, start=date(2025, 2, 10))
        filtered = filter_records(records, EnrollmentFilter(start_date="01-03-2025"))
        assert min(r.calendar_date for r in filtered) == date(2025, 3, 1)
        assert len(filtered) == 11

    def test_sorted_daily_counts_calendar_order(self):
        by_date = {"02-04-2025": 2, "15-03-2025": 1, "01-05-2025": 3}
        assert [p["count"] for p in sorted_daily_counts(by_date)] == [1, 2, 3]


class TestAggregationEngine:

    @pytest.mark.asyncio
    async def test_filtered_total_not_above_unfiltered(self, engine):
        everything = await engine.aggregate()
        karnataka = await engine.aggregate(EnrollmentFilter(state="Karnataka"))

        assert karnataka.total_count <= everything.total_count
        assert karnataka.total_count == 4 * (16 + 6)
        assert set(karnataka.by_state) == {"Karnataka"}

    @pytest.mark.asyncio
    async def test_filter_by_district_and_date(self, engine):
        metrics = await engine.aggregate(EnrollmentFilter(
            district="Patna", start_date="02-03-2025", end_date="03-03-2025"
        ))
        assert metrics.total_count == 2 * 30
        assert sorted(metrics.by_date) == ["02-03-2025", "03-03-2025"]

    @pytest.mark.asyncio
    async def test_result_cached(self, engine, local_cache):
        await engine.aggregate()
        cached = await local_cache.get(f"enrollment:agg:metrics:{EnrollmentFilter().cache_key()}")
        assert cached["total_count"] == (await engine.aggregate()).total_count

    @pytest.mark.asyncio
    async def test_top_states(self, engine):
        top = await engine.top_states(limit=1)
        assert top == [{"state": "Bihar", "count": 4 * 30}]

    @pytest.mark.asyncio
    async def test_daily_series_takes_most_recent(self, engine):
        series = await engine.daily_series(days=2)
        assert [p["date"] for p in series] == ["03-03-2025", "04-03-2025"]
        assert series[-1]["count"] == 16 + 6 + 30

    @pytest.mark.asyncio
    async def test_daily_series_short_history(self, engine):
        assert len(await engine.daily_series(days=30)) == 4

    @pytest.mark.asyncio
    async def test_monthly_period_series(self, engine):
        series = await engine.period_series("monthly")
        assert len(series) == 1
        assert series[0]["date"] == "2025-03-01"
        assert series[0]["total"] == 4 * 52

    @pytest.mark.asyncio
    async def test_listings(self, engine):
        assert await engine.states() == ["Bihar", "Karnataka"]
        assert await engine.districts("Karnataka") == ["Bengaluru Urban", "Mysuru"]
        assert await engine.districts() == ["Bengaluru Urban", "Mysuru", "Patna"]

    @pytest.mark.asyncio
    async def test_empty_snapshot_gives_zero_totals(self, local_cache):
        engine = AggregationEngine(EnrollmentDataLoader(FakeSource([]), local_cache), local_cache)
        metrics = await engine.aggregate()
        assert metrics.total_count == 0
        assert await engine.daily_series() == []
        assert await engine.top_states() == []

    @pytest.mark.asyncio
    async def test_one_point_per_calendar_day(self, local_cache, tmp_path):
        write_csv(tmp_path, "a.csv", [
            "01-03-2025,Goa,North Goa,403001,100,0,0",
            "1-3-2025,Goa,North Goa,403001,100,0,0",
            "2-3-2025,Goa,North Goa,403001,50,0,0",
        ])
        loader = EnrollmentDataLoader(CSVRecordSource(tmp_path), local_cache)
        engine = AggregationEngine(loader, local_cache)

        assert await engine.daily_series() == [
            {"date": "01-03-2025", "count": 200},
            {"date": "02-03-2025", "count": 50},
        ]

    @pytest.mark.asyncio
    async def test_recovers_after_source_outage(self, local_cache, sample_records):
        source = FakeSource(sample_records, unavailable=True)
        engine = AggregationEngine(EnrollmentDataLoader(source, local_cache), local_cache)
        assert (await engine.aggregate()).total_count == 0

        source.unavailable = False

        assert (await engine.aggregate()).total_count == sum(r.total for r in sample_records)
