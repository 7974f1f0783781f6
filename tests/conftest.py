"""
Shared fixtures: in-memory Redis doubles, a manual clock, and CSV helpers.
"""
import asyncio
import fnmatch
from datetime import date, timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.services.cache_manager import CacheManager
from app.services.csv_source import LoadStats, SourceReadResult, SourceUnavailableError
from app.models.enrollment import EnrollmentRecord
from app.utils.date_utils import format_csv_date

CSV_HEADER = "date,state,district,pincode,age_0_5,age_5_17,age_18_greater\n"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """Just enough of redis.asyncio.Redis for CacheManager."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.closed = False

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match="*"):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self):
        self.closed = True


class FailingRedis:
    """Every call fails as if the server were unreachable."""

    def __init__(self):
        self.calls = 0

    def _fail(self):
        self.calls += 1
        raise RedisConnectionError("Connection refused")

    async def get(self, key):
        self._fail()

    async def setex(self, key, ttl, value):
        self._fail()

    async def delete(self, *keys):
        self._fail()

    async def scan_iter(self, match="*"):
        self._fail()
        yield  # pragma: no cover

    async def aclose(self):
        pass


class FakeSource:
    """Record source returning a fixed record list and counting reads."""

    def __init__(self, records=None, unavailable=False, delay=0.01, fail_once=None):
        self.records = list(records or [])
        self.unavailable = unavailable
        self.delay = delay
        self.fail_once = fail_once  # exception raised by the next read only
        self.reads = 0

    async def read_all(self) -> SourceReadResult:
        self.reads += 1
        await asyncio.sleep(self.delay)
        if self.fail_once is not None:
            error, self.fail_once = self.fail_once, None
            raise error
        if self.unavailable:
            raise SourceUnavailableError("Cannot read CSV directory /missing")
        stats = LoadStats(files_read=1, rows_read=len(self.records))
        return SourceReadResult(records=list(self.records), stats=stats)


def make_record(day: date, state="Karnataka", district="Bengaluru Urban", pincode="560001",
                age_0_5=10, age_5_17=5, age_18_plus=1) -> EnrollmentRecord:
    return EnrollmentRecord(
        date=format_csv_date(day),
        calendar_date=day,
        state=state,
        district=district,
        pincode=pincode,
        age_0_5=age_0_5,
        age_5_17=age_5_17,
        age_18_plus=age_18_plus,
    )


def daily_records(counts, start=date(2025, 3, 1), **kwargs):
    """One record per day whose total equals the given count."""
    return [
        make_record(start + timedelta(days=i), age_0_5=count, age_5_17=0, age_18_plus=0, **kwargs)
        for i, count in enumerate(counts)
    ]


def write_csv(directory, name, rows):
    """Write a CSV file with the standard header and the given raw lines."""
    path = directory / name
    path.write_text(CSV_HEADER + "".join(line + "\n" for line in rows), encoding="utf-8")
    return path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def local_cache(clock):
    """Cache with the remote tier disabled."""
    return CacheManager(redis_url="", clock=clock)


@pytest.fixture
def sample_records():
    """Two states, three districts, four days."""
    days = [date(2025, 3, 1) + timedelta(days=i) for i in range(4)]
    records = []
    for day in days:
        records.append(make_record(day, "Karnataka", "Bengaluru Urban", "560001", 10, 5, 1))
        records.append(make_record(day, "Karnataka", "Mysuru", "570001", 4, 2, 0))
        records.append(make_record(day, "Bihar", "Patna", "800001", 20, 8, 2))
    return records
