"""
Enrollment data loader - owns the in-memory record snapshot.

Lookup order: tiered cache, then a short-lived in-process copy, then the
CSV source. Only one source load runs at a time; concurrent callers share
the in-flight task.

The cached snapshot carries a generation token. Rows are parsed back into
records only when the cached generation differs from the one held in
memory.
"""
import asyncio
import logging
import time
import uuid
from typing import Callable, List, Optional, Tuple

from app.models.enrollment import EnrollmentRecord
from app.services.cache_manager import CacheManager
from app.services.csv_source import CSVRecordSource, LoadStats, SourceUnavailableError

logger = logging.getLogger(__name__)

CACHE_PREFIX = "enrollment:"
ALL_RECORDS_KEY = f"{CACHE_PREFIX}all_records"
DERIVED_PATTERN = f"{CACHE_PREFIX}agg:*"


class EnrollmentDataLoader:
    """Cache-first, single-flight loader for the full record set."""

    def __init__(
        self,
        source: CSVRecordSource,
        cache: CacheManager,
        cache_ttl_seconds: int = 600,
        memory_cache_seconds: int = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.memory_cache_seconds = memory_cache_seconds
        self._clock = clock
        # (generation, records, loaded_at)
        self._memory: Optional[Tuple[str, List[EnrollmentRecord], float]] = None
        self._loading: Optional[asyncio.Task] = None
        self.last_load_stats: Optional[LoadStats] = None
        self.source_loads = 0

    @property
    def is_loading(self) -> bool:
        return self._loading is not None

    async def load_all(self) -> List[EnrollmentRecord]:
        """Return the full record snapshot."""
        cached = await self.cache.get(ALL_RECORDS_KEY)
        if isinstance(cached, dict) and "rows" in cached:
            return self._records_for_snapshot(cached)

        if self._memory is not None:
            _, records, loaded_at = self._memory
            if self._clock() - loaded_at < self.memory_cache_seconds:
                logger.debug("Records loaded from memory cache")
                return records

        if self._loading is not None:
            logger.info("Waiting for ongoing record load...")
        else:
            self._loading = asyncio.ensure_future(self._load_and_publish())

        # A caller that stops waiting must not cancel the shared load
        return await asyncio.shield(self._loading)

    async def _load_and_publish(self) -> List[EnrollmentRecord]:
        try:
            records, stats = await self._read_source()
            self.last_load_stats = stats
            if not stats.source_available:
                return records

            generation = uuid.uuid4().hex
            await self.cache.set(
                ALL_RECORDS_KEY,
                {"generation": generation, "rows": [r.to_row() for r in records]},
                self.cache_ttl_seconds,
            )
            self._memory = (generation, records, self._clock())
            await self.cache.invalidate_pattern(DERIVED_PATTERN)
            return records
        finally:
            self._loading = None

    async def _read_source(self) -> Tuple[List[EnrollmentRecord], LoadStats]:
        self.source_loads += 1
        logger.info("Loading records from CSV source...")
        try:
            result = await self.source.read_all()
        except SourceUnavailableError as e:
            logger.error(str(e))
            return [], LoadStats(source_available=False)

        stats = result.stats
        logger.info(
            f"✅ Loaded {len(result.records):,} records from {stats.files_read} files "
            f"({stats.rows_dropped} rows dropped, {stats.fields_defaulted} fields defaulted, "
            f"{stats.files_failed} files failed)"
        )
        return result.records, stats

    def _records_for_snapshot(self, snapshot) -> List[EnrollmentRecord]:
        generation = snapshot.get("generation")
        if self._memory is not None and self._memory[0] == generation:
            logger.debug("Records loaded from cache (parsed snapshot reused)")
            return self._memory[1]

        # Published by another process, or our parsed copy was dropped
        logger.debug("Records loaded from cache")
        records = []
        for row in snapshot["rows"]:
            record = EnrollmentRecord.from_row(row)
            if record is not None:
                records.append(record)
        self._memory = (generation, records, self._clock())
        return records

    async def invalidate(self) -> None:
        """Drop the snapshot from every cache tier."""
        await self.cache.invalidate_pattern(f"{CACHE_PREFIX}*")
        self._memory = None
        logger.info("🗑️ Enrollment cache invalidated")

    async def refresh(self) -> List[EnrollmentRecord]:
        """Invalidate all cached data and reload from source."""
        await self.invalidate()
        return await self.load_all()

    @property
    def source_unavailable(self) -> bool:
        """True when the last source load could not reach the directory."""
        return self.last_load_stats is not None and not self.last_load_stats.source_available
