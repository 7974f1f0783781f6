"""
Two-tier cache: Redis first, process-local map as fallback.

Remote failures never reach the caller. They are logged and the local
tier answers instead, so a Redis outage only costs recomputation.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

# Errors that mean "remote tier unavailable" rather than a programming bug
REMOTE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


@dataclass
class LocalEntry:
    """Local fallback entry."""
    value: Any
    expires_at: float


class CacheManager:
    """
    Tiered cache with TTL and pattern invalidation.

    - `get` asks Redis; on a remote error it serves the local entry instead.
    - `set` writes Redis and always refreshes the local entry.
    - Expired local entries are swept every `sweep_interval` sets.
    - After a remote failure Redis is skipped for `retry_seconds`.
    """

    def __init__(
        self,
        redis_url: str = "",
        client: Optional[Any] = None,
        connect_timeout: float = 5.0,
        retry_seconds: float = 30.0,
        sweep_interval: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            redis_url: Redis connection URL; empty disables the remote tier
            client: Pre-built async Redis client (overrides redis_url)
            connect_timeout: Socket connect/read timeout in seconds
            retry_seconds: How long to bypass Redis after a failure
            sweep_interval: Sweep expired local entries every N sets
            clock: Monotonic clock, injectable for tests
        """
        if client is None and redis_url:
            client = aioredis.from_url(
                redis_url,
                socket_connect_timeout=connect_timeout,
                socket_timeout=connect_timeout,
                decode_responses=True,
            )
        self._redis = client
        self._retry_seconds = retry_seconds
        self._sweep_interval = max(1, sweep_interval)
        self._clock = clock
        self._local: Dict[str, LocalEntry] = {}
        self._remote_down_until = 0.0
        self._set_calls = 0

    @property
    def remote_enabled(self) -> bool:
        return self._redis is not None

    def _remote_available(self) -> bool:
        return self._redis is not None and self._clock() >= self._remote_down_until

    def _mark_remote_failed(self, operation: str, key: str, error: Exception) -> None:
        self._remote_down_until = self._clock() + self._retry_seconds
        logger.warning(f"Redis {operation} failed for {key!r}, using memory cache: {error}")

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value for `key`, or None when absent or expired."""
        if self._remote_available():
            try:
                raw = await self._redis.get(key)
            except REMOTE_ERRORS as e:
                self._mark_remote_failed("get", key, e)
            else:
                if raw is None:
                    return None
                try:
                    return json.loads(raw)
                except ValueError as e:
                    logger.warning(f"Ignoring undecodable Redis value for {key!r}: {e}")
                    return None

        entry = self._local.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._local[key]
            return None
        return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        """Store `value` (JSON-serialisable) in both tiers for `ttl_seconds`."""
        payload = json.dumps(value)

        if self._remote_available():
            try:
                await self._redis.setex(key, ttl_seconds, payload)
            except REMOTE_ERRORS as e:
                self._mark_remote_failed("set", key, e)

        self._local[key] = LocalEntry(value=value, expires_at=self._clock() + ttl_seconds)

        self._set_calls += 1
        if self._set_calls % self._sweep_interval == 0:
            self.sweep_expired()

    async def delete(self, key: str) -> None:
        """Remove `key` from both tiers."""
        if self._remote_available():
            try:
                await self._redis.delete(key)
            except REMOTE_ERRORS as e:
                self._mark_remote_failed("delete", key, e)

        self._local.pop(key, None)

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern such as "enrollment:agg:*".

        Redis is matched with SCAN; the local tier by substring on the
        pattern with its wildcards removed. Returns the local delete count.
        """
        if self._remote_available():
            try:
                keys = [k async for k in self._redis.scan_iter(match=pattern)]
                if keys:
                    await self._redis.delete(*keys)
                    logger.info(f"Deleted {len(keys)} Redis keys matching pattern: {pattern}")
            except REMOTE_ERRORS as e:
                self._mark_remote_failed("pattern invalidation", pattern, e)

        needle = pattern.replace("*", "")
        stale = [k for k in self._local if needle in k]
        for key in stale:
            del self._local[key]
        return len(stale)

    def sweep_expired(self) -> int:
        """Evict every expired local entry. Returns the number evicted."""
        now = self._clock()
        expired = [k for k, entry in self._local.items() if entry.expires_at <= now]
        for key in expired:
            del self._local[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired local cache entries")
        return len(expired)

    def status(self) -> Dict[str, Any]:
        """Tier status for the health endpoint."""
        if not self.remote_enabled:
            remote = "disabled"
        elif self._remote_available():
            remote = "available"
        else:
            remote = "unavailable"
        return {
            "remote": remote,
            "local_entries": len(self._local),
        }

    async def close(self) -> None:
        """Close the Redis connection pool if one was opened."""
        if self._redis is not None:
            try:
                await self._redis.aclose()
            except REMOTE_ERRORS as e:
                logger.warning(f"Error closing Redis client: {e}")
