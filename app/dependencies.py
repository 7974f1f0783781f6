"""
Service wiring and FastAPI dependencies.

One container per application instance, built at startup and stored on
`app.state.services`. Routers receive it through `Depends(get_services)`.
"""
from dataclasses import dataclass

from fastapi import HTTPException, Request

from app.config import Settings
from app.ml_models.time_series_forecasting import SmoothingForecaster
from app.services.aggregation_engine import AggregationEngine
from app.services.alert_engine import AlertEngine
from app.services.analytics_service import AnalyticsService
from app.services.cache_manager import CacheManager
from app.services.csv_source import CSVRecordSource
from app.services.data_loader import EnrollmentDataLoader


@dataclass
class ServiceContainer:
    cache: CacheManager
    loader: EnrollmentDataLoader
    aggregation: AggregationEngine
    alerts: AlertEngine
    analytics: AnalyticsService

    @classmethod
    def build(cls, settings: Settings) -> "ServiceContainer":
        """Wire every service from settings."""
        cache = CacheManager(
            redis_url=settings.REDIS_URL,
            connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
            retry_seconds=settings.REDIS_RETRY_SECONDS,
            sweep_interval=settings.CACHE_SWEEP_INTERVAL,
        )
        return cls.from_parts(cache, CSVRecordSource(settings.csv_dir), settings)

    @classmethod
    def from_parts(cls, cache: CacheManager, source, settings: Settings) -> "ServiceContainer":
        """Wire the services around an existing cache and record source."""
        loader = EnrollmentDataLoader(
            source,
            cache,
            cache_ttl_seconds=settings.CACHE_TTL_SECONDS,
            memory_cache_seconds=settings.MEMORY_CACHE_SECONDS,
        )
        aggregation = AggregationEngine(loader, cache, ttl_seconds=settings.CACHE_TTL_SECONDS)
        alerts = AlertEngine(
            absolute_floor=settings.ALERT_ABSOLUTE_FLOOR,
            anomaly_threshold=settings.ANOMALY_Z_THRESHOLD,
        )
        analytics = AnalyticsService(
            loader,
            aggregation,
            alerts,
            forecaster=SmoothingForecaster(),
        )
        return cls(cache=cache, loader=loader, aggregation=aggregation, alerts=alerts, analytics=analytics)

    async def close(self) -> None:
        await self.cache.close()


def get_services(request: Request) -> ServiceContainer:
    """
    Dependency for getting the service container.
    Use with FastAPI's Depends().
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services are not initialised")
    return services
