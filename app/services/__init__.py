"""
Services package initialization.
"""
from app.services.cache_manager import CacheManager
from app.services.csv_source import CSVRecordSource, LoadStats, SourceUnavailableError
from app.services.data_loader import EnrollmentDataLoader
from app.services.aggregation_engine import AggregationEngine
from app.services.alert_engine import AlertEngine, AlertRule, DEFAULT_ALERT_RULES
from app.services.analytics_service import AnalyticsService, DataUnavailableError

__all__ = [
    "CacheManager",
    "CSVRecordSource",
    "LoadStats",
    "SourceUnavailableError",
    "EnrollmentDataLoader",
    "AggregationEngine",
    "AlertEngine",
    "AlertRule",
    "DEFAULT_ALERT_RULES",
    "AnalyticsService",
    "DataUnavailableError",
]
