"""
Analytics service - trend analysis, anomaly listing and alert reports.

Sits on top of the aggregation engine and the statistics helpers. Routers
call into this service; it never raises HTTP errors itself.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from app.ml_models.time_series_forecasting import SmoothingForecaster
from app.schemas.common import EnrollmentFilter
from app.services.aggregation_engine import AggregationEngine
from app.services.alert_engine import AlertEngine, Severity
from app.services.data_loader import EnrollmentDataLoader
from app.utils import statistics
from app.utils.aggregators import filter_records
from app.utils.date_utils import csv_date_sort_key, parse_date_string, time_range_days

logger = logging.getLogger(__name__)

MIN_ANOMALY_RECORDS = 10
MIN_REGION_POINTS = 5
TOP_REGIONS = 30
MAX_ANOMALIES = 20
FORECAST_HISTORY_DAYS = 90
ANOMALY_SEVERITY_RANK = {"high": 3, "medium": 2, "low": 1}


class DataUnavailableError(Exception):
    """No records exist and the CSV source could not be read."""


def anomaly_severity(z: float) -> str:
    z = abs(z)
    if z > 3:
        return "high"
    if z > 2.5:
        return "medium"
    return "low"


class AnalyticsService:
    """Read-only analytics built from the enrollment snapshot."""

    def __init__(
        self,
        loader: EnrollmentDataLoader,
        aggregation: AggregationEngine,
        alerts: AlertEngine,
        forecaster: Optional[SmoothingForecaster] = None,
    ):
        self.loader = loader
        self.aggregation = aggregation
        self.alerts = alerts
        self.forecaster = forecaster or SmoothingForecaster()

    def _check_available(self, has_data: bool) -> None:
        if not has_data and self.loader.source_unavailable:
            raise DataUnavailableError("Enrollment data source is unavailable")

    async def metrics(
        self,
        filters: Optional[EnrollmentFilter] = None,
        top: int = 10,
        days: int = 30,
    ) -> Dict[str, Any]:
        """Aggregated metrics plus the top-states and daily-series views."""
        metrics = await self.aggregation.aggregate(filters)
        self._check_available(metrics.total_count > 0 or bool(metrics.by_date))

        result = metrics.to_dict()
        result["top_states"] = await self.aggregation.top_states(top, filters)
        result["daily_series"] = await self.aggregation.daily_series(days, filters)
        return result

    async def trends(
        self,
        state: Optional[str] = None,
        district: Optional[str] = None,
        time_period: str = "30d",
        view_mode: Literal["daily", "monthly", "quarterly"] = "daily",
    ) -> Dict[str, Any]:
        """
        Trend analysis over the most recent `time_period` days.

        Weekly seasonality is checked on the daily series; `view_mode`
        only changes the granularity of the returned series.
        """
        days = time_range_days(time_period)
        base = EnrollmentFilter(state=state, district=district)
        series = await self.aggregation.daily_series(days, base)
        self._check_available(bool(series))

        if not series:
            return {
                "metric": "enrollment_count",
                "time_period": time_period,
                "trend_direction": "stable",
                "confidence_score": 0.0,
                "seasonal_component": None,
                "geographic_breakdown": {},
                "series": [],
                "message": "No data available for the specified period"
            }

        window = EnrollmentFilter(
            state=state,
            district=district,
            start_date=series[0]["date"],
            end_date=series[-1]["date"],
        )
        metrics = await self.aggregation.aggregate(window)
        counts = [point["count"] for point in series]

        seasonal = statistics.seasonal_pattern(counts, period=7)
        seasonal_component = None
        if seasonal.has_pattern:
            seasonal_component = {
                "pattern_type": "weekly",
                "peak_periods": [f"Day {i + 1}" for i in seasonal.peak_indices],
                "amplitude": round(seasonal.amplitude, 2)
            }

        return {
            "metric": "enrollment_count",
            "time_period": time_period,
            "trend_direction": statistics.trend_direction(counts),
            "confidence_score": round(statistics.confidence_score(
                len(counts),
                statistics.coefficient_of_variation(counts),
                0.85
            ), 3),
            "seasonal_component": seasonal_component,
            "geographic_breakdown": metrics.by_district,
            "series": await self.aggregation.period_series(view_mode, window)
        }

    async def forecast(self, horizon: int = 30, state: Optional[str] = None) -> Dict[str, Any]:
        """
        Smoothing forecast from the last 90 days of history.

        Raises:
            InsufficientHistoryError: fewer than 7 days of history
        """
        series = await self.aggregation.daily_series(FORECAST_HISTORY_DAYS, EnrollmentFilter(state=state))
        self._check_available(bool(series))

        counts = [point["count"] for point in series]
        summary = self.forecaster.forecast(counts, horizon)

        result = summary.to_dict()
        result["generated_at"] = datetime.now(timezone.utc).isoformat()
        return result

    async def anomalies(
        self,
        threshold: float = 2.5,
        state: Optional[str] = None,
        severity: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Z-score anomalies in the national daily series and in the 30
        largest districts (each needs at least 5 days of data).
        """
        records = filter_records(await self.loader.load_all(), EnrollmentFilter(state=state))
        self._check_available(bool(records))

        if len(records) < MIN_ANOMALY_RECORDS:
            return {
                "anomalies": [],
                "total_anomalies": 0,
                "message": "Insufficient data for anomaly detection"
            }

        daily: Dict[str, int] = {}
        regional: Dict[str, Dict[str, int]] = {}
        for record in records:
            daily[record.date] = daily.get(record.date, 0) + record.total
            region = f"{record.state} - {record.district}"
            region_daily = regional.setdefault(region, {})
            region_daily[record.date] = region_daily.get(record.date, 0) + record.total

        found = self._series_anomalies(daily, threshold, region=None)

        top_regions = sorted(regional.items(), key=lambda item: sum(item[1].values()), reverse=True)
        for region, region_daily in top_regions[:TOP_REGIONS]:
            if len(region_daily) < MIN_REGION_POINTS:
                continue
            found.extend(self._series_anomalies(region_daily, threshold, region=region))

        if severity:
            found = [a for a in found if a["severity"] == severity]

        found.sort(key=lambda a: (-ANOMALY_SEVERITY_RANK[a["severity"]], -a["confidence_score"]))

        logger.info(f"Anomaly scan found {len(found)} anomalies (threshold={threshold})")
        return {
            "anomalies": found[:MAX_ANOMALIES],
            "total_anomalies": len(found),
            "threshold": threshold
        }

    @staticmethod
    def _series_anomalies(by_date: Dict[str, int], threshold: float, region: Optional[str]) -> List[Dict[str, Any]]:
        dates = sorted(by_date, key=csv_date_sort_key)
        counts = [by_date[d] for d in dates]
        indices = statistics.detect_anomalies(counts, threshold)
        if not indices:
            return []

        mean_value = statistics.mean(counts)
        std_value = statistics.stddev(counts)

        results = []
        for i in indices:
            count = counts[i]
            z = statistics.z_score(count, mean_value, std_value)
            kind = "spike" if count > mean_value else "drop"
            day = parse_date_string(dates[i])

            if region is None:
                entry = {
                    "id": f"daily-{dates[i]}",
                    "anomaly_type": f"daily_{kind}",
                    "affected_regions": ["national"],
                    "description": f"Unusual {kind} in daily enrollments: {count:,}",
                    "suggested_actions": ["Investigate data patterns", "Review regional breakdown"]
                }
            else:
                entry = {
                    "id": f"regional-{region}-{dates[i]}",
                    "anomaly_type": f"regional_{kind}",
                    "affected_regions": [region],
                    "description": f"Regional {kind} in {region}: {count:,} enrollments",
                    "suggested_actions": ["Investigate regional issues", "Check local infrastructure"]
                }

            entry.update({
                "date": day.isoformat() if day else dates[i],
                "value": count,
                "z_score": round(z, 2),
                "severity": anomaly_severity(z),
                "confidence_score": round(min(abs(z) / 3, 1.0), 3)
            })
            results.append(entry)
        return results

    async def alert_report(self, state: Optional[str] = None, time_range: str = "30d") -> Dict[str, Any]:
        """
        Evaluate the alert rules against the daily series for `time_range`.

        Args:
            state: Optional state scope; the series is filtered to it
            time_range: One of 7d, 30d, 90d, 365d

        Returns:
            Alerts sorted by severity, per-severity counts and the metrics
            the rules were evaluated against
        """
        filters = EnrollmentFilter(state=state)
        series = await self.aggregation.daily_series(time_range_days(time_range), filters)
        self._check_available(bool(series))

        metrics = await self.aggregation.aggregate(filters)
        stats = self.alerts.compute_statistics(
            [point["count"] for point in series],
            total_count=metrics.total_count,
        )
        triggered = self.alerts.evaluate_statistics(stats, state) if stats is not None else []

        counts = {level.value: 0 for level in Severity}
        for alert in triggered:
            counts[alert.severity.value] += 1

        return {
            "alerts": [a.to_dict() for a in triggered],
            "total": len(triggered),
            **counts,
            "checked_at": datetime.now(timezone.utc).isoformat(),
            "time_range": time_range,
            "state": state,
            "metrics": stats.to_dict() if stats is not None else None
        }

