"""
Alert engine - dynamic-threshold rules over a daily count series.

Thresholds are derived from the series itself (mean, stddev, percentiles)
instead of fixed constants. Each evaluation is stateless: alert lifecycle
(acknowledged/resolved) belongs to whoever stores the alerts.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from app.utils import statistics

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_ORDER = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class Comparison(str, Enum):
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


@dataclass
class AlertStatistics:
    """Derived statistics that rules select metrics and thresholds from."""
    latest: float
    previous: Optional[float]
    mean: float
    stddev: float
    p5: float
    p95: float
    anomaly_score: float  # |z| of latest against the reference window
    growth_rate: float  # % change from previous to latest
    data_points: int
    total_count: int = 0
    absolute_floor: float = 100.0
    anomaly_threshold: float = 2.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latest": self.latest,
            "mean": round(self.mean, 2),
            "stddev": round(self.stddev, 2),
            "anomaly_score": round(self.anomaly_score, 2),
            "growth_rate": round(self.growth_rate, 2),
            "p5": self.p5,
            "p95": self.p95,
            "total_count": self.total_count,
            "data_points": self.data_points
        }


@dataclass
class AlertCandidate:
    """A rule that matched, before deduplication."""
    rule: "AlertRule"
    current_value: float
    threshold: float
    message: str

    @property
    def dedup_key(self) -> Tuple[str, Comparison]:
        return self.rule.metric, self.rule.comparison


@dataclass(frozen=True)
class AlertRule:
    """
    Static rule definition.

    `metric_selector` and `threshold_expression` are pure functions of
    AlertStatistics. The message template may use {value}, {threshold}
    and {direction}.
    """
    id: str
    name: str
    metric: str
    metric_selector: Callable[[AlertStatistics], float]
    comparison: Comparison
    threshold_expression: Callable[[AlertStatistics], float]
    severity: Severity
    message_template: str
    recommendations: Tuple[str, ...] = ()

    def evaluate(self, stats: AlertStatistics) -> Optional[AlertCandidate]:
        threshold = self.threshold_expression(stats)
        # Not computable yet (e.g. an all-zero history)
        if threshold <= 0:
            return None

        value = self.metric_selector(stats)
        if self.comparison is Comparison.GREATER_THAN:
            triggered = value > threshold
        else:
            triggered = value < threshold
        if not triggered:
            return None

        message = self.message_template.format(
            value=value,
            threshold=threshold,
            direction="increase" if stats.growth_rate > 0 else "decrease",
        )
        return AlertCandidate(rule=self, current_value=value, threshold=threshold, message=message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "metric": self.metric,
            "condition": self.comparison.value,
            "severity": self.severity.value,
            "recommendations": list(self.recommendations)
        }


@dataclass
class TriggeredAlert:
    """An alert emitted by one evaluation pass. Never persisted here."""
    id: str
    rule_id: str
    rule_name: str
    metric: str
    condition: str
    current_value: float
    threshold: float
    severity: Severity
    message: str
    triggered_at: datetime
    state: Optional[str] = None
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "metric": self.metric,
            "condition": self.condition,
            "current_value": round(self.current_value, 2),
            "threshold": round(self.threshold, 2),
            "severity": self.severity.value,
            "message": self.message,
            "triggered_at": self.triggered_at.isoformat(),
            "state": self.state,
            "recommendations": self.recommendations
        }


DAILY = "daily_enrollments"
ANOMALY = "anomaly_score"
GROWTH = "growth_rate"


def _latest(s: AlertStatistics) -> float:
    return s.latest


def _abs_growth(s: AlertStatistics) -> float:
    return abs(s.growth_rate)


# Declaration order is precedence order for rules sharing (metric, comparison)
DEFAULT_ALERT_RULES: Tuple[AlertRule, ...] = (
    AlertRule(
        id="extreme-spike",
        name="Extreme Enrollment Spike",
        metric=DAILY,
        metric_selector=_latest,
        comparison=Comparison.GREATER_THAN,
        threshold_expression=lambda s: max(s.p95, s.mean + 3 * s.stddev),
        severity=Severity.CRITICAL,
        message_template="Daily enrollments ({value:,.0f}) far above normal range (>{threshold:,.0f})",
        recommendations=(
            "Verify data quality for recent uploads",
            "Check for duplicate or replayed batches",
            "Escalate to regional operations",
        ),
    ),
    AlertRule(
        id="high-spike",
        name="High Enrollment Spike",
        metric=DAILY,
        metric_selector=_latest,
        comparison=Comparison.GREATER_THAN,
        threshold_expression=lambda s: max(s.mean + 2 * s.stddev, s.p95 * 0.8),
        severity=Severity.HIGH,
        message_template="Daily enrollments ({value:,.0f}) exceeded normal range (>{threshold:,.0f})",
        recommendations=(
            "Verify data quality for recent uploads",
            "Check for any special enrollment drives",
            "Review regional distribution of spike",
        ),
    ),
    AlertRule(
        id="low-enrollment",
        name="Low Enrollment Warning",
        metric=DAILY,
        metric_selector=_latest,
        comparison=Comparison.LESS_THAN,
        threshold_expression=lambda s: min(s.p5, s.mean - 2 * s.stddev),
        severity=Severity.MEDIUM,
        message_template="Daily enrollments ({value:,.0f}) dropped below normal range (<{threshold:,.0f})",
        recommendations=(
            "Check for system outages or data delays",
            "Review regional enrollment center status",
            "Verify data pipeline connectivity",
        ),
    ),
    # Only reached when low-enrollment has no computable threshold
    AlertRule(
        id="system-failure",
        name="Enrollment Collapse",
        metric=DAILY,
        metric_selector=_latest,
        comparison=Comparison.LESS_THAN,
        threshold_expression=lambda s: max(s.absolute_floor, s.p5 * 0.1),
        severity=Severity.CRITICAL,
        message_template="Daily enrollments ({value:,.0f}) fell below the operating floor (<{threshold:,.0f})",
        recommendations=(
            "Check for system outages or data delays",
            "Verify data pipeline connectivity",
            "Contact enrollment center operators",
        ),
    ),
    AlertRule(
        id="statistical-anomaly",
        name="Anomaly Detection Alert",
        metric=ANOMALY,
        metric_selector=lambda s: s.anomaly_score,
        comparison=Comparison.GREATER_THAN,
        threshold_expression=lambda s: s.anomaly_threshold,
        severity=Severity.HIGH,
        message_template="Statistical anomaly detected (Z-score: {value:.2f} > {threshold})",
        recommendations=(
            "Investigate unusual patterns in recent data",
            "Check for data quality issues",
            "Review affected regions for operational issues",
        ),
    ),
    AlertRule(
        id="rapid-growth",
        name="Rapid Growth Alert",
        metric=GROWTH,
        metric_selector=_abs_growth,
        comparison=Comparison.GREATER_THAN,
        threshold_expression=lambda s: 100.0,
        severity=Severity.HIGH,
        message_template="Rapid {direction} in enrollments ({value:.1f}% change)",
        recommendations=(
            "Identify contributing regions",
            "Confirm the change is not a reporting artefact",
            "Prepare capacity adjustments",
        ),
    ),
    AlertRule(
        id="growth-rate",
        name="Growth Rate Alert",
        metric=GROWTH,
        metric_selector=_abs_growth,
        comparison=Comparison.GREATER_THAN,
        threshold_expression=lambda s: 50.0,
        severity=Severity.MEDIUM,
        message_template="Significant {direction} in enrollments ({value:.1f}% change)",
        recommendations=(
            "Monitor trend over next few days",
            "Identify contributing regions",
            "Prepare capacity adjustments if needed",
        ),
    ),
)


def select_candidates(candidates: Sequence[AlertCandidate]) -> List[AlertCandidate]:
    """Keep the first candidate per (metric, comparison), in input order."""
    seen = set()
    selected = []
    for candidate in candidates:
        if candidate.dedup_key in seen:
            continue
        seen.add(candidate.dedup_key)
        selected.append(candidate)
    return selected


class AlertEngine:
    """Evaluates a fixed rule set against a daily series."""

    def __init__(
        self,
        rules: Sequence[AlertRule] = DEFAULT_ALERT_RULES,
        absolute_floor: float = 100.0,
        anomaly_threshold: float = 2.5,
    ):
        self.rules = tuple(rules)
        self.absolute_floor = absolute_floor
        self.anomaly_threshold = anomaly_threshold

    def compute_statistics(self, series: Sequence[float], total_count: int = 0) -> Optional[AlertStatistics]:
        """
        Statistics for the latest point against the points before it.

        Returns None for fewer than two points, where no baseline exists.
        """
        if len(series) < 2:
            return None

        latest = float(series[-1])
        reference = [float(v) for v in series[:-1]]
        previous = reference[-1]

        mean_value = statistics.mean(reference)
        std_value = statistics.stddev(reference)
        anomaly_score = (
            abs(statistics.z_score(latest, mean_value, std_value)) if std_value > 0 else 0.0
        )

        return AlertStatistics(
            latest=latest,
            previous=previous,
            mean=mean_value,
            stddev=std_value,
            p5=statistics.percentile(reference, 5),
            p95=statistics.percentile(reference, 95),
            anomaly_score=anomaly_score,
            growth_rate=statistics.growth_rate(latest, previous),
            data_points=len(series),
            total_count=total_count,
            absolute_floor=self.absolute_floor,
            anomaly_threshold=self.anomaly_threshold,
        )

    def evaluate_statistics(self, stats: AlertStatistics, scope: Optional[str] = None) -> List[TriggeredAlert]:
        """Run every rule, deduplicate, and sort critical first."""
        candidates = [c for c in (rule.evaluate(stats) for rule in self.rules) if c is not None]
        selected = select_candidates(candidates)

        now = datetime.now(timezone.utc)
        alerts = [
            TriggeredAlert(
                id=f"triggered-{c.rule.id}-{uuid.uuid4().hex[:8]}",
                rule_id=c.rule.id,
                rule_name=c.rule.name,
                metric=c.rule.metric,
                condition=c.rule.comparison.value,
                current_value=c.current_value,
                threshold=c.threshold,
                severity=c.rule.severity,
                message=c.message,
                triggered_at=now,
                state=scope,
                recommendations=list(c.rule.recommendations),
            )
            for c in selected
        ]
        # Stable sort keeps declaration order within a severity
        alerts.sort(key=lambda a: SEVERITY_ORDER[a.severity])

        if alerts:
            logger.info(f"{len(alerts)} alerts triggered" + (f" for {scope}" if scope else ""))
        return alerts

    def evaluate(self, series: Sequence[float], scope: Optional[str] = None) -> List[TriggeredAlert]:
        """
        Evaluate the rule set against a daily series (oldest first).

        Args:
            series: Daily counts, most recent last
            scope: Optional state the series was filtered to

        Returns:
            Triggered alerts sorted critical -> high -> medium -> low
        """
        stats = self.compute_statistics(series)
        if stats is None:
            return []
        return self.evaluate_statistics(stats, scope)
