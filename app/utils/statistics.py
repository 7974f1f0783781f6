"""
Statistical helpers over numeric series (typically daily enrollment counts).

All functions are pure. Functions whose result is undefined for the input
(mean of nothing, z-score with zero spread) raise ValueError; callers are
expected to guard.
"""
from dataclasses import dataclass, field
from typing import Dict, Any, List, Literal, Sequence

import numpy as np

TrendDirection = Literal["increasing", "decreasing", "stable"]

TREND_THRESHOLD = 0.05  # 5% change between halves
SEASONAL_THRESHOLD = 0.1  # amplitude above 10% of the phase-mean average


@dataclass
class SeasonalPattern:
    """Result of seasonal pattern detection."""
    has_pattern: bool
    amplitude: float
    peak_indices: List[int] = field(default_factory=list)
    phase_means: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_pattern": self.has_pattern,
            "amplitude": round(self.amplitude, 2),
            "peak_indices": self.peak_indices,
            "phase_means": [round(v, 2) for v in self.phase_means]
        }


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        raise ValueError("mean requires at least one value")
    return float(np.mean(values))


def stddev(values: Sequence[float]) -> float:
    """Population standard deviation (no sample correction)."""
    if len(values) == 0:
        raise ValueError("stddev requires at least one value")
    return float(np.std(values))


def z_score(value: float, mean_value: float, std_value: float) -> float:
    if std_value == 0:
        raise ValueError("z-score is undefined when stddev is 0")
    return (value - mean_value) / std_value


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile on the sorted series (p in 0-100)."""
    if len(values) == 0:
        raise ValueError("percentile requires at least one value")
    ordered = sorted(values)
    idx = int(len(ordered) * p / 100)
    return float(ordered[min(idx, len(ordered) - 1)])


def coefficient_of_variation(values: Sequence[float]) -> float:
    """stddev / mean, or 0 when the mean is not positive."""
    m = mean(values)
    return stddev(values) / m if m > 0 else 0.0


def growth_rate(current: float, previous: float) -> float:
    """Single-step percentage change; 0 when there is no positive baseline."""
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def trend_direction(values: Sequence[float]) -> TrendDirection:
    """
    Compare the mean of the first half with the mean of the second half.

    More than +5% is increasing, below -5% decreasing, otherwise stable.
    """
    if len(values) < 2:
        return "stable"

    mid = len(values) // 2
    first_mean = mean(values[:mid])
    second_mean = mean(values[mid:])

    if first_mean == 0:
        return "increasing" if second_mean > 0 else "stable"

    change = (second_mean - first_mean) / abs(first_mean)
    if change > TREND_THRESHOLD:
        return "increasing"
    if change < -TREND_THRESHOLD:
        return "decreasing"
    return "stable"


def detect_anomalies(values: Sequence[float], z_threshold: float = 2.5) -> List[int]:
    """
    Indices whose |z-score| exceeds the threshold.

    Scored against the whole series' mean and stddev, not a rolling window.
    A flat or empty series has no anomalies.
    """
    if len(values) == 0:
        return []
    m = mean(values)
    s = stddev(values)
    if s == 0:
        return []
    return [i for i, v in enumerate(values) if abs(z_score(v, m, s)) > z_threshold]


def seasonal_pattern(values: Sequence[float], period: int = 12) -> SeasonalPattern:
    """
    Detect a repeating pattern of length `period`.

    Needs at least two full cycles. Phase means are taken over full cycles
    only; the pattern is present when their range exceeds 10% of their
    average. Peaks are phases above the average by more than half that margin.
    """
    if period < 1:
        raise ValueError("period must be positive")
    if len(values) < period * 2:
        return SeasonalPattern(has_pattern=False, amplitude=0.0)

    cycles = len(values) // period
    grid = np.asarray(values[:cycles * period], dtype=float).reshape(cycles, period)
    phase_means = grid.mean(axis=0)

    phase_average = float(phase_means.mean())
    amplitude = float(phase_means.max() - phase_means.min())
    threshold = phase_average * SEASONAL_THRESHOLD

    peaks = [i for i, v in enumerate(phase_means) if v > phase_average + threshold / 2]

    return SeasonalPattern(
        has_pattern=amplitude > threshold,
        amplitude=amplitude,
        peak_indices=peaks,
        phase_means=[float(v) for v in phase_means],
    )


def moving_average(values: Sequence[float], window: int) -> List[float]:
    """Simple moving average; one output per full window."""
    if window < 1:
        raise ValueError("window must be positive")
    if len(values) < window:
        return []
    kernel = np.ones(window) / window
    return [float(v) for v in np.convolve(np.asarray(values, dtype=float), kernel, mode="valid")]


def exponential_smoothing(values: Sequence[float], alpha: float = 0.3) -> List[float]:
    """Recursive smoothing seeded with the first observation."""
    if not 0 < alpha <= 1:
        raise ValueError("alpha must be in (0, 1]")
    if len(values) == 0:
        return []
    result = [float(values[0])]
    for v in values[1:]:
        result.append(alpha * v + (1 - alpha) * result[-1])
    return result


def confidence_score(data_points: int, variance: float, model_accuracy: float = 0.7) -> float:
    """
    Heuristic confidence in [0, 1].

    Up to 0.4 for data volume (saturating at 1000 points), up to 0.3 for
    low variance, up to 0.3 for the supplied model accuracy. Not a
    probability.
    """
    data_factor = min(data_points / 1000, 1) * 0.4
    variance_factor = max(0.0, 1 - max(variance, 0.0)) * 0.3
    accuracy_factor = model_accuracy * 0.3
    return min(max(data_factor + variance_factor + accuracy_factor, 0.0), 1.0)
