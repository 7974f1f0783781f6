"""
Exponential Smoothing Forecasting Model.

Covers:
- Daily enrollment demand forecast
- Weekly seasonality check
- Heuristic confidence score

Smooths the history, then projects the last smoothed level forward with
the week-over-week growth rate as a drift. Can be upgraded to
Prophet/SARIMA for production.
"""
import numpy as np
from datetime import date
from typing import List, Dict, Any, Optional, Sequence
from dataclasses import dataclass

from app.utils import statistics
from app.utils.date_utils import forecast_dates

MIN_HISTORY_DAYS = 7
MAX_HORIZON_DAYS = 90


class InsufficientHistoryError(ValueError):
    """Raised when the history is too short to forecast from."""


@dataclass
class ForecastResult:
    """Result of a forecast prediction."""
    date: date
    predicted: float
    lower_bound: float
    upper_bound: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "predicted": round(self.predicted, 0),
            "lower_bound": round(self.lower_bound, 0),
            "upper_bound": round(self.upper_bound, 0)
        }


@dataclass
class ForecastSummary:
    """Forecast plus the history statistics it was built from."""
    predictions: List[ForecastResult]
    growth_rate: float  # week-over-week, as a fraction
    trend_direction: str
    trend_strength: str
    seasonal: statistics.SeasonalPattern
    confidence_score: float
    history_mean: float
    history_std: float
    history_min: float
    history_max: float
    data_points: int

    def to_dict(self) -> Dict[str, Any]:
        next_week = sum(p.predicted for p in self.predictions[:7])
        next_month = sum(p.predicted for p in self.predictions[:30])
        return {
            "forecast": {
                "horizon_days": len(self.predictions),
                "predictions": [p.to_dict() for p in self.predictions],
                "summary": {
                    "next_week_total": round(next_week),
                    "next_month_total": round(next_month),
                    "daily_average_predicted": round(self.history_mean * (1 + self.growth_rate)),
                    "growth_rate_percent": round(self.growth_rate * 100, 2)
                }
            },
            "trend": {
                "direction": self.trend_direction,
                "strength": self.trend_strength
            },
            "seasonal": self.seasonal.to_dict(),
            "confidence": {
                "score": round(self.confidence_score, 2),
                "data_points": self.data_points,
                "model": "exponential_smoothing"
            },
            "historical": {
                "mean": round(self.history_mean),
                "std_dev": round(self.history_std),
                "min": self.history_min,
                "max": self.history_max
            }
        }


class SmoothingForecaster:
    """
    Exponential smoothing forecaster with growth drift.

    The prediction band is +/- 1.96 x (0.5 x history stddev).
    """

    def __init__(self, alpha: float = 0.3, model_accuracy: float = 0.85):
        """
        Initialize forecaster.

        Args:
            alpha: Smoothing factor in (0, 1]
            model_accuracy: Assumed accuracy fed into the confidence score
        """
        self.alpha = alpha
        self.model_accuracy = model_accuracy
        self.z_score = 1.96  # 95%

    @staticmethod
    def week_over_week_growth(counts: Sequence[float]) -> float:
        """Mean of the last 7 days vs the 7 before, as a fraction."""
        if len(counts) < 14:
            return 0.0
        previous = statistics.mean(counts[-14:-7])
        if previous <= 0:
            return 0.0
        return (statistics.mean(counts[-7:]) - previous) / previous

    def forecast(
        self,
        counts: Sequence[float],
        horizon: int = 30,
        start: Optional[date] = None
    ) -> ForecastSummary:
        """
        Forecast `horizon` days after `start` (default: today).

        Raises:
            InsufficientHistoryError: fewer than 7 history points
        """
        if len(counts) < MIN_HISTORY_DAYS:
            raise InsufficientHistoryError(
                f"Insufficient data for forecasting: {len(counts)} points, need {MIN_HISTORY_DAYS}"
            )

        values = np.asarray(counts, dtype=float)
        mean_value = statistics.mean(values)
        std_value = statistics.stddev(values)
        growth = self.week_over_week_growth(values)

        level = statistics.exponential_smoothing(values, self.alpha)[-1]
        variation = std_value * 0.5

        predictions = []
        for day in forecast_dates(start or date.today(), min(horizon, MAX_HORIZON_DAYS)):
            level = level * (1 + growth / 30)
            predictions.append(ForecastResult(
                date=day,
                predicted=round(level),
                lower_bound=round(max(0.0, level - variation * self.z_score)),
                upper_bound=round(level + variation * self.z_score)
            ))

        if abs(growth) > 0.1:
            strength = "strong"
        elif abs(growth) > 0.05:
            strength = "moderate"
        else:
            strength = "weak"

        return ForecastSummary(
            predictions=predictions,
            growth_rate=growth,
            trend_direction=statistics.trend_direction(values),
            trend_strength=strength,
            seasonal=statistics.seasonal_pattern(values, period=7),
            confidence_score=statistics.confidence_score(
                len(values),
                statistics.coefficient_of_variation(values),
                self.model_accuracy
            ),
            history_mean=mean_value,
            history_std=std_value,
            history_min=float(values.min()),
            history_max=float(values.max()),
            data_points=len(values)
        )
