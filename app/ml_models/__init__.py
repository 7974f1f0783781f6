"""
ML Models for Aadhaar Pulse Alerts.

1. Exponential Smoothing Forecasting - daily enrollment demand prediction
"""

from .time_series_forecasting import (
    SmoothingForecaster,
    ForecastResult,
    ForecastSummary,
    InsufficientHistoryError
)

__all__ = [
    'SmoothingForecaster',
    'ForecastResult',
    'ForecastSummary',
    'InsufficientHistoryError'
]
