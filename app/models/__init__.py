"""
Domain models package.
"""
from app.models.enrollment import (
    EnrollmentRecord,
    AgeGroupTotals,
    AggregatedMetrics,
    district_key,
)

__all__ = [
    "EnrollmentRecord",
    "AgeGroupTotals",
    "AggregatedMetrics",
    "district_key",
]
