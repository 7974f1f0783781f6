"""
Schemas package initialization.
"""
from app.schemas.common import (
    EnrollmentFilter,
    HealthResponse,
    ListResponse,
)
from app.schemas.alert import (
    AlertRecord,
    AlertMetrics,
    AlertCheckResponse,
    AlertRuleInfo,
    AlertRulesResponse,
)

__all__ = [
    # Common
    "EnrollmentFilter",
    "HealthResponse",
    "ListResponse",
    # Alerts
    "AlertRecord",
    "AlertMetrics",
    "AlertCheckResponse",
    "AlertRuleInfo",
    "AlertRulesResponse",
]
