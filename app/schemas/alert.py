"""
Alert Pydantic schemas.
"""
from pydantic import BaseModel
from typing import List, Optional, Literal


class AlertRecord(BaseModel):
    """Single triggered alert."""
    id: str
    rule_id: str
    rule_name: str
    metric: str
    condition: Literal["greater_than", "less_than"]
    current_value: float
    threshold: float
    severity: Literal["critical", "high", "medium", "low"]
    message: str
    triggered_at: str
    state: Optional[str] = None
    recommendations: List[str] = []


class AlertMetrics(BaseModel):
    """Statistics the rules were evaluated against."""
    latest: float
    mean: float
    stddev: float
    anomaly_score: float
    growth_rate: float
    p5: float
    p95: float
    total_count: int
    data_points: int


class AlertCheckResponse(BaseModel):
    """Response for the alert check endpoint."""
    alerts: List[AlertRecord]
    total: int
    critical: int
    high: int
    medium: int
    low: int
    checked_at: str
    time_range: str
    state: Optional[str] = None
    metrics: Optional[AlertMetrics] = None


class AlertRuleInfo(BaseModel):
    """Static alert rule description."""
    id: str
    name: str
    metric: str
    condition: str
    severity: str
    recommendations: List[str]


class AlertRulesResponse(BaseModel):
    rules: List[AlertRuleInfo]
    count: int
