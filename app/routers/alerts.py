"""
Alert API endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from app.dependencies import ServiceContainer, get_services
from app.schemas.alert import AlertCheckResponse, AlertRulesResponse
from app.services.analytics_service import DataUnavailableError

router = APIRouter()


@router.get("/check", response_model=AlertCheckResponse)
async def check_alerts(
    state: Optional[str] = Query(None, description="Restrict the check to one state"),
    time_range: str = Query("30d", pattern="^(7d|30d|90d|365d)$", description="History window"),
    services: ServiceContainer = Depends(get_services)
):
    """
    Evaluate the alert rules against the latest daily enrollment count.

    Thresholds are dynamic: they come from the mean, standard deviation
    and percentiles of the days before the latest one.

    Returns alerts sorted critical first, with per-severity counts and the
    statistics used.
    """
    try:
        return await services.analytics.alert_report(state=state, time_range=time_range)
    except DataUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/rules", response_model=AlertRulesResponse)
def list_rules(services: ServiceContainer = Depends(get_services)):
    """List the alert rules in evaluation order."""
    rules = [rule.to_dict() for rule in services.alerts.rules]
    return {"rules": rules, "count": len(rules)}
