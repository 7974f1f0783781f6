"""
Enrollment analytics API endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from datetime import date
from typing import Literal, Optional

from app.dependencies import ServiceContainer, get_services
from app.ml_models.time_series_forecasting import InsufficientHistoryError
from app.schemas.common import EnrollmentFilter, ListResponse
from app.services.analytics_service import DataUnavailableError

router = APIRouter()


@router.get("/metrics")
async def get_metrics(
    state: Optional[str] = Query(None, description="Filter by state"),
    district: Optional[str] = Query(None, description="Filter by district"),
    start_date: Optional[date] = Query(None, description="First day included"),
    end_date: Optional[date] = Query(None, description="Last day included"),
    top: int = Query(10, ge=1, le=100, description="Number of top states"),
    days: int = Query(30, ge=1, le=365, description="Length of the daily series"),
    services: ServiceContainer = Depends(get_services)
):
    """
    Get aggregated enrollment metrics.

    Returns:
    - Total count and age group breakdown
    - Totals by state, district and date
    - Top states by count
    - Most recent daily series
    """
    try:
        filters = EnrollmentFilter(
            state=state,
            district=district,
            start_date=start_date,
            end_date=end_date
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors()[0]["msg"])

    try:
        return await services.analytics.metrics(filters, top=top, days=days)
    except DataUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/states", response_model=ListResponse)
async def get_states(services: ServiceContainer = Depends(get_services)):
    """Get list of all states in the data."""
    states = await services.aggregation.states()
    return {"items": states, "count": len(states)}


@router.get("/districts", response_model=ListResponse)
async def get_districts(
    state: Optional[str] = Query(None, description="Filter by state"),
    services: ServiceContainer = Depends(get_services)
):
    """Get list of districts, optionally filtered by state."""
    districts = await services.aggregation.districts(state)
    return {"items": districts, "count": len(districts)}


@router.get("/trends")
async def get_trends(
    state: Optional[str] = Query(None),
    district: Optional[str] = Query(None),
    time_period: str = Query("30d", pattern="^(7d|30d|90d|365d)$"),
    view_mode: Literal["daily", "monthly", "quarterly"] = Query("daily"),
    services: ServiceContainer = Depends(get_services)
):
    """
    Trend direction, weekly seasonality and confidence for recent days.

    `view_mode` sets the granularity of the returned series.
    """
    try:
        return await services.analytics.trends(
            state=state,
            district=district,
            time_period=time_period,
            view_mode=view_mode
        )
    except DataUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/forecast")
async def get_forecast(
    horizon: int = Query(30, ge=1, le=90, description="Days to forecast"),
    state: Optional[str] = Query(None, description="Filter by state"),
    services: ServiceContainer = Depends(get_services)
):
    """
    Forecast daily enrollments with exponential smoothing.

    Needs at least 7 days of history.
    """
    try:
        return await services.analytics.forecast(horizon=horizon, state=state)
    except InsufficientHistoryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DataUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/anomalies")
async def get_anomalies(
    threshold: float = Query(2.5, gt=0, description="Z-score threshold"),
    state: Optional[str] = Query(None, description="Filter by state"),
    severity: Optional[Literal["high", "medium", "low"]] = Query(None),
    services: ServiceContainer = Depends(get_services)
):
    """
    Detect statistical anomalies in the daily series.

    Covers the national series and the 30 largest districts. Returns at
    most 20 anomalies, highest severity first.
    """
    try:
        return await services.analytics.anomalies(threshold=threshold, state=state, severity=severity)
    except DataUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/cache/refresh")
async def refresh_cache(services: ServiceContainer = Depends(get_services)):
    """Invalidate every cached view and reload records from the CSV source."""
    records = await services.loader.refresh()
    stats = services.loader.last_load_stats
    return {
        "status": "reloaded",
        "records": len(records),
        "load_stats": stats.to_dict() if stats else None
    }
