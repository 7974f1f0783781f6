"""
FastAPI application entry point.

Aadhaar Pulse Alerts - enrollment analytics and dynamic-threshold alerting
over the Aadhaar enrollment CSV exports.
"""
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings, configure_logging
from app.dependencies import ServiceContainer
from app.routers import analytics, alerts
from app.schemas.common import HealthResponse

configure_logging()
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
    📊 **Aadhaar Pulse Alerts API**

    Analytics and alerting over Aadhaar enrollment records loaded from
    CSV exports.

    ## Key Features

    * **Aggregated Metrics**: Totals by state, district, date and age group
    * **Trend Analysis**: Direction, weekly seasonality and confidence
    * **Forecasting**: Exponential smoothing with a growth drift
    * **Anomaly Detection**: Z-score anomalies, national and by district
    * **Alerts**: Dynamic-threshold rules, deduplicated and severity sorted

    Results are cached in Redis when available, otherwise in process.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup event
@app.on_event("startup")
async def startup_event():
    """Wire services and optionally warm the cache."""
    app.state.services = ServiceContainer.build(settings)
    logger.info(f"✅ Services initialised (csv_dir={settings.csv_dir})")

    if settings.PRELOAD_ON_STARTUP:
        await app.state.services.aggregation.preload()


@app.on_event("shutdown")
async def shutdown_event():
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.close()


# Include routers with prefixes
app.include_router(
    analytics.router,
    prefix=f"{settings.API_V1_PREFIX}/analytics",
    tags=["Analytics"]
)
app.include_router(
    alerts.router,
    prefix=f"{settings.API_V1_PREFIX}/alerts",
    tags=["Alerts"]
)


# Root endpoint
@app.get("/", tags=["Root"])
def root():
    """API root endpoint with basic information."""
    return {
        "message": "📊 Aadhaar Pulse Alerts API",
        "version": settings.VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "analytics": f"{settings.API_V1_PREFIX}/analytics",
            "alerts": f"{settings.API_V1_PREFIX}/alerts",
            "health": f"{settings.API_V1_PREFIX}/health"
        }
    }


# Health check
@app.get(f"{settings.API_V1_PREFIX}/health", tags=["Health"], response_model=HealthResponse)
def health_check():
    """Cache tier status and the counters from the last source load."""
    services = getattr(app.state, "services", None)
    if services is None:
        return {"status": "starting", "version": settings.VERSION, "cache": {}}

    cache_status = services.cache.status()
    stats = services.loader.last_load_stats

    degraded = cache_status["remote"] == "unavailable" or services.loader.source_unavailable
    return {
        "status": "degraded" if degraded else "healthy",
        "version": settings.VERSION,
        "cache": cache_status,
        "last_load": stats.to_dict() if stats else None
    }


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "status_code": exc.status_code
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc),
            "status_code": 500
        }
    )
