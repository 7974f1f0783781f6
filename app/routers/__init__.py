"""
Routers package initialization.
"""
from app.routers import analytics
from app.routers import alerts

__all__ = [
    "analytics",
    "alerts",
]
