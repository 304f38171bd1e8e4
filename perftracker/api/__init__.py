"""
Perftracker API package initialization.

This package contains FastAPI router modules for the Performance Tracker:
- deep_dive: period-over-period tiering and anomaly analysis
- metadata: filter dropdown values (TTL cached)
"""

from fastapi import APIRouter

from perftracker.api.deep_dive import router as deep_dive_router
from perftracker.api.metadata import router as metadata_router

# Main API router, mounted under /performance-tracker
api_router = APIRouter()

api_router.include_router(deep_dive_router, prefix="/performance-tracker", tags=["deep-dive"])
api_router.include_router(metadata_router, prefix="/performance-tracker", tags=["metadata"])

__all__ = [
    "api_router",
    "deep_dive_router",
    "metadata_router",
]
