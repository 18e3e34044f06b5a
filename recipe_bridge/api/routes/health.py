"""Health check endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from recipe_bridge.api.dependencies import get_staging_store
from recipe_bridge.core.staging_store import StagingStore
from recipe_bridge.middleware.performance import metrics

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check() -> Dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(staging_store: StagingStore = Depends(get_staging_store)) -> Dict[str, Any]:
    """
    Readiness check for Cloud Run.

    Reports how many staged recipes are currently held in memory.
    """
    return {
        "status": "ready",
        "staged_entries": len(staging_store),
    }


@router.get("/metrics")
async def performance_metrics() -> Dict[str, Any]:
    """Request counts, durations and error rates since startup."""
    return {
        "status": "ok",
        **metrics.get_summary(),
    }
