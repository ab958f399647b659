"""Health-check router."""

import logging
import os
from datetime import datetime, timezone

from fastapi import APIRouter

from portal import __version__
from portal.services.language_service import get_language_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Health check"""
    return {"status": "ok", "message": "Mid-year reporting API is running"}


@router.get("/api/v1/health")
async def health_check():
    """Detailed health check, including reference data availability."""
    capabilities = ["reports", "allocation_validation"]
    degraded = []

    if os.getenv("DATABASE_URL"):
        capabilities.append("database")
    else:
        degraded.append("database")

    if get_language_service().languages:
        capabilities.append("language_search")
    else:
        degraded.append("language_search")

    return {
        "status": "degraded" if degraded else "healthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "capabilities": capabilities,
        "degraded": degraded,
    }
