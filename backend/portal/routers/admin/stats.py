"""Admin dashboard statistics."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.deps import _safe_error, get_db, get_reporting_period, require_staff
from portal.models.admin_models import AdminStats
from portal.reporting_periods import ReportingPeriod
from portal.services.admin_service import AdminService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/admin/stats", response_model=AdminStats)
async def get_admin_stats(
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(require_staff),
):
    """Portal-wide counts; report counts cover the selected period."""
    try:
        stats = await AdminService.get_stats(db, period=period)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("computing admin stats", e),
        ) from e
    return AdminStats(**stats)
