"""Applications router.

Lists the applications a user can see with their current-period report
state, and the organization dashboard built from the same data.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.deps import (
    _safe_error,
    get_current_user,
    get_db,
    get_reporting_period,
    raise_for_domain_error,
)
from portal.errors import PortalError
from portal.models.application_models import (
    ApplicationListResponse,
    ApplicationWithReport,
    DashboardResponse,
    DashboardStats,
)
from portal.reporting_periods import ReportingPeriod
from portal.services.application_service import ApplicationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["applications"])


# ---------------------------------------------------------------------------
# GET  /applications
# ---------------------------------------------------------------------------


@router.get("/applications", response_model=ApplicationListResponse)
async def list_applications(
    call_type: Optional[str] = Query(None, description="Filter by call type"),
    report_status: Optional[str] = Query(
        None,
        alias="status",
        description="Filter by report status: not_started, draft, submitted, reopened, overdue",
    ),
    search: Optional[str] = Query(
        None, max_length=200, description="Title or organization name contains"
    ),
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """List applications visible to the signed-in user."""
    try:
        applications = await ApplicationService.list_applications(
            db,
            current_user,
            call_type=call_type,
            report_status=report_status,
            search=search,
            period=period,
        )
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing applications", e),
        ) from e

    return ApplicationListResponse(
        applications=[ApplicationWithReport(**app) for app in applications],
        total=len(applications),
    )


# ---------------------------------------------------------------------------
# GET  /applications/dashboard
# ---------------------------------------------------------------------------


@router.get("/applications/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Counts by report status and the application list for the dashboard."""
    try:
        dashboard = await ApplicationService.get_dashboard(db, current_user, period=period)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("building dashboard", e),
        ) from e

    return DashboardResponse(
        stats=DashboardStats(**dashboard["stats"]),
        applications=[ApplicationWithReport(**app) for app in dashboard["applications"]],
    )


# ---------------------------------------------------------------------------
# GET  /applications/{application_id}
# ---------------------------------------------------------------------------


@router.get("/applications/{application_id}", response_model=ApplicationWithReport)
async def get_application(
    application_id: uuid.UUID,
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Get one application with its report state for the period.

    Raises:
        HTTPException 404: Application not found.
        HTTPException 403: Application belongs to another organization.
    """
    try:
        application = await ApplicationService.get_application(
            db, application_id, current_user, period=period
        )
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("fetching application", e),
        ) from e

    return ApplicationWithReport(**application)
