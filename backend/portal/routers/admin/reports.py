"""Admin report listing and reopen."""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.deps import (
    _safe_error,
    get_db,
    raise_for_domain_error,
    require_admin,
    require_staff,
)
from portal.errors import PortalError
from portal.models.admin_models import AdminReportItem, AdminReportList
from portal.models.report_models import ReopenRequest, ReportResponse
from portal.services.admin_service import AdminService
from portal.security import log_security_event
from portal.services.report_service import ReportService

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# GET  /admin/reports
# ---------------------------------------------------------------------------


@router.get("/admin/reports", response_model=AdminReportList)
async def list_reports(
    report_status: Optional[str] = Query(
        None,
        alias="status",
        description="not_started, draft, submitted, reopened or overdue",
    ),
    organization_id: Optional[uuid.UUID] = Query(None),
    call_type: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(require_staff),
):
    """Reports across all organizations, most recently updated first."""
    try:
        items, total = await AdminService.list_reports(
            db,
            status=report_status,
            organization_id=organization_id,
            call_type=call_type,
            search=search,
            limit=limit,
            offset=offset,
        )
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing reports", e),
        ) from e

    return AdminReportList(reports=[AdminReportItem(**i) for i in items], total=total)


# ---------------------------------------------------------------------------
# POST  /admin/reports/{report_id}/reopen
# ---------------------------------------------------------------------------


@router.post("/admin/reports/{report_id}/reopen", response_model=ReportResponse)
async def reopen_report(
    request: Request,
    report_id: uuid.UUID,
    body: Optional[ReopenRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(require_admin),
):
    """Reopen a submitted report so the organization can edit it again.

    Raises:
        HTTPException 404: Report not found.
        HTTPException 409: Report is not currently submitted.
    """
    try:
        report = await ReportService.get_report(db, report_id)
        application = await ReportService.get_application(db, report.application_id)
        report = await ReportService.reopen_report(
            db, report, current_user, body.reason if body else None
        )
        view = await ReportService.build_report_view(db, report, application)
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("reopening report", e),
        ) from e

    log_security_event(
        "report_reopened",
        request,
        {"report_id": str(report_id), "admin_id": current_user["id"]},
    )
    return ReportResponse(**view)
