"""Mid-year report endpoints for an application.

Viewing, saving drafts, checking readiness, submitting, and the status
history.  Reopening lives in the admin router.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.deps import (
    _safe_error,
    get_current_user,
    get_db,
    get_reporting_period,
    raise_for_domain_error,
)
from portal.errors import PortalError
from portal.models.allocation_models import AllocationSummaryResponse
from portal.models.report_models import (
    ReportResponse,
    ReportSaveRequest,
    ReportValidationResponse,
    StatusHistoryResponse,
)
from portal.reporting_periods import ReportingPeriod
from portal.security import rate_limit_write
from portal.services.report_service import ReportService, check_access

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["reports"])


async def _load(
    db: AsyncSession,
    application_id: uuid.UUID,
    period: ReportingPeriod,
    user: dict,
    write: bool = False,
):
    """Fetch the application, check access, and get-or-create its report."""
    application = await ReportService.get_application(db, application_id)
    check_access(user, application, write=write)
    report = await ReportService.get_or_create_report(db, application.id, period)
    return application, report


# ---------------------------------------------------------------------------
# GET  /applications/{application_id}/report
# ---------------------------------------------------------------------------


@router.get("/applications/{application_id}/report", response_model=ReportResponse)
async def get_report(
    application_id: uuid.UUID,
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Get the application's report for the period, creating it if needed."""
    try:
        application, report = await _load(db, application_id, period, current_user)
        view = await ReportService.build_report_view(db, report, application)
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("fetching report", e),
        ) from e

    return ReportResponse(**view)


# ---------------------------------------------------------------------------
# PUT  /applications/{application_id}/report
# ---------------------------------------------------------------------------


@router.put("/applications/{application_id}/report", response_model=ReportResponse)
@rate_limit_write()
async def save_report(
    request: Request,
    application_id: uuid.UUID,
    body: ReportSaveRequest,
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Save a draft.  Collections in the body replace what is stored.

    Raises:
        HTTPException 409: The report has been submitted.
    """
    try:
        application, report = await _load(
            db, application_id, period, current_user, write=True
        )
        report = await ReportService.save_draft(
            db, report, body.model_dump(exclude_unset=True), current_user
        )
        view = await ReportService.build_report_view(db, report, application)
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("saving report", e),
        ) from e

    return ReportResponse(**view)


# ---------------------------------------------------------------------------
# GET  /applications/{application_id}/report/validation
# ---------------------------------------------------------------------------


@router.get(
    "/applications/{application_id}/report/validation",
    response_model=ReportValidationResponse,
)
async def validate_report(
    application_id: uuid.UUID,
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Run the submission checks without submitting."""
    try:
        application, report = await _load(db, application_id, period, current_user)
        errors, summary = await ReportService.validate_report(db, report, application)
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("validating report", e),
        ) from e

    return ReportValidationResponse(
        is_valid=not errors,
        errors=errors,
        allocation_summary=AllocationSummaryResponse(**summary.to_dict())
        if summary is not None
        else None,
    )


# ---------------------------------------------------------------------------
# POST  /applications/{application_id}/report/submit
# ---------------------------------------------------------------------------


@router.post(
    "/applications/{application_id}/report/submit", response_model=ReportResponse
)
@rate_limit_write()
async def submit_report(
    request: Request,
    application_id: uuid.UUID,
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Submit the report.

    Raises:
        HTTPException 409: Already submitted.
        HTTPException 422: Submission checks failed; ``detail.errors`` maps
            each failing section to its messages.
    """
    try:
        application, report = await _load(
            db, application_id, period, current_user, write=True
        )
        report = await ReportService.submit_report(db, report, application, current_user)
        view = await ReportService.build_report_view(db, report, application)
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("submitting report", e),
        ) from e

    return ReportResponse(**view)


# ---------------------------------------------------------------------------
# GET  /applications/{application_id}/report/history
# ---------------------------------------------------------------------------


@router.get(
    "/applications/{application_id}/report/history",
    response_model=list[StatusHistoryResponse],
)
async def get_report_history(
    application_id: uuid.UUID,
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Status changes for the report, oldest first."""
    try:
        _, report = await _load(db, application_id, period, current_user)
        history = await ReportService.get_history(db, report.id)
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("fetching report history", e),
        ) from e

    return [
        StatusHistoryResponse(
            id=str(h.id),
            report_id=str(h.report_id),
            old_status=h.old_status,
            new_status=h.new_status,
            changed_by=str(h.changed_by),
            reason=h.reason,
            created_at=h.created_at,
        )
        for h in history
    ]
