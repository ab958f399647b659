"""Admin CSV exports."""

import io
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from portal.deps import (
    _safe_error,
    get_db,
    get_reporting_period,
    raise_for_domain_error,
    require_staff,
)
from portal.errors import PortalError
from portal.reporting_periods import ReportingPeriod
from portal.services.export_service import ExportService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/admin/exports/funding-stream.csv")
async def export_funding_stream_csv(
    funding_stream: Optional[str] = Query(None),
    include_unsubmitted: bool = Query(False),
    period: ReportingPeriod = Depends(get_reporting_period),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(require_staff),
):
    """Allocations on investment reports for the period, as CSV.

    Returns:
        StreamingResponse with CSV content.
    """
    try:
        csv_content = await ExportService.funding_stream_csv(
            db,
            period,
            funding_stream=funding_stream,
            submitted_only=not include_unsubmitted,
        )
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("exporting funding stream CSV", e),
        ) from e

    filename = f"funding_stream_{period.start.isoformat()}_{period.end.isoformat()}.csv"
    return StreamingResponse(
        io.StringIO(csv_content),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
