"""Shared dependencies for all reporting portal routers.

Centralises the database session dependency, authentication and role
dependencies, and small error helpers so every router can
``from portal.deps import ...`` without importing ``main``.
"""

import logging
from datetime import date
from typing import NoReturn, Optional

from fastapi import HTTPException, Query, status

from portal.auth import get_current_user, get_token_user, require_admin, require_staff
from portal.database import get_db
from portal.errors import (
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    PortalError,
    ReportLockedError,
    ReportValidationError,
)
from portal.reporting_periods import ReportingPeriod, current_period
from portal.security import limiter

logger = logging.getLogger(__name__)

__all__ = [
    "get_db",
    "get_current_user",
    "get_token_user",
    "require_admin",
    "require_staff",
    "limiter",
    "_safe_error",
    "raise_for_domain_error",
    "get_reporting_period",
]


def _safe_error(operation: str, e: Exception) -> str:
    """Log the full exception but return a safe message without internal details.

    This prevents leaking stack traces, file paths, or database internals
    to API consumers while preserving full diagnostics in server logs.
    """
    logger.exception("Error during %s", operation)
    return f"{operation} failed. Please try again or contact support."


def raise_for_domain_error(exc: PortalError) -> NoReturn:
    """Translate a service-layer exception into the matching HTTPException."""
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, PermissionDeniedError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, (ReportLockedError, InvalidTransitionError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ReportValidationError):
        raise HTTPException(
            status_code=422,
            detail={"message": str(exc), "errors": exc.errors},
        ) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def get_reporting_period(
    period_start: Optional[date] = Query(
        None, description="Reporting period start (defaults to the current period)"
    ),
    period_end: Optional[date] = Query(None, description="Reporting period end"),
) -> ReportingPeriod:
    """Resolve the reporting period from query parameters."""
    if period_start is None and period_end is None:
        return current_period()
    if period_start is None or period_end is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="period_start and period_end must be given together",
        )
    try:
        return ReportingPeriod(period_start, period_end)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
