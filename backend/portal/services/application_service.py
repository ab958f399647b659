"""Applications visible to a user, with their current-period report state."""

import logging
import uuid
from collections import Counter
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.call_types import require_known_call_type, template_for_call_type
from portal.errors import NotFoundError
from portal.models.db.application import Application, ApplicationFinancials
from portal.models.db.organization import ClientRep, Organization
from portal.models.db.report import ApplicationReport
from portal.reporting_periods import (
    ReportingPeriod,
    current_period,
    days_until_due,
    is_overdue,
)
from portal.services.report_service import check_access

logger = logging.getLogger(__name__)


def display_status(status: Optional[str], period: ReportingPeriod, today: date) -> str:
    """The status shown to users: ``overdue`` replaces any unsubmitted status
    once the due date has passed."""
    status = status or "not_started"
    if is_overdue(status, period, today):
        return "overdue"
    return status


def application_entry(
    application: Application,
    organization_name: Optional[str],
    client_rep_name: Optional[str],
    report: Optional[ApplicationReport],
    financials: Optional[ApplicationFinancials],
    period: ReportingPeriod,
    today: date,
) -> Dict[str, Any]:
    """Flatten an application and its period report into a response dict."""
    report_status = report.status if report is not None else "not_started"
    return {
        "id": str(application.id),
        "organization_id": str(application.organization_id),
        "organization_name": organization_name,
        "client_rep_name": client_rep_name,
        "title": application.title,
        "call_type": application.call_type,
        "template": template_for_call_type(application.call_type),
        "funding_stream": application.funding_stream,
        "application_reference": application.application_reference,
        "award_reference": application.award_reference,
        "total_awarded": float(application.total_awarded)
        if application.total_awarded is not None
        else None,
        "application_year": application.application_year,
        "status": application.status,
        "report_id": str(report.id) if report is not None else None,
        "report_status": report_status,
        "display_status": display_status(report_status, period, today),
        "reporting_period_start": period.start,
        "reporting_period_end": period.end,
        "due_date": period.due_date(),
        "days_until_due": days_until_due(period, today),
        "funds_received": float(financials.funds_received)
        if financials is not None and financials.funds_received is not None
        else None,
        "funds_spent": float(financials.funds_spent)
        if financials is not None and financials.funds_spent is not None
        else None,
    }


class ApplicationService:
    """Service layer for application listings and the dashboard."""

    @staticmethod
    def _visible_query(user: Mapping[str, Any], period: ReportingPeriod):
        query = (
            select(
                Application,
                Organization.name,
                ClientRep.full_name,
                ApplicationReport,
                ApplicationFinancials,
            )
            .join(Organization, Organization.id == Application.organization_id)
            .outerjoin(ClientRep, ClientRep.id == Organization.client_rep_id)
            .outerjoin(
                ApplicationReport,
                and_(
                    ApplicationReport.application_id == Application.id,
                    ApplicationReport.reporting_period_start == period.start,
                    ApplicationReport.reporting_period_end == period.end,
                ),
            )
            .outerjoin(
                ApplicationFinancials,
                and_(
                    ApplicationFinancials.application_id == Application.id,
                    ApplicationFinancials.reporting_period_start == period.start,
                    ApplicationFinancials.reporting_period_end == period.end,
                ),
            )
        )
        if user.get("role") not in ("admin", "staff"):
            org_id = user.get("organization_id")
            if not org_id:
                # An org user without an organization sees nothing.
                return query.where(False)
            query = query.where(Application.organization_id == uuid.UUID(org_id))
        return query

    @staticmethod
    async def list_applications(
        db: AsyncSession,
        user: Mapping[str, Any],
        call_type: Optional[str] = None,
        report_status: Optional[str] = None,
        search: Optional[str] = None,
        period: Optional[ReportingPeriod] = None,
        today: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Applications visible to *user* for *period*, filtered.

        ``report_status`` matches the displayed status, so ``overdue``
        is a valid filter.
        """
        period = period or current_period()
        require_known_call_type(call_type)
        today = today or date.today()

        query = ApplicationService._visible_query(user, period)
        if call_type:
            query = query.where(Application.call_type == call_type)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(Application.title.ilike(pattern), Organization.name.ilike(pattern))
            )
        query = query.order_by(Organization.name, Application.title)

        result = await db.execute(query)
        entries = [
            application_entry(app, org_name, rep_name, report, financials, period, today)
            for app, org_name, rep_name, report, financials in result.all()
        ]
        if report_status:
            entries = [e for e in entries if e["display_status"] == report_status]
        return entries

    @staticmethod
    async def get_application(
        db: AsyncSession,
        application_id: uuid.UUID,
        user: Mapping[str, Any],
        period: Optional[ReportingPeriod] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        period = period or current_period()
        today = today or date.today()

        query = ApplicationService._visible_query({"role": "admin"}, period).where(
            Application.id == application_id
        )
        result = await db.execute(query)
        row = result.first()
        if row is None:
            raise NotFoundError("Application not found")
        application, org_name, rep_name, report, financials = row
        check_access(user, application)
        return application_entry(
            application, org_name, rep_name, report, financials, period, today
        )

    @staticmethod
    async def get_dashboard(
        db: AsyncSession,
        user: Mapping[str, Any],
        period: Optional[ReportingPeriod] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Counts by displayed status plus the application list."""
        applications = await ApplicationService.list_applications(
            db, user, period=period, today=today
        )
        by_status = Counter(app["display_status"] for app in applications)
        total_awarded = sum(app["total_awarded"] or 0.0 for app in applications)
        return {
            "stats": {
                "total_applications": len(applications),
                "by_status": dict(by_status),
                "total_awarded": round(total_awarded, 2),
            },
            "applications": applications,
        }
