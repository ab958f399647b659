"""Business logic for the admin console: statistics, report listing, users."""

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.call_types import require_known_call_type
from portal.errors import NotFoundError, PortalError
from portal.models.db.application import Application
from portal.models.db.organization import Organization
from portal.models.db.report import ApplicationReport
from portal.models.db.user import USER_ROLES, User
from portal.reporting_periods import ReportingPeriod, current_period, is_overdue
from portal.services.application_service import display_status

logger = logging.getLogger(__name__)


def _report_item(
    report: ApplicationReport,
    application: Application,
    organization_name: str,
    today: date,
) -> Dict[str, Any]:
    period = ReportingPeriod(report.reporting_period_start, report.reporting_period_end)
    return {
        "id": str(report.id),
        "status": report.status,
        "display_status": display_status(report.status, period, today),
        "reporting_period_start": report.reporting_period_start,
        "reporting_period_end": report.reporting_period_end,
        "submitted_at": report.submitted_at,
        "updated_at": report.updated_at,
        "application_id": str(application.id),
        "application_title": application.title,
        "call_type": application.call_type,
        "total_awarded": float(application.total_awarded)
        if application.total_awarded is not None
        else None,
        "organization_name": organization_name,
    }


def _user_dict(user: User) -> Dict[str, Any]:
    """User row as a response dict, without the password hash."""
    return {
        "id": str(user.id),
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "is_active": user.is_active,
        "organization_id": str(user.organization_id) if user.organization_id else None,
        "created_at": user.created_at,
    }


class AdminService:
    """Static-method service backing the admin routers."""

    @staticmethod
    async def _count(db: AsyncSession, query) -> int:
        result = await db.execute(query)
        return result.scalar() or 0

    @staticmethod
    async def get_stats(
        db: AsyncSession,
        period: Optional[ReportingPeriod] = None,
        today: Optional[date] = None,
    ) -> Dict[str, int]:
        """Portal-wide counts.  Report counts cover *period* only.

        ``draft_reports`` includes reopened reports.  ``not_started_reports``
        counts applications with no report row for the period as well as
        rows still marked ``not_started``.
        """
        period = period or current_period()
        today = today or date.today()

        total_users = await AdminService._count(db, select(func.count(User.id)))
        total_organizations = await AdminService._count(
            db, select(func.count(Organization.id))
        )
        total_applications = await AdminService._count(
            db, select(func.count(Application.id))
        )

        result = await db.execute(
            select(ApplicationReport.status, func.count(ApplicationReport.id))
            .where(
                ApplicationReport.reporting_period_start == period.start,
                ApplicationReport.reporting_period_end == period.end,
            )
            .group_by(ApplicationReport.status)
        )
        by_status = {status: count for status, count in result.all()}
        total_reports = sum(by_status.values())
        submitted = by_status.get("submitted", 0)
        draft = by_status.get("draft", 0) + by_status.get("reopened", 0)
        missing = max(total_applications - total_reports, 0)
        not_started = by_status.get("not_started", 0) + missing

        overdue = 0
        if is_overdue("not_started", period, today):
            overdue = total_applications - submitted

        return {
            "total_users": total_users,
            "total_organizations": total_organizations,
            "total_applications": total_applications,
            "total_reports": total_reports,
            "submitted_reports": submitted,
            "draft_reports": draft,
            "not_started_reports": not_started,
            "overdue_reports": max(overdue, 0),
        }

    @staticmethod
    async def list_reports(
        db: AsyncSession,
        status: Optional[str] = None,
        organization_id: Optional[uuid.UUID] = None,
        call_type: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
        today: Optional[date] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Reports across every organization, most recently updated first.

        ``status`` may be ``overdue``, which selects unsubmitted reports past
        their due date.
        """
        require_known_call_type(call_type)
        today = today or date.today()

        query = (
            select(ApplicationReport, Application, Organization.name)
            .join(Application, Application.id == ApplicationReport.application_id)
            .join(Organization, Organization.id == Application.organization_id)
        )
        if status and status != "overdue":
            query = query.where(ApplicationReport.status == status)
        elif status == "overdue":
            query = query.where(ApplicationReport.status != "submitted")
        if organization_id:
            query = query.where(Application.organization_id == organization_id)
        if call_type:
            query = query.where(Application.call_type == call_type)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(Application.title.ilike(pattern), Organization.name.ilike(pattern))
            )
        query = query.order_by(ApplicationReport.updated_at.desc())

        if status == "overdue":
            # Overdue depends on each report's own period, so filter in Python
            result = await db.execute(query)
            items = [
                _report_item(report, application, org_name, today)
                for report, application, org_name in result.all()
            ]
            items = [i for i in items if i["display_status"] == "overdue"]
            return items[offset : offset + limit], len(items)

        total = await AdminService._count(
            db, query.with_only_columns(func.count(ApplicationReport.id)).order_by(None)
        )
        result = await db.execute(query.limit(limit).offset(offset))
        items = [
            _report_item(report, application, org_name, today)
            for report, application, org_name in result.all()
        ]
        return items, total

    @staticmethod
    async def list_users(
        db: AsyncSession,
        role: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(User.email.ilike(pattern), User.full_name.ilike(pattern))
            )
        result = await db.execute(query.order_by(User.email))
        return [_user_dict(u) for u in result.scalars().all()]

    @staticmethod
    async def update_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        updates: Mapping[str, Any],
        admin: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Change a user's role, organization, or active flag.

        Raises:
            NotFoundError: Unknown user or organization.
            PortalError: Invalid role, or an admin demoting or deactivating
                their own account.
        """
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")

        is_self = str(user.id) == admin.get("id")

        if "role" in updates and updates["role"] is not None:
            role = updates["role"]
            if role not in USER_ROLES:
                raise PortalError(f"Invalid role '{role}'")
            if is_self and role != "admin":
                raise PortalError("You cannot remove your own admin role")
            user.role = role

        if "organization_id" in updates:
            org_id = updates["organization_id"]
            if org_id:
                org_uuid = uuid.UUID(str(org_id))
                org = await db.execute(
                    select(Organization.id).where(Organization.id == org_uuid)
                )
                if org.scalar_one_or_none() is None:
                    raise NotFoundError("Organization not found")
                user.organization_id = org_uuid
            else:
                user.organization_id = None

        if "is_active" in updates and updates["is_active"] is not None:
            if is_self and not updates["is_active"]:
                raise PortalError("You cannot deactivate your own account")
            user.is_active = updates["is_active"]

        await db.flush()
        await db.refresh(user)
        logger.info(
            "Admin %s updated user %s: %s",
            admin.get("id"),
            user.id,
            ", ".join(sorted(updates)),
        )
        return _user_dict(user)
