"""Business logic for mid-year reports.

Covers the report lifecycle (get-or-create for a period, draft saves,
submission, admin reopen), the per-template submission checks, and the
status history.

Every status change goes through :meth:`ReportService.transition`, which
sets or clears ``submitted_at``/``submitted_by`` together with ``status``,
so a report is never marked submitted without a submission time.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import delete as sa_delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.call_types import (
    INVESTMENT_TEMPLATE,
    TOOL_CAPACITY_TEMPLATE,
    template_for_call_type,
    uses_allocations,
)
from portal.errors import (
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    PortalError,
    ReportLockedError,
    ReportValidationError,
)
from portal.models.db.allocation import (
    NonProjectAllocation,
    ProjectAllocation,
    ProjectAllocationPartner,
)
from portal.models.db.application import Application, ApplicationFinancials
from portal.models.report_models import NARRATIVE_MAX_LENGTH
from portal.models.db.report import (
    ApplicationReport,
    ReportMilestone,
    ReportStatusHistory,
)
from portal.reporting_periods import ReportingPeriod, current_period
from portal.services.allocation_validator import (
    AllocationSummary,
    validate_allocations,
    validate_project_allocation_fields,
)

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")


# ---------------------------------------------------------------------------
# Allowed status transitions
# ---------------------------------------------------------------------------
ALLOWED_TRANSITIONS: dict[str, list[str]] = {
    "not_started": ["draft", "submitted"],
    "draft": ["submitted"],
    "submitted": ["reopened"],
    "reopened": ["submitted"],
}

EDITABLE_STATUSES = {"not_started", "draft", "reopened"}

PROJECT_ALLOCATION_FIELDS = (
    "language_name",
    "ethnologue_code",
    "country",
    "dialect_rolv_number",
    "all_access_goal",
    "eligible_for_eten_funding",
    "all_access_status",
    "language_population_group",
    "first_language_population",
    "egids_level",
    "is_sign_language",
    "luminations_region",
)


def _to_decimal(value: Optional[float]) -> Optional[Decimal]:
    """Convert a float to Decimal cents, returning None for None."""
    if value is None:
        return None
    return Decimal(str(value)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _uuid_str(value: Optional[uuid.UUID]) -> Optional[str]:
    return str(value) if value is not None else None


# ---------------------------------------------------------------------------
# Pure checks
# ---------------------------------------------------------------------------


def check_narratives(report_fields: Mapping[str, Any]) -> List[str]:
    errors: List[str] = []
    for key, label in (
        ("progress_narrative", "Progress narrative"),
        ("variance_narrative", "Variance narrative"),
    ):
        text = report_fields.get(key) or ""
        if not text.strip():
            errors.append(f"{label} is required")
        elif len(text) > NARRATIVE_MAX_LENGTH:
            errors.append(
                f"{label} must be {NARRATIVE_MAX_LENGTH} characters or less"
            )
    return errors


def validate_sections(
    template: Optional[str],
    report_fields: Mapping[str, Any],
    project_allocations: Sequence[Mapping[str, Any]],
    non_project_amounts: Mapping[str, Any],
    funds_received: Optional[Decimal],
) -> Tuple[Dict[str, List[str]], Optional[AllocationSummary]]:
    """Run the submission checks for a report template.

    Args:
        template: ``investment_reporting`` or ``tool_capacity_reporting``.
        report_fields: Narratives and ``current_funds_spent``.
        project_allocations: Dicts with the allocation fields, ``amount_allocated``
            and ``partners``.
        non_project_amounts: Amount per non-project category.
        funds_received: Funds received for the period, if recorded.

    Returns:
        ``(errors, summary)`` where *errors* maps section name to messages
        (sections without problems are omitted) and *summary* is the
        allocation reconciliation for investment reports.
    """
    errors: Dict[str, List[str]] = {}
    summary: Optional[AllocationSummary] = None

    if template not in (INVESTMENT_TEMPLATE, TOOL_CAPACITY_TEMPLATE):
        errors["template"] = ["This application's call type has no report template"]
        return errors, None

    spent = report_fields.get("current_funds_spent")
    if spent is None or Decimal(str(spent)) <= 0:
        errors["financials"] = ["Current funds spent is required"]

    if template == INVESTMENT_TEMPLATE:
        project_errors: List[str] = []
        if not project_allocations:
            project_errors.append("At least one project allocation is required")
        project_errors.extend(validate_project_allocation_fields(project_allocations))
        if project_errors:
            errors["projects"] = project_errors

        summary = validate_allocations(
            [a.get("amount_allocated") for a in project_allocations],
            non_project_amounts,
            funds_received,
        )
        allocation_errors = list(summary.errors)
        if funds_received is None:
            allocation_errors.append(
                "Funds received for this period have not been recorded; "
                "contact your client representative"
            )
        if allocation_errors:
            errors["allocations"] = allocation_errors

    narrative_errors = check_narratives(report_fields)
    if narrative_errors:
        errors["narratives"] = narrative_errors

    return errors, summary


def check_access(user: Mapping[str, Any], application: Application, write: bool = False) -> None:
    """Raise PermissionDeniedError unless *user* may see (or edit) *application*.

    Admins may do anything.  Staff can read every organization's reports but
    not edit them.  Organization users are limited to their own organization.
    """
    role = user.get("role")
    if role == "admin":
        return
    if role == "staff":
        if write:
            raise PermissionDeniedError("Staff accounts cannot edit reports")
        return
    if str(application.organization_id) != (user.get("organization_id") or ""):
        raise PermissionDeniedError("You do not have access to this application")


class ReportService:
    """Static-method service for report operations."""

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    async def get_application(db: AsyncSession, application_id: uuid.UUID) -> Application:
        result = await db.execute(
            select(Application).where(Application.id == application_id)
        )
        application = result.scalar_one_or_none()
        if application is None:
            raise NotFoundError("Application not found")
        return application

    @staticmethod
    async def get_report(db: AsyncSession, report_id: uuid.UUID) -> ApplicationReport:
        result = await db.execute(
            select(ApplicationReport).where(ApplicationReport.id == report_id)
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFoundError("Report not found")
        return report

    @staticmethod
    async def get_or_create_report(
        db: AsyncSession,
        application_id: uuid.UUID,
        period: Optional[ReportingPeriod] = None,
    ) -> ApplicationReport:
        """Fetch the application's report for *period*, creating it if missing."""
        period = period or current_period()
        result = await db.execute(
            select(ApplicationReport).where(
                ApplicationReport.application_id == application_id,
                ApplicationReport.reporting_period_start == period.start,
                ApplicationReport.reporting_period_end == period.end,
            )
        )
        report = result.scalar_one_or_none()
        if report is not None:
            return report

        report = ApplicationReport(
            application_id=application_id,
            reporting_period_start=period.start,
            reporting_period_end=period.end,
            status="not_started",
        )
        db.add(report)
        await db.flush()
        await db.refresh(report)
        logger.info(
            "Created %s report %s for application %s",
            period.label,
            report.id,
            application_id,
        )
        return report

    @staticmethod
    async def get_financials(
        db: AsyncSession, application_id: uuid.UUID, period: ReportingPeriod
    ) -> Optional[ApplicationFinancials]:
        result = await db.execute(
            select(ApplicationFinancials).where(
                ApplicationFinancials.application_id == application_id,
                ApplicationFinancials.reporting_period_start == period.start,
                ApplicationFinancials.reporting_period_end == period.end,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def load_project_allocations(
        db: AsyncSession, report_id: uuid.UUID
    ) -> List[Dict[str, Any]]:
        """Project allocations for a report as dicts, with partner names."""
        result = await db.execute(
            select(ProjectAllocation)
            .where(ProjectAllocation.report_id == report_id)
            .order_by(ProjectAllocation.sort_order, ProjectAllocation.created_at)
        )
        allocations = result.scalars().all()
        if not allocations:
            return []

        partner_result = await db.execute(
            select(ProjectAllocationPartner)
            .where(
                ProjectAllocationPartner.project_allocation_id.in_(
                    [a.id for a in allocations]
                )
            )
            .order_by(ProjectAllocationPartner.created_at)
        )
        partners: Dict[uuid.UUID, List[str]] = defaultdict(list)
        for partner in partner_result.scalars().all():
            partners[partner.project_allocation_id].append(
                partner.partner_organization_name
            )

        rows = []
        for allocation in allocations:
            row = {field: getattr(allocation, field) for field in PROJECT_ALLOCATION_FIELDS}
            row.update(
                id=str(allocation.id),
                report_id=str(allocation.report_id),
                amount_allocated=_to_float(allocation.amount_allocated) or 0.0,
                partners=partners.get(allocation.id, []),
                created_at=allocation.created_at,
                updated_at=allocation.updated_at,
            )
            rows.append(row)
        return rows

    @staticmethod
    async def load_non_project_allocations(
        db: AsyncSession, report_id: uuid.UUID
    ) -> List[NonProjectAllocation]:
        result = await db.execute(
            select(NonProjectAllocation).where(NonProjectAllocation.report_id == report_id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def load_milestones(
        db: AsyncSession, report_id: uuid.UUID
    ) -> List[ReportMilestone]:
        result = await db.execute(
            select(ReportMilestone)
            .where(ReportMilestone.report_id == report_id)
            .order_by(ReportMilestone.sort_order)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    @staticmethod
    def transition(
        db: AsyncSession,
        report: ApplicationReport,
        new_status: str,
        changed_by: uuid.UUID,
        reason: Optional[str] = None,
    ) -> ApplicationReport:
        """Move *report* to *new_status* and record the change.

        ``submitted_at`` and ``submitted_by`` are assigned when entering
        ``submitted`` and cleared for every other status, in the same unit
        of work as the status itself.

        Raises:
            InvalidTransitionError: If the move is not allowed.
        """
        old_status = report.status or "not_started"
        allowed = ALLOWED_TRANSITIONS.get(old_status, [])
        if new_status not in allowed:
            raise InvalidTransitionError(old_status, new_status, allowed)

        now = datetime.now(timezone.utc)
        report.status = new_status
        report.updated_at = now
        if new_status == "submitted":
            report.submitted_at = now
            report.submitted_by = changed_by
        else:
            report.submitted_at = None
            report.submitted_by = None

        db.add(
            ReportStatusHistory(
                report_id=report.id,
                old_status=old_status,
                new_status=new_status,
                changed_by=changed_by,
                reason=reason,
            )
        )
        logger.info(
            "Report %s: %s -> %s by %s", report.id, old_status, new_status, changed_by
        )
        return report

    # ------------------------------------------------------------------
    # Draft saves
    # ------------------------------------------------------------------

    @staticmethod
    async def replace_project_allocations(
        db: AsyncSession,
        report_id: uuid.UUID,
        allocations: Sequence[Mapping[str, Any]],
    ) -> None:
        """Replace every project allocation (and its partners) on a report."""
        await db.execute(
            sa_delete(ProjectAllocation).where(ProjectAllocation.report_id == report_id)
        )
        partners = []
        for index, data in enumerate(allocations):
            allocation_id = uuid.uuid4()
            db.add(
                ProjectAllocation(
                    id=allocation_id,
                    report_id=report_id,
                    amount_allocated=_to_decimal(data.get("amount_allocated")) or Decimal("0"),
                    sort_order=index,
                    **{
                        field: (data.get(field) or "")
                        if field in ("language_name", "ethnologue_code", "country")
                        else data.get(field)
                        for field in PROJECT_ALLOCATION_FIELDS
                    },
                )
            )
            for name in data.get("partners") or []:
                if name and name.strip():
                    partners.append(
                        ProjectAllocationPartner(
                            project_allocation_id=allocation_id,
                            partner_organization_name=name.strip(),
                        )
                    )

        # Partners reference the allocations, so those rows go in first
        await db.flush()
        db.add_all(partners)

    @staticmethod
    async def replace_non_project_allocations(
        db: AsyncSession,
        report_id: uuid.UUID,
        allocations: Sequence[Mapping[str, Any]],
    ) -> None:
        """Replace the non-project allocations on a report (one row per type)."""
        seen: set[str] = set()
        for data in allocations:
            allocation_type = data["allocation_type"]
            if allocation_type in seen:
                raise PortalError(
                    f"Non-project allocation '{allocation_type}' listed more than once"
                )
            seen.add(allocation_type)

        await db.execute(
            sa_delete(NonProjectAllocation).where(
                NonProjectAllocation.report_id == report_id
            )
        )
        for data in allocations:
            amount = _to_decimal(data.get("amount")) or Decimal("0")
            description = (data.get("description") or "").strip() or None
            if amount == 0 and description is None:
                continue
            db.add(
                NonProjectAllocation(
                    report_id=report_id,
                    allocation_type=data["allocation_type"],
                    amount=amount,
                    description=description,
                )
            )

    @staticmethod
    async def replace_milestones(
        db: AsyncSession,
        report_id: uuid.UUID,
        milestones: Sequence[Mapping[str, Any]],
    ) -> None:
        await db.execute(
            sa_delete(ReportMilestone).where(ReportMilestone.report_id == report_id)
        )
        for index, data in enumerate(milestones):
            db.add(
                ReportMilestone(
                    report_id=report_id,
                    title=data["title"],
                    status=data.get("status") or "not_started",
                    notes=data.get("notes"),
                    completed_on=data.get("completed_on"),
                    sort_order=index,
                )
            )

    @staticmethod
    async def save_draft(
        db: AsyncSession,
        report: ApplicationReport,
        payload: Mapping[str, Any],
        user: Mapping[str, Any],
    ) -> ApplicationReport:
        """Apply a draft save to *report*.

        Only keys present in *payload* are written; collections present in
        the payload replace what is stored.  A ``not_started`` report moves
        to ``draft``; a ``reopened`` report keeps its status.

        Raises:
            ReportLockedError: If the report has been submitted.
        """
        if report.status not in EDITABLE_STATUSES:
            raise ReportLockedError(
                "This report has been submitted. Ask an administrator to reopen it."
            )

        for field in (
            "progress_narrative",
            "variance_narrative",
            "financial_summary_narrative",
        ):
            if field in payload:
                setattr(report, field, payload[field] or None)
        if "current_funds_spent" in payload:
            report.current_funds_spent = _to_decimal(payload["current_funds_spent"])

        if payload.get("project_allocations") is not None:
            await ReportService.replace_project_allocations(
                db, report.id, payload["project_allocations"]
            )
        if payload.get("non_project_allocations") is not None:
            await ReportService.replace_non_project_allocations(
                db, report.id, payload["non_project_allocations"]
            )
        if payload.get("milestones") is not None:
            await ReportService.replace_milestones(db, report.id, payload["milestones"])

        if report.status == "not_started":
            ReportService.transition(db, report, "draft", uuid.UUID(user["id"]))
        else:
            report.updated_at = datetime.now(timezone.utc)

        await db.flush()
        await db.refresh(report)
        return report

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    @staticmethod
    async def validate_report(
        db: AsyncSession,
        report: ApplicationReport,
        application: Application,
    ) -> Tuple[Dict[str, List[str]], Optional[AllocationSummary]]:
        """Run the submission checks against the stored report."""
        period = ReportingPeriod(report.reporting_period_start, report.reporting_period_end)
        template = template_for_call_type(application.call_type)

        project_allocations: List[Dict[str, Any]] = []
        non_project_amounts: Dict[str, Decimal] = {}
        funds_received: Optional[Decimal] = None

        if uses_allocations(application.call_type):
            project_allocations = await ReportService.load_project_allocations(db, report.id)
            for allocation in await ReportService.load_non_project_allocations(db, report.id):
                non_project_amounts[allocation.allocation_type] = allocation.amount
            financials = await ReportService.get_financials(db, application.id, period)
            if financials is not None:
                funds_received = financials.funds_received

        report_fields = {
            "progress_narrative": report.progress_narrative,
            "variance_narrative": report.variance_narrative,
            "current_funds_spent": report.current_funds_spent,
        }
        return validate_sections(
            template,
            report_fields,
            project_allocations,
            non_project_amounts,
            funds_received,
        )

    @staticmethod
    async def submit_report(
        db: AsyncSession,
        report: ApplicationReport,
        application: Application,
        user: Mapping[str, Any],
    ) -> ApplicationReport:
        """Validate and submit *report*.

        Raises:
            ReportLockedError: If the report is already submitted.
            ReportValidationError: If any submission check fails.
        """
        if report.status == "submitted":
            raise ReportLockedError("This report has already been submitted")

        errors, _ = await ReportService.validate_report(db, report, application)
        if errors:
            logger.info(
                "Report %s submission rejected: %s", report.id, ", ".join(sorted(errors))
            )
            raise ReportValidationError(errors)

        ReportService.transition(db, report, "submitted", uuid.UUID(user["id"]))
        await db.flush()
        await db.refresh(report)
        return report

    @staticmethod
    async def reopen_report(
        db: AsyncSession,
        report: ApplicationReport,
        admin: Mapping[str, Any],
        reason: Optional[str] = None,
    ) -> ApplicationReport:
        """Reopen a submitted report for editing (admin only)."""
        if admin.get("role") != "admin":
            raise PermissionDeniedError("Only administrators can reopen reports")
        ReportService.transition(db, report, "reopened", uuid.UUID(admin["id"]), reason)
        await db.flush()
        await db.refresh(report)
        return report

    @staticmethod
    async def get_history(
        db: AsyncSession, report_id: uuid.UUID
    ) -> List[ReportStatusHistory]:
        result = await db.execute(
            select(ReportStatusHistory)
            .where(ReportStatusHistory.report_id == report_id)
            .order_by(ReportStatusHistory.created_at)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @staticmethod
    async def build_report_view(
        db: AsyncSession,
        report: ApplicationReport,
        application: Application,
    ) -> Dict[str, Any]:
        """Assemble the report, its collections, and period financials."""
        period = ReportingPeriod(report.reporting_period_start, report.reporting_period_end)
        financials = await ReportService.get_financials(db, application.id, period)
        non_project = await ReportService.load_non_project_allocations(db, report.id)
        milestones = await ReportService.load_milestones(db, report.id)

        return {
            "id": str(report.id),
            "application_id": str(report.application_id),
            "reporting_period_start": report.reporting_period_start,
            "reporting_period_end": report.reporting_period_end,
            "due_date": period.due_date(),
            "template": template_for_call_type(application.call_type),
            "status": report.status,
            "progress_narrative": report.progress_narrative,
            "variance_narrative": report.variance_narrative,
            "financial_summary_narrative": report.financial_summary_narrative,
            "current_funds_spent": _to_float(report.current_funds_spent),
            "submitted_at": report.submitted_at,
            "submitted_by": _uuid_str(report.submitted_by),
            "is_editable": report.status in EDITABLE_STATUSES,
            "funds_received": _to_float(financials.funds_received) if financials else None,
            "funds_prior_year": _to_float(financials.funds_prior_year) if financials else None,
            "total_awarded": _to_float(application.total_awarded),
            "project_allocations": await ReportService.load_project_allocations(
                db, report.id
            ),
            "non_project_allocations": [
                {
                    "id": str(a.id),
                    "report_id": str(a.report_id),
                    "allocation_type": a.allocation_type,
                    "amount": _to_float(a.amount) or 0.0,
                    "description": a.description,
                    "created_at": a.created_at,
                    "updated_at": a.updated_at,
                }
                for a in non_project
            ],
            "milestones": [
                {
                    "id": str(m.id),
                    "report_id": str(m.report_id),
                    "title": m.title,
                    "status": m.status,
                    "notes": m.notes,
                    "completed_on": m.completed_on,
                    "sort_order": m.sort_order,
                }
                for m in milestones
            ],
            "created_at": report.created_at,
            "updated_at": report.updated_at,
        }
