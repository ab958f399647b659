"""Funding-stream CSV export of report allocations."""

import csv
import io
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.call_types import require_known_funding_stream, uses_allocations
from portal.models.db.allocation import (
    NonProjectAllocation,
    ProjectAllocation,
    ProjectAllocationPartner,
)
from portal.models.db.application import Application
from portal.models.db.organization import Organization
from portal.models.db.report import ApplicationReport
from portal.reporting_periods import ReportingPeriod
from portal.services.allocation_validator import CATEGORY_LABELS, NON_PROJECT_CATEGORIES

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Organization",
    "Application",
    "Call Type",
    "Period",
    "Type",
    "Language/Category",
    "Code",
    "Country",
    "Partners",
    "Amount",
]


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def write_funding_stream_csv(reports: Sequence[Dict[str, Any]]) -> str:
    """Render report allocations as CSV.

    Each report dict carries ``organization``, ``application``,
    ``call_type``, ``period`` and two lists: ``project_allocations`` (dicts
    with ``language_name``, ``ethnologue_code``, ``country``, ``partners``,
    ``amount``) and ``non_project_allocations`` (category -> amount).

    One row per allocation, a subtotal row per report, and a grand total
    row at the bottom.
    """
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_COLUMNS)

    grand_total = Decimal("0")
    for report in reports:
        prefix = [
            report["organization"],
            report["application"],
            report["call_type"],
            report["period"],
        ]
        subtotal = Decimal("0")

        for allocation in report.get("project_allocations", []):
            amount = allocation["amount"] or Decimal("0")
            subtotal += amount
            writer.writerow(
                prefix
                + [
                    "Project",
                    allocation["language_name"],
                    allocation["ethnologue_code"],
                    allocation["country"],
                    "; ".join(allocation.get("partners") or []),
                    _money(amount),
                ]
            )

        non_project = report.get("non_project_allocations", {})
        for category in NON_PROJECT_CATEGORIES:
            amount = non_project.get(category)
            if amount is None:
                continue
            subtotal += amount
            writer.writerow(
                prefix
                + ["Non-project", CATEGORY_LABELS[category], "", "", "", _money(amount)]
            )

        writer.writerow(prefix + ["Subtotal", "", "", "", "", _money(subtotal)])
        grand_total += subtotal

    writer.writerow(["Grand Total", "", "", "", "", "", "", "", "", _money(grand_total)])
    return output.getvalue()


class ExportService:
    @staticmethod
    async def funding_stream_csv(
        db: AsyncSession,
        period: ReportingPeriod,
        funding_stream: Optional[str] = None,
        submitted_only: bool = True,
    ) -> str:
        """CSV of allocations on investment reports for *period*."""
        require_known_funding_stream(funding_stream)
        query = (
            select(ApplicationReport, Application, Organization.name)
            .join(Application, Application.id == ApplicationReport.application_id)
            .join(Organization, Organization.id == Application.organization_id)
            .where(
                ApplicationReport.reporting_period_start == period.start,
                ApplicationReport.reporting_period_end == period.end,
            )
            .order_by(Organization.name, Application.title)
        )
        if funding_stream:
            query = query.where(Application.funding_stream == funding_stream)
        if submitted_only:
            query = query.where(ApplicationReport.status == "submitted")

        result = await db.execute(query)
        rows = [
            (report, application, org_name)
            for report, application, org_name in result.all()
            if uses_allocations(application.call_type)
        ]
        report_ids = [report.id for report, _, _ in rows]

        projects: Dict[Any, List[ProjectAllocation]] = defaultdict(list)
        partners: Dict[Any, List[str]] = defaultdict(list)
        non_project: Dict[Any, Dict[str, Decimal]] = defaultdict(dict)
        if report_ids:
            result = await db.execute(
                select(ProjectAllocation)
                .where(ProjectAllocation.report_id.in_(report_ids))
                .order_by(ProjectAllocation.sort_order)
            )
            allocations = result.scalars().all()
            for allocation in allocations:
                projects[allocation.report_id].append(allocation)

            if allocations:
                result = await db.execute(
                    select(ProjectAllocationPartner).where(
                        ProjectAllocationPartner.project_allocation_id.in_(
                            [a.id for a in allocations]
                        )
                    )
                )
                for partner in result.scalars().all():
                    partners[partner.project_allocation_id].append(
                        partner.partner_organization_name
                    )

            result = await db.execute(
                select(NonProjectAllocation).where(
                    NonProjectAllocation.report_id.in_(report_ids)
                )
            )
            for allocation in result.scalars().all():
                non_project[allocation.report_id][allocation.allocation_type] = (
                    allocation.amount
                )

        reports = [
            {
                "organization": org_name,
                "application": application.title,
                "call_type": application.call_type,
                "period": period.label,
                "project_allocations": [
                    {
                        "language_name": a.language_name,
                        "ethnologue_code": a.ethnologue_code,
                        "country": a.country,
                        "partners": partners.get(a.id, []),
                        "amount": a.amount_allocated,
                    }
                    for a in projects.get(report.id, [])
                ],
                "non_project_allocations": non_project.get(report.id, {}),
            }
            for report, application, org_name in rows
        ]
        logger.info("Exporting %d reports for %s", len(reports), period.label)
        return write_funding_stream_csv(reports)
