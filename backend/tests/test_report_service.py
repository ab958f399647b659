"""
Unit Tests for the Report Service

Tests the report lifecycle without a database:
- Status transitions and the submitted_at / submitted_by invariant
- Draft saves, locking of submitted reports, and reopen
- Submission checks per report template
- Access rules per role

Async service methods are driven with asyncio.run against a mocked
AsyncSession.

Usage:
    cd backend && pytest tests/test_report_service.py -v
"""

import asyncio
import os
import sys
import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from portal.call_types import INVESTMENT_TEMPLATE, TOOL_CAPACITY_TEMPLATE
from portal.errors import (
    InvalidTransitionError,
    PermissionDeniedError,
    PortalError,
    ReportLockedError,
    ReportValidationError,
)
from portal.models.db.application import Application
from portal.models.db.report import ApplicationReport, ReportStatusHistory
from portal.reporting_periods import ReportingPeriod
from portal.services.report_service import (
    ALLOWED_TRANSITIONS,
    ReportService,
    check_access,
    check_narratives,
    validate_sections,
)


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

PERIOD = ReportingPeriod(date(2026, 1, 1), date(2026, 6, 30))


def make_user(role: str = "org_user", organization_id: str = None) -> dict:
    """Factory function to create a session profile dict."""
    return {
        "id": str(uuid.uuid4()),
        "email": f"{role}@example.org",
        "full_name": "Test User",
        "role": role,
        "organization_id": organization_id,
    }


def make_application(call_type: str = "Translation Investment", organization_id=None) -> Application:
    return Application(
        id=uuid.uuid4(),
        organization_id=organization_id or uuid.uuid4(),
        title="Bible translation for the Kalamsé",
        call_type=call_type,
        total_awarded=Decimal("50000.00"),
    )


def make_report(status: str = "not_started", **kwargs) -> ApplicationReport:
    report = ApplicationReport(
        id=uuid.uuid4(),
        application_id=uuid.uuid4(),
        reporting_period_start=PERIOD.start,
        reporting_period_end=PERIOD.end,
        status=status,
        **kwargs,
    )
    return report


def make_db() -> MagicMock:
    """Mock AsyncSession: add/add_all are sync, the rest awaitable."""
    db = MagicMock()
    db.execute = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    return db


def complete_fields(**overrides) -> dict:
    fields = {
        "progress_narrative": "Drafting of Mark is complete.",
        "variance_narrative": "Spending is on plan.",
        "current_funds_spent": Decimal("2500"),
    }
    fields.update(overrides)
    return fields


def complete_allocation(amount: float = 800.0) -> dict:
    return {
        "language_name": "Kalamsé",
        "ethnologue_code": "knz",
        "country": "Burkina Faso",
        "partners": ["SIL Burkina"],
        "amount_allocated": amount,
    }


# ============================================================================
# STATUS TRANSITIONS
# ============================================================================

class TestTransition:
    """Every status change goes through ReportService.transition."""

    def test_transition_map(self):
        assert ALLOWED_TRANSITIONS["not_started"] == ["draft", "submitted"]
        assert ALLOWED_TRANSITIONS["submitted"] == ["reopened"]
        assert ALLOWED_TRANSITIONS["reopened"] == ["submitted"]

    def test_submit_sets_timestamp_and_submitter(self):
        db = make_db()
        report = make_report("draft")
        user_id = uuid.uuid4()

        ReportService.transition(db, report, "submitted", user_id)

        assert report.status == "submitted"
        assert report.submitted_at is not None
        assert report.submitted_by == user_id

    def test_reopen_clears_timestamp_and_submitter(self):
        db = make_db()
        report = make_report("draft")
        ReportService.transition(db, report, "submitted", uuid.uuid4())

        ReportService.transition(db, report, "reopened", uuid.uuid4(), "Fix totals")

        assert report.status == "reopened"
        assert report.submitted_at is None
        assert report.submitted_by is None

    def test_history_row_recorded(self):
        db = make_db()
        report = make_report("not_started")
        user_id = uuid.uuid4()

        ReportService.transition(db, report, "draft", user_id, "first save")

        history = db.add.call_args[0][0]
        assert isinstance(history, ReportStatusHistory)
        assert history.old_status == "not_started"
        assert history.new_status == "draft"
        assert history.changed_by == user_id
        assert history.reason == "first save"
        assert history.report_id == report.id

    @pytest.mark.parametrize(
        "old_status,new_status",
        [
            ("draft", "not_started"),
            ("draft", "reopened"),
            ("submitted", "draft"),
            ("submitted", "submitted"),
            ("reopened", "draft"),
        ],
    )
    def test_disallowed_transitions_raise(self, old_status, new_status):
        db = make_db()
        report = make_report(old_status)
        with pytest.raises(InvalidTransitionError):
            ReportService.transition(db, report, new_status, uuid.uuid4())
        assert report.status == old_status
        db.add.assert_not_called()

    def test_submitted_at_matches_status_after_every_transition(self):
        db = make_db()
        report = make_report("not_started")
        path = ["draft", "submitted", "reopened", "submitted", "reopened"]
        for new_status in path:
            ReportService.transition(db, report, new_status, uuid.uuid4())
            assert (report.status == "submitted") == (report.submitted_at is not None)


# ============================================================================
# SECTION VALIDATION
# ============================================================================

class TestValidateSections:
    """Submission checks per report template."""

    def test_complete_investment_report_passes(self):
        errors, summary = validate_sections(
            INVESTMENT_TEMPLATE,
            complete_fields(),
            [complete_allocation(800)],
            {"indirect_costs": Decimal("150"), "other": Decimal("50")},
            Decimal("1000"),
        )
        assert errors == {}
        assert summary.is_balanced

    def test_investment_requires_project_allocation(self):
        errors, _ = validate_sections(
            INVESTMENT_TEMPLATE, complete_fields(), [], {}, Decimal("0")
        )
        assert "At least one project allocation is required" in errors["projects"]

    def test_investment_reports_allocation_errors(self):
        errors, summary = validate_sections(
            INVESTMENT_TEMPLATE,
            complete_fields(),
            [complete_allocation(800)],
            {"indirect_costs": Decimal("300")},
            Decimal("1100"),
        )
        assert not summary.is_valid
        assert any("Indirect Costs" in e for e in errors["allocations"])

    def test_missing_funds_received_blocks_submission(self):
        errors, summary = validate_sections(
            INVESTMENT_TEMPLATE, complete_fields(), [complete_allocation()], {}, None
        )
        assert summary.is_balanced is None
        assert any("have not been recorded" in e for e in errors["allocations"])

    def test_investment_field_errors_reported_under_projects(self):
        allocation = complete_allocation(1000)
        allocation["partners"] = []
        errors, _ = validate_sections(
            INVESTMENT_TEMPLATE, complete_fields(), [allocation], {}, Decimal("1000")
        )
        assert errors == {
            "projects": [
                "Project allocation 1 (Kalamsé) needs at least one partner organization"
            ]
        }

    def test_tool_template_skips_allocations(self):
        errors, summary = validate_sections(
            TOOL_CAPACITY_TEMPLATE, complete_fields(), [], {}, None
        )
        assert errors == {}
        assert summary is None

    def test_funds_spent_required(self):
        errors, _ = validate_sections(
            TOOL_CAPACITY_TEMPLATE,
            complete_fields(current_funds_spent=Decimal("0")),
            [],
            {},
            None,
        )
        assert errors["financials"] == ["Current funds spent is required"]

    def test_unknown_template_rejected(self):
        errors, summary = validate_sections(None, complete_fields(), [], {}, None)
        assert list(errors) == ["template"]
        assert summary is None


class TestCheckNarratives:

    def test_missing_narratives(self):
        errors = check_narratives({"progress_narrative": "  ", "variance_narrative": None})
        assert errors == [
            "Progress narrative is required",
            "Variance narrative is required",
        ]

    def test_limit_is_inclusive(self):
        assert check_narratives(
            {"progress_narrative": "x" * 1500, "variance_narrative": "ok"}
        ) == []

    def test_over_limit(self):
        errors = check_narratives(
            {"progress_narrative": "x" * 1501, "variance_narrative": "ok"}
        )
        assert errors == ["Progress narrative must be 1500 characters or less"]


# ============================================================================
# ACCESS
# ============================================================================

class TestCheckAccess:

    def test_org_user_own_organization(self):
        application = make_application()
        user = make_user(organization_id=str(application.organization_id))
        check_access(user, application, write=True)

    def test_org_user_other_organization(self):
        with pytest.raises(PermissionDeniedError):
            check_access(make_user(organization_id=str(uuid.uuid4())), make_application())

    def test_org_user_without_organization(self):
        with pytest.raises(PermissionDeniedError):
            check_access(make_user(), make_application())

    def test_staff_read_only(self):
        staff = make_user("staff")
        check_access(staff, make_application())
        with pytest.raises(PermissionDeniedError):
            check_access(staff, make_application(), write=True)

    def test_admin_full_access(self):
        check_access(make_user("admin"), make_application(), write=True)


# ============================================================================
# ASYNC LIFECYCLE
# ============================================================================

class TestGetOrCreateReport:

    def test_returns_existing_report(self):
        db = make_db()
        existing = make_report("draft")
        result = MagicMock()
        result.scalar_one_or_none.return_value = existing
        db.execute.return_value = result

        report = asyncio.run(ReportService.get_or_create_report(db, existing.application_id, PERIOD))

        assert report is existing
        db.add.assert_not_called()

    def test_creates_not_started_report(self):
        db = make_db()
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        db.execute.return_value = result
        application_id = uuid.uuid4()

        report = asyncio.run(ReportService.get_or_create_report(db, application_id, PERIOD))

        assert report.status == "not_started"
        assert report.submitted_at is None
        assert report.reporting_period_start == PERIOD.start
        db.add.assert_called_once_with(report)
        db.flush.assert_awaited()


class TestSaveDraft:

    def test_first_save_moves_to_draft(self):
        db = make_db()
        report = make_report("not_started")
        user = make_user("admin")

        asyncio.run(
            ReportService.save_draft(
                db, report, {"progress_narrative": "Work began."}, user
            )
        )

        assert report.status == "draft"
        assert report.progress_narrative == "Work began."

    def test_reopened_report_stays_reopened(self):
        db = make_db()
        report = make_report("reopened")

        asyncio.run(
            ReportService.save_draft(
                db, report, {"current_funds_spent": 1200.5}, make_user("admin")
            )
        )

        assert report.status == "reopened"
        assert report.current_funds_spent == Decimal("1200.50")
        db.add.assert_not_called()

    def test_submitted_report_is_locked(self):
        db = make_db()
        report = make_report("submitted")
        with pytest.raises(ReportLockedError):
            asyncio.run(
                ReportService.save_draft(db, report, {"progress_narrative": "x"}, make_user("admin"))
            )

    def test_collections_replaced_only_when_present(self):
        db = make_db()
        report = make_report("draft")
        with patch.object(
            ReportService, "replace_project_allocations", new=AsyncMock()
        ) as replace_projects, patch.object(
            ReportService, "replace_non_project_allocations", new=AsyncMock()
        ) as replace_non_project, patch.object(
            ReportService, "replace_milestones", new=AsyncMock()
        ) as replace_milestones:
            asyncio.run(
                ReportService.save_draft(
                    db,
                    report,
                    {"project_allocations": [complete_allocation()]},
                    make_user("admin"),
                )
            )

        replace_projects.assert_awaited_once_with(db, report.id, [complete_allocation()])
        replace_non_project.assert_not_awaited()
        replace_milestones.assert_not_awaited()

    def test_duplicate_non_project_types_rejected(self):
        db = make_db()
        with pytest.raises(PortalError):
            asyncio.run(
                ReportService.replace_non_project_allocations(
                    db,
                    uuid.uuid4(),
                    [
                        {"allocation_type": "other", "amount": 1},
                        {"allocation_type": "other", "amount": 2},
                    ],
                )
            )
        db.execute.assert_not_awaited()


class TestSubmitReport:

    def test_valid_report_is_submitted(self):
        db = make_db()
        report = make_report("draft")
        user = make_user("admin")
        with patch.object(
            ReportService, "validate_report", new=AsyncMock(return_value=({}, None))
        ):
            asyncio.run(ReportService.submit_report(db, report, make_application(), user))

        assert report.status == "submitted"
        assert report.submitted_at is not None
        assert str(report.submitted_by) == user["id"]

    def test_invalid_report_raises_with_sections(self):
        db = make_db()
        report = make_report("draft")
        errors = {"narratives": ["Progress narrative is required"]}
        with patch.object(
            ReportService, "validate_report", new=AsyncMock(return_value=(errors, None))
        ):
            with pytest.raises(ReportValidationError) as exc_info:
                asyncio.run(
                    ReportService.submit_report(db, report, make_application(), make_user("admin"))
                )

        assert exc_info.value.errors == errors
        assert report.status == "draft"
        assert report.submitted_at is None

    def test_already_submitted_is_locked(self):
        db = make_db()
        report = make_report("draft")
        ReportService.transition(db, report, "submitted", uuid.uuid4())
        with pytest.raises(ReportLockedError):
            asyncio.run(
                ReportService.submit_report(db, report, make_application(), make_user("admin"))
            )


class TestReopenReport:

    def test_admin_reopens_submitted_report(self):
        db = make_db()
        report = make_report("draft")
        ReportService.transition(db, report, "submitted", uuid.uuid4())

        asyncio.run(ReportService.reopen_report(db, report, make_user("admin"), "Typo"))

        assert report.status == "reopened"
        assert report.submitted_at is None

    def test_non_admin_cannot_reopen(self):
        db = make_db()
        report = make_report("draft")
        ReportService.transition(db, report, "submitted", uuid.uuid4())
        with pytest.raises(PermissionDeniedError):
            asyncio.run(ReportService.reopen_report(db, report, make_user("staff")))
        assert report.status == "submitted"

    def test_reopening_a_draft_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            asyncio.run(
                ReportService.reopen_report(make_db(), make_report("draft"), make_user("admin"))
            )
