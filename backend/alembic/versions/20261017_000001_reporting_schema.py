"""Create the mid-year reporting schema.

Organizations, users, applications and their period financials, reports
with status history and milestones, and project / non-project allocations.

Revision ID: 0001_reporting
Revises:
Create Date: 2026-10-17
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "0001_reporting"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # --- client_reps ---
    op.create_table(
        "client_reps",
        _id_column(),
        sa.Column("user_id", UUID(), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        *_timestamps(),
    )

    # --- organizations ---
    op.create_table(
        "organizations",
        _id_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("code", sa.Text(), nullable=True),
        sa.Column("contact_email", sa.Text(), nullable=True),
        sa.Column(
            "client_rep_id",
            UUID(),
            sa.ForeignKey("client_reps.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )

    # --- users ---
    op.create_table(
        "users",
        _id_column(),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("hashed_password", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), server_default="org_user", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column(
            "organization_id",
            UUID(),
            sa.ForeignKey("organizations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('admin','staff','org_user')", name="users_role_check"
        ),
    )
    op.create_index("idx_users_org", "users", ["organization_id"])

    # --- applications ---
    op.create_table(
        "applications",
        _id_column(),
        sa.Column(
            "organization_id",
            UUID(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("call_type", sa.Text(), nullable=False),
        sa.Column("funding_stream", sa.Text(), nullable=True),
        sa.Column("application_reference", sa.Text(), nullable=True),
        sa.Column("award_reference", sa.Text(), nullable=True),
        sa.Column("total_awarded", sa.Numeric(14, 2), nullable=True),
        sa.Column("application_year", sa.Integer(), nullable=True),
        sa.Column("status", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_applications_org", "applications", ["organization_id"])

    # --- application_financials ---
    op.create_table(
        "application_financials",
        _id_column(),
        sa.Column(
            "application_id",
            UUID(),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reporting_period_start", sa.Date(), nullable=False),
        sa.Column("reporting_period_end", sa.Date(), nullable=False),
        sa.Column("funds_received", sa.Numeric(14, 2), nullable=True),
        sa.Column("funds_spent", sa.Numeric(14, 2), nullable=True),
        sa.Column("funds_prior_year", sa.Numeric(14, 2), nullable=True),
        sa.Column("financial_context", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "application_id",
            "reporting_period_start",
            "reporting_period_end",
            name="uq_financials_app_period",
        ),
    )

    # --- application_reports ---
    op.create_table(
        "application_reports",
        _id_column(),
        sa.Column(
            "application_id",
            UUID(),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reporting_period_start", sa.Date(), nullable=False),
        sa.Column("reporting_period_end", sa.Date(), nullable=False),
        sa.Column("progress_narrative", sa.Text(), nullable=True),
        sa.Column("variance_narrative", sa.Text(), nullable=True),
        sa.Column("financial_summary_narrative", sa.Text(), nullable=True),
        sa.Column("current_funds_spent", sa.Numeric(14, 2), nullable=True),
        sa.Column("status", sa.Text(), server_default="not_started", nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_by", UUID(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "application_id",
            "reporting_period_start",
            "reporting_period_end",
            name="uq_reports_app_period",
        ),
        sa.CheckConstraint(
            "status IN ('not_started','draft','submitted','reopened')",
            name="application_reports_status_check",
        ),
        sa.CheckConstraint(
            "(status = 'submitted') = (submitted_at IS NOT NULL)",
            name="application_reports_submitted_at_check",
        ),
    )
    op.create_index(
        "idx_reports_period",
        "application_reports",
        ["reporting_period_start", "reporting_period_end"],
    )
    op.create_index("idx_reports_status", "application_reports", ["status"])

    # --- report_status_history ---
    op.create_table(
        "report_status_history",
        _id_column(),
        sa.Column(
            "report_id",
            UUID(),
            sa.ForeignKey("application_reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("old_status", sa.Text(), nullable=True),
        sa.Column("new_status", sa.Text(), nullable=False),
        sa.Column("changed_by", UUID(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_report_history_report", "report_status_history", ["report_id"])

    # --- report_milestones ---
    op.create_table(
        "report_milestones",
        _id_column(),
        sa.Column(
            "report_id",
            UUID(),
            sa.ForeignKey("application_reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="not_started", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_on", sa.Date(), nullable=True),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
    )

    # --- project_allocations ---
    op.create_table(
        "project_allocations",
        _id_column(),
        sa.Column(
            "report_id",
            UUID(),
            sa.ForeignKey("application_reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("language_name", sa.Text(), nullable=False),
        sa.Column("ethnologue_code", sa.Text(), nullable=False),
        sa.Column("country", sa.Text(), nullable=False),
        sa.Column("dialect_rolv_number", sa.Text(), nullable=True),
        sa.Column("amount_allocated", sa.Numeric(14, 2), server_default="0", nullable=False),
        # Reference dataset metadata
        sa.Column("all_access_goal", sa.Text(), nullable=True),
        sa.Column("eligible_for_eten_funding", sa.Boolean(), nullable=True),
        sa.Column("all_access_status", sa.Text(), nullable=True),
        sa.Column("language_population_group", sa.Text(), nullable=True),
        sa.Column("first_language_population", sa.BigInteger(), nullable=True),
        sa.Column("egids_level", sa.Text(), nullable=True),
        sa.Column("is_sign_language", sa.Boolean(), nullable=True),
        sa.Column("luminations_region", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_project_alloc_report", "project_allocations", ["report_id"])

    # --- project_allocation_partners ---
    op.create_table(
        "project_allocation_partners",
        _id_column(),
        sa.Column(
            "project_allocation_id",
            UUID(),
            sa.ForeignKey("project_allocations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("partner_organization_name", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_alloc_partners_alloc",
        "project_allocation_partners",
        ["project_allocation_id"],
    )

    # --- non_project_allocations ---
    op.create_table(
        "non_project_allocations",
        _id_column(),
        sa.Column(
            "report_id",
            UUID(),
            sa.ForeignKey("application_reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("allocation_type", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), server_default="0", nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("report_id", "allocation_type", name="uq_non_project_type"),
        sa.CheckConstraint(
            "allocation_type IN ('indirect_costs','assessments','unused_funds','other')",
            name="non_project_allocations_type_check",
        ),
    )


def downgrade() -> None:
    op.drop_table("non_project_allocations")
    op.drop_index("idx_alloc_partners_alloc", table_name="project_allocation_partners")
    op.drop_table("project_allocation_partners")
    op.drop_index("idx_project_alloc_report", table_name="project_allocations")
    op.drop_table("project_allocations")
    op.drop_table("report_milestones")
    op.drop_index("idx_report_history_report", table_name="report_status_history")
    op.drop_table("report_status_history")
    op.drop_index("idx_reports_status", table_name="application_reports")
    op.drop_index("idx_reports_period", table_name="application_reports")
    op.drop_table("application_reports")
    op.drop_table("application_financials")
    op.drop_index("idx_applications_org", table_name="applications")
    op.drop_table("applications")
    op.drop_index("idx_users_org", table_name="users")
    op.drop_table("users")
    op.drop_table("organizations")
    op.drop_table("client_reps")
