"""ApplicationReport ORM models.

One report per application per reporting period.  ``submitted_at`` is set
exactly when ``status`` is ``submitted``; the service layer assigns both in
one flush and the CHECK constraint backs it up.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

__all__ = [
    "ApplicationReport",
    "ReportMilestone",
    "ReportStatusHistory",
    "REPORT_STATUSES",
    "MILESTONE_STATUSES",
]

REPORT_STATUSES = ("not_started", "draft", "submitted", "reopened")

MILESTONE_STATUSES = (
    "not_started",
    "behind_schedule",
    "on_track",
    "ahead_of_schedule",
    "complete",
)


class ApplicationReport(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "application_reports"
    __table_args__ = (
        UniqueConstraint(
            "application_id",
            "reporting_period_start",
            "reporting_period_end",
            name="uq_reports_app_period",
        ),
        CheckConstraint(
            "status IN ('not_started','draft','submitted','reopened')",
            name="application_reports_status_check",
        ),
        CheckConstraint(
            "(status = 'submitted') = (submitted_at IS NOT NULL)",
            name="application_reports_submitted_at_check",
        ),
    )

    application_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    reporting_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    reporting_period_end: Mapped[date] = mapped_column(Date, nullable=False)

    # Narratives
    progress_narrative: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    variance_narrative: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    financial_summary_narrative: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )

    # Financial update
    current_funds_spent: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 2), nullable=True
    )

    # Lifecycle
    status: Mapped[str] = mapped_column(
        Text, server_default="not_started", nullable=False
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    submitted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )


class ReportStatusHistory(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "report_status_history"

    report_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("application_reports.id", ondelete="CASCADE"),
        nullable=False,
    )
    old_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_status: Mapped[str] = mapped_column(Text, nullable=False)
    changed_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ReportMilestone(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Milestone progress for tool and capacity-building reports."""

    __tablename__ = "report_milestones"

    report_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("application_reports.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, server_default="not_started", nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
