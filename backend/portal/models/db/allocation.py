"""SQLAlchemy models for project and non-project allocations."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
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
    "NonProjectAllocation",
    "ProjectAllocation",
    "ProjectAllocationPartner",
]


class ProjectAllocation(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Funds assigned to a language project, with reference metadata."""

    __tablename__ = "project_allocations"

    report_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("application_reports.id", ondelete="CASCADE"),
        nullable=False,
    )
    language_name: Mapped[str] = mapped_column(Text, nullable=False)
    ethnologue_code: Mapped[str] = mapped_column(Text, nullable=False)
    country: Mapped[str] = mapped_column(Text, nullable=False)
    dialect_rolv_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amount_allocated: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), server_default="0", nullable=False
    )

    # Reference dataset metadata, copied at selection time
    all_access_goal: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    eligible_for_eten_funding: Mapped[Optional[bool]] = mapped_column(
        Boolean, nullable=True
    )
    all_access_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    language_population_group: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )
    first_language_population: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    egids_level: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_sign_language: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    luminations_region: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    sort_order: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)


class ProjectAllocationPartner(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "project_allocation_partners"

    project_allocation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("project_allocations.id", ondelete="CASCADE"),
        nullable=False,
    )
    partner_organization_name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class NonProjectAllocation(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "non_project_allocations"
    __table_args__ = (
        UniqueConstraint("report_id", "allocation_type", name="uq_non_project_type"),
        CheckConstraint(
            "allocation_type IN ('indirect_costs','assessments','unused_funds','other')",
            name="non_project_allocations_type_check",
        ),
    )

    report_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("application_reports.id", ondelete="CASCADE"),
        nullable=False,
    )
    allocation_type: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), server_default="0", nullable=False
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
