"""Application ORM models.

An application is a funded grant held by one organization.  Its call type
decides which report template the organization files against.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, ForeignKey, Integer, Numeric, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

__all__ = ["Application", "ApplicationFinancials"]


class Application(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "applications"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    call_type: Mapped[str] = mapped_column(Text, nullable=False)
    funding_stream: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    application_reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    award_reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_awarded: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 2), nullable=True
    )
    application_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ApplicationFinancials(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Funds received, spent, and carried forward for one reporting period."""

    __tablename__ = "application_financials"
    __table_args__ = (
        UniqueConstraint(
            "application_id",
            "reporting_period_start",
            "reporting_period_end",
            name="uq_financials_app_period",
        ),
    )

    application_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    reporting_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    reporting_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    funds_received: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 2), nullable=True
    )
    funds_spent: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 2), nullable=True
    )
    funds_prior_year: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 2), nullable=True
    )
    financial_context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
