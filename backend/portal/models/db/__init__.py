"""SQLAlchemy 2.0 ORM models for the reporting portal.

Import all models here so Alembic's ``env.py`` can discover them via::

    from portal.models.db import Base  # noqa: F401

Every model must be imported at module level to register with the
``DeclarativeBase`` metadata.
"""

from portal.models.db.base import Base, TimestampMixin  # noqa: F401

from portal.models.db.organization import ClientRep, Organization  # noqa: F401
from portal.models.db.user import User  # noqa: F401
from portal.models.db.application import (  # noqa: F401
    Application,
    ApplicationFinancials,
)
from portal.models.db.report import (  # noqa: F401
    ApplicationReport,
    ReportMilestone,
    ReportStatusHistory,
)
from portal.models.db.allocation import (  # noqa: F401
    NonProjectAllocation,
    ProjectAllocation,
    ProjectAllocationPartner,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "ClientRep",
    "Organization",
    "User",
    "Application",
    "ApplicationFinancials",
    "ApplicationReport",
    "ReportMilestone",
    "ReportStatusHistory",
    "NonProjectAllocation",
    "ProjectAllocation",
    "ProjectAllocationPartner",
]
