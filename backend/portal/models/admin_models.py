"""Pydantic schemas for the admin console."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from portal.models.db.user import USER_ROLES


class AdminStats(BaseModel):
    total_users: int = 0
    total_organizations: int = 0
    total_applications: int = 0
    total_reports: int = 0
    submitted_reports: int = 0
    draft_reports: int = 0
    not_started_reports: int = 0
    overdue_reports: int = 0


class AdminReportItem(BaseModel):
    id: str
    status: str
    display_status: str
    reporting_period_start: date
    reporting_period_end: date
    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    application_id: str
    application_title: str
    call_type: str
    total_awarded: Optional[float] = None
    organization_name: str


class AdminReportList(BaseModel):
    reports: list[AdminReportItem]
    total: int


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    role: str
    is_active: bool = True
    organization_id: Optional[str] = None
    created_at: Optional[datetime] = None


class UserUpdate(BaseModel):
    """Admin edit of a user.  All fields optional."""

    role: Optional[str] = None
    organization_id: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in USER_ROLES:
            raise ValueError(
                f"Invalid role '{v}'. Must be one of: {', '.join(USER_ROLES)}"
            )
        return v
