"""Pydantic response schemas for applications and the organization dashboard."""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ApplicationResponse(BaseModel):
    id: str
    organization_id: str
    organization_name: Optional[str] = None
    client_rep_name: Optional[str] = None
    title: str
    call_type: str
    template: Optional[str] = None
    funding_stream: Optional[str] = None
    application_reference: Optional[str] = None
    award_reference: Optional[str] = None
    total_awarded: Optional[float] = None
    application_year: Optional[int] = None
    status: Optional[str] = None


class ApplicationWithReport(ApplicationResponse):
    """Application enriched with its current-period report state."""

    report_id: Optional[str] = None
    report_status: str = "not_started"
    display_status: str = "not_started"
    reporting_period_start: date
    reporting_period_end: date
    due_date: date
    days_until_due: int
    funds_received: Optional[float] = None
    funds_spent: Optional[float] = None


class ApplicationListResponse(BaseModel):
    applications: List[ApplicationWithReport]
    total: int


class DashboardStats(BaseModel):
    total_applications: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    total_awarded: float = 0.0


class DashboardResponse(BaseModel):
    stats: DashboardStats
    applications: List[ApplicationWithReport]
