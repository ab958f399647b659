"""Pydantic request/response schemas for mid-year reports."""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from portal.models.allocation_models import (
    AllocationSummaryResponse,
    MAX_MONEY,
    NonProjectAllocationInput,
    NonProjectAllocationResponse,
    ProjectAllocationInput,
    ProjectAllocationResponse,
)
from portal.models.db.report import MILESTONE_STATUSES

NARRATIVE_MAX_LENGTH = 1500


class MilestoneInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    status: str = "not_started"
    notes: Optional[str] = Field(None, max_length=5000)
    completed_on: Optional[date] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in MILESTONE_STATUSES:
            raise ValueError(
                f"Invalid milestone status '{v}'. "
                f"Must be one of: {', '.join(MILESTONE_STATUSES)}"
            )
        return v


class MilestoneResponse(MilestoneInput):
    id: str
    report_id: str
    sort_order: int = 0


class ReportSaveRequest(BaseModel):
    """Draft save payload.  Omitted collections are left untouched.

    Narrative length is enforced on submission, not on save, so a draft can
    hold text the author is still trimming.
    """

    progress_narrative: Optional[str] = Field(None, max_length=20000)
    variance_narrative: Optional[str] = Field(None, max_length=20000)
    financial_summary_narrative: Optional[str] = Field(None, max_length=20000)
    current_funds_spent: Optional[float] = Field(None, ge=-MAX_MONEY, le=MAX_MONEY)
    project_allocations: Optional[List[ProjectAllocationInput]] = None
    non_project_allocations: Optional[List[NonProjectAllocationInput]] = None
    milestones: Optional[List[MilestoneInput]] = None


class ReportResponse(BaseModel):
    """A report with its allocations, milestones, and template."""

    id: str
    application_id: str
    reporting_period_start: date
    reporting_period_end: date
    due_date: date
    template: Optional[str] = None
    status: str
    progress_narrative: Optional[str] = None
    variance_narrative: Optional[str] = None
    financial_summary_narrative: Optional[str] = None
    current_funds_spent: Optional[float] = None
    submitted_at: Optional[datetime] = None
    submitted_by: Optional[str] = None
    is_editable: bool = True
    funds_received: Optional[float] = None
    funds_prior_year: Optional[float] = None
    total_awarded: Optional[float] = None
    project_allocations: List[ProjectAllocationResponse] = Field(default_factory=list)
    non_project_allocations: List[NonProjectAllocationResponse] = Field(
        default_factory=list
    )
    milestones: List[MilestoneResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReportValidationResponse(BaseModel):
    """Section-by-section readiness for submission."""

    is_valid: bool
    errors: Dict[str, List[str]]
    allocation_summary: Optional[AllocationSummaryResponse] = None


class ReopenRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class StatusHistoryResponse(BaseModel):
    id: str
    report_id: str
    old_status: Optional[str] = None
    new_status: str
    changed_by: str
    reason: Optional[str] = None
    created_at: Optional[datetime] = None
