"""Pydantic request/response schemas for project and non-project allocations."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from portal.services.allocation_validator import MAX_AMOUNT, NON_PROJECT_CATEGORIES

# Money inputs are bounded to what the NUMERIC(14, 2) columns can store.
# Negative values pass the schema and are reported by the validator.
MAX_MONEY = float(MAX_AMOUNT)


# ---------------------------------------------------------------------------
# Project allocations
# ---------------------------------------------------------------------------


class ProjectAllocationInput(BaseModel):
    """A language project allocation as entered on the report form.

    Descriptive fields are allowed to be blank while a report is a draft;
    completeness is checked on submission.
    """

    language_name: str = ""
    ethnologue_code: str = ""
    country: str = ""
    dialect_rolv_number: Optional[str] = None
    amount_allocated: float = Field(0.0, ge=-MAX_MONEY, le=MAX_MONEY)
    partners: List[str] = Field(default_factory=list)

    # Reference dataset metadata
    all_access_goal: Optional[str] = None
    eligible_for_eten_funding: Optional[bool] = None
    all_access_status: Optional[str] = None
    language_population_group: Optional[str] = None
    first_language_population: Optional[int] = None
    egids_level: Optional[str] = None
    is_sign_language: Optional[bool] = None
    luminations_region: Optional[str] = None

    @field_validator("partners")
    @classmethod
    def strip_blank_partners(cls, v: List[str]) -> List[str]:
        return [p.strip() for p in v if p and p.strip()]


class ProjectAllocationResponse(ProjectAllocationInput):
    id: str
    report_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Non-project allocations
# ---------------------------------------------------------------------------


class NonProjectAllocationInput(BaseModel):
    allocation_type: str
    amount: float = Field(0.0, ge=-MAX_MONEY, le=MAX_MONEY)
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator("allocation_type")
    @classmethod
    def validate_allocation_type(cls, v: str) -> str:
        if v not in NON_PROJECT_CATEGORIES:
            raise ValueError(
                f"Invalid allocation_type '{v}'. "
                f"Must be one of: {', '.join(NON_PROJECT_CATEGORIES)}"
            )
        return v


class NonProjectAllocationResponse(NonProjectAllocationInput):
    id: str
    report_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Stateless validation
# ---------------------------------------------------------------------------


class AllocationValidationRequest(BaseModel):
    """Body for ``POST /allocations/validate``.

    Amounts are taken as entered; negative values are reported as
    validation errors rather than rejected by the schema.
    """

    project_allocations: List[ProjectAllocationInput] = Field(default_factory=list)
    non_project_allocations: Dict[str, float] = Field(default_factory=dict)
    funds_received: Optional[float] = Field(None, ge=-MAX_MONEY, le=MAX_MONEY)
    check_project_fields: bool = True


class AllocationSummaryResponse(BaseModel):
    project_total: float
    non_project_total: float
    grand_total: float
    funds_received: Optional[float] = None
    variance: Optional[float] = None
    category_amounts: Dict[str, Optional[float]]
    percentages: Dict[str, Optional[float]]
    caps: Dict[str, Optional[float]]
    is_balanced: Optional[bool] = None
    caps_enforced: bool
    is_valid: bool
    errors: List[str]
    notices: List[str]


class AllocationValidationResponse(BaseModel):
    """Validator summary plus per-allocation field errors."""

    summary: AllocationSummaryResponse
    field_errors: List[str] = Field(default_factory=list)
    is_valid: bool
