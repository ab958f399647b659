"""Stateless allocation check used by the report form while editing."""

import logging

from fastapi import APIRouter, Depends

from portal.deps import get_token_user
from portal.models.allocation_models import (
    AllocationSummaryResponse,
    AllocationValidationRequest,
    AllocationValidationResponse,
)
from portal.services.allocation_validator import (
    validate_allocations,
    validate_project_allocation_fields,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["allocations"])


@router.post("/allocations/validate", response_model=AllocationValidationResponse)
async def validate_allocation_split(
    body: AllocationValidationRequest,
    current_user: dict = Depends(get_token_user),
):
    """Reconcile an allocation split without saving anything."""
    summary = validate_allocations(
        [a.amount_allocated for a in body.project_allocations],
        body.non_project_allocations,
        body.funds_received,
    )
    field_errors = []
    if body.check_project_fields:
        field_errors = validate_project_allocation_fields(
            [a.model_dump() for a in body.project_allocations]
        )

    return AllocationValidationResponse(
        summary=AllocationSummaryResponse(**summary.to_dict()),
        field_errors=field_errors,
        is_valid=summary.is_valid and not field_errors,
    )
