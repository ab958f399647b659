"""User management admin endpoints.

Listing users and changing their role, organization, or active flag.
All endpoints require admin-level authentication via ``require_admin``.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.deps import _safe_error, get_db, raise_for_domain_error, require_admin
from portal.errors import PortalError
from portal.models.admin_models import UserResponse, UserUpdate
from portal.services.admin_service import AdminService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/admin/users", response_model=list[UserResponse])
async def list_users(
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(require_admin),
):
    try:
        users = await AdminService.list_users(db, role=role, search=search)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing users", e),
        ) from e
    return [UserResponse(**u) for u in users]


@router.patch("/admin/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(require_admin),
):
    """Change a user's role, organization, or active flag."""
    try:
        user = await AdminService.update_user(
            db, user_id, body.model_dump(exclude_unset=True), current_user
        )
    except PortalError as e:
        raise_for_domain_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("updating user", e),
        ) from e
    return UserResponse(**user)
