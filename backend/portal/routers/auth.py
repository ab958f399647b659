"""Sign-in and session profile endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.auth import JWT_EXPIRY_HOURS, authenticate_user, create_access_token
from portal.deps import _safe_error, get_current_user, get_db
from portal.models.auth_models import LoginRequest, TokenResponse, UserProfile
from portal.security import log_security_event, rate_limit_auth

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["auth"])


# ---------------------------------------------------------------------------
# POST  /auth/login
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=TokenResponse)
@rate_limit_auth()
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Exchange email and password for a bearer token."""
    try:
        user = await authenticate_user(db, body.email, body.password)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("signing in", e),
        ) from e

    if user is None:
        log_security_event("auth_failed", request, {"email": body.email[:100]})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    logger.info("User %s signed in", user["id"])
    return TokenResponse(
        access_token=create_access_token(user),
        expires_in=JWT_EXPIRY_HOURS * 3600,
        user=UserProfile(**user),
    )


# ---------------------------------------------------------------------------
# GET  /me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserProfile)
async def get_me(current_user: dict = Depends(get_current_user)):
    """Return the signed-in user's profile."""
    return UserProfile(**current_user)
