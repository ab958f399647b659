"""JWT authentication for the reporting portal.

Users sign in with email and password.  Passwords are verified with bcrypt
against the ``users`` table and sessions are HS256 JWTs signed via
python-jose.  Each token carries the user id; the profile (role and
organization) is reloaded from the database on every request so role
changes take effect immediately.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.database import get_db
from portal.models.db.user import User
from portal.security import log_security_event

load_dotenv()

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JWT configuration
# ---------------------------------------------------------------------------
JWT_SECRET = os.getenv("JWT_SECRET", "midyear-dev-secret-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = int(os.getenv("JWT_EXPIRY_HOURS", "12"))


# ---------------------------------------------------------------------------
# Password hashing (direct bcrypt)
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Malformed hash in the database
        logger.warning("Stored password hash could not be parsed")
        return False


# ---------------------------------------------------------------------------
# HTTPBearer scheme
# ---------------------------------------------------------------------------
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def user_profile(user: User) -> dict[str, Any]:
    """Return the session profile dict for *user* (never the password hash)."""
    return {
        "id": str(user.id),
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "organization_id": str(user.organization_id) if user.organization_id else None,
    }


async def authenticate_user(
    db: AsyncSession, email: str, password: str
) -> dict[str, Any] | None:
    """Verify *email* and *password*.

    Returns the user profile dict on success, or ``None`` if the account
    does not exist, is inactive, or the password is wrong.
    """
    result = await db.execute(
        select(User).where(func.lower(User.email) == email.lower().strip())
    )
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user_profile(user)


def create_access_token(user_data: dict[str, Any]) -> str:
    """Create a signed JWT containing the user's id, email, and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_data["id"],
        "email": user_data["email"],
        "role": user_data["role"],
        "exp": now + timedelta(hours=JWT_EXPIRY_HOURS),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT.  Raises ``JWTError`` when invalid or expired."""
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_token_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict[str, Any]:
    """FastAPI dependency: identity from the bearer token alone.

    For endpoints that never read the database, so they keep working when
    it is not configured.  A deactivated account keeps access to them until
    its token expires.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = uuid.UUID(payload.get("sub", ""))
    except (JWTError, ValueError) as exc:
        log_security_event("auth_invalid_token", request, {"error": str(exc)[:100]})
        raise _unauthorized("Invalid or expired token") from exc

    return {"id": str(user_id), "email": payload.get("email"), "role": payload.get("role")}


async def get_current_user(
    request: Request,
    token_user: dict[str, Any] = Depends(get_token_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """FastAPI dependency: the signed-in user's profile.

    The token only identifies the user; an account deactivated after the
    token was issued is refused on its next request.
    """
    user = await db.get(User, uuid.UUID(token_user["id"]))
    if user is None or not user.is_active:
        log_security_event("auth_unknown_user", request, {"user_id": token_user["id"]})
        raise _unauthorized("Invalid or expired token")

    return user_profile(user)


# ---------------------------------------------------------------------------
# Role dependencies
# ---------------------------------------------------------------------------


async def require_admin(
    current_user: dict = Depends(get_current_user),
) -> dict:
    """FastAPI dependency that enforces admin-level access.

    Usage::

        @router.get("/admin/something")
        async def admin_endpoint(user: dict = Depends(require_admin)):
            ...
    """
    if current_user.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


async def require_staff(
    current_user: dict = Depends(get_current_user),
) -> dict:
    """Allow ``admin`` and ``staff`` users."""
    if current_user.get("role") not in ("admin", "staff"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required",
        )
    return current_user
