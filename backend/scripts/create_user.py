"""Create (or reset) a portal user account.

Usage:
    cd backend
    python3 -m scripts.create_user --email admin@example.org --role admin
    python3 -m scripts.create_user --email grantee@example.org \
        --organization-id <uuid> --password 'ChangeMe123!'

If ``--password`` is omitted a random one is generated and printed once.
"""

import argparse
import asyncio
import logging
import os
import secrets
import sys
import uuid

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from sqlalchemy import func, select

from portal.auth import hash_password
from portal.database import DATABASE_URL, session_scope
from portal.models.db.organization import Organization
from portal.models.db.user import USER_ROLES, User

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("create_user")


async def create_user(
    email: str,
    password: str,
    role: str,
    full_name: str | None,
    organization_id: uuid.UUID | None,
) -> User:
    if not DATABASE_URL:
        raise SystemExit("DATABASE_URL is not set")

    async with session_scope() as session:
        if organization_id is not None:
            org = await session.execute(
                select(Organization.id).where(Organization.id == organization_id)
            )
            if org.scalar_one_or_none() is None:
                raise SystemExit(f"Organization {organization_id} not found")

        result = await session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        user = result.scalar_one_or_none()
        if user is None:
            user = User(email=email.lower(), hashed_password=hash_password(password))
            session.add(user)
            logger.info("Creating user %s", email)
        else:
            user.hashed_password = hash_password(password)
            logger.info("User %s exists; resetting password and role", email)

        user.role = role
        user.full_name = full_name or user.full_name
        user.organization_id = organization_id
        user.is_active = True

        await session.flush()
        await session.refresh(user)
    return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a portal user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password")
    parser.add_argument("--role", choices=USER_ROLES, default="org_user")
    parser.add_argument("--full-name")
    parser.add_argument("--organization-id", type=uuid.UUID)
    args = parser.parse_args()

    if args.role == "org_user" and args.organization_id is None:
        parser.error("--organization-id is required for org_user accounts")

    password = args.password or secrets.token_urlsafe(12)
    user = asyncio.run(
        create_user(
            args.email, password, args.role, args.full_name, args.organization_id
        )
    )

    print(f"User ready: {user.email} ({user.role}) id={user.id}")
    if not args.password:
        print(f"Generated password: {password}")


if __name__ == "__main__":
    main()
