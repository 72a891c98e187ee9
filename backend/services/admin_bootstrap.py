"""
Seed the first administrator account at startup.

The account is an ordinary user row with a bcrypt hash; there is no
credential check anywhere outside the normal login path.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.security.password import check_password_strength, password_hasher
from infrastructure.database.models.user import User, UserRole, UserStatus

logger = logging.getLogger(__name__)


async def ensure_admin_user(
    db: AsyncSession,
    email: Optional[str],
    password: Optional[str],
    name: str = "Administrator",
) -> Optional[User]:
    """
    Create the admin account if it does not exist yet.

    An existing account with that email is promoted to admin but keeps its
    password. Returns None when no bootstrap credentials are configured.
    """
    if not email or not password:
        logger.debug("Admin bootstrap skipped: no credentials configured")
        return None

    check_password_strength(password)
    email = email.strip().lower()

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(
            email=email,
            name=name,
            password_hash=password_hasher.hash(password),
            role=UserRole.ADMIN.value,
            status=UserStatus.ACTIVE.value,
        )
        db.add(user)
        logger.info("Bootstrap admin account created for %s", email)
    elif user.role != UserRole.ADMIN.value:
        user.role = UserRole.ADMIN.value
        logger.info("Existing account %s promoted to admin", email)
    else:
        return user

    await db.commit()
    await db.refresh(user)
    return user
