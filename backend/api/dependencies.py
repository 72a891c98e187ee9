"""
API dependencies for authentication and authorization.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from core.plans import plan_has_perk
from core.security.api_keys import hash_api_key, keys_match
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.api_key import ApiKey
from infrastructure.database.models.user import User

logger = logging.getLogger(__name__)


async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Dependency to get the current authenticated admin user.

    Raises:
        HTTPException: 403 if user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


async def get_current_editor_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Admins and sub-admins: article management."""
    if not current_user.is_editor:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Editor access required",
        )
    return current_user


def require_perk(perk: str):
    """Dependency factory: the caller's plan must include *perk* (admins always pass)."""

    async def dependency(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if not current_user.is_admin and not plan_has_perk(current_user.tier, perk):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Your plan does not include this feature",
            )
        return current_user

    return dependency


async def require_api_key(
    x_api_key: Annotated[Optional[str], Header()] = None,
    api_key: Annotated[Optional[str], Query(include_in_schema=False)] = None,
    db: AsyncSession = Depends(get_db),
) -> Optional[ApiKey]:
    """
    Authenticate a public API caller.

    Accepts the ``X-API-Key`` header or an ``api_key`` query parameter.
    The configured PUBLIC_API_KEY matches without a database row and
    returns None; stored keys return their row.
    """
    candidate = x_api_key or api_key
    if not candidate:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required",
        )

    if settings.public_api_key and keys_match(candidate, settings.public_api_key):
        return None

    result = await db.execute(
        select(ApiKey).where(ApiKey.key_hash == hash_api_key(candidate), ApiKey.active.is_(True))
    )
    key = result.scalar_one_or_none()
    if key is None:
        logger.info("Rejected public API call with unknown key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    key.last_used_at = datetime.now(timezone.utc)
    await db.commit()
    return key
