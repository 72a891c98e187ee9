"""
Signed-in reader routes: profile, settings, saved articles, search
history, notifications, API keys, data export and self-serve ads.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import require_perk
from api.middleware.rate_limit import limiter
from api.routes.articles import get_article_or_404
from api.routes.auth import get_current_user
from api.schemas.articles import AdCreateRequest, AdResponse, ArticleResponse
from api.schemas.auth import PasswordChangeRequest
from api.schemas.users import (
    ApiKeyCreatedResponse,
    ApiKeyCreateRequest,
    ApiKeyResponse,
    NotificationResponse,
    PaymentHistoryItem,
    ProfileResponse,
    ProfileUpdateRequest,
    SavedToggleResponse,
    SearchHistoryItem,
    UserSettingsPayload,
)
from core.domain.settings_mapping import default_settings, flatten, unflatten
from core.security.api_keys import display_prefix, generate_api_key, hash_api_key
from core.security.password import password_hasher
from infrastructure.database.connection import get_db
from infrastructure.database.models.ad import Ad
from infrastructure.database.models.api_key import ApiKey
from infrastructure.database.models.article import Article
from infrastructure.database.models.billing import PaymentRecord
from infrastructure.database.models.comment import Comment
from infrastructure.database.models.reader import Bookmark, Notification, SearchHistory
from infrastructure.database.models.user import User
from infrastructure.database.models.user_settings import UserSettings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

CurrentUser = Annotated[User, Depends(get_current_user)]

RECENT_SEARCHES = 5


async def build_profile(db: AsyncSession, user: User) -> ProfileResponse:
    saved = await db.execute(
        select(Bookmark.article_id)
        .where(Bookmark.user_id == user.id)
        .order_by(Bookmark.created_at.desc())
    )
    searches = await db.execute(
        select(SearchHistory)
        .where(SearchHistory.user_id == user.id)
        .order_by(SearchHistory.created_at.desc())
        .limit(RECENT_SEARCHES)
    )
    ads = await db.execute(
        select(Ad).where(Ad.user_id == user.id).order_by(Ad.created_at.desc())
    )
    payments = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.user_id == user.id)
        .order_by(PaymentRecord.timestamp.desc())
    )
    return ProfileResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        avatar_url=user.avatar_url,
        bio=user.bio,
        socials=user.socials,
        role=user.role,
        tier=user.tier,
        billing_status=user.billing_status,
        created_at=user.created_at,
        saved_article_ids=list(saved.scalars().all()),
        search_history=[SearchHistoryItem.model_validate(s) for s in searches.scalars().all()],
        ads=[AdResponse.model_validate(a) for a in ads.scalars().all()],
        payment_history=[PaymentHistoryItem.model_validate(p) for p in payments.scalars().all()],
    )


async def load_settings(db: AsyncSession, user_id: str) -> dict:
    """Nested settings for a user; defaults when nothing was saved yet."""
    row = await db.get(UserSettings, user_id)
    if row is None:
        return default_settings()
    return unflatten(row.to_flat())


# ============================================================================
# Profile
# ============================================================================


@router.get("/me", response_model=ProfileResponse)
async def get_profile(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    return await build_profile(db, current_user)


@router.put("/me", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    for field, value in body.model_dump(exclude_unset=True).items():
        if field == "name" and not value:
            continue
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)
    return await build_profile(db, current_user)


@router.put("/me/password")
@limiter.limit("5/minute")
async def change_password(
    request: Request,
    body: PasswordChangeRequest,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Change password for authenticated user.

    Tokens issued before the change stop working.
    """
    if not password_hasher.verify(body.current_password, current_user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    current_user.password_hash = password_hasher.hash(body.new_password)
    current_user.password_changed_at = datetime.now(timezone.utc)
    await db.commit()

    return {"message": "Password has been changed successfully"}


# ============================================================================
# Settings
# ============================================================================


@router.get("/me/settings")
async def get_settings(current_user: CurrentUser, db: AsyncSession = Depends(get_db)) -> dict:
    return await load_settings(db, current_user.id)


@router.put("/me/settings")
async def replace_settings(
    body: UserSettingsPayload,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Replace the whole settings object."""
    flat = flatten(body.model_dump(by_alias=True))

    row = await db.get(UserSettings, current_user.id)
    if row is None:
        row = UserSettings(user_id=current_user.id)
        db.add(row)
    row.update_from_flat(flat)
    await db.commit()

    return unflatten(flat)


# ============================================================================
# Saved articles & search history
# ============================================================================


@router.get("/me/saved-articles", response_model=list[ArticleResponse])
async def get_saved_articles(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Article)
        .join(Bookmark, Bookmark.article_id == Article.id)
        .where(Bookmark.user_id == current_user.id)
        .order_by(Bookmark.created_at.desc())
    )
    return result.scalars().all()


@router.post("/me/saved-articles/{article_id}", response_model=SavedToggleResponse)
async def toggle_saved_article(
    article_id: str,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """Save the article, or unsave it if it is already saved."""
    await get_article_or_404(db, article_id, include_scheduled=True)

    result = await db.execute(
        select(Bookmark).where(
            Bookmark.user_id == current_user.id,
            Bookmark.article_id == article_id,
        )
    )
    bookmark = result.scalar_one_or_none()
    if bookmark:
        await db.delete(bookmark)
        saved = False
    else:
        db.add(Bookmark(user_id=current_user.id, article_id=article_id))
        saved = True
    await db.commit()
    return SavedToggleResponse(article_id=article_id, saved=saved)


@router.delete("/me/search-history", status_code=status.HTTP_204_NO_CONTENT)
async def clear_search_history(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    await db.execute(delete(SearchHistory).where(SearchHistory.user_id == current_user.id))
    await db.commit()


# ============================================================================
# Data export
# ============================================================================


@router.get("/me/export")
async def export_my_data(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Everything stored about the caller, as a JSON download."""
    profile = await build_profile(db, current_user)
    comments = await db.execute(
        select(Comment).where(Comment.user_id == current_user.id).order_by(Comment.created_at)
    )
    notifications = await db.execute(
        select(Notification)
        .where(Notification.user_id == current_user.id)
        .order_by(Notification.created_at)
    )
    all_searches = await db.execute(
        select(SearchHistory)
        .where(SearchHistory.user_id == current_user.id)
        .order_by(SearchHistory.created_at)
    )

    payload = {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "profile": profile.model_dump(mode="json", exclude={"search_history"}),
        "settings": await load_settings(db, current_user.id),
        "search_history": [
            SearchHistoryItem.model_validate(s).model_dump(mode="json")
            for s in all_searches.scalars().all()
        ],
        "comments": [
            {
                "id": c.id,
                "article_id": c.article_id,
                "parent_id": c.parent_id,
                "body": c.body,
                "created_at": c.created_at.isoformat(),
            }
            for c in comments.scalars().all()
        ],
        "notifications": [
            NotificationResponse.model_validate(n).model_dump(mode="json")
            for n in notifications.scalars().all()
        ],
    }
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": 'attachment; filename="newshub-export.json"'},
    )


# ============================================================================
# Notifications
# ============================================================================


async def _get_notification(db: AsyncSession, user: User, notification_id: str) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return notification


@router.get("/me/notifications", response_model=list[NotificationResponse])
async def list_notifications(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == current_user.id)
        .order_by(Notification.created_at.desc())
        .limit(100)
    )
    return result.scalars().all()


@router.put("/me/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    notification = await _get_notification(db, current_user, notification_id)
    notification.is_read = True
    await db.commit()
    return notification


@router.post("/me/notifications/read-all")
async def mark_all_notifications_read(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == current_user.id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return {"updated": result.rowcount}


@router.delete("/me/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    notification = await _get_notification(db, current_user, notification_id)
    await db.delete(notification)
    await db.commit()


# ============================================================================
# API keys
# ============================================================================


@router.get("/me/api-keys", response_model=list[ApiKeyResponse])
async def list_api_keys(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(ApiKey)
        .where(ApiKey.user_id == current_user.id, ApiKey.active.is_(True))
        .order_by(ApiKey.created_at.desc())
    )
    return result.scalars().all()


@router.post(
    "/me/api-keys",
    response_model=ApiKeyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_api_key(
    body: ApiKeyCreateRequest,
    current_user: Annotated[User, Depends(require_perk("developer_api"))],
    db: AsyncSession = Depends(get_db),
):
    """Create a public API key. The plaintext key is only returned here."""
    plaintext = generate_api_key()
    key = ApiKey(
        user_id=current_user.id,
        name=body.name,
        key_hash=hash_api_key(plaintext),
        key_prefix=display_prefix(plaintext),
    )
    db.add(key)
    await db.commit()
    await db.refresh(key)

    logger.info("API key %s created for user %s", key.id, current_user.id)
    return ApiKeyCreatedResponse(
        id=key.id,
        name=key.name,
        key_prefix=key.key_prefix,
        active=key.active,
        created_at=key.created_at,
        last_used_at=key.last_used_at,
        key=plaintext,
    )


@router.delete("/me/api-keys/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_api_key(
    key_id: str,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ApiKey).where(ApiKey.id == key_id, ApiKey.user_id == current_user.id)
    )
    key = result.scalar_one_or_none()
    if not key:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="API key not found",
        )
    key.active = False
    await db.commit()


# ============================================================================
# Self-serve ads
# ============================================================================


@router.post("/me/ads", response_model=AdResponse, status_code=status.HTTP_201_CREATED)
async def create_my_ad(
    body: AdCreateRequest,
    current_user: Annotated[User, Depends(require_perk("self_serve_ads"))],
    db: AsyncSession = Depends(get_db),
):
    ad = Ad(headline=body.headline, url=body.url, image=body.image, user_id=current_user.id)
    db.add(ad)
    await db.commit()
    await db.refresh(ad)
    return ad
