"""
Admin user management API routes.
"""

import logging
from datetime import datetime, timedelta, timezone
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import and_, asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.email.resend_adapter import email_service
from api.dependencies import get_current_admin_user
from api.routes.auth import token_service
from api.schemas.admin import (
    ActivitySearch,
    ActivityPayment,
    ActivityView,
    AdminPasswordResetRequest,
    AdminUserCreateRequest,
    AuditLogListResponse,
    AuditLogResponse,
    UserActionResponse,
    UserActivityResponse,
    UserDetailResponse,
    UserListItemResponse,
    UserListResponse,
    UserUpdateRequest,
)
from api.utils import escape_like
from core.security.password import password_hasher
from infrastructure.database.connection import get_db
from infrastructure.database.models.admin import AdminAuditLog, AuditAction, AuditTargetType
from infrastructure.database.models.article import Article, ArticleView
from infrastructure.database.models.billing import PaymentRecord
from infrastructure.database.models.reader import SearchHistory
from infrastructure.database.models.user import User, UserRole
from services.audit import add_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin - Users"])

PASSWORD_RESET_TTL = timedelta(hours=1)
ACTIVITY_LIMIT = 20


# ============================================================================
# Helper Functions
# ============================================================================


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


async def _email_taken(db: AsyncSession, email: str, exclude_id: Optional[str] = None) -> bool:
    query = select(User.id).where(User.email == email)
    if exclude_id:
        query = query.where(User.id != exclude_id)
    return (await db.execute(query)).scalar_one_or_none() is not None


# ============================================================================
# User Management Endpoints
# ============================================================================


@router.get("/users", response_model=UserListResponse)
async def list_users(
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=255),
    role: Optional[str] = Query(None, pattern="^(user|sub_admin|admin)$"),
    tier: Optional[str] = Query(None, pattern="^(free|standard|premium|pro)$"),
    sort_by: str = Query("created_at", pattern="^(created_at|email|tier|last_login)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
) -> UserListResponse:
    """
    List all users with pagination and filtering.

    Admin access required.
    """
    filters = []
    if search:
        search_pattern = f"%{escape_like(search)}%"
        filters.append(
            or_(
                User.email.ilike(search_pattern, escape="\\"),
                User.name.ilike(search_pattern, escape="\\"),
            )
        )
    if role:
        filters.append(User.role == role)
    if tier:
        filters.append(User.tier == tier)

    query = select(User)
    count_query = select(func.count()).select_from(User)
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total = (await db.execute(count_query)).scalar() or 0

    sort_column = getattr(User, sort_by)
    query = query.order_by(desc(sort_column) if sort_order == "desc" else asc(sort_column))
    query = query.limit(page_size).offset((page - 1) * page_size)

    result = await db.execute(query)
    return UserListResponse(
        users=[UserListItemResponse.model_validate(u) for u in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.post("/users", response_model=UserDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: AdminUserCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
) -> UserDetailResponse:
    email = body.email.lower()
    if await _email_taken(db, email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists",
        )

    user = User(
        email=email,
        name=body.name,
        password_hash=password_hasher.hash(body.password),
        role=body.role,
        tier=body.tier,
    )
    db.add(user)
    await db.flush()

    add_audit_log(
        db,
        admin_user=admin_user,
        action=AuditAction.USER_CREATED,
        target_type=AuditTargetType.USER,
        target_id=user.id,
        description=f"Created user {email}",
        metadata={"role": body.role, "tier": body.tier},
        ip_address=_client_ip(request),
    )
    await db.commit()
    await db.refresh(user)
    return UserDetailResponse.model_validate(user)


@router.get("/users/{user_id}", response_model=UserDetailResponse)
async def get_user_detail(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
) -> UserDetailResponse:
    user = await _get_user_or_404(db, user_id)
    return UserDetailResponse.model_validate(user)


@router.put("/users/{user_id}", response_model=UserActionResponse)
async def update_user(
    user_id: str,
    body: UserUpdateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
) -> UserActionResponse:
    """
    Update name, email, role, tier or status of a user.

    Admin access required. Admins cannot demote or suspend themselves.
    """
    user = await _get_user_or_404(db, user_id)

    if user.id == admin_user.id:
        if body.role and body.role != UserRole.ADMIN.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot demote yourself from admin role",
            )
        if body.status and body.status != user.status:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot change your own account status",
            )

    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in updates:
        updates["email"] = updates["email"].lower()
        if updates["email"] != user.email and await _email_taken(db, updates["email"], user.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already in use",
            )

    old_values = {}
    new_values = {}
    for field, value in updates.items():
        current = getattr(user, field)
        if value != current:
            old_values[field] = current
            new_values[field] = value
            setattr(user, field, value)

    if not new_values:
        return UserActionResponse(
            success=True,
            message="No changes were made",
            user=UserDetailResponse.model_validate(user),
        )

    if "role" in new_values:
        action = AuditAction.ROLE_CHANGED
    elif "tier" in new_values:
        action = AuditAction.TIER_CHANGED
    else:
        action = AuditAction.USER_UPDATED

    add_audit_log(
        db,
        admin_user=admin_user,
        action=action,
        target_type=AuditTargetType.USER,
        target_id=user.id,
        description=f"Updated user {user.email}: " + ", ".join(sorted(new_values)),
        metadata={"old_value": old_values, "new_value": new_values},
        ip_address=_client_ip(request),
    )
    await db.commit()
    await db.refresh(user)

    return UserActionResponse(
        success=True,
        message="User updated successfully",
        user=UserDetailResponse.model_validate(user),
    )


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
):
    """
    Delete a user account and everything owned by it.

    Admin access required.
    """
    user = await _get_user_or_404(db, user_id)

    if user.id == admin_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot delete your own account",
        )

    add_audit_log(
        db,
        admin_user=admin_user,
        action=AuditAction.USER_DELETED,
        target_type=AuditTargetType.USER,
        target_id=user.id,
        description=f"Deleted user {user.email}",
        metadata={"user_email": user.email, "user_name": user.name},
        ip_address=_client_ip(request),
    )
    await db.delete(user)
    await db.commit()
    logger.info("Admin %s deleted user %s", admin_user.id, user_id)


@router.post("/users/{user_id}/reset-password", response_model=UserActionResponse)
async def force_password_reset(
    user_id: str,
    body: AdminPasswordResetRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
) -> UserActionResponse:
    """
    Force a password reset for a user.

    Generates a password reset token and optionally emails the link.
    """
    user = await _get_user_or_404(db, user_id)

    reset_token = token_service.create_password_reset_token(user.id)
    user.password_reset_token = reset_token
    user.password_reset_expires = datetime.now(timezone.utc) + PASSWORD_RESET_TTL

    email_sent = False
    if body.send_email:
        email_sent = await email_service.send_password_reset_email(
            to_email=user.email,
            user_name=user.name,
            reset_token=reset_token,
        )

    add_audit_log(
        db,
        admin_user=admin_user,
        action=AuditAction.USER_PASSWORD_RESET,
        target_type=AuditTargetType.USER,
        target_id=user.id,
        description=f"Forced password reset for user {user.email}",
        metadata={"email_sent": email_sent, "send_email_requested": body.send_email},
        ip_address=_client_ip(request),
    )
    await db.commit()
    await db.refresh(user)

    return UserActionResponse(
        success=True,
        message="Password reset token generated" + (" and email sent" if email_sent else ""),
        user=UserDetailResponse.model_validate(user),
    )


@router.get("/users/{user_id}/activity", response_model=UserActivityResponse)
async def get_user_activity(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
) -> UserActivityResponse:
    """Recent searches, article views and payments of a user."""
    user = await _get_user_or_404(db, user_id)

    searches = await db.execute(
        select(SearchHistory)
        .where(SearchHistory.user_id == user.id)
        .order_by(SearchHistory.created_at.desc())
        .limit(ACTIVITY_LIMIT)
    )
    views = await db.execute(
        select(ArticleView.article_id, Article.title, ArticleView.viewed_at)
        .outerjoin(Article, Article.id == ArticleView.article_id)
        .where(ArticleView.user_id == user.id)
        .order_by(ArticleView.viewed_at.desc())
        .limit(ACTIVITY_LIMIT)
    )
    payments = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.user_id == user.id)
        .order_by(PaymentRecord.timestamp.desc())
        .limit(ACTIVITY_LIMIT)
    )

    return UserActivityResponse(
        user_id=user.id,
        searches=[ActivitySearch.model_validate(s) for s in searches.scalars().all()],
        views=[
            ActivityView(article_id=row.article_id, title=row.title, viewed_at=row.viewed_at)
            for row in views.all()
        ],
        payments=[ActivityPayment.model_validate(p) for p in payments.scalars().all()],
    )


# ============================================================================
# Audit Log Endpoints
# ============================================================================


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    admin_user_id: Optional[str] = Query(None),
    target_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    target_id: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
) -> AuditLogListResponse:
    """
    List admin audit logs with filtering and pagination.

    Admin access required.
    """
    filters = []
    if admin_user_id:
        filters.append(AdminAuditLog.admin_user_id == admin_user_id)
    if target_type:
        filters.append(AdminAuditLog.target_type == target_type)
    if action:
        filters.append(AdminAuditLog.action == action)
    if target_id:
        filters.append(AdminAuditLog.target_id == target_id)
    if date_from:
        filters.append(AdminAuditLog.created_at >= date_from)
    if date_to:
        filters.append(AdminAuditLog.created_at <= date_to)

    query = select(AdminAuditLog)
    count_query = select(func.count()).select_from(AdminAuditLog)
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total = (await db.execute(count_query)).scalar() or 0

    order = desc(AdminAuditLog.created_at) if sort_order == "desc" else asc(AdminAuditLog.created_at)
    result = await db.execute(
        query.order_by(order).limit(page_size).offset((page - 1) * page_size)
    )

    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )
