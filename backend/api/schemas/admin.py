"""
Admin API schemas: user management, audit trail and dashboard stats.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from core.security.password import check_password_strength

ROLE_PATTERN = "^(user|sub_admin|admin)$"
TIER_PATTERN = "^(free|standard|premium|pro)$"


# ============================================================================
# User Management
# ============================================================================


class UserListItemResponse(BaseModel):
    """User row in the admin list."""

    id: str
    email: str
    name: str
    role: str
    status: str
    tier: str
    billing_status: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserListResponse(BaseModel):
    """Paginated user list."""

    users: list[UserListItemResponse]
    total: int = Field(..., description="Total number of users matching filters")
    page: int
    page_size: int
    total_pages: int


class UserDetailResponse(UserListItemResponse):
    """Full user record as seen by an admin."""

    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    socials: Optional[dict[str, str]] = None
    billing_customer_ref: Optional[str] = None
    billing_subscription_ref: Optional[str] = None
    login_count: int = 0
    updated_at: datetime


class AdminUserCreateRequest(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=100)
    role: str = Field("user", pattern=ROLE_PATTERN)
    tier: str = Field("free", pattern=TIER_PATTERN)

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return check_password_strength(v)


class UserUpdateRequest(BaseModel):
    """Admin edit of a user. Setting ``tier`` is a manual grant."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    role: Optional[str] = Field(None, pattern=ROLE_PATTERN)
    tier: Optional[str] = Field(None, pattern=TIER_PATTERN)
    status: Optional[str] = Field(None, pattern="^(active|suspended)$")


class AdminPasswordResetRequest(BaseModel):
    send_email: bool = Field(True, description="Email the reset link to the user")


class UserActionResponse(BaseModel):
    success: bool
    message: str
    user: Optional[UserDetailResponse] = None


class ActivitySearch(BaseModel):
    query: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityView(BaseModel):
    article_id: str
    title: Optional[str] = None
    viewed_at: datetime


class ActivityPayment(BaseModel):
    id: str
    timestamp: datetime
    plan: str
    amount: float
    status: str

    model_config = ConfigDict(from_attributes=True)


class UserActivityResponse(BaseModel):
    """Recent reader activity of one user."""

    user_id: str
    searches: list[ActivitySearch]
    views: list[ActivityView]
    payments: list[ActivityPayment]


# ============================================================================
# Audit Logs
# ============================================================================


class AuditLogResponse(BaseModel):
    id: str
    admin_user_id: Optional[str] = None
    action: str
    target_type: str
    target_id: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    logs: list[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


# ============================================================================
# Dashboard Stats
# ============================================================================


class CategoryCount(BaseModel):
    category: str
    count: int


class DashboardStatsResponse(BaseModel):
    """Headline numbers for the admin dashboard."""

    total_users: int
    users_by_tier: dict[str, int] = Field(..., description="User count per subscription tier")
    total_articles: int
    total_views: int
    total_ads: int
    total_comments: int
    categories: list[CategoryCount]
