"""
User database model.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, String, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.orm.attributes import flag_modified

from core.domain.subscription import SubscriptionState, SubscriptionTier
from .base import Base, TimestampMixin


class UserRole(str, Enum):
    """User roles enumeration."""

    USER = "user"
    SUB_ADMIN = "sub_admin"  # Editors: article management
    ADMIN = "admin"


class UserStatus(str, Enum):
    """User account status enumeration."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Profile
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    socials: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure:
    {
        "twitter": "https://x.com/handle",
        "linkedin": "https://linkedin.com/in/handle"
    }
    """

    # Authentication
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(50),
        default=UserRole.USER.value,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(50),
        default=UserStatus.ACTIVE.value,
        nullable=False,
    )
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Password reset
    password_reset_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    password_reset_expires: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    password_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Subscription: written by checkout creation and the webhook reconciler only
    tier: Mapped[str] = mapped_column(
        String(50),
        default=SubscriptionTier.FREE.value,
        nullable=False,
    )
    billing_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    billing_customer_ref: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )
    billing_subscription_ref: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )

    # Login tracking
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    login_count: Mapped[int] = mapped_column(default=0, nullable=False)

    __table_args__ = (
        Index("ix_users_email_status", "email", "status"),
        Index("ix_users_tier", "tier"),
        Index("ix_users_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_active(self) -> bool:
        """Check if user account is active."""
        return self.status == UserStatus.ACTIVE.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_editor(self) -> bool:
        """Admins and sub-admins may manage articles."""
        return self.role in (UserRole.ADMIN.value, UserRole.SUB_ADMIN.value)

    @property
    def subscription_state(self) -> SubscriptionState:
        return SubscriptionState(
            tier=self.tier,
            billing_status=self.billing_status,
            subscription_ref=self.billing_subscription_ref,
        )

    def apply_subscription_state(self, state: SubscriptionState) -> None:
        self.tier = state.tier
        self.billing_status = state.billing_status
        self.billing_subscription_ref = state.subscription_ref
        # Always write the whole state, even columns whose value did not change
        for column in ("tier", "billing_status", "billing_subscription_ref"):
            flag_modified(self, column)
