"""
Admin database models.
"""

from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Index, String, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class AuditAction(str, Enum):
    """Admin audit log action types."""

    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    USER_PASSWORD_RESET = "user_password_reset"
    ROLE_CHANGED = "role_changed"
    TIER_CHANGED = "tier_changed"
    COMMENT_DELETED = "comment_deleted"
    ARTICLE_DELETED = "article_deleted"
    NAV_LINKS_REPLACED = "nav_links_replaced"
    SITE_SETTINGS_UPDATED = "site_settings_updated"
    EXTERNAL_SYNC = "external_sync"


class AuditTargetType(str, Enum):
    """Admin audit log target types."""

    USER = "user"
    COMMENT = "comment"
    ARTICLE = "article"
    SITE = "site"


class AdminAuditLog(Base, TimestampMixin):
    """Record of one administrative action."""

    __tablename__ = "admin_audit_logs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    admin_user_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    target_type: Mapped[str] = mapped_column(String(50), nullable=False)
    # Not a foreign key: the target may be deleted by the very action logged
    target_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure:
    {
        "old_value": {...},
        "new_value": {...}
    }
    """
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6 max length

    __table_args__ = (
        Index("ix_admin_audit_admin_action", "admin_user_id", "action"),
        Index("ix_admin_audit_target", "target_type", "target_id"),
        Index("ix_admin_audit_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AdminAuditLog(id={self.id}, action={self.action}, admin_id={self.admin_user_id})>"
