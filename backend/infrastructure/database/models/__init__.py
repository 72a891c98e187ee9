"""
SQLAlchemy database models.
"""

from .ad import Ad
from .admin import AdminAuditLog, AuditAction, AuditTargetType
from .api_key import ApiKey
from .article import Article, ArticleView
from .base import Base, TimestampMixin
from .billing import PaymentRecord, ProcessedWebhookEvent
from .comment import Comment
from .reader import Bookmark, Notification, SearchHistory
from .site import ContactMessage, JobApplication, JobPosting, NavLink, Page, SiteSetting
from .user import SubscriptionTier, User, UserRole, UserStatus
from .user_settings import UserSettings

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "UserRole",
    "UserStatus",
    "SubscriptionTier",
    "UserSettings",
    "Article",
    "ArticleView",
    "Comment",
    "Bookmark",
    "SearchHistory",
    "Notification",
    "Ad",
    "PaymentRecord",
    "ProcessedWebhookEvent",
    "ApiKey",
    "NavLink",
    "SiteSetting",
    "Page",
    "ContactMessage",
    "JobPosting",
    "JobApplication",
    "AdminAuditLog",
    "AuditAction",
    "AuditTargetType",
]
