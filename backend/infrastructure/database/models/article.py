"""
Article and readership database models.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, JSON, or_
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Article(Base, TimestampMixin):
    """A published (or scheduled) news article."""

    __tablename__ = "articles"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="world")
    tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # Source attribution (external sync)
    url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True, unique=True)
    url_to_image: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    source_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    published_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    # Hidden from readers until this time passes
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_articles_category_published", "category", "published_at"),
        Index("ix_articles_published", "published_at"),
    )

    def __repr__(self) -> str:
        return f"<Article(id={self.id}, title={self.title[:40]!r})>"

    @classmethod
    def visible(cls, now: Optional[datetime] = None):
        """SQL filter for articles readers may see."""
        now = now or _utcnow()
        return or_(cls.scheduled_for.is_(None), cls.scheduled_for <= now)


class ArticleView(Base):
    """Append-only record of one article view."""

    __tablename__ = "article_views"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    article_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_article_views_article_time", "article_id", "viewed_at"),
        Index("ix_article_views_user", "user_id"),
    )
