"""
Preference-based article ranking.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.article import Article
from infrastructure.database.models.user_settings import UserSettings

CATEGORY_WEIGHT = 2
TAG_WEIGHT = 1


def _published_key(article: Article) -> datetime:
    # SQLite hands back naive timestamps
    published = article.published_at
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published


def score_article(article: Article, categories: set[str], tags: set[str]) -> int:
    """2 points for a preferred category, 1 for each preferred tag carried."""
    score = CATEGORY_WEIGHT if (article.category or "").lower() in categories else 0
    article_tags = {str(t).lower() for t in (article.tags or [])}
    return score + TAG_WEIGHT * len(article_tags & tags)


def rank_articles(
    articles: Iterable[Article],
    categories: Sequence[str],
    tags: Sequence[str],
    count: int,
) -> list[Article]:
    """
    Order articles by preference score, newest first among equals.

    Articles scoring zero are left out; an empty result means the
    caller should fall back to trending.
    """
    wanted_categories = {c.lower() for c in categories}
    wanted_tags = {t.lower() for t in tags}

    scored = [
        (score_article(article, wanted_categories, wanted_tags), article)
        for article in articles
    ]
    scored = [item for item in scored if item[0] > 0]
    scored.sort(key=lambda item: (item[0], _published_key(item[1])), reverse=True)
    return [article for _, article in scored[:count]]


async def load_preferences(db: AsyncSession, user_id: str) -> tuple[list[str], list[str]]:
    row: Optional[UserSettings] = await db.get(UserSettings, user_id)
    if row is None:
        return [], []
    return list(row.preferred_categories or []), list(row.preferred_tags or [])


async def recommend_for_user(db: AsyncSession, user_id: str, count: int) -> list[Article]:
    categories, tags = await load_preferences(db, user_id)
    if not categories and not tags:
        return []

    result = await db.execute(select(Article).where(Article.visible()))
    return rank_articles(result.scalars().all(), categories, tags, count)
