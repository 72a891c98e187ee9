"""
Article API routes.

Reading is public; scheduled articles stay hidden from readers until
their time comes. Editors (sub-admins and admins) manage articles.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_editor_user
from api.middleware.rate_limit import limiter
from api.routes.auth import get_optional_user
from api.schemas.articles import (
    ArticleCreateRequest,
    ArticleResponse,
    ArticleUpdateRequest,
)
from api.utils import escape_like
from infrastructure.database.connection import get_db
from infrastructure.database.models.admin import AuditAction, AuditTargetType
from infrastructure.database.models.article import Article
from infrastructure.database.models.reader import SearchHistory
from infrastructure.database.models.user import User
from services.audit import add_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/articles", tags=["articles"])

HOUSE_SOURCE_NAME = "News Hub"
TOP_STORIES_LIMIT = 4
SUGGESTIONS_LIMIT = 5
RELATED_LIMIT = 4

# Top-level sections expand to their sub-categories
CATEGORY_GROUPS = {
    "world": ["world", "europe", "asia", "americas", "africa"],
    "business": ["business", "markets", "companies", "economy"],
    "technology": ["technology", "ai", "gadgets", "innovation"],
    "entertainment": ["entertainment", "movies", "music", "gaming"],
}


def categories_for(category: str) -> list[str]:
    category = category.strip().lower()
    return CATEGORY_GROUPS.get(category, [category])


def text_match(query: str):
    """Case-insensitive substring match over title, description and body."""
    pattern = f"%{escape_like(query)}%"
    return or_(
        Article.title.ilike(pattern, escape="\\"),
        Article.description.ilike(pattern, escape="\\"),
        Article.body.ilike(pattern, escape="\\"),
    )


async def get_article_or_404(db: AsyncSession, article_id: str, include_scheduled: bool = False) -> Article:
    query = select(Article).where(Article.id == article_id)
    if not include_scheduled:
        query = query.where(Article.visible())
    result = await db.execute(query)
    article = result.scalar_one_or_none()
    if not article:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Article not found",
        )
    return article


@router.get("", response_model=list[ArticleResponse])
async def list_articles(
    category: str = Query("world", max_length=100),
    db: AsyncSession = Depends(get_db),
):
    """List visible articles of a section, newest first."""
    result = await db.execute(
        select(Article)
        .where(Article.category.in_(categories_for(category)), Article.visible())
        .order_by(Article.published_at.desc())
    )
    return result.scalars().all()


@router.get("/search", response_model=list[ArticleResponse])
async def search_articles(
    query: Optional[str] = Query(None, max_length=200),
    category: Optional[str] = Query(None, max_length=100),
    author: Optional[str] = Query(None, max_length=255),
    current_user: Annotated[Optional[User], Depends(get_optional_user)] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Filter articles by free text, exact category and exact author.

    Signed-in readers get the query added to their search history.
    """
    if current_user and query and query.strip():
        db.add(SearchHistory(user_id=current_user.id, query=query.strip()))
        await db.commit()

    stmt = select(Article).where(Article.visible())
    if query and query.strip():
        stmt = stmt.where(text_match(query.strip()))
    if category:
        stmt = stmt.where(Article.category == category.strip().lower())
    if author:
        stmt = stmt.where(Article.author == author)

    result = await db.execute(stmt.order_by(Article.published_at.desc()))
    return result.scalars().all()


@router.get("/top-stories", response_model=list[ArticleResponse])
async def top_stories(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Article)
        .where(Article.visible())
        .order_by(Article.published_at.desc())
        .limit(TOP_STORIES_LIMIT)
    )
    return result.scalars().all()


@router.get("/suggestions", response_model=list[ArticleResponse])
async def suggestions(
    query: Optional[str] = Query(None, max_length=200),
    db: AsyncSession = Depends(get_db),
):
    """Title matches for search-as-you-type."""
    if not query or not query.strip():
        return []
    pattern = f"%{escape_like(query.strip())}%"
    result = await db.execute(
        select(Article)
        .where(Article.title.ilike(pattern, escape="\\"), Article.visible())
        .order_by(Article.published_at.desc())
        .limit(SUGGESTIONS_LIMIT)
    )
    return result.scalars().all()


@router.get("/{article_id}", response_model=ArticleResponse)
async def get_article(
    article_id: str,
    current_user: Annotated[Optional[User], Depends(get_optional_user)] = None,
    db: AsyncSession = Depends(get_db),
):
    """Get one article. Editors can also see scheduled ones."""
    include_scheduled = bool(current_user and current_user.is_editor)
    return await get_article_or_404(db, article_id, include_scheduled=include_scheduled)


@router.get("/{article_id}/related", response_model=list[ArticleResponse])
async def related_articles(
    article_id: str,
    db: AsyncSession = Depends(get_db),
):
    article = await get_article_or_404(db, article_id, include_scheduled=True)
    result = await db.execute(
        select(Article)
        .where(
            Article.category == article.category,
            Article.id != article.id,
            Article.visible(),
        )
        .order_by(Article.published_at.desc())
        .limit(RELATED_LIMIT)
    )
    return result.scalars().all()


@router.post("", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article(
    body: ArticleCreateRequest,
    editor: Annotated[User, Depends(get_current_editor_user)],
    db: AsyncSession = Depends(get_db),
):
    """Publish an article now, or schedule it."""
    article = Article(
        title=body.title,
        description=body.description,
        body=body.body,
        author=body.author,
        category=body.category,
        tags=body.tags,
        url_to_image=body.url_to_image,
        source_name=HOUSE_SOURCE_NAME,
        published_at=body.scheduled_for or datetime.now(timezone.utc),
        scheduled_for=body.scheduled_for,
    )
    db.add(article)
    await db.commit()
    await db.refresh(article)

    logger.info("Article %s created by %s", article.id, editor.id)
    return article


@router.put("/{article_id}", response_model=ArticleResponse)
async def update_article(
    article_id: str,
    body: ArticleUpdateRequest,
    editor: Annotated[User, Depends(get_current_editor_user)],
    db: AsyncSession = Depends(get_db),
):
    """Update an article. Only the fields sent are changed."""
    article = await get_article_or_404(db, article_id, include_scheduled=True)

    update_data = body.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if field in ("title", "category") and value is None:
            continue
        setattr(article, field, value)
    if "scheduled_for" in update_data and update_data["scheduled_for"] is not None:
        article.published_at = update_data["scheduled_for"]

    await db.commit()
    await db.refresh(article)
    return article


@router.delete("/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
async def delete_article(
    request: Request,
    article_id: str,
    editor: Annotated[User, Depends(get_current_editor_user)],
    db: AsyncSession = Depends(get_db),
):
    """
    Delete an article.
    """
    article = await get_article_or_404(db, article_id, include_scheduled=True)

    add_audit_log(
        db,
        admin_user=editor,
        action=AuditAction.ARTICLE_DELETED,
        target_type=AuditTargetType.ARTICLE,
        target_id=article.id,
        description=f"Deleted article '{article.title[:100]}'",
        ip_address=request.client.host if request.client else None,
    )
    await db.delete(article)
    await db.commit()
