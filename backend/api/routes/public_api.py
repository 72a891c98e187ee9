"""
Read-only article API for third parties, authenticated by API key.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import require_api_key
from api.middleware.rate_limit import public_api_rate_limiter, windowed_limit
from api.routes.articles import categories_for, get_article_or_404
from api.schemas.articles import ArticleResponse
from infrastructure.database.connection import get_db
from infrastructure.database.models.article import Article

router = APIRouter(
    prefix="/public",
    tags=["public-api"],
    dependencies=[Depends(windowed_limit(public_api_rate_limiter)), Depends(require_api_key)],
)


@router.get("/articles", response_model=list[ArticleResponse])
async def list_public_articles(
    category: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    query = select(Article).where(Article.visible())
    if category:
        query = query.where(Article.category.in_(categories_for(category)))
    result = await db.execute(
        query.order_by(Article.published_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    return result.scalars().all()


@router.get("/articles/{article_id}", response_model=ArticleResponse)
async def get_public_article(article_id: str, db: AsyncSession = Depends(get_db)):
    return await get_article_or_404(db, article_id)
