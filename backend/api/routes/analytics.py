"""
Readership analytics: view counting and trending articles.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.articles import get_article_or_404
from api.routes.auth import get_optional_user
from api.schemas.articles import ArticleResponse, ViewRequest
from infrastructure.database.connection import get_db
from infrastructure.database.models.article import Article, ArticleView
from infrastructure.database.models.user import User

router = APIRouter(prefix="/analytics", tags=["analytics"])


async def trending_articles(db: AsyncSession, limit: int) -> list[Article]:
    """Visible articles with the most views."""
    result = await db.execute(
        select(Article)
        .where(Article.visible())
        .order_by(Article.views.desc(), Article.published_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


@router.post("/view")
async def record_view(
    body: ViewRequest,
    current_user: Annotated[Optional[User], Depends(get_optional_user)] = None,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Count one view of an article. Anonymous views are counted too."""
    article = await get_article_or_404(db, body.article_id)

    # Increment in SQL so concurrent views are not lost
    await db.execute(
        update(Article).where(Article.id == article.id).values(views=Article.views + 1)
    )
    db.add(ArticleView(article_id=article.id, user_id=current_user.id if current_user else None))
    await db.commit()

    return {"message": "Recorded"}


@router.get("/trending", response_model=list[ArticleResponse])
async def get_trending(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    return await trending_articles(db, limit)
