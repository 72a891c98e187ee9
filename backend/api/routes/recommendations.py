"""
Article recommendations.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.analytics import trending_articles
from api.routes.auth import get_optional_user
from api.schemas.articles import ArticleResponse
from infrastructure.database.connection import get_db
from infrastructure.database.models.user import User
from services.recommendations import recommend_for_user

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.get("", response_model=list[ArticleResponse])
async def get_recommendations(
    user_id: Optional[str] = Query(None),
    count: int = Query(10, ge=1, le=50),
    current_user: Annotated[Optional[User], Depends(get_optional_user)] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Articles matching a reader's preferred categories and tags.

    Without a user, or when nothing matches, trending articles are returned.
    """
    target = user_id or (current_user.id if current_user else None)
    if target:
        articles = await recommend_for_user(db, target, count)
        if articles:
            return articles
    return await trending_articles(db, count)
