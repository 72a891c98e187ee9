"""
Paginated article search.
"""

import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.articles import text_match
from api.schemas.articles import SearchResponse
from infrastructure.database.connection import get_db
from infrastructure.database.models.article import Article

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query("", max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Substring search over title, description and body."""
    q = q.strip()
    if not q:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="q parameter is required",
        )

    criteria = (text_match(q), Article.visible())
    total = (
        await db.execute(select(func.count()).select_from(Article).where(*criteria))
    ).scalar() or 0

    result = await db.execute(
        select(Article)
        .where(*criteria)
        .order_by(Article.published_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return SearchResponse(
        articles=result.scalars().all(),
        total_pages=math.ceil(total / limit),
        current_page=page,
    )
