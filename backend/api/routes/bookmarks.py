"""
Bookmark routes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.articles import get_article_or_404
from api.routes.auth import get_current_user
from api.schemas.articles import ArticleResponse, BookmarkCreateRequest, BookmarkResponse
from infrastructure.database.connection import get_db
from infrastructure.database.models.article import Article
from infrastructure.database.models.reader import Bookmark
from infrastructure.database.models.user import User

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


def _render(bookmark: Bookmark, article: Article | None) -> BookmarkResponse:
    return BookmarkResponse(
        id=bookmark.id,
        article_id=bookmark.article_id,
        created_at=bookmark.created_at,
        article=ArticleResponse.model_validate(article) if article else None,
    )


@router.get("", response_model=list[BookmarkResponse])
async def list_bookmarks(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Bookmark, Article)
        .outerjoin(Article, Article.id == Bookmark.article_id)
        .where(Bookmark.user_id == current_user.id)
        .order_by(Bookmark.created_at.desc())
    )
    return [_render(bookmark, article) for bookmark, article in result.all()]


@router.post("", response_model=BookmarkResponse, status_code=status.HTTP_201_CREATED)
async def add_bookmark(
    body: BookmarkCreateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Bookmark an article. Bookmarking it again returns the existing one with 200."""
    article = await get_article_or_404(db, body.article_id, include_scheduled=True)

    result = await db.execute(
        select(Bookmark).where(
            Bookmark.user_id == current_user.id,
            Bookmark.article_id == article.id,
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=_render(existing, article).model_dump(mode="json"),
        )

    bookmark = Bookmark(user_id=current_user.id, article_id=article.id)
    db.add(bookmark)
    await db.commit()
    await db.refresh(bookmark)
    return _render(bookmark, article)


@router.delete("/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_bookmark(
    article_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Bookmark).where(
            Bookmark.user_id == current_user.id,
            Bookmark.article_id == article_id,
        )
    )
    bookmark = result.scalar_one_or_none()
    if not bookmark:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bookmark not found",
        )
    await db.delete(bookmark)
    await db.commit()
