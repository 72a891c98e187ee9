"""
Threaded comment API routes.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_admin_user
from api.middleware.rate_limit import comment_rate_limiter, windowed_limit
from api.routes.articles import get_article_or_404
from api.routes.auth import get_current_user
from api.schemas.articles import (
    MAX_COMMENT_LENGTH,
    CommentCreateRequest,
    CommentNodeResponse,
    CommentResponse,
)
from core.domain.comment_tree import assemble_forest, forest_to_json
from infrastructure.database.connection import get_db
from infrastructure.database.models.admin import AuditAction, AuditTargetType
from infrastructure.database.models.comment import Comment
from infrastructure.database.models.user import User
from services.audit import add_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(tags=["comments"])


def render_comment(comment: Comment) -> dict:
    author = comment.author
    return {
        "id": comment.id,
        "article_id": comment.article_id,
        "user_id": comment.user_id,
        "parent_id": comment.parent_id,
        "body": comment.body,
        "created_at": comment.created_at.isoformat(),
        "author_name": author.name if author else None,
        "author_avatar": author.avatar_url if author else None,
    }


@router.get("/articles/{article_id}/comments")
async def get_comment_threads(
    article_id: str,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """
    All comments of an article as a forest of reply threads.

    Each node carries a ``replies`` list in posting order. Replies whose
    parent no longer exists appear at the top level.
    """
    await get_article_or_404(db, article_id)
    result = await db.execute(
        select(Comment)
        .where(Comment.article_id == article_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    forest = assemble_forest(result.scalars().all())
    return Response(content=forest_to_json(forest, render_comment), media_type="application/json")


@router.post(
    "/articles/{article_id}/comments",
    response_model=CommentNodeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(windowed_limit(comment_rate_limiter))],
)
async def post_comment(
    article_id: str,
    payload: CommentCreateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Post a comment, or a reply when ``parent_id`` is given."""
    body = payload.body.strip()
    if not body:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Comment body cannot be empty",
        )
    if len(body) > MAX_COMMENT_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Comment body must be at most {MAX_COMMENT_LENGTH} characters",
        )

    await get_article_or_404(db, article_id)

    comment = Comment(
        article_id=article_id,
        user_id=current_user.id,
        parent_id=payload.parent_id or None,
        body=body,
    )
    db.add(comment)
    await db.commit()

    return CommentNodeResponse(
        id=comment.id,
        article_id=comment.article_id,
        user_id=comment.user_id,
        parent_id=comment.parent_id,
        body=comment.body,
        created_at=comment.created_at,
        author_name=current_user.name,
        author_avatar=current_user.avatar_url,
    )


@router.get("/admin/comments", response_model=list[CommentResponse])
async def list_recent_comments(
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Moderation view: newest comments across all articles."""
    result = await db.execute(
        select(Comment)
        .order_by(Comment.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return [CommentResponse(**render_comment(c)) for c in result.scalars().all()]


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    request: Request,
    comment_id: str,
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    db: AsyncSession = Depends(get_db),
):
    """Delete one comment. Its replies stay and surface at the top level."""
    comment = await db.get(Comment, comment_id)
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comment not found",
        )

    add_audit_log(
        db,
        admin_user=admin_user,
        action=AuditAction.COMMENT_DELETED,
        target_type=AuditTargetType.COMMENT,
        target_id=comment.id,
        description=f"Deleted comment on article {comment.article_id}",
        metadata={"body": comment.body[:200]},
        ip_address=request.client.host if request.client else None,
    )
    await db.delete(comment)
    await db.commit()
