"""
Admin dashboard statistics.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_admin_user
from api.schemas.admin import CategoryCount, DashboardStatsResponse
from core.domain.subscription import SubscriptionTier
from infrastructure.database.connection import get_db
from infrastructure.database.models.ad import Ad
from infrastructure.database.models.article import Article, ArticleView
from infrastructure.database.models.comment import Comment
from infrastructure.database.models.user import User

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar() or 0


@router.get("/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    db: AsyncSession = Depends(get_db),
) -> DashboardStatsResponse:
    tier_rows = await db.execute(select(User.tier, func.count()).group_by(User.tier))
    users_by_tier = {tier.value: 0 for tier in SubscriptionTier}
    for tier, count in tier_rows.all():
        users_by_tier[tier] = count

    category_rows = await db.execute(
        select(Article.category, func.count().label("count"))
        .group_by(Article.category)
        .order_by(func.count().desc(), Article.category)
    )

    return DashboardStatsResponse(
        total_users=sum(users_by_tier.values()),
        users_by_tier=users_by_tier,
        total_articles=await _count(db, Article),
        total_views=await _count(db, ArticleView),
        total_ads=await _count(db, Ad),
        total_comments=await _count(db, Comment),
        categories=[CategoryCount(category=c, count=n) for c, n in category_rows.all()],
    )
