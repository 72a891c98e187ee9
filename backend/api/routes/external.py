"""
External news synchronization (admin).
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.news import HeadlinesClient, headlines_client
from api.dependencies import get_current_admin_user
from infrastructure.database.connection import get_db
from infrastructure.database.models.admin import AuditAction, AuditTargetType
from infrastructure.database.models.user import User
from services.audit import add_audit_log
from services.news_sync import sync_headlines

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/external", tags=["external"])


class SyncRequest(BaseModel):
    source: str = Field("all", pattern="^(all|newsapi|gnews)$")


class SyncResponse(BaseModel):
    inserted: int
    fetched: int
    failed_sources: list[str]


def get_headlines_client() -> HeadlinesClient:
    return headlines_client


@router.post("/sync", response_model=SyncResponse)
async def sync_external(
    request: Request,
    admin_user: Annotated[User, Depends(get_current_admin_user)],
    body: Optional[SyncRequest] = Body(None),
    client: HeadlinesClient = Depends(get_headlines_client),
    db: AsyncSession = Depends(get_db),
):
    """Import top headlines whose URL is not stored yet."""
    requested = (body or SyncRequest()).source
    configured = client.configured_sources()
    sources = configured if requested == "all" else [s for s in configured if s == requested]
    if not sources:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No configured news source matches the request",
        )

    result = await sync_headlines(db, client, sources)
    add_audit_log(
        db,
        admin_user=admin_user,
        action=AuditAction.EXTERNAL_SYNC,
        target_type=AuditTargetType.ARTICLE,
        target_id=None,
        description=f"Synced {result['inserted']} articles from {', '.join(sources)}",
        metadata=result,
        ip_address=request.client.host if request.client else None,
    )
    await db.commit()
    return SyncResponse(**result)
