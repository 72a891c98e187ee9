"""
Advertisement routes. Listing is public; house ads are managed by admins.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_admin_user
from api.schemas.articles import AdCreateRequest, AdResponse, AdUpdateRequest
from infrastructure.database.connection import get_db
from infrastructure.database.models.ad import Ad
from infrastructure.database.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ads", tags=["ads"])

AdminUser = Annotated[User, Depends(get_current_admin_user)]


async def _get_ad_or_404(db: AsyncSession, ad_id: str) -> Ad:
    ad = await db.get(Ad, ad_id)
    if not ad:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ad not found",
        )
    return ad


@router.get("", response_model=list[AdResponse])
async def list_ads(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Ad).order_by(Ad.created_at.desc()))
    return result.scalars().all()


@router.post("", response_model=AdResponse, status_code=status.HTTP_201_CREATED)
async def create_ad(body: AdCreateRequest, admin_user: AdminUser, db: AsyncSession = Depends(get_db)):
    ad = Ad(headline=body.headline, url=body.url, image=body.image)
    db.add(ad)
    await db.commit()
    await db.refresh(ad)
    logger.info("Ad %s created by admin %s", ad.id, admin_user.id)
    return ad


@router.put("/{ad_id}", response_model=AdResponse)
async def update_ad(
    ad_id: str,
    body: AdUpdateRequest,
    admin_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_ad_or_404(db, ad_id)
    for field, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(ad, field, value)
    await db.commit()
    await db.refresh(ad)
    return ad


@router.delete("/{ad_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ad(ad_id: str, admin_user: AdminUser, db: AsyncSession = Depends(get_db)):
    ad = await _get_ad_or_404(db, ad_id)
    await db.delete(ad)
    await db.commit()
