"""Health check endpoints."""

import asyncio
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.middleware.rate_limit import WINDOWED_LIMITERS
from infrastructure.config import get_settings
from infrastructure.database import get_db
from infrastructure.database.models import Article, ProcessedWebhookEvent

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """
    Database readiness for the newsroom.

    Counts visible articles and processed billing webhook events. A missing
    table shows up as ``degraded`` rather than as a bare connection success.
    """
    counts: dict[str, int] = {}
    try:
        counts["visible_articles"] = (
            await asyncio.wait_for(
                db.execute(
                    select(func.count())
                    .select_from(Article)
                    .where(Article.visible())
                ),
                timeout=5.0,
            )
        ).scalar_one()
        counts["processed_webhook_events"] = (
            await asyncio.wait_for(
                db.execute(select(func.count()).select_from(ProcessedWebhookEvent)), timeout=5.0
            )
        ).scalar_one()
        db_status = "connected"
    except TimeoutError:
        logger.error("Health check DB timeout")
        db_status = "error: database timeout"
    except Exception as e:
        logger.error("Health check DB error: %s", str(e))
        db_status = "error: database check failed"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": db_status,
        **counts,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/live")
async def liveness_check():
    """Process is up. Also reports how many callers the in-memory comment and public API throttles track."""
    return {
        "alive": True,
        "rate_limited_keys": sum(len(limiter_) for limiter_ in WINDOWED_LIMITERS),
    }


@router.get("/health/redis")
async def health_redis():
    """Check the Redis instance that backs the per-IP rate limits."""
    if not settings.redis_url:
        return {"status": "disabled", "service": "redis"}

    import redis.asyncio as aioredis

    client = aioredis.from_url(settings.redis_url)
    try:
        await asyncio.wait_for(client.ping(), timeout=3.0)
    except TimeoutError:
        raise HTTPException(status_code=503, detail="Redis timeout")
    except aioredis.RedisError as e:
        raise HTTPException(status_code=503, detail=f"Redis unavailable: {type(e).__name__}")
    finally:
        await client.aclose()
    return {"status": "healthy", "service": "redis"}
