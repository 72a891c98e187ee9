"""
Import of external headlines into the article table.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.news import ExternalArticle, HeadlinesClient, NewsSourceError
from infrastructure.database.models.article import Article

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "world"


async def insert_unseen(db: AsyncSession, articles: Iterable[ExternalArticle]) -> int:
    """Stage articles whose URL is not stored yet. Returns how many were added."""
    candidates: dict[str, ExternalArticle] = {}
    for article in articles:
        candidates.setdefault(article.url, article)
    if not candidates:
        return 0

    existing = set(
        (await db.execute(select(Article.url).where(Article.url.in_(list(candidates))))).scalars()
    )

    inserted = 0
    for url, external in candidates.items():
        if url in existing:
            continue
        db.add(
            Article(
                title=external.title[:500],
                description=external.description,
                body=external.body,
                author=external.author[:255],
                category=DEFAULT_CATEGORY,
                tags=[],
                url=url,
                url_to_image=external.image,
                source_name=external.source_name,
                published_at=external.published_at,
            )
        )
        inserted += 1
    return inserted


async def sync_headlines(db: AsyncSession, client: HeadlinesClient, sources: list[str]) -> dict:
    """
    Pull headlines from each source and stage the unseen ones.

    A failing source is logged and skipped; the caller commits.
    """
    fetched: list[ExternalArticle] = []
    failed: list[str] = []
    for source in sources:
        try:
            fetched.extend(await client.fetch(source))
        except NewsSourceError as e:
            logger.warning("Skipping news source %s: %s", source, e)
            failed.append(source)

    inserted = await insert_unseen(db, fetched)
    logger.info("News sync fetched %d articles, inserted %d", len(fetched), inserted)
    return {"inserted": inserted, "fetched": len(fetched), "failed_sources": failed}
