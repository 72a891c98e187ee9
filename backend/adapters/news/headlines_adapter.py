"""
Top-headline feeds from NewsAPI and GNews.

Both providers return a JSON ``articles`` list with slightly different
field names; results are normalized into ``ExternalArticle``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

NEWSAPI_SOURCE = "newsapi"
GNEWS_SOURCE = "gnews"


class NewsSourceError(Exception):
    """Raised when a headline feed cannot be fetched or parsed."""


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    return datetime.now(timezone.utc)


@dataclass
class ExternalArticle:
    url: str
    title: str
    description: str = ""
    body: str = ""
    author: str = "External"
    image: Optional[str] = None
    source_name: Optional[str] = None
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_newsapi(cls, data: dict[str, Any]) -> Optional["ExternalArticle"]:
        if not data.get("url"):
            return None
        return cls(
            url=data["url"],
            title=data.get("title") or "Untitled",
            description=data.get("description") or "",
            body=data.get("content") or data.get("description") or "",
            author=data.get("author") or "External",
            image=data.get("urlToImage"),
            source_name=(data.get("source") or {}).get("name"),
            published_at=_parse_timestamp(data.get("publishedAt")),
        )

    @classmethod
    def from_gnews(cls, data: dict[str, Any]) -> Optional["ExternalArticle"]:
        if not data.get("url"):
            return None
        return cls(
            url=data["url"],
            title=data.get("title") or "Untitled",
            description=data.get("description") or "",
            body=data.get("content") or data.get("description") or "",
            image=data.get("image"),
            source_name=(data.get("source") or {}).get("name"),
            published_at=_parse_timestamp(data.get("publishedAt")),
        )


class HeadlinesClient:
    """Fetches top headlines from the configured providers."""

    NEWSAPI_URL = "https://newsapi.org/v2/top-headlines"
    GNEWS_URL = "https://gnews.io/api/v4/top-headlines"
    PAGE_SIZE = 50

    def __init__(
        self,
        newsapi_key: Optional[str] = None,
        gnews_key: Optional[str] = None,
        timeout: float = 20.0,
    ):
        self.newsapi_key = newsapi_key or settings.newsapi_key
        self.gnews_key = gnews_key or settings.gnews_api_key
        self.timeout = timeout

    def configured_sources(self) -> list[str]:
        sources = []
        if self.newsapi_key:
            sources.append(NEWSAPI_SOURCE)
        if self.gnews_key:
            sources.append(GNEWS_SOURCE)
        return sources

    async def _get_articles(self, url: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Headline feed %s returned %s", url, e.response.status_code)
            raise NewsSourceError(f"Feed returned HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("Headline feed %s unreachable: %s", url, e)
            raise NewsSourceError(f"Feed request failed: {e}") from e
        except ValueError as e:
            raise NewsSourceError("Feed returned invalid JSON") from e

        articles = payload.get("articles") if isinstance(payload, dict) else None
        return [a for a in (articles or []) if isinstance(a, dict)]

    async def fetch(self, source: str) -> list[ExternalArticle]:
        """Top headlines from one provider, normalized."""
        if source == NEWSAPI_SOURCE:
            raw = await self._get_articles(
                self.NEWSAPI_URL,
                {"language": "en", "pageSize": self.PAGE_SIZE, "apiKey": self.newsapi_key},
            )
            parsed = [ExternalArticle.from_newsapi(a) for a in raw]
        elif source == GNEWS_SOURCE:
            raw = await self._get_articles(
                self.GNEWS_URL,
                {"lang": "en", "max": self.PAGE_SIZE, "token": self.gnews_key},
            )
            parsed = [ExternalArticle.from_gnews(a) for a in raw]
        else:
            raise NewsSourceError(f"Unknown news source: {source}")
        return [a for a in parsed if a is not None]


headlines_client = HeadlinesClient()
