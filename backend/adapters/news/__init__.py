# News source adapters
# NewsAPI and GNews headline feeds

from .headlines_adapter import (
    GNEWS_SOURCE,
    NEWSAPI_SOURCE,
    ExternalArticle,
    HeadlinesClient,
    NewsSourceError,
    headlines_client,
)

__all__ = [
    "GNEWS_SOURCE",
    "NEWSAPI_SOURCE",
    "ExternalArticle",
    "HeadlinesClient",
    "NewsSourceError",
    "headlines_client",
]
