"""
Article, comment, bookmark and ad schemas.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_COMMENT_LENGTH = 2000


def _normalize_tags(tags: Optional[list[str]]) -> Optional[list[str]]:
    if tags is None:
        return None
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


# ============================================================================
# Article Schemas
# ============================================================================


class ArticleCreateRequest(BaseModel):
    """Request to publish (or schedule) an article."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    tags: list[str] = Field(default_factory=list)
    url_to_image: Optional[str] = Field(None, max_length=1000)
    scheduled_for: Optional[datetime] = Field(
        None, description="Hide the article from readers until this time"
    )

    @field_validator("category")
    @classmethod
    def lower_category(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        return _normalize_tags(v)


class ArticleUpdateRequest(BaseModel):
    """Partial article update."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    body: Optional[str] = None
    author: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    tags: Optional[list[str]] = None
    url_to_image: Optional[str] = Field(None, max_length=1000)
    scheduled_for: Optional[datetime] = None

    @field_validator("category")
    @classmethod
    def lower_category(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _normalize_tags(v)


class ArticleResponse(BaseModel):
    """Article response."""

    id: str
    title: str
    description: Optional[str] = None
    body: Optional[str] = None
    author: Optional[str] = None
    category: str
    tags: list[str] = Field(default_factory=list)
    url: Optional[str] = None
    url_to_image: Optional[str] = None
    source_name: Optional[str] = None
    views: int = 0
    published_at: datetime
    scheduled_for: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SearchResponse(BaseModel):
    """Paginated search results."""

    articles: list[ArticleResponse]
    total_pages: int
    current_page: int


class ViewRequest(BaseModel):
    article_id: str


# ============================================================================
# Comment Schemas
# ============================================================================


class CommentCreateRequest(BaseModel):
    """New comment or reply. Emptiness and length are checked by the route."""

    body: str = ""
    parent_id: Optional[str] = None

    @field_validator("parent_id")
    @classmethod
    def parent_is_uuid(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        try:
            return str(UUID(v))
        except ValueError:
            raise ValueError("parent_id must be a comment id")


class CommentResponse(BaseModel):
    """A single comment without its replies."""

    id: str
    article_id: str
    user_id: str
    parent_id: Optional[str] = None
    body: str
    created_at: datetime
    author_name: Optional[str] = None
    author_avatar: Optional[str] = None


class CommentNodeResponse(CommentResponse):
    """A freshly posted comment as a thread node; replies start empty."""

    replies: list[dict] = Field(default_factory=list)


# ============================================================================
# Bookmark Schemas
# ============================================================================


class BookmarkCreateRequest(BaseModel):
    article_id: str


class BookmarkResponse(BaseModel):
    id: str
    article_id: str
    created_at: datetime
    article: Optional[ArticleResponse] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Ad Schemas
# ============================================================================


class AdCreateRequest(BaseModel):
    headline: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=1000)
    image: Optional[str] = Field(None, max_length=1000)


class AdUpdateRequest(BaseModel):
    headline: Optional[str] = Field(None, min_length=1, max_length=255)
    url: Optional[str] = Field(None, min_length=1, max_length=1000)
    image: Optional[str] = Field(None, max_length=1000)


class AdResponse(BaseModel):
    id: str
    headline: str
    url: str
    image: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
