"""
AI reading tool schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field

MAX_ARTICLE_CHARS = 50000


class ArticleTextRequest(BaseModel):
    """Article text sent by the client for summaries and key points."""

    title: str = Field("", max_length=500)
    body: str = Field(..., min_length=1, max_length=MAX_ARTICLE_CHARS)


class AskRequest(ArticleTextRequest):
    question: str = Field(..., min_length=1, max_length=1000)


class TranslateRequest(ArticleTextRequest):
    target_language: str = Field(..., min_length=2, max_length=50)


class ImageGenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=1000)
    aspect_ratio: str = Field("16:9", max_length=10)


class SummaryResponse(BaseModel):
    summary: str


class KeyPointsResponse(BaseModel):
    key_points: list[str]


class AnswerResponse(BaseModel):
    answer: str


class TranslationResponse(BaseModel):
    title: str
    body: str
    language: str


class ImageResponse(BaseModel):
    image_url: str
    prompt: str
    aspect_ratio: str
    model: Optional[str] = None
