"""
AI reading tools: summaries, key points, Q&A, translation and illustrations.

Every route requires a signed-in user. Provider failures surface as 502
with a message fit for the reader.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from adapters.ai import AIServiceError, image_ai_service, news_assistant
from api.middleware.rate_limit import RATE_LIMITS, limiter
from api.routes.auth import get_current_user
from api.schemas.ai import (
    AnswerResponse,
    ArticleTextRequest,
    AskRequest,
    ImageGenerateRequest,
    ImageResponse,
    KeyPointsResponse,
    SummaryResponse,
    TranslateRequest,
    TranslationResponse,
)
from infrastructure.database.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

CurrentUser = Annotated[User, Depends(get_current_user)]


def _upstream_error(message: str, error: AIServiceError) -> HTTPException:
    logger.warning("AI provider call failed: %s", error)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=message)


@router.post("/summarize", response_model=SummaryResponse)
@limiter.limit(RATE_LIMITS["ai"])
async def summarize(request: Request, body: ArticleTextRequest, current_user: CurrentUser):
    try:
        summary = await news_assistant.summarize(body.title, body.body)
    except AIServiceError as e:
        raise _upstream_error("Sorry, we couldn't generate a summary at this time.", e)
    return SummaryResponse(summary=summary)


@router.post("/key-points", response_model=KeyPointsResponse)
@limiter.limit(RATE_LIMITS["ai"])
async def key_points(request: Request, body: ArticleTextRequest, current_user: CurrentUser):
    try:
        points = await news_assistant.key_points(body.body)
    except AIServiceError as e:
        raise _upstream_error("Could not extract key points at this time.", e)
    return KeyPointsResponse(key_points=points)


@router.post("/ask", response_model=AnswerResponse)
@limiter.limit(RATE_LIMITS["ai"])
async def ask(request: Request, body: AskRequest, current_user: CurrentUser):
    try:
        answer = await news_assistant.ask(body.title, body.body, body.question)
    except AIServiceError as e:
        raise _upstream_error(
            "Sorry, I encountered an error while trying to answer your question.", e
        )
    return AnswerResponse(answer=answer)


@router.post("/translate", response_model=TranslationResponse)
@limiter.limit(RATE_LIMITS["ai"])
async def translate(request: Request, body: TranslateRequest, current_user: CurrentUser):
    try:
        translation = await news_assistant.translate(body.title, body.body, body.target_language)
    except AIServiceError as e:
        raise _upstream_error("Sorry, we couldn't translate this article right now.", e)
    return TranslationResponse(
        title=translation.title,
        body=translation.body,
        language=body.target_language,
    )


@router.post("/generate-image", response_model=ImageResponse)
@limiter.limit(RATE_LIMITS["ai"])
async def generate_image(request: Request, body: ImageGenerateRequest, current_user: CurrentUser):
    """Generate a news illustration for a prompt."""
    try:
        image = await image_ai_service.generate_image(body.prompt, aspect_ratio=body.aspect_ratio)
    except AIServiceError as e:
        raise _upstream_error("Sorry, we couldn't generate an image at this time.", e)

    logger.info("Generated image for user %s", current_user.id)
    return ImageResponse(
        image_url=image.url,
        prompt=body.prompt,
        aspect_ratio=image.aspect_ratio,
        model=image.model,
    )
