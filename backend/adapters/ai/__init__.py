# AI Adapters
# Anthropic, Replicate integrations

from .anthropic_adapter import (
    AIServiceError,
    AnthropicNewsAssistant,
    Translation,
    news_assistant,
)
from .replicate_adapter import (
    GeneratedImage,
    ReplicateImageService,
    image_ai_service,
)

__all__ = [
    "AIServiceError",
    "AnthropicNewsAssistant",
    "Translation",
    "news_assistant",
    "ReplicateImageService",
    "image_ai_service",
    "GeneratedImage",
]
