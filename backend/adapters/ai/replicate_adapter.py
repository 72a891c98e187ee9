"""
Replicate adapter for article illustration images.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import replicate
from replicate.exceptions import ReplicateError

from infrastructure.config.settings import settings
from .anthropic_adapter import AIServiceError
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)

ILLUSTRATION_PREFIX = "News article illustration, professional digital art style."
DEFAULT_ASPECT_RATIO = "16:9"
SUPPORTED_ASPECT_RATIOS = {"1:1", "16:9", "9:16", "4:3", "3:4", "3:2", "2:3"}
MAX_PROMPT_CHARS = 1000


@dataclass
class GeneratedImage:
    """Generated image result."""

    url: str
    prompt: str
    aspect_ratio: str
    model: str


class ReplicateImageService:
    """Illustration generator running a text-to-image model on Replicate."""

    def __init__(self, api_token: Optional[str] = None, model: Optional[str] = None):
        self._model = model or settings.replicate_model
        api_token = api_token or settings.replicate_api_token
        if not api_token:
            logger.warning("REPLICATE_API_TOKEN not set, image generation will use mock mode")
            self._client = None
        else:
            self._client = replicate.Client(api_token=api_token)

    @property
    def is_mock(self) -> bool:
        return self._client is None

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
    ) -> GeneratedImage:
        """
        Generate an illustration for a news story.

        Args:
            prompt: What the picture should show.
            aspect_ratio: One of SUPPORTED_ASPECT_RATIOS, 16:9 by default.

        Returns:
            GeneratedImage with the hosted URL.
        """
        prompt = " ".join(prompt.split())[:MAX_PROMPT_CHARS]
        if aspect_ratio not in SUPPORTED_ASPECT_RATIOS:
            aspect_ratio = DEFAULT_ASPECT_RATIO

        if self.is_mock:
            return self._mock_image(prompt, aspect_ratio)

        full_prompt = f"{ILLUSTRATION_PREFIX} {prompt}"
        try:
            output = await retry_with_backoff(
                lambda: asyncio.wait_for(
                    asyncio.to_thread(self._run_model, full_prompt, aspect_ratio),
                    timeout=300,
                )
            )
        except (ReplicateError, asyncio.TimeoutError) as e:
            logger.error("Replicate image generation failed: %s", e)
            raise AIServiceError(f"Image generation failed: {e}") from e

        # Models return a URL string, a list of outputs or a FileOutput
        if isinstance(output, list):
            if not output:
                raise AIServiceError("Image model returned no output")
            output = output[0]
        image_url = output.url if hasattr(output, "url") else str(output)

        logger.info("Generated illustration %s", image_url)
        return GeneratedImage(
            url=image_url,
            prompt=prompt,
            aspect_ratio=aspect_ratio,
            model=self._model,
        )

    def _run_model(self, prompt: str, aspect_ratio: str):
        """Blocking call; generate_image runs it in a worker thread."""
        return self._client.run(
            self._model,
            input={"prompt": prompt, "aspect_ratio": aspect_ratio},
        )

    def _mock_image(self, prompt: str, aspect_ratio: str) -> GeneratedImage:
        width, height = (int(part) for part in aspect_ratio.split(":"))
        scale = 1024 // max(width, height)
        return GeneratedImage(
            url=f"https://picsum.photos/{width * scale}/{height * scale}",
            prompt=prompt,
            aspect_ratio=aspect_ratio,
            model=self._model,
        )


# Singleton instance
image_ai_service = ReplicateImageService()
