"""
Anthropic Claude adapter for the reader's AI tools.

Summaries, key points, questions about an article and translation. With
no ANTHROPIC_API_KEY configured the service answers with deterministic
placeholder text so the rest of the app stays usable in development.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

import anthropic

from infrastructure.config.settings import settings
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)

MAX_ARTICLE_CHARS = 20000
MAX_TITLE_CHARS = 500
MAX_QUESTION_CHARS = 1000


class AIServiceError(Exception):
    """The AI provider failed or returned something unusable."""


@dataclass
class Translation:
    title: str
    body: str


class AnthropicNewsAssistant:
    """Article assistant backed by Anthropic Claude."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        api_key = api_key or settings.anthropic_api_key
        if api_key:
            self._client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=float(settings.anthropic_timeout),
            )
        else:
            self._client = None
        self._model = model or settings.anthropic_model
        self._max_tokens = settings.anthropic_max_tokens

    @property
    def is_mock(self) -> bool:
        return self._client is None

    @staticmethod
    def _sanitize_prompt_input(text: Optional[str], max_length: int, keep_newlines: bool = False) -> str:
        """Strip control characters and limit length."""
        if not text:
            return ""
        pattern = r"[\x00-\x09\x0b-\x1f\x7f]" if keep_newlines else r"[\r\n\t\x00-\x1f\x7f]"
        text = re.sub(pattern, " ", text)
        text = re.sub(r" +", " ", text).strip()
        return text[:max_length]

    async def _complete(self, prompt: str, system: Optional[str] = None) -> str:
        kwargs = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        try:
            message = await retry_with_backoff(lambda: self._client.messages.create(**kwargs))
        except anthropic.APIError as e:
            logger.error("Anthropic request failed: %s", e)
            raise AIServiceError(str(e)) from e

        text = "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        ).strip()
        if not text:
            raise AIServiceError("Empty response from model")
        return text

    async def summarize(self, title: str, body: str) -> str:
        """Summarize an article in three or four sentences."""
        title = self._sanitize_prompt_input(title, MAX_TITLE_CHARS)
        body = self._sanitize_prompt_input(body, MAX_ARTICLE_CHARS, keep_newlines=True)
        if self.is_mock:
            return f"Summary of \"{title}\": {body[:200]}".strip()

        prompt = (
            "Summarize the following news article in 3-4 concise sentences, "
            "focusing on the main points.\n\n"
            f"Title: {title}\n\nArticle:\n{body}"
        )
        return await self._complete(prompt)

    async def key_points(self, body: str) -> list[str]:
        """Extract three to five key points, one per line."""
        body = self._sanitize_prompt_input(body, MAX_ARTICLE_CHARS, keep_newlines=True)
        if self.is_mock:
            sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", body) if s.strip()]
            return sentences[:3] or ["No key points found."]

        prompt = (
            "Extract the 3 to 5 most important key points from the following article. "
            "Write each point on its own line. Do not use bullets, numbering or markdown.\n\n"
            f"Article:\n{body}"
        )
        text = await self._complete(prompt)
        points = [re.sub(r"^[\s*\-•\d.)]+", "", line).strip() for line in text.splitlines()]
        return [p for p in points if p]

    async def ask(self, title: str, body: str, question: str) -> str:
        """Answer a question using only the article text."""
        title = self._sanitize_prompt_input(title, MAX_TITLE_CHARS)
        body = self._sanitize_prompt_input(body, MAX_ARTICLE_CHARS, keep_newlines=True)
        question = self._sanitize_prompt_input(question, MAX_QUESTION_CHARS)
        if self.is_mock:
            return "This is a mock answer for development. Configure ANTHROPIC_API_KEY to use real AI."

        system = (
            "You answer questions about a single news article. Use only the article text. "
            "If the answer is not in the article, say that you cannot find the information "
            "in the provided text."
        )
        prompt = f"Title: {title}\n\nArticle:\n{body}\n\nQuestion: {question}"
        return await self._complete(prompt, system=system)

    async def translate(self, title: str, body: str, target_language: str) -> Translation:
        """Translate title and body, returned as a Translation."""
        title = self._sanitize_prompt_input(title, MAX_TITLE_CHARS)
        body = self._sanitize_prompt_input(body, MAX_ARTICLE_CHARS, keep_newlines=True)
        target_language = self._sanitize_prompt_input(target_language, 50)
        if self.is_mock:
            return Translation(title=f"[{target_language}] {title}", body=f"[{target_language}] {body}")

        prompt = (
            f"Translate the following news article into {target_language}. "
            'Return only a JSON object with the keys "translatedTitle" and "translatedBody".\n\n'
            f"Original Title: {title}\n\nOriginal Body:\n{body}"
        )
        text = await self._complete(prompt)
        match = re.search(r"\{.*\}", text, re.DOTALL)
        try:
            parsed = json.loads(match.group(0) if match else text)
            return Translation(title=parsed["translatedTitle"], body=parsed["translatedBody"])
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.error("Unparseable translation response: %s", e)
            raise AIServiceError("Translation response was not valid JSON") from e


# Singleton instance
news_assistant = AnthropicNewsAssistant()
