"""
Google Generative AI (Gemini) LLM Provider Implementation.

Uses the google-genai SDK's native async client.
"""

import asyncio
import logging
from typing import Any

from google import genai
from google.genai import types

from .base import LLMProvider, LLMResponse

logger = logging.getLogger("semantic_memory.llm.google")

MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds, doubled on each attempt

_RETRYABLE_MARKERS = (
    "503",
    "429",
    "500",
    "unavailable",
    "rate limit",
    "overloaded",
    "resource exhausted",
    "resource_exhausted",
    "deadline exceeded",
)


def _is_retryable_error(error: Exception) -> bool:
    """Transient server-side errors are worth another attempt."""
    message = str(error).lower()
    return any(marker in message for marker in _RETRYABLE_MARKERS)


class GoogleProvider(LLMProvider):
    """Google Generative AI provider implementation."""

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash"):
        """
        Initialize the Google Generative AI provider.

        Args:
            api_key: Google API key.
            model: Model to use (default: gemini-2.0-flash).
        """
        self._api_key = api_key
        self._model = model
        self._client = None

        if api_key:
            self._client = genai.Client(api_key=api_key)

    @property
    def provider_name(self) -> str:
        return "Google"

    @property
    def model_name(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return self._client is not None and bool(self._api_key)

    def _build_contents(
        self,
        prompt: str | None,
        messages: list[dict[str, Any]] | None,
        system_prompt: str | None,
    ) -> tuple[Any, str | None]:
        """
        Convert chat messages to Gemini contents.

        System messages are folded into the system instruction and the
        assistant role becomes "model".
        """
        if not messages:
            return prompt or "", system_prompt

        system_parts = [system_prompt] if system_prompt else []
        contents = []
        for message in messages:
            role = message.get("role")
            text = message.get("content") or ""
            if role == "system":
                if not system_prompt:
                    system_parts.append(text)
                continue
            contents.append(types.Content(
                role="model" if role == "assistant" else "user",
                parts=[types.Part(text=text)],
            ))

        if prompt:
            contents.append(types.Content(role="user", parts=[types.Part(text=prompt)]))

        system = "\n\n".join(system_parts) if system_parts else None
        return contents, system

    async def generate(
        self,
        prompt: str | None = None,
        messages: list[dict[str, Any]] | None = None,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        """
        Generate a response using Google's Generative AI API.

        Transient errors (overload, rate limits) are retried with
        exponential backoff.

        Args:
            prompt: The user prompt/question.
            messages: Conversation messages (alternate to prompt).
            system_prompt: Optional system prompt to set context.
            temperature: Creativity setting (0.0-1.0).
            max_tokens: Maximum tokens in response.

        Returns:
            LLMResponse containing the generated content.
        """
        if self._client is None:
            raise RuntimeError("GoogleProvider is not configured with an API key")

        contents, system = self._build_contents(prompt, messages, system_prompt)
        generation_config = types.GenerateContentConfig(
            system_instruction=system,
            temperature=temperature,
            max_output_tokens=max_tokens,
        )

        logger.debug(f"Sending request to Google ({self._model})")

        for attempt in range(MAX_RETRIES):
            try:
                response = await self._client.aio.models.generate_content(
                    model=self._model,
                    contents=contents,
                    config=generation_config,
                )
                break
            except Exception as e:
                if attempt < MAX_RETRIES - 1 and _is_retryable_error(e):
                    delay = RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(f"Google API transient error, retrying in {delay:.0f}s: {e}")
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"Google API error: {e}")
                raise

        content = response.text if response.text else ""

        usage = None
        if getattr(response, "usage_metadata", None):
            usage = {
                "prompt_tokens": response.usage_metadata.prompt_token_count,
                "completion_tokens": response.usage_metadata.candidates_token_count,
                "total_tokens": response.usage_metadata.total_token_count,
            }

        logger.debug(f"Google response received, tokens used: {usage}")

        return LLMResponse(
            content=content,
            model=self._model,
            usage=usage,
            raw_response=response,
        )
