"""
OpenAI LLM Provider Implementation.

Provides integration with OpenAI's chat completions API.
"""

import logging
from typing import Any

from openai import AsyncOpenAI

from .base import LLMProvider, LLMResponse

logger = logging.getLogger("semantic_memory.llm.openai")


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        """
        Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key.
            model: Model to use (default: gpt-4o-mini).
        """
        self._api_key = api_key
        self._model = model
        self._client: AsyncOpenAI | None = None

    @property
    def provider_name(self) -> str:
        return "OpenAI"

    @property
    def model_name(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the async OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    @staticmethod
    def _build_messages(
        prompt: str | None,
        messages: list[dict[str, Any]] | None,
        system_prompt: str | None,
    ) -> list[dict[str, Any]]:
        """Assemble the chat message list, never duplicating a system message."""
        built = [dict(m) for m in messages] if messages else []
        if prompt:
            built.append({"role": "user", "content": prompt})
        if system_prompt and not any(m.get("role") == "system" for m in built):
            built.insert(0, {"role": "system", "content": system_prompt})
        return built

    async def generate(
        self,
        prompt: str | None = None,
        messages: list[dict[str, Any]] | None = None,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        """
        Generate a response using OpenAI's API.

        Args:
            prompt: The user prompt/question.
            messages: Conversation messages, sent as-is before the prompt.
            system_prompt: Optional system prompt, used only if messages carry none.
            temperature: Creativity setting (0.0-1.0).
            max_tokens: Maximum tokens in response.

        Returns:
            LLMResponse containing the generated content.
        """
        client = self._get_client()
        chat_messages = self._build_messages(prompt, messages, system_prompt)

        logger.debug(f"Sending request to OpenAI ({self._model}) with {len(chat_messages)} messages")

        try:
            response = await client.chat.completions.create(
                model=self._model,
                messages=chat_messages,  # type: ignore
                temperature=temperature,
                max_tokens=max_tokens,
            )

            content = response.choices[0].message.content or ""
            usage = None
            if response.usage:
                usage = {
                    "prompt_tokens": response.usage.prompt_tokens,
                    "completion_tokens": response.usage.completion_tokens,
                    "total_tokens": response.usage.total_tokens,
                }

            logger.debug(f"OpenAI response received, tokens used: {usage}")

            return LLMResponse(
                content=content,
                model=response.model,
                usage=usage,
                raw_response=response,
            )

        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            raise
