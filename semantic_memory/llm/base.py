"""
Abstract base class for LLM providers.

Defines the interface that all LLM providers must implement,
allowing easy swapping between different AI services.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..errors import CompletionUnavailable

logger = logging.getLogger("semantic_memory.llm")


@dataclass
class LLMResponse:
    """Standardized response from LLM providers."""
    content: str
    model: str
    usage: dict[str, int] | None = None
    raw_response: Any = None

    @property
    def token_count(self) -> int:
        """Return total tokens used if available."""
        if self.usage:
            return self.usage.get("total_tokens", 0)
        return 0


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implement this interface to add support for new LLM services.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the LLM provider."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model being used."""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str | None = None,
        messages: list[dict[str, Any]] | None = None,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        """
        Generate a response from the LLM.

        Args:
            prompt: The user prompt/question (string).
            messages: List of conversation messages (alternate to prompt).
            system_prompt: Optional system prompt to set context.
            temperature: Creativity setting (0.0-1.0).
            max_tokens: Maximum tokens in response.

        Returns:
            LLMResponse containing the generated content.
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the provider is properly configured with API keys."""
        pass


async def complete(
    provider: LLMProvider,
    messages: list[dict[str, Any]] | None = None,
    prompt: str | None = None,
    system_prompt: str | None = None,
    max_tokens: int = 2000,
    temperature: float = 0.7,
    timeout: float | None = None,
) -> str:
    """
    Run one completion and return its text.

    Raises:
        CompletionUnavailable: If the provider fails or exceeds the timeout
    """
    call = provider.generate(
        prompt=prompt,
        messages=messages,
        system_prompt=system_prompt,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    try:
        if timeout:
            response = await asyncio.wait_for(call, timeout=timeout)
        else:
            response = await call
    except asyncio.TimeoutError as e:
        logger.error(f"{provider.provider_name} completion timed out after {timeout}s")
        raise CompletionUnavailable("Completion provider timed out") from e
    except Exception as e:
        logger.error(f"{provider.provider_name} completion failed: {e}")
        raise CompletionUnavailable("Completion provider unavailable") from e

    return response.content or ""
