"""
LLM Provider Factory.

Builds the chat provider and the (possibly cheaper) provider used by
background summarization from configuration.
"""

import logging

from ..config import Config
from .base import LLMProvider
from .openai_client import OpenAIProvider
from .google_client import GoogleProvider

logger = logging.getLogger("semantic_memory.llm.factory")

PROVIDERS: dict[str, tuple[str, type[LLMProvider]]] = {
    "openai": ("OpenAI", OpenAIProvider),
    "google": ("Google", GoogleProvider),
}


def create_llm_provider(provider: str, api_key: str, model: str) -> LLMProvider:
    """
    Create one LLM provider.

    Raises:
        ValueError: If the provider is unknown or has no API key.
    """
    if provider not in PROVIDERS:
        raise ValueError(f"Unsupported LLM provider: {provider}")

    label, provider_class = PROVIDERS[provider]
    if not api_key:
        raise ValueError(f"{label} API key is required when using {label} provider")

    logger.info(f"Creating LLM provider: {provider} ({model})")
    return provider_class(api_key=api_key, model=model)


def create_llm_providers(cfg: Config) -> tuple[LLMProvider, LLMProvider]:
    """
    Create the chat provider and the background provider.

    With OpenAI the background work uses `openai.summary_model`; when that
    is the chat model (or the provider is Google) both roles share one
    provider instance.
    """
    if cfg.llm.provider == "google":
        chat = create_llm_provider("google", cfg.google.api_key, cfg.google.model)
        return chat, chat

    chat = create_llm_provider(cfg.llm.provider, cfg.openai.api_key, cfg.openai.model)
    if cfg.openai.summary_model == cfg.openai.model:
        return chat, chat
    return chat, create_llm_provider("openai", cfg.openai.api_key, cfg.openai.summary_model)
