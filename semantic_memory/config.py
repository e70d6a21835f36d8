"""
Configuration module for the semantic memory service.

Loads application settings from config.yaml and secrets from environment variables.
"""

import logging
import os
import contextvars
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Context variable for owner ID logging
owner_context = contextvars.ContextVar("owner_id", default=None)


class OwnerLogFilter(logging.Filter):
    """Filter to inject the current owner ID into log records."""
    def filter(self, record):
        owner_id = owner_context.get()
        if owner_id is not None:
            record.owner_info = f" [owner {owner_id}]"
        else:
            record.owner_info = ""
        return True


# Default config file path
CONFIG_FILE = Path(__file__).parent.parent / "config.yaml"


def _load_yaml_config() -> dict:
    """Load configuration from YAML file."""
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE) as f:
            return yaml.safe_load(f) or {}
    return {}


# Load YAML config once at module import
_yaml_config = _load_yaml_config()


def _get_yaml(section: str, key: str, default=None):
    """Get a value from the YAML config."""
    return _yaml_config.get(section, {}).get(key, default)


DEFAULT_ASSISTANT_NAME = "bri"

DEFAULT_CORE_PROMPT = (
    "You are {assistant_name}, a helpful AI assistant with long-term memory. "
    "You always provide useful, accurate answers and try your best to remember "
    "personal information about users, such as their hobbies, favorite things, "
    "name, pets and where they live. You are friendly and cheerful, and you ask "
    "follow-up questions when it helps you understand what the user needs. "
    "Prioritize the most contextually relevant parts of each message."
)


@dataclass
class OpenAIConfig:
    """OpenAI API configuration."""
    # Secret from .env
    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    # Settings from YAML
    model: str = field(default_factory=lambda: _get_yaml("llm", "openai_model", "gpt-4o-mini"))
    summary_model: str = field(
        default_factory=lambda: _get_yaml("llm", "openai_summary_model", "gpt-4o-mini")
    )


@dataclass
class GoogleConfig:
    """Google Generative AI configuration."""
    # Secret from .env
    api_key: str = field(default_factory=lambda: os.getenv("GOOGLE_API_KEY", ""))
    # Setting from YAML
    model: str = field(default_factory=lambda: _get_yaml("llm", "google_model", "gemini-2.0-flash"))


@dataclass
class LLMConfig:
    """Completion provider settings shared by chat and the pipeline."""
    provider: Literal["openai", "google"] = field(
        default_factory=lambda: _get_yaml("llm", "provider", "openai")
    )
    # Provider calls that take longer than this become CompletionUnavailable
    timeout_seconds: float = field(
        default_factory=lambda: _get_yaml("llm", "timeout_seconds", 60.0)
    )
    reply_max_tokens: int = field(
        default_factory=lambda: _get_yaml("llm", "reply_max_tokens", 3000)
    )


@dataclass
class MemoryConfig:
    """Vector memory configuration."""
    store_type: Literal["chroma", "pgvector"] = field(
        default_factory=lambda: _get_yaml("memory", "store_type", "chroma")
    )
    embedding_provider: Literal["openai", "local"] = field(
        default_factory=lambda: _get_yaml("memory", "embedding_provider", "openai")
    )
    openai_embedding_model: str = field(
        default_factory=lambda: _get_yaml("memory", "openai_embedding_model", "text-embedding-3-small")
    )
    # Override embedding dimensions (pgvector has a 2000 dim limit)
    # None = use model's default dimensions
    embedding_dimensions: int | None = field(
        default_factory=lambda: _get_yaml("memory", "embedding_dimensions", None)
    )
    embedding_timeout_seconds: float = field(
        default_factory=lambda: _get_yaml("memory", "embedding_timeout_seconds", 20.0)
    )
    # LRU bound for the process-wide embedding cache
    embedding_cache_size: int = field(
        default_factory=lambda: _get_yaml("memory", "embedding_cache_size", 10000)
    )
    chroma_path: str = field(
        default_factory=lambda: _get_yaml("memory", "chroma_path", "./memory_store")
    )
    # Secret from .env (contains credentials)
    postgres_url: str = field(default_factory=lambda: os.getenv("POSTGRES_URL", ""))
    merge_threshold: float = field(
        default_factory=lambda: _get_yaml("memory", "merge_threshold", 0.5)
    )
    relevance_threshold: float = field(
        default_factory=lambda: _get_yaml("memory", "relevance_threshold", 0.6)
    )
    recall_limit: int = field(
        default_factory=lambda: _get_yaml("memory", "recall_limit", 5)
    )


@dataclass
class ConversationConfig:
    """Rolling conversation window settings."""
    assistant_name: str = field(
        default_factory=lambda: _get_yaml("conversation", "assistant_name", DEFAULT_ASSISTANT_NAME)
    )
    core_prompt: str = field(
        default_factory=lambda: _get_yaml("conversation", "core_prompt", DEFAULT_CORE_PROMPT)
    )
    context_length: int = field(
        default_factory=lambda: _get_yaml("conversation", "context_length", 20)
    )
    history_db_path: str = field(
        default_factory=lambda: _get_yaml("conversation", "history_db_path", "conversation_history.db")
    )
    # Replies longer than this are split before being sent
    max_message_length: int = field(
        default_factory=lambda: _get_yaml("conversation", "max_message_length", 2000)
    )

    @property
    def system_prompt(self) -> str:
        """Core prompt with the assistant name filled in."""
        return self.core_prompt.format(assistant_name=self.assistant_name)


@dataclass
class SummaryConfig:
    """Background summarization and fact extraction settings."""
    message_threshold: int = field(
        default_factory=lambda: _get_yaml("summary", "message_threshold", 3)
    )
    inactivity_hours: float = field(
        default_factory=lambda: _get_yaml("summary", "inactivity_hours", 8)
    )
    chunk_size: int = field(
        default_factory=lambda: _get_yaml("summary", "chunk_size", 10)
    )
    summary_max_tokens: int = field(
        default_factory=lambda: _get_yaml("summary", "summary_max_tokens", 1500)
    )
    extraction_max_tokens: int = field(
        default_factory=lambda: _get_yaml("summary", "extraction_max_tokens", 1000)
    )
    intuited_confidence: float = field(
        default_factory=lambda: _get_yaml("summary", "intuited_confidence", 0.8)
    )


@dataclass
class AppConfig:
    """Application settings from YAML."""
    log_level: str = field(
        default_factory=lambda: _get_yaml("logging", "level", "INFO")
    )


@dataclass
class Config:
    """Main configuration container."""
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    google: GoogleConfig = field(default_factory=GoogleConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    app: AppConfig = field(default_factory=AppConfig)

    def setup_logging(self) -> logging.Logger:
        """Configure and return the application logger."""
        # Reset existing handlers to ensure clean configuration
        root = logging.getLogger()
        if root.handlers:
            for handler in root.handlers:
                root.removeHandler(handler)

        logging.basicConfig(
            level=getattr(logging, self.app.log_level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s%(owner_info)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Add filter to the handler created by basicConfig
        for handler in logging.getLogger().handlers:
            handler.addFilter(OwnerLogFilter())

        return logging.getLogger("semantic_memory")

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of missing/invalid settings.

        Returns:
            List of validation error messages, empty if all valid.
        """
        errors = []

        # Check LLM provider configuration
        if self.llm.provider == "openai" and not self.openai.api_key:
            errors.append("OPENAI_API_KEY is required when using OpenAI provider")
        elif self.llm.provider == "google" and not self.google.api_key:
            errors.append("GOOGLE_API_KEY is required when using Google provider")

        if self.memory.embedding_provider == "openai" and not self.openai.api_key:
            errors.append("OPENAI_API_KEY is required for OpenAI embeddings")

        if self.memory.store_type == "pgvector" and not self.memory.postgres_url:
            errors.append("POSTGRES_URL is required when memory.store_type is pgvector")

        if not 2 <= self.conversation.context_length <= 20:
            errors.append("conversation.context_length must be between 2 and 20")

        if self.memory.merge_threshold > self.memory.relevance_threshold:
            errors.append("memory.merge_threshold must not exceed memory.relevance_threshold")

        return errors


# Global configuration instance
config = Config()
