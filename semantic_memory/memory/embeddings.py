"""
Embedding Service for generating vector representations.

Uses OpenAI's embedding models by default, with support for
local models via sentence-transformers as a fallback.

EmbeddingCache sits in front of a service and reuses vectors for
texts that normalize to the same key.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Literal

from ..errors import EmbeddingUnavailable
from ..normalize import normalize_text

logger = logging.getLogger("semantic_memory.memory.embeddings")


class EmbeddingService(ABC):
    """Abstract interface for embedding generation."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of embeddings produced."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        pass


class OpenAIEmbeddingService(EmbeddingService):
    """
    OpenAI embedding service using text-embedding-3 models.

    Supports native dimension reduction via the dimensions parameter,
    which keeps text-embedding-3-large within pgvector's 2000 dim limit.

    Models:
    - text-embedding-3-small: default 1536 dimensions
    - text-embedding-3-large: default 3072 dimensions (can be reduced)
    """

    # Default dimensions for each model
    MODEL_DEFAULT_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
    ):
        """
        Initialize OpenAI embedding service.

        Args:
            api_key: OpenAI API key
            model: Model name
            dimensions: Override output dimensions. If None, uses the model's default.
        """
        self.api_key = api_key
        self.model = model
        self._client = None

        default_dim = self.MODEL_DEFAULT_DIMENSIONS.get(model, 1536)
        if dimensions is not None and dimensions > default_dim:
            logger.warning(
                f"Requested dimensions ({dimensions}) exceeds model default ({default_dim}). "
                f"Using {default_dim}."
            )
            dimensions = None
        self._requested_dimensions = dimensions
        self._dimension = dimensions or default_dim

        logger.info(
            f"OpenAIEmbeddingService initialized: model={model}, dimensions={self._dimension}"
        )

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _request_kwargs(self, input_value) -> dict:
        kwargs = {
            "model": self.model,
            "input": input_value,
        }
        if self._requested_dimensions is not None:
            kwargs["dimensions"] = self._requested_dimensions
        return kwargs

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        client = self._get_client()
        response = await client.embeddings.create(**self._request_kwargs(text))
        return response.data[0].embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts efficiently."""
        if not texts:
            return []

        client = self._get_client()
        response = await client.embeddings.create(**self._request_kwargs(texts))

        # Sort by index to maintain order
        sorted_data = sorted(response.data, key=lambda x: x.index)
        return [item.embedding for item in sorted_data]


class LocalEmbeddingService(EmbeddingService):
    """
    Local embedding service using sentence-transformers.

    Uses all-MiniLM-L6-v2 by default (384 dimensions, fast, good quality).
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = 384  # Default for MiniLM
        logger.info(f"LocalEmbeddingService initialized with model: {model_name}")

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise RuntimeError(
                    "sentence-transformers not installed. "
                    "Install with: pip install sentence-transformers"
                )
            self._model = SentenceTransformer(self.model_name)
            self._dimension = self._model.get_sentence_embedding_dimension()
            logger.info(f"Loaded local embedding model: {self.model_name}")
        return self._model

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        model = self._get_model()
        # sentence-transformers is synchronous, run in default executor
        loop = asyncio.get_running_loop()
        embedding = await loop.run_in_executor(
            None, lambda: model.encode(text, convert_to_numpy=True)
        )
        return embedding.tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        if not texts:
            return []

        model = self._get_model()
        loop = asyncio.get_running_loop()
        embeddings = await loop.run_in_executor(
            None, lambda: model.encode(texts, convert_to_numpy=True)
        )
        return embeddings.tolist()


def create_embedding_service(
    provider: Literal["openai", "local"] = "openai",
    api_key: str = "",
    model: str = "",
    dimensions: int | None = None,
) -> EmbeddingService:
    """
    Factory function to create the appropriate embedding service.

    Args:
        provider: "openai" or "local"
        api_key: OpenAI API key (required for openai provider)
        model: Model name (optional, uses defaults)
        dimensions: Override output dimensions for OpenAI embeddings.

    Returns:
        Configured EmbeddingService instance
    """
    if provider == "openai":
        if not api_key:
            raise ValueError("OpenAI API key required for openai embedding provider")
        return OpenAIEmbeddingService(
            api_key=api_key,
            model=model or "text-embedding-3-small",
            dimensions=dimensions,
        )
    elif provider == "local":
        return LocalEmbeddingService(
            model_name=model or "all-MiniLM-L6-v2",
        )
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")


class EmbeddingCache:
    """
    Process-wide cache of embeddings keyed by normalized text.

    A hit never calls the provider. A miss calls it exactly once and stores
    the vector. The cache is LRU-bounded by max_entries.
    """

    def __init__(
        self,
        service: EmbeddingService,
        max_entries: int = 10000,
        timeout_seconds: float | None = 20.0,
    ):
        self.service = service
        self.max_entries = max_entries
        self.timeout_seconds = timeout_seconds
        self._entries: OrderedDict[str, list[float]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def cache_key(text: str) -> str:
        """Normalized key; falls back to the stripped text when nothing survives normalization."""
        return normalize_text(text) or text.strip()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: str) -> bool:
        return self.cache_key(text) in self._entries

    @property
    def dimension(self) -> int:
        return self.service.dimension

    async def get_embedding(self, text: str) -> list[float]:
        """
        Fetch the embedding for text, computing it on a cache miss.

        Raises:
            EmbeddingUnavailable: If the provider fails or times out
        """
        key = self.cache_key(text)
        if key in self._entries:
            self._entries.move_to_end(key)
            self.hits += 1
            return self._entries[key]

        self.misses += 1
        try:
            if self.timeout_seconds:
                embedding = await asyncio.wait_for(
                    self.service.embed(key), timeout=self.timeout_seconds
                )
            else:
                embedding = await self.service.embed(key)
        except asyncio.TimeoutError as e:
            logger.error(f"Embedding request timed out after {self.timeout_seconds}s")
            raise EmbeddingUnavailable("Embedding provider timed out") from e
        except Exception as e:
            logger.error(f"Embedding request failed: {e}")
            raise EmbeddingUnavailable("Embedding provider unavailable") from e

        if not embedding:
            raise EmbeddingUnavailable("Embedding provider returned an empty vector")

        embedding = list(embedding)
        self._entries[key] = embedding
        if len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted embedding for '{evicted[:40]}'")
        return embedding

    def clear(self) -> None:
        """Drop every cached embedding."""
        self._entries.clear()
        logger.info("Embedding cache cleared")
