"""
Unit tests for semantic_memory/memory/embeddings.py

Tests the embedding cache and the embedding service factory.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from semantic_memory.errors import EmbeddingUnavailable
from semantic_memory.memory.embeddings import (
    EmbeddingCache,
    LocalEmbeddingService,
    OpenAIEmbeddingService,
    create_embedding_service,
)
from tests.fixtures import FakeEmbeddingService


class TestEmbeddingCache:
    """Tests for EmbeddingCache."""

    @pytest.mark.asyncio
    async def test_miss_calls_provider_once(self, embedding_service, embeddings):
        """Test a miss calls the provider and stores the vector."""
        vector = await embeddings.get_embedding("User loves hiking")

        assert len(vector) == embedding_service.dimension
        assert len(embedding_service.calls) == 1
        assert "User loves hiking" in embeddings
        assert embeddings.misses == 1

    @pytest.mark.asyncio
    async def test_hit_skips_provider(self, embedding_service, embeddings):
        """Test a repeated text is served from the cache."""
        first = await embeddings.get_embedding("User loves hiking")
        second = await embeddings.get_embedding("User loves hiking")

        assert first == second
        assert len(embedding_service.calls) == 1
        assert embeddings.hits == 1

    @pytest.mark.asyncio
    async def test_equivalent_text_shares_entry(self, embedding_service, embeddings):
        """Test texts that normalize alike share one cache entry."""
        await embeddings.get_embedding("User LOVES hiking!")
        await embeddings.get_embedding("user love hikes")

        assert len(embedding_service.calls) == 1
        assert len(embeddings) == 1

    @pytest.mark.asyncio
    async def test_provider_receives_normalized_key(self, embedding_service, embeddings):
        """Test the provider embeds the normalized text."""
        await embeddings.get_embedding("Loves Hiking!")
        assert embedding_service.calls == [EmbeddingCache.cache_key("Loves Hiking!")]

    @pytest.mark.asyncio
    async def test_lru_eviction(self, embedding_service):
        """Test the least recently used entry is evicted past max_entries."""
        cache = EmbeddingCache(embedding_service, max_entries=2)

        await cache.get_embedding("alpha")
        await cache.get_embedding("bravo")
        await cache.get_embedding("alpha")  # refresh alpha
        await cache.get_embedding("charlie")  # evicts bravo

        assert len(cache) == 2
        assert "alpha" in cache
        assert "charlie" in cache
        assert "bravo" not in cache

    @pytest.mark.asyncio
    async def test_provider_failure_raises(self, embedding_service, embeddings):
        """Test provider errors surface as EmbeddingUnavailable."""
        embedding_service.fail = True

        with pytest.raises(EmbeddingUnavailable):
            await embeddings.get_embedding("anything")
        assert len(embeddings) == 0

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        """Test a slow provider surfaces as EmbeddingUnavailable."""
        service = FakeEmbeddingService()

        async def slow_embed(text):
            await asyncio.sleep(1)
            return [1.0]

        service.embed = slow_embed
        cache = EmbeddingCache(service, timeout_seconds=0.01)

        with pytest.raises(EmbeddingUnavailable):
            await cache.get_embedding("slow text")

    @pytest.mark.asyncio
    async def test_empty_vector_raises(self):
        """Test an empty provider result is not cached."""
        service = FakeEmbeddingService()
        service.embed = AsyncMock(return_value=[])
        cache = EmbeddingCache(service)

        with pytest.raises(EmbeddingUnavailable):
            await cache.get_embedding("text")
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_clear(self, embeddings):
        """Test clear() empties the cache."""
        await embeddings.get_embedding("text")
        embeddings.clear()
        assert len(embeddings) == 0

    def test_cache_key_falls_back_to_text(self):
        """Test punctuation-only text keeps a usable key."""
        assert EmbeddingCache.cache_key("  ?!  ") == "?!"

    def test_dimension_from_service(self, embedding_service, embeddings):
        """Test the cache reports its service's dimension."""
        assert embeddings.dimension == embedding_service.dimension


class TestOpenAIEmbeddingService:
    """Tests for OpenAIEmbeddingService."""

    def test_default_dimension(self):
        """Test the model default dimension is used."""
        service = OpenAIEmbeddingService(api_key="test-key")
        assert service.dimension == 1536

    def test_reduced_dimension(self):
        """Test dimensions can be reduced below the model default."""
        service = OpenAIEmbeddingService(
            api_key="test-key", model="text-embedding-3-large", dimensions=1024
        )
        assert service.dimension == 1024

    def test_oversized_dimension_ignored(self):
        """Test a request above the model default falls back to the default."""
        service = OpenAIEmbeddingService(api_key="test-key", dimensions=4096)
        assert service.dimension == 1536

    @pytest.mark.asyncio
    async def test_embed_calls_api(self):
        """Test embed() sends the text to the embeddings endpoint."""
        service = OpenAIEmbeddingService(api_key="test-key", dimensions=512)

        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock(
            return_value=MagicMock(data=[MagicMock(embedding=[0.1, 0.2])])
        )
        service._client = mock_client

        result = await service.embed("hello")

        assert result == [0.1, 0.2]
        kwargs = mock_client.embeddings.create.call_args.kwargs
        assert kwargs["input"] == "hello"
        assert kwargs["dimensions"] == 512

    @pytest.mark.asyncio
    async def test_embed_batch_keeps_order(self):
        """Test batch results are returned in input order."""
        service = OpenAIEmbeddingService(api_key="test-key")

        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock(
            return_value=MagicMock(data=[
                MagicMock(index=1, embedding=[2.0]),
                MagicMock(index=0, embedding=[1.0]),
            ])
        )
        service._client = mock_client

        assert await service.embed_batch(["a", "b"]) == [[1.0], [2.0]]
        assert await service.embed_batch([]) == []


class TestCreateEmbeddingService:
    """Tests for create_embedding_service()."""

    def test_openai_requires_key(self):
        """Test the OpenAI provider needs an API key."""
        with pytest.raises(ValueError, match="API key"):
            create_embedding_service(provider="openai", api_key="")

    def test_openai(self):
        """Test the OpenAI provider is created."""
        service = create_embedding_service(provider="openai", api_key="test-key")
        assert isinstance(service, OpenAIEmbeddingService)
        assert service.model == "text-embedding-3-small"

    def test_local(self):
        """Test the local provider is created without loading the model."""
        service = create_embedding_service(provider="local")
        assert isinstance(service, LocalEmbeddingService)
        assert service._model is None

    def test_unknown(self):
        """Test unknown providers are rejected."""
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            create_embedding_service(provider="nope")
