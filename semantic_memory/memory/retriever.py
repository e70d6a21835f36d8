"""
Memory Retriever - ranked recall of an owner's memories.

Vector search is the primary path. When embeddings are unavailable the
owner's stored texts (and memory blob lines) are ranked with the fuzzy
token-overlap score instead.
"""

import logging
from typing import Optional

from ..errors import EmbeddingUnavailable, SemanticMemoryError, ValidationError
from ..similarity import RELEVANCE_THRESHOLD, is_relevant, rank_fuzzy
from .base import MemoryCategory, MemoryStore, MemoryType
from .embeddings import EmbeddingCache

logger = logging.getLogger("semantic_memory.memory.retriever")


class MemoryRetriever:
    """Finds the memories most relevant to a query."""

    def __init__(
        self,
        store: MemoryStore,
        embeddings: EmbeddingCache,
        history=None,
        relevance_threshold: float = RELEVANCE_THRESHOLD,
        default_limit: int = 5,
    ):
        self.store = store
        self.embeddings = embeddings
        self.history = history
        self.relevance_threshold = relevance_threshold
        self.default_limit = default_limit

    async def retrieve(
        self,
        owner_id: str,
        query: str,
        limit: Optional[int] = None,
        memory_type: Optional[MemoryType] = None,
        category: Optional[MemoryCategory] = None,
    ) -> list[str]:
        """
        Get the owner's memories relevant to query, most relevant first.

        Args:
            owner_id: Whose memories to search
            query: Free-text query
            limit: Maximum results (defaults to default_limit)
            memory_type: Optional type filter
            category: Optional category filter

        Returns:
            Memory texts with distance below the relevance threshold,
            ascending by distance

        Raises:
            ValidationError: If the query is empty
            StoreUnavailable: If the store fails
        """
        if not query or not query.strip():
            raise ValidationError("Query cannot be empty")

        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            return []

        try:
            query_embedding = await self.embeddings.get_embedding(query)
        except EmbeddingUnavailable:
            logger.warning("Embedding unavailable, falling back to fuzzy recall")
            return await self._fuzzy_fallback(owner_id, query, limit, memory_type, category)

        matches = await self.store.find_nearest(
            owner_id,
            query_embedding,
            k=limit,
            memory_type=memory_type,
            category=category,
        )

        relevant = sorted(
            (m for m in matches if is_relevant(m.distance, self.relevance_threshold)),
            key=lambda m: m.distance,
        )
        logger.info(f"Retrieved {len(relevant)}/{len(matches)} relevant memories")
        for m in relevant:
            logger.debug(f"  - distance={m.distance:.3f}: {m.text[:60]}")

        return [m.text for m in relevant]

    async def _fuzzy_fallback(
        self,
        owner_id: str,
        query: str,
        limit: int,
        memory_type: Optional[MemoryType],
        category: Optional[MemoryCategory],
    ) -> list[str]:
        records = await self.store.get_all(owner_id, memory_type=memory_type, category=category)
        candidates = [r.text for r in records]

        # Blob lines carry no type or category, so they only join unfiltered searches
        if self.history is not None and memory_type is None and category is None:
            blob = self.history.get_memory_blob(owner_id)
            candidates.extend(line.strip() for line in blob.split("\n") if line.strip())

        seen = set()
        unique = []
        for text in candidates:
            if text not in seen:
                seen.add(text)
                unique.append(text)

        results = rank_fuzzy(query, unique, limit)
        logger.info(f"Fuzzy recall matched {len(results)} of {len(unique)} memories")
        return results

    async def build_memory_context(self, owner_id: str, query: str) -> str:
        """
        Format relevant memories for inclusion in the system prompt.

        Returns "" when nothing relevant is found or recall fails.
        """
        if not query or not query.strip():
            return ""

        try:
            memories = await self.retrieve(owner_id, query)
        except SemanticMemoryError as e:
            logger.error(f"Memory recall failed while building context: {e}")
            return ""

        if not memories:
            return ""

        lines = ["Relevant Memories:"]
        lines.extend(f"- {text}" for text in memories)
        return "\n".join(lines)
