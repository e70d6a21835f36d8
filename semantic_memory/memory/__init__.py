"""
Semantic memory storage and recall.

Facts about each owner are embedded and stored in a vector store. New
facts that land close to an existing one overwrite it instead of piling
up as near-duplicates.
"""

from .base import MemoryRecord, MemoryStore, NearestMatch, EXPLICIT, INTUITED
from .categories import categorize_memory
from .embeddings import EmbeddingCache, EmbeddingService, create_embedding_service
from .chroma_store import ChromaMemoryStore
from .coordinator import MemoryCoordinator, UpsertResult
from .retriever import MemoryRetriever

__all__ = [
    "MemoryRecord",
    "MemoryStore",
    "NearestMatch",
    "EXPLICIT",
    "INTUITED",
    "categorize_memory",
    "EmbeddingCache",
    "EmbeddingService",
    "create_embedding_service",
    "ChromaMemoryStore",
    "MemoryCoordinator",
    "UpsertResult",
    "MemoryRetriever",
]
