"""
Base interfaces and data structures for vector memory.

Defines the abstract contracts that different memory store
backends must implement.
"""

import functools
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from ..errors import StoreUnavailable

logger = logging.getLogger("semantic_memory.memory.store")

MemoryType = Literal["explicit", "intuited"]
MemoryCategory = Literal["personal", "professional", "preferences", "hobbies", "contact", "other"]

EXPLICIT: MemoryType = "explicit"
INTUITED: MemoryType = "intuited"

MEMORY_TYPES = (EXPLICIT, INTUITED)
MEMORY_CATEGORIES = ("personal", "professional", "preferences", "hobbies", "contact", "other")

# Default confidence by memory type
DEFAULT_CONFIDENCE = {
    EXPLICIT: 1.0,
    INTUITED: 0.8,
}


def new_memory_id() -> str:
    """Generate a unique record ID."""
    return uuid.uuid4().hex


@dataclass
class MemoryRecord:
    """
    A single remembered fact about an owner.

    Identity is the `id` slot: a merge overwrites text and embedding
    in place and keeps the id, creation time and category.
    """
    owner_id: str
    text: str
    embedding: Optional[list[float]] = None  # None = provider was down at write time
    memory_type: MemoryType = EXPLICIT
    category: Optional[MemoryCategory] = None
    confidence: float = 1.0
    source: str = "memory_command"
    id: str = field(default_factory=new_memory_id)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


@dataclass
class NearestMatch:
    """A nearest-neighbor result from the memory store."""
    record: MemoryRecord
    distance: float  # Lower is more similar

    @property
    def text(self) -> str:
        return self.record.text


class MemoryStore(ABC):
    """
    Abstract interface for memory storage backends.

    Implementations: ChromaDB (local), pgvector (production).
    Distances must be cosine distances (lower = more similar) so the
    merge and relevance thresholds mean the same thing on every backend.
    Backend failures are raised as StoreUnavailable.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the store (create collections, tables, etc.)."""
        pass

    @abstractmethod
    async def find_nearest(
        self,
        owner_id: str,
        query_embedding: list[float],
        k: int = 1,
        memory_type: Optional[MemoryType] = None,
        category: Optional[MemoryCategory] = None,
    ) -> list[NearestMatch]:
        """
        Find the owner's memories nearest to an embedding.

        Args:
            owner_id: Whose memories to search
            query_embedding: The embedding to search for
            k: Maximum number of results
            memory_type: Optional type filter
            category: Optional category filter

        Returns:
            Matches ordered by ascending distance
        """
        pass

    @abstractmethod
    async def insert(self, record: MemoryRecord) -> str:
        """Insert a new record. Returns its ID."""
        pass

    @abstractmethod
    async def upsert(self, record: MemoryRecord) -> str:
        """Insert or overwrite the record with the same ID. Returns its ID."""
        pass

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """Delete one record by ID. Returns True if it existed."""
        pass

    @abstractmethod
    async def get_all(
        self,
        owner_id: str,
        memory_type: Optional[MemoryType] = None,
        category: Optional[MemoryCategory] = None,
    ) -> list[MemoryRecord]:
        """Get every memory for an owner, newest first."""
        pass

    @abstractmethod
    async def delete_all(self, owner_id: str) -> int:
        """Delete every memory for an owner. Returns the number deleted."""
        pass

    @abstractmethod
    async def count(self, owner_id: Optional[str] = None) -> int:
        """Count stored memories, optionally for one owner."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass


def store_operation(operation: str):
    """
    Decorator for MemoryStore methods that maps backend failures to StoreUnavailable.

    Programming errors from the store itself (not initialized) pass through.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except (StoreUnavailable, RuntimeError):
                raise
            except Exception as e:
                logger.error(f"{type(self).__name__}.{operation} failed: {e}")
                raise StoreUnavailable(f"Memory store {operation} failed") from e
        return wrapper
    return decorator
