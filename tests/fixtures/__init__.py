"""
Test fixtures and fakes for semantic memory tests.
"""

from datetime import datetime
from typing import Callable, Optional

from semantic_memory.errors import StoreUnavailable
from semantic_memory.llm.base import LLMProvider, LLMResponse
from semantic_memory.memory.base import (
    EXPLICIT,
    MemoryRecord,
    MemoryStore,
    NearestMatch,
)
from semantic_memory.memory.embeddings import EmbeddingService
from semantic_memory.similarity import cosine_distance

DIMENSION = 64
# Indices below this are reserved for vectors a test assigns by hand
FIRST_AUTO_INDEX = 8


def one_hot(index: int, dimension: int = DIMENSION) -> list[float]:
    """Unit vector along one axis; distinct indices are orthogonal (distance 1.0)."""
    vector = [0.0] * dimension
    vector[index % dimension] = 1.0
    return vector


class FakeEmbeddingService(EmbeddingService):
    """
    Embedding service that never touches the network.

    Vectors come from `vectors` when the embedded text contains one of its
    keys. Any other text gets its own one-hot vector, so unrelated texts
    never look alike. Set `fail` to make every call raise.
    """

    def __init__(self, vectors: Optional[dict[str, list[float]]] = None, dimension: int = DIMENSION):
        self.vectors = vectors or {}
        self._dimension = dimension
        self._assigned: dict[str, int] = {}
        self.calls: list[str] = []
        self.fail = False

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise ConnectionError("embedding provider down")
        for key, vector in self.vectors.items():
            if key in text:
                return list(vector)
        if text not in self._assigned:
            span = self._dimension - FIRST_AUTO_INDEX
            self._assigned[text] = FIRST_AUTO_INDEX + len(self._assigned) % span
        return one_hot(self._assigned[text], self._dimension)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


class FakeMemoryStore(MemoryStore):
    """
    In-memory MemoryStore.

    Distances are cosine distances between stored vectors unless a test
    supplies `distance_fn(query_embedding, record)`.
    """

    def __init__(self, distance_fn: Optional[Callable[[list[float], MemoryRecord], float]] = None):
        self.records: dict[str, MemoryRecord] = {}
        self.distance_fn = distance_fn
        self.initialized = False
        self.closed = False
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise StoreUnavailable("store down")

    def _distance(self, query_embedding: list[float], record: MemoryRecord) -> float:
        if self.distance_fn is not None:
            return self.distance_fn(query_embedding, record)
        return cosine_distance(query_embedding, record.embedding)

    async def initialize(self) -> None:
        self.initialized = True

    async def find_nearest(self, owner_id, query_embedding, k=1, memory_type=None, category=None):
        self._check()
        candidates = [
            r for r in self.records.values()
            if r.owner_id == owner_id
            and r.has_embedding
            and (memory_type is None or r.memory_type == memory_type)
            and (category is None or r.category == category)
        ]
        matches = [NearestMatch(record=r, distance=self._distance(query_embedding, r)) for r in candidates]
        matches.sort(key=lambda m: m.distance)
        return matches[:k]

    async def insert(self, record: MemoryRecord) -> str:
        self._check()
        self.records[record.id] = record
        return record.id

    async def upsert(self, record: MemoryRecord) -> str:
        self._check()
        self.records[record.id] = record
        return record.id

    async def delete(self, record_id: str) -> bool:
        self._check()
        return self.records.pop(record_id, None) is not None

    async def get_all(self, owner_id, memory_type=None, category=None):
        self._check()
        records = [
            r for r in self.records.values()
            if r.owner_id == owner_id
            and (memory_type is None or r.memory_type == memory_type)
            and (category is None or r.category == category)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    async def delete_all(self, owner_id: str) -> int:
        self._check()
        ids = [rid for rid, r in self.records.items() if r.owner_id == owner_id]
        for rid in ids:
            del self.records[rid]
        return len(ids)

    async def count(self, owner_id: Optional[str] = None) -> int:
        if owner_id is None:
            return len(self.records)
        return sum(1 for r in self.records.values() if r.owner_id == owner_id)

    async def close(self) -> None:
        self.closed = True

    def texts(self, owner_id: str) -> list[str]:
        return sorted(r.text for r in self.records.values() if r.owner_id == owner_id)


class FakeLLM(LLMProvider):
    """
    Scripted LLM provider.

    Responses are consumed in order; once exhausted the last one repeats.
    Every call's keyword arguments are kept in `calls`.
    """

    def __init__(self, responses: Optional[list[str]] = None):
        self.responses = list(responses or ["ok"])
        self.calls: list[dict] = []
        self.fail = False

    @property
    def provider_name(self) -> str:
        return "Fake"

    @property
    def model_name(self) -> str:
        return "fake-model"

    def is_configured(self) -> bool:
        return True

    async def generate(
        self,
        prompt=None,
        messages=None,
        system_prompt=None,
        temperature=0.7,
        max_tokens=2000,
    ) -> LLMResponse:
        self.calls.append({
            "prompt": prompt,
            "messages": [dict(m) for m in messages] if messages else None,
            "system_prompt": system_prompt,
            "max_tokens": max_tokens,
        })
        if self.fail:
            raise ConnectionError("completion provider down")
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return LLMResponse(content=self.responses[index], model=self.model_name)


def make_record(
    text: str,
    owner_id: str = "owner-1",
    embedding: Optional[list[float]] = None,
    memory_type: str = EXPLICIT,
    category: Optional[str] = None,
    confidence: float = 1.0,
    created_at: Optional[datetime] = None,
) -> MemoryRecord:
    """Create a MemoryRecord for testing."""
    now = created_at or datetime.now()
    return MemoryRecord(
        owner_id=owner_id,
        text=text,
        embedding=embedding,
        memory_type=memory_type,
        category=category,
        confidence=confidence,
        created_at=now,
        updated_at=now,
    )


def make_window(turns: int, system: str = "You are bri.") -> list[dict[str, str]]:
    """A conversation window with a system message and alternating turns."""
    messages = [{"role": "system", "content": system}]
    for i in range(turns):
        role = "user" if i % 2 == 0 else "assistant"
        messages.append({"role": role, "content": f"turn {i}"})
    return messages
