"""
ChromaDB Memory Store Implementation.

ChromaDB is perfect for local/development use:
- No server required
- Stores everything in a local directory
- Built-in persistence

The collection uses cosine space so reported distances line up with
the merge and relevance thresholds.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .base import (
    MemoryCategory,
    MemoryRecord,
    MemoryStore,
    MemoryType,
    NearestMatch,
    store_operation,
)

logger = logging.getLogger("semantic_memory.memory.chroma")


class ChromaMemoryStore(MemoryStore):
    """
    ChromaDB implementation of the memory store.

    Chroma requires a vector for every entry, so records written while the
    embedding provider was down get a placeholder vector and are flagged
    with embedded=False. Nearest-neighbour queries skip them.
    """

    def __init__(
        self,
        persist_directory: str = "./memory_store",
        collection_name: str = "user_memories",
        embedding_dimension: int = 1536,
    ):
        self.persist_directory = Path(persist_directory)
        self.collection_name = collection_name
        self.embedding_dimension = embedding_dimension
        self._client = None
        self._collection = None
        logger.info(f"ChromaMemoryStore configured with directory: {persist_directory}")

    async def initialize(self) -> None:
        """Initialize ChromaDB client and collection."""
        try:
            import chromadb
            from chromadb.config import Settings
        except ImportError:
            raise RuntimeError(
                "chromadb not installed. Install with: pip install chromadb"
            )

        self.persist_directory.mkdir(parents=True, exist_ok=True)

        self._client = chromadb.PersistentClient(
            path=str(self.persist_directory),
            settings=Settings(
                anonymized_telemetry=False,
                allow_reset=True,
            ),
        )

        self._collection = self._client.get_or_create_collection(
            name=self.collection_name,
            metadata={
                "description": "Per-user semantic memories",
                "hnsw:space": "cosine",
            },
        )

        count = self._collection.count()
        logger.info(f"ChromaDB initialized with {count} existing memories")

    def _ensure_initialized(self) -> None:
        """Ensure the store is initialized."""
        if self._collection is None:
            raise RuntimeError("ChromaMemoryStore not initialized. Call initialize() first.")

    def _placeholder_embedding(self) -> list[float]:
        return [1.0] + [0.0] * (self.embedding_dimension - 1)

    @staticmethod
    def _where(
        owner_id: str,
        memory_type: Optional[MemoryType] = None,
        category: Optional[MemoryCategory] = None,
        embedded_only: bool = False,
    ) -> dict:
        """Build a Chroma where clause; several conditions need an explicit $and."""
        conditions = [{"owner_id": owner_id}]
        if memory_type:
            conditions.append({"memory_type": memory_type})
        if category:
            conditions.append({"category": category})
        if embedded_only:
            conditions.append({"embedded": True})

        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    def _record_to_metadata(self, record: MemoryRecord) -> dict:
        """Convert a MemoryRecord to ChromaDB metadata (no None values allowed)."""
        return {
            "owner_id": record.owner_id,
            "memory_type": record.memory_type,
            "category": record.category or "",
            "confidence": float(record.confidence),
            "source": record.source,
            "embedded": record.has_embedding,
            "created_at": record.created_at.isoformat(),
            "updated_at": record.updated_at.isoformat(),
        }

    def _metadata_to_record(
        self,
        id: str,
        metadata: dict,
        document: str,
        embedding=None,
    ) -> MemoryRecord:
        """Convert ChromaDB metadata back to a MemoryRecord."""
        vector = None
        if metadata.get("embedded") and embedding is not None:
            vector = [float(x) for x in embedding]
        return MemoryRecord(
            id=id,
            owner_id=metadata["owner_id"],
            text=document,
            embedding=vector,
            memory_type=metadata["memory_type"],
            category=metadata.get("category") or None,
            confidence=metadata.get("confidence", 1.0),
            source=metadata.get("source", ""),
            created_at=datetime.fromisoformat(metadata["created_at"]),
            updated_at=datetime.fromisoformat(metadata["updated_at"]),
        )

    def _entry_args(self, record: MemoryRecord) -> dict:
        return {
            "ids": [record.id],
            "embeddings": [record.embedding or self._placeholder_embedding()],
            "documents": [record.text],
            "metadatas": [self._record_to_metadata(record)],
        }

    @store_operation("find_nearest")
    async def find_nearest(
        self,
        owner_id: str,
        query_embedding: list[float],
        k: int = 1,
        memory_type: Optional[MemoryType] = None,
        category: Optional[MemoryCategory] = None,
    ) -> list[NearestMatch]:
        """Find the owner's embedded memories nearest to query_embedding."""
        self._ensure_initialized()

        where = self._where(owner_id, memory_type, category, embedded_only=True)
        available = len(self._collection.get(where=where, include=[])["ids"])
        if available == 0 or k <= 0:
            return []

        results = self._collection.query(
            query_embeddings=[query_embedding],
            n_results=min(k, available),
            where=where,
            include=["documents", "metadatas", "distances", "embeddings"],
        )

        matches = []
        if results["ids"] and results["ids"][0]:
            embeddings = results.get("embeddings")
            for i, id in enumerate(results["ids"][0]):
                record = self._metadata_to_record(
                    id=id,
                    metadata=results["metadatas"][0][i],
                    document=results["documents"][0][i],
                    embedding=embeddings[0][i] if embeddings is not None else None,
                )
                matches.append(NearestMatch(
                    record=record,
                    distance=float(results["distances"][0][i]),
                ))

        matches.sort(key=lambda m: m.distance)
        return matches

    @store_operation("insert")
    async def insert(self, record: MemoryRecord) -> str:
        """Add a new memory record."""
        self._ensure_initialized()
        self._collection.add(**self._entry_args(record))
        logger.info(f"Stored new memory: {record.id}")
        return record.id

    @store_operation("upsert")
    async def upsert(self, record: MemoryRecord) -> str:
        """Insert or overwrite the memory with the same id."""
        self._ensure_initialized()
        self._collection.upsert(**self._entry_args(record))
        logger.info(f"Updated memory: {record.id}")
        return record.id

    @store_operation("delete")
    async def delete(self, record_id: str) -> bool:
        """Delete one memory by id."""
        self._ensure_initialized()

        existing = self._collection.get(ids=[record_id], include=[])["ids"]
        if not existing:
            return False
        self._collection.delete(ids=[record_id])
        logger.info(f"Deleted memory: {record_id}")
        return True

    @store_operation("get_all")
    async def get_all(
        self,
        owner_id: str,
        memory_type: Optional[MemoryType] = None,
        category: Optional[MemoryCategory] = None,
    ) -> list[MemoryRecord]:
        """Get every memory for an owner, newest first."""
        self._ensure_initialized()

        results = self._collection.get(
            where=self._where(owner_id, memory_type, category),
            include=["documents", "metadatas", "embeddings"],
        )

        embeddings = results.get("embeddings")
        records = []
        for i, id in enumerate(results["ids"]):
            records.append(self._metadata_to_record(
                id=id,
                metadata=results["metadatas"][i],
                document=results["documents"][i],
                embedding=embeddings[i] if embeddings is not None else None,
            ))

        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    @store_operation("delete_all")
    async def delete_all(self, owner_id: str) -> int:
        """Delete every memory for an owner."""
        self._ensure_initialized()

        ids = self._collection.get(where={"owner_id": owner_id}, include=[])["ids"]
        if ids:
            self._collection.delete(ids=ids)
        logger.info(f"Deleted {len(ids)} memories")
        return len(ids)

    @store_operation("count")
    async def count(self, owner_id: Optional[str] = None) -> int:
        """Get number of stored memories."""
        self._ensure_initialized()
        if owner_id is None:
            return self._collection.count()
        return len(self._collection.get(where={"owner_id": owner_id}, include=[])["ids"])

    async def close(self) -> None:
        """Clean up resources."""
        # ChromaDB PersistentClient handles cleanup automatically
        self._client = None
        self._collection = None
        logger.info("ChromaDB connection closed")
