"""
Memory Store Coordinator - decides merge vs insert for every write.

Each new fact is compared to the owner's single nearest memory. If it is
close enough, the old memory is overwritten with the newer text;
otherwise a new record is inserted. The owner's denormalized memory blob
(one fact per line) is kept in step with the store.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..errors import EmbeddingUnavailable, StoreUnavailable, ValidationError
from ..similarity import MERGE_THRESHOLD, should_merge
from .base import (
    DEFAULT_CONFIDENCE,
    EXPLICIT,
    MEMORY_TYPES,
    MemoryRecord,
    MemoryStore,
    MemoryType,
)
from .categories import categorize_memory
from .embeddings import EmbeddingCache

logger = logging.getLogger("semantic_memory.memory.coordinator")


@dataclass
class UpsertResult:
    """Outcome of a memory write."""
    merged: bool
    final_text: str
    record: MemoryRecord


def append_blob_line(blob: str, text: str) -> str:
    """Add a fact to the end of a memory blob."""
    return f"{blob}\n{text}" if blob else text


def replace_blob_line(blob: str, old_text: str, new_text: str) -> str:
    """Swap the line holding old_text for new_text, appending if it is missing."""
    lines = blob.split("\n") if blob else []
    if old_text in lines:
        lines[lines.index(old_text)] = new_text
        return "\n".join(lines)
    return append_blob_line(blob, new_text)


def remove_blob_line(blob: str, text: str) -> str:
    """Drop the first line holding text."""
    lines = blob.split("\n") if blob else []
    if text in lines:
        lines.remove(text)
    return "\n".join(lines)


class MemoryCoordinator:
    """
    Owns the merge-vs-insert decision for an owner's memories.

    Writes for the same owner are serialized so two concurrent facts
    cannot both miss each other and insert near-duplicates.
    """

    def __init__(
        self,
        store: MemoryStore,
        embeddings: EmbeddingCache,
        history=None,
        merge_threshold: float = MERGE_THRESHOLD,
    ):
        """
        Args:
            store: Persistent memory store
            embeddings: Shared embedding cache
            history: Optional ConversationHistory holding the memory blob
            merge_threshold: Nearest distance below which a write merges
        """
        self.store = store
        self.embeddings = embeddings
        self.history = history
        self.merge_threshold = merge_threshold
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _update_blob(self, owner_id: str, record_id: str, transform) -> None:
        """Apply transform to the blob after the store write for record_id."""
        if self.history is None:
            return
        try:
            blob = self.history.get_memory_blob(owner_id)
            self.history.set_memory_blob(owner_id, transform(blob))
        except StoreUnavailable as e:
            logger.error(f"Memory blob out of sync with store for record {record_id}: {e}")
            raise
        except Exception as e:
            logger.error(f"Memory blob out of sync with store for record {record_id}: {e}")
            raise StoreUnavailable("Memory blob update failed") from e

    async def upsert_memory(
        self,
        owner_id: str,
        text: str,
        memory_type: MemoryType = EXPLICIT,
        confidence: Optional[float] = None,
        source: str = "memory_command",
    ) -> UpsertResult:
        """
        Store a fact, merging it into the nearest existing memory if close enough.

        Args:
            owner_id: Whose memory this is
            text: The fact to remember
            memory_type: "explicit" (user asked) or "intuited" (extracted)
            confidence: Defaults to 1.0 for explicit and 0.8 for intuited
            source: Where the fact came from

        Returns:
            UpsertResult describing whether a merge happened

        Raises:
            ValidationError: If text is empty or memory_type is unknown
            StoreUnavailable: If the store fails
        """
        if not text or not text.strip():
            raise ValidationError("Memory text cannot be empty")
        if memory_type not in MEMORY_TYPES:
            raise ValidationError(f"Unknown memory type: {memory_type}")

        text = text.strip()
        if confidence is None:
            confidence = DEFAULT_CONFIDENCE[memory_type]

        async with self._locks[owner_id]:
            try:
                embedding = await self.embeddings.get_embedding(text)
            except EmbeddingUnavailable:
                logger.warning("Embedding unavailable, storing memory without embedding")
                record = await self._insert(owner_id, text, None, memory_type, confidence, source)
                return UpsertResult(merged=False, final_text=text, record=record)

            matches = await self.store.find_nearest(owner_id, embedding, k=1)
            nearest = matches[0] if matches else None

            if nearest is not None and should_merge(nearest.distance, self.merge_threshold):
                record = nearest.record
                old_text = record.text
                record.text = text
                record.embedding = embedding
                record.confidence = max(record.confidence, confidence)
                if memory_type == EXPLICIT:
                    record.memory_type = EXPLICIT
                record.updated_at = datetime.now()

                await self.store.upsert(record)
                self._update_blob(owner_id, record.id, lambda blob: replace_blob_line(blob, old_text, text))

                logger.info(
                    f"Merged {memory_type} memory into {record.id} (distance={nearest.distance:.3f})"
                )
                return UpsertResult(merged=True, final_text=text, record=record)

            record = await self._insert(owner_id, text, embedding, memory_type, confidence, source)
            return UpsertResult(merged=False, final_text=text, record=record)

    async def _insert(
        self,
        owner_id: str,
        text: str,
        embedding: Optional[list[float]],
        memory_type: MemoryType,
        confidence: float,
        source: str,
    ) -> MemoryRecord:
        record = MemoryRecord(
            owner_id=owner_id,
            text=text,
            embedding=embedding,
            memory_type=memory_type,
            category=categorize_memory(text),
            confidence=confidence,
            source=source,
        )
        await self.store.insert(record)
        self._update_blob(owner_id, record.id, lambda blob: append_blob_line(blob, text))
        logger.info(f"Inserted {memory_type} memory {record.id} ({record.category})")
        return record

    async def backfill_embeddings(self, owner_id: str) -> int:
        """
        Embed memories stored while the provider was down.

        Each backfilled record goes through the merge decision again; when it
        collides with an existing memory the newer text survives and the
        other record is deleted.

        Returns:
            Number of records processed (stops early if embeddings fail again)
        """
        async with self._locks[owner_id]:
            pending = [r for r in await self.store.get_all(owner_id) if not r.has_embedding]
            if not pending:
                return 0

            processed = 0
            for record in reversed(pending):  # oldest first
                try:
                    embedding = await self.embeddings.get_embedding(record.text)
                except EmbeddingUnavailable:
                    logger.warning(f"Backfill stopped after {processed} records, embeddings unavailable")
                    break

                matches = await self.store.find_nearest(owner_id, embedding, k=1)
                nearest = matches[0] if matches else None

                if nearest is not None and should_merge(nearest.distance, self.merge_threshold):
                    survivor = nearest.record
                    if record.updated_at >= survivor.updated_at:
                        dropped_text = survivor.text
                        survivor.text = record.text
                        survivor.embedding = embedding
                        survivor.updated_at = record.updated_at
                    else:
                        dropped_text = record.text
                    survivor.confidence = max(survivor.confidence, record.confidence)
                    if record.memory_type == EXPLICIT:
                        survivor.memory_type = EXPLICIT

                    await self.store.upsert(survivor)
                    await self.store.delete(record.id)
                    self._update_blob(owner_id, survivor.id, lambda blob: remove_blob_line(blob, dropped_text))
                    logger.info(f"Backfill merged {record.id} into {survivor.id}")
                else:
                    record.embedding = embedding
                    await self.store.upsert(record)

                processed += 1

            logger.info(f"Backfilled {processed}/{len(pending)} memories")
            return processed

    async def clear_memories(self, owner_id: str) -> int:
        """Delete all of an owner's memories and blank their blob."""
        async with self._locks[owner_id]:
            deleted = await self.store.delete_all(owner_id)
            if self.history is not None:
                self.history.set_memory_blob(owner_id, "")
            logger.info(f"Cleared {deleted} memories")
            return deleted
