"""
Background Summarization Scheduler.

Decides when an owner's conversation is due for summarization and runs
summarize -> extract as background tasks that never block or fail the
reply path. At most one run per owner is active; triggers arriving
meanwhile collapse into a single pending snapshot.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..config import owner_context
from .extraction import FactExtractor
from .summarization import ConversationSummarizer

logger = logging.getLogger("semantic_memory.pipeline.scheduler")


@dataclass
class SummaryCheckpoint:
    """Progress toward the next summarization for one owner (process lifetime only)."""
    messages_since_last_summary: int = 0
    last_summary_at: datetime = datetime.min


class BackgroundPipeline:
    """
    Owns the per-owner summarization triggers and background tasks.

    Lifecycle: create, call record_turn/submit while serving, then
    shutdown() to drain or cancel outstanding runs.
    """

    def __init__(
        self,
        summarizer: ConversationSummarizer,
        extractor: FactExtractor,
        message_threshold: int = 3,
        inactivity_hours: float = 8,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.summarizer = summarizer
        self.extractor = extractor
        self.message_threshold = message_threshold
        self.inactivity = timedelta(hours=inactivity_hours)
        self.clock = clock

        self.checkpoints: dict[str, SummaryCheckpoint] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._pending: dict[str, list[dict]] = {}
        self._closed = False

        self.runs_completed = 0
        self.runs_failed = 0

    def checkpoint(self, owner_id: str) -> SummaryCheckpoint:
        """An owner's checkpoint. New owners start never-summarized, so their first turn is due."""
        if owner_id not in self.checkpoints:
            self.checkpoints[owner_id] = SummaryCheckpoint()
        return self.checkpoints[owner_id]

    def record_turn(self, owner_id: str) -> bool:
        """
        Count a user turn and report whether summarization is due.

        When it is, the checkpoint is reset to (0, now) right away so
        turns arriving before the run finishes do not trigger again.
        """
        cp = self.checkpoint(owner_id)
        cp.messages_since_last_summary += 1
        now = self.clock()

        due = (
            cp.messages_since_last_summary >= self.message_threshold
            or now - cp.last_summary_at > self.inactivity
        )
        if due:
            logger.info(
                f"Triggering summarization after {cp.messages_since_last_summary} messages"
            )
            cp.messages_since_last_summary = 0
            cp.last_summary_at = now
        return due

    def is_running(self, owner_id: str) -> bool:
        return owner_id in self._tasks

    def has_pending(self, owner_id: str) -> bool:
        return owner_id in self._pending

    def submit(self, owner_id: str, messages: list[dict]) -> None:
        """
        Schedule a run over a snapshot of the window.

        If a run is already active for the owner, the snapshot replaces any
        pending one and runs when the active run finishes.
        """
        if self._closed:
            logger.warning("Pipeline is shut down, dropping summarization request")
            return

        snapshot = [dict(m) for m in messages]
        if owner_id in self._tasks:
            if owner_id in self._pending:
                logger.debug("Replacing pending summarization snapshot")
            self._pending[owner_id] = snapshot
            return

        task = asyncio.create_task(self._worker(owner_id, snapshot))
        self._tasks[owner_id] = task

    def maybe_trigger(self, owner_id: str, messages: list[dict]) -> bool:
        """record_turn, then submit if summarization is due."""
        if self.record_turn(owner_id):
            self.submit(owner_id, messages)
            return True
        return False

    async def _worker(self, owner_id: str, snapshot: list[dict]) -> None:
        owner_context.set(owner_id)
        try:
            while snapshot is not None:
                await self._run(owner_id, snapshot)
                snapshot = self._pending.pop(owner_id, None)
        finally:
            self._tasks.pop(owner_id, None)

    async def _run(self, owner_id: str, messages: list[dict]) -> None:
        """One summarize -> extract pass. Errors are logged, never raised."""
        try:
            summary = await self.summarizer.summarize(messages)
            if not summary:
                logger.warning("Summarization produced no summary")
                self.runs_completed += 1
                return

            await self.extractor.ingest(owner_id, summary)
            await self.extractor.backfill(owner_id)
            self.runs_completed += 1
        except Exception as e:
            self.runs_failed += 1
            logger.error(f"Background summarization failed: {e}")

    async def drain(self) -> None:
        """Wait until every active and pending run has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self, cancel: bool = False) -> None:
        """
        Stop accepting work and finish (or cancel) outstanding runs.

        Args:
            cancel: Cancel active runs instead of waiting for them
        """
        self._closed = True
        if cancel:
            self._pending.clear()
            for task in self._tasks.values():
                task.cancel()
        await self.drain()
        logger.info(
            f"Pipeline shut down ({self.runs_completed} runs completed, {self.runs_failed} failed)"
        )
