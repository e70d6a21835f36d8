"""
Conversation State Storage.

SQLite-backed persistence for each owner's rolling conversation window,
their per-owner settings and denormalized memory blob, plus an
append-only log of every turn.
"""

import functools
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..errors import StoreUnavailable

logger = logging.getLogger("semantic_memory.conversation.history")

DEFAULT_CONTEXT_LENGTH = 20


def history_operation(operation: str):
    """Decorator for ConversationHistory methods that maps SQLite errors to StoreUnavailable."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except sqlite3.Error as e:
                logger.error(f"ConversationHistory.{operation} failed: {e}")
                raise StoreUnavailable(f"Conversation history {operation} failed") from e
        return wrapper
    return decorator


@dataclass
class ConversationState:
    """The live conversation window and settings for one owner."""
    owner_id: str
    messages: list[dict[str, str]] = field(default_factory=list)
    context_length: int = DEFAULT_CONTEXT_LENGTH
    dynamic_prompt: str = ""
    memory_blob: str = ""

    def copy(self) -> "ConversationState":
        return ConversationState(
            owner_id=self.owner_id,
            messages=[dict(m) for m in self.messages],
            context_length=self.context_length,
            dynamic_prompt=self.dynamic_prompt,
            memory_blob=self.memory_blob,
        )


@dataclass
class LogEntry:
    """One turn from the append-only conversation log."""
    id: int
    owner_id: str
    role: str
    content: str
    created_at: datetime


class ConversationHistory:
    """
    SQLite-backed storage for conversation state.

    The memory blob is written only through set_memory_blob so that saving
    a window never clobbers a blob updated by the memory coordinator.
    """

    def __init__(self, db_path: str = "conversation_history.db"):
        self.db_path = db_path
        self._init_db()
        logger.info(f"ConversationHistory initialized with database: {db_path}")

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversation_state (
                    owner_id TEXT PRIMARY KEY,
                    messages TEXT NOT NULL DEFAULT '[]',
                    context_length INTEGER NOT NULL DEFAULT 20,
                    dynamic_prompt TEXT NOT NULL DEFAULT '',
                    memory_blob TEXT NOT NULL DEFAULT '',
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversation_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_conversation_log_owner
                ON conversation_log(owner_id, id)
            """)

            conn.commit()

    @history_operation("load_state")
    def load_state(self, owner_id: str) -> Optional[ConversationState]:
        """Load an owner's saved state, or None if they have never chatted."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM conversation_state WHERE owner_id = ?",
                (owner_id,)
            ).fetchone()

        if row is None:
            return None

        return ConversationState(
            owner_id=row['owner_id'],
            messages=json.loads(row['messages']),
            context_length=row['context_length'],
            dynamic_prompt=row['dynamic_prompt'],
            memory_blob=row['memory_blob'],
        )

    @history_operation("save_state")
    def save_state(self, state: ConversationState) -> None:
        """Persist the window and settings (not the memory blob)."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO conversation_state
                (owner_id, messages, context_length, dynamic_prompt, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(owner_id) DO UPDATE SET
                    messages = excluded.messages,
                    context_length = excluded.context_length,
                    dynamic_prompt = excluded.dynamic_prompt,
                    updated_at = excluded.updated_at
                """,
                (
                    state.owner_id,
                    json.dumps(state.messages),
                    state.context_length,
                    state.dynamic_prompt,
                    datetime.now().isoformat(),
                )
            )
            conn.commit()

    @history_operation("get_memory_blob")
    def get_memory_blob(self, owner_id: str) -> str:
        """Get the owner's denormalized memory text ("" if none)."""
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT memory_blob FROM conversation_state WHERE owner_id = ?",
                (owner_id,)
            ).fetchone()
        return row[0] if row else ""

    @history_operation("set_memory_blob")
    def set_memory_blob(self, owner_id: str, blob: str) -> None:
        """Replace the owner's memory blob, creating their row if needed."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO conversation_state (owner_id, memory_blob, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(owner_id) DO UPDATE SET
                    memory_blob = excluded.memory_blob,
                    updated_at = excluded.updated_at
                """,
                (owner_id, blob, datetime.now().isoformat())
            )
            conn.commit()

    @history_operation("append_log")
    def append_log(self, owner_id: str, role: str, content: str) -> int:
        """Append a turn to the log. Returns the log entry ID."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO conversation_log (owner_id, role, content, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (owner_id, role, content, datetime.now().isoformat())
            )
            conn.commit()
            return cursor.lastrowid

    @history_operation("get_log")
    def get_log(self, owner_id: str, limit: Optional[int] = None) -> list[LogEntry]:
        """Get logged turns for an owner, oldest first (the newest `limit` if given)."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            if limit is None:
                rows = conn.execute(
                    "SELECT * FROM conversation_log WHERE owner_id = ? ORDER BY id",
                    (owner_id,)
                ).fetchall()
            else:
                rows = conn.execute(
                    """
                    SELECT * FROM (
                        SELECT * FROM conversation_log WHERE owner_id = ?
                        ORDER BY id DESC LIMIT ?
                    ) ORDER BY id
                    """,
                    (owner_id, limit)
                ).fetchall()

        return [
            LogEntry(
                id=row['id'],
                owner_id=row['owner_id'],
                role=row['role'],
                content=row['content'],
                created_at=datetime.fromisoformat(row['created_at']),
            )
            for row in rows
        ]
