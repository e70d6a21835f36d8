"""
Conversation Context Manager.

Keeps each owner's rolling window: a pinned system message followed by
the newest turns, bounded by the owner's context length. Every turn is
also written to the append-only log and the window is persisted after
each change.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Optional

from ..errors import ValidationError
from .history import DEFAULT_CONTEXT_LENGTH, ConversationHistory, ConversationState

logger = logging.getLogger("semantic_memory.conversation.context")

MIN_CONTEXT_LENGTH = 2
MAX_CONTEXT_LENGTH = 20
MAX_DYNAMIC_PROMPT_LENGTH = 500

TURN_ROLES = ("user", "assistant")


class ContextManager:
    """
    Per-owner conversation windows backed by ConversationHistory.

    Mutating methods are synchronous, so each one runs atomically on the
    event loop. Callers that await between mutations (a chat turn waiting
    on the LLM) hold lock(owner_id) for the whole sequence.
    """

    def __init__(
        self,
        history: ConversationHistory,
        system_prompt: str,
        default_context_length: int = DEFAULT_CONTEXT_LENGTH,
    ):
        self.history = history
        self.system_prompt = system_prompt
        self.default_context_length = default_context_length
        self._states: dict[str, ConversationState] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock(self, owner_id: str) -> asyncio.Lock:
        """The lock serializing an owner's turns."""
        return self._locks[owner_id]

    def _state(self, owner_id: str) -> ConversationState:
        state = self._states.get(owner_id)
        if state is not None:
            return state

        state = self.history.load_state(owner_id)
        if state is None:
            state = ConversationState(
                owner_id=owner_id,
                context_length=self.default_context_length,
            )
            logger.info("Created conversation state")
        elif not state.messages:
            # Row created by a memory write before the owner ever chatted
            state.context_length = self.default_context_length
        if not state.messages or state.messages[0].get("role") != "system":
            state.messages.insert(0, {"role": "system", "content": self._base_prompt(state)})

        self._states[owner_id] = state
        return state

    def _base_prompt(self, state: ConversationState) -> str:
        if state.dynamic_prompt:
            return f"{self.system_prompt}\n{state.dynamic_prompt}"
        return self.system_prompt

    @staticmethod
    def _truncate(state: ConversationState) -> None:
        """Keep the system message plus the newest context_length - 1 turns."""
        limit = state.context_length
        if len(state.messages) > limit:
            state.messages = [state.messages[0]] + state.messages[-(limit - 1):]

    def base_prompt(self, owner_id: str) -> str:
        """Core prompt plus the owner's dynamic prompt, without memories."""
        return self._base_prompt(self._state(owner_id))

    def append_turn(self, owner_id: str, role: str, content: str) -> list[dict[str, str]]:
        """
        Append a user or assistant turn and truncate the window.

        Returns:
            The window after the append

        Raises:
            ValidationError: If role is not "user" or "assistant"
        """
        if role not in TURN_ROLES:
            raise ValidationError(f"Cannot append a turn with role '{role}'")

        state = self._state(owner_id)
        state.messages.append({"role": role, "content": content})
        self._truncate(state)

        self.history.append_log(owner_id, role, content)
        self.history.save_state(state)
        return self.get_window(owner_id)

    def get_window(self, owner_id: str) -> list[dict[str, str]]:
        """Copy of the owner's window, system message first."""
        return [dict(m) for m in self._state(owner_id).messages]

    def set_system_prompt(self, owner_id: str, prompt: str) -> None:
        """Rewrite the pinned system message in place."""
        state = self._state(owner_id)
        state.messages[0] = {"role": "system", "content": prompt}
        self.history.save_state(state)

    def reset(self, owner_id: str) -> None:
        """Clear the window back to just the system message."""
        state = self._state(owner_id)
        state.messages = [{"role": "system", "content": self._base_prompt(state)}]
        self.history.save_state(state)
        logger.info("Conversation reset")

    def set_context_length(self, owner_id: str, length: int) -> None:
        """
        Change how many messages (system included) the window keeps.

        Raises:
            ValidationError: If length is outside 2..20
        """
        if not isinstance(length, int) or isinstance(length, bool) \
                or not MIN_CONTEXT_LENGTH <= length <= MAX_CONTEXT_LENGTH:
            raise ValidationError(
                f"Context length must be between {MIN_CONTEXT_LENGTH} and {MAX_CONTEXT_LENGTH}"
            )

        state = self._state(owner_id)
        state.context_length = length
        self._truncate(state)
        self.history.save_state(state)
        logger.info(f"Context length set to {length}")

    def set_dynamic_prompt(self, owner_id: str, text: Optional[str]) -> None:
        """
        Set the owner's extra prompt text, or clear it with None/"".

        Raises:
            ValidationError: If text is longer than 500 characters
        """
        text = (text or "").strip()
        if len(text) > MAX_DYNAMIC_PROMPT_LENGTH:
            raise ValidationError(
                f"Prompt must be at most {MAX_DYNAMIC_PROMPT_LENGTH} characters"
            )

        state = self._state(owner_id)
        state.dynamic_prompt = text
        state.messages[0] = {"role": "system", "content": self._base_prompt(state)}
        self.history.save_state(state)
        logger.info("Dynamic prompt reset" if not text else "Dynamic prompt updated")

    def snapshot(self, owner_id: str) -> ConversationState:
        """Independent copy of the owner's state for background processing."""
        return self._state(owner_id).copy()
