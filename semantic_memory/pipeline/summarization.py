"""
Conversation Summarization.

Short windows are summarized in one completion. Longer windows are
split into fixed-size chunks (each re-prefixed with the system message),
summarized chunk by chunk, and the chunk summaries combined in one final
completion.
"""

import logging
from typing import Optional

from ..llm import LLMProvider, complete

logger = logging.getLogger("semantic_memory.pipeline.summarization")

SUMMARY_SYSTEM_PROMPT = (
    "You are a summarization assistant that produces very detailed summaries "
    "of conversations between a user and an AI assistant."
)

COMBINE_SYSTEM_PROMPT = (
    "You are a summarization assistant that produces comprehensive and detailed summaries."
)

SUMMARY_INSTRUCTIONS = """Focus on what the conversation reveals about the user:
1. Explicit facts the user states about themselves (name, age, location, job, family, pets, hobbies).
2. Implicit preferences inferred from sentiment and engagement: topics the user reacts to warmly or negatively, things they ask about in detail or return to.
3. Multi-step or ongoing projects the user is working on, and where they currently stand.
Include details even if they seem trivial.
The assistant in this conversation is named "{assistant_name}". That is the assistant's name, never the user's name. Do not attribute it to the user."""


def format_transcript(messages: list[dict]) -> str:
    """Render non-system messages as 'User: ...' / 'Assistant: ...' lines."""
    lines = []
    for message in messages:
        role = message.get("role")
        if role == "system":
            continue
        speaker = "User" if role == "user" else "Assistant"
        lines.append(f"{speaker}: {message.get('content', '')}")
    return "\n".join(lines)


class ConversationSummarizer:
    """Turns a conversation window into a detailed summary."""

    def __init__(
        self,
        llm: LLMProvider,
        assistant_name: str = "bri",
        chunk_size: int = 10,
        max_tokens: int = 1500,
        timeout: Optional[float] = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.llm = llm
        self.assistant_name = assistant_name
        self.chunk_size = chunk_size
        self.max_tokens = max_tokens
        self.timeout = timeout

    @property
    def instructions(self) -> str:
        return SUMMARY_INSTRUCTIONS.format(assistant_name=self.assistant_name)

    @staticmethod
    def _split_system(messages: list[dict]) -> tuple[Optional[dict], list[dict]]:
        if messages and messages[0].get("role") == "system":
            return messages[0], list(messages[1:])
        return None, list(messages)

    async def summarize(self, messages: list[dict]) -> str:
        """
        Summarize a window, choosing direct or hierarchical by its length.

        Raises:
            CompletionUnavailable: If any completion fails
        """
        system, entries = self._split_system(messages)
        if not entries:
            return ""

        if len(entries) <= self.chunk_size:
            return await self.direct_summarize(messages)
        return await self.hierarchical_summarize(messages)

    async def direct_summarize(self, messages: list[dict]) -> str:
        """One completion over the whole window."""
        _, entries = self._split_system(messages)
        prompt = (
            "Please provide a detailed summary of the conversation below.\n\n"
            f"{self.instructions}\n\n"
            f"Conversation metadata: total messages: {len(messages)}.\n\n"
            f"{format_transcript(entries)}"
        )

        summary = await complete(
            self.llm,
            messages=[
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        return summary.strip()

    async def hierarchical_summarize(self, messages: list[dict]) -> str:
        """Summarize chunk by chunk, then combine the chunk summaries."""
        system, entries = self._split_system(messages)
        prefix = [system] if system else []

        chunks = [
            entries[i:i + self.chunk_size]
            for i in range(0, len(entries), self.chunk_size)
        ]
        logger.info(f"Hierarchical summarization of {len(entries)} messages in {len(chunks)} chunks")

        chunk_summaries = []
        for chunk in chunks:
            chunk_summary = await self.direct_summarize(prefix + chunk)
            if chunk_summary:
                chunk_summaries.append(chunk_summary)

        combined = "\n".join(chunk_summaries)
        prompt = (
            "Combine the following chunk summaries into an overall detailed summary "
            "that captures every detail from the conversation, including any personal information.\n\n"
            f"{self.instructions}\n\n"
            f"{combined}"
        )

        summary = await complete(
            self.llm,
            messages=[
                {"role": "system", "content": COMBINE_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        return summary.strip()
