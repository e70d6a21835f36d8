"""
Fact Extraction.

Pulls discrete facts about the user out of a conversation summary and
feeds them to the memory coordinator as intuited memories.
"""

import json
import logging
import re
from typing import Optional

from ..llm import LLMProvider, complete
from ..memory.base import INTUITED
from ..memory.coordinator import MemoryCoordinator, UpsertResult
from ..similarity import string_similarity
from ..text import strip_code_block

logger = logging.getLogger("semantic_memory.pipeline.extraction")

EXTRACTION_SYSTEM_PROMPT = "You extract specific personal facts about users. Be precise and factual."

EXTRACTION_PROMPT = """Extract ONLY concrete facts about the user from the conversation summary below.
Focus specifically on:
- Name, age, location (city, country)
- Job title, workplace, industry
- Hobbies, interests, skills
- Preferences (foods, colors, music, movies, books)
- Family members, pets
- Important dates (birthdays, anniversaries)
- Ongoing projects the user is working on

DO NOT extract:
- Opinions about general topics
- Temporary states (feeling tired today)
- Assistant responses or actions
- Questions the user asked
- Any information that isn't a clear fact about the user

Output ONLY a JSON array of simple, clear statements in the format:
["User's name is John", "User lives in Seattle", "User works as a software engineer"]

If no concrete personal facts are found, output an empty array: []
-----
SUMMARY: {summary}"""

DUPLICATE_THRESHOLD = 0.85

_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")
_WHITESPACE = re.compile(r"\s{2,}")


def comparison_form(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace for duplicate checks."""
    return _WHITESPACE.sub(" ", _PUNCTUATION.sub("", text.lower())).strip()


def parse_fact_list(content: str) -> list[str]:
    """
    Parse an LLM reply that should be a JSON array of strings.

    Anything unparsable or not a list yields []; non-string items are dropped.
    """
    content = strip_code_block(content or "")
    if not content:
        return []

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing extraction JSON: {e}")
        return []

    if not isinstance(parsed, list):
        logger.warning(f"Extraction returned non-list: {content[:100]}")
        return []

    return [item.strip() for item in parsed if isinstance(item, str) and item.strip()]


class FactExtractor:
    """Extracts facts from summaries and stores them as intuited memories."""

    def __init__(
        self,
        llm: LLMProvider,
        coordinator: MemoryCoordinator,
        max_tokens: int = 1000,
        confidence: float = 0.8,
        duplicate_threshold: float = DUPLICATE_THRESHOLD,
        timeout: Optional[float] = None,
    ):
        self.llm = llm
        self.coordinator = coordinator
        self.max_tokens = max_tokens
        self.confidence = confidence
        self.duplicate_threshold = duplicate_threshold
        self.timeout = timeout

    async def extract_facts(self, summary: str) -> list[str]:
        """
        Ask the LLM for the facts in a summary.

        Raises:
            CompletionUnavailable: If the completion fails
        """
        if not summary or not summary.strip():
            return []

        content = await complete(
            self.llm,
            messages=[
                {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                {"role": "user", "content": EXTRACTION_PROMPT.format(summary=summary)},
            ],
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        facts = parse_fact_list(content)
        logger.info(f"Extracted {len(facts)} facts from summary")
        return facts

    async def deduplicate(self, owner_id: str, facts: list[str]) -> list[str]:
        """Drop facts that fuzzily repeat an existing intuited memory or each other."""
        existing = await self.coordinator.store.get_all(owner_id, memory_type=INTUITED)
        seen = [comparison_form(record.text) for record in existing]

        unique = []
        for fact in facts:
            form = comparison_form(fact)
            if any(string_similarity(form, other) >= self.duplicate_threshold for other in seen):
                logger.debug(f"Skipping duplicate fact: {fact}")
                continue
            seen.append(form)
            unique.append(fact)

        if len(unique) < len(facts):
            logger.info(f"Skipped {len(facts) - len(unique)} duplicate facts")
        return unique

    async def ingest(self, owner_id: str, summary: str) -> list[UpsertResult]:
        """Extract, deduplicate and upsert the facts in a summary."""
        facts = await self.extract_facts(summary)
        if not facts:
            logger.info("No new facts extracted")
            return []

        facts = await self.deduplicate(owner_id, facts)

        results = []
        for fact in facts:
            results.append(await self.coordinator.upsert_memory(
                owner_id,
                fact,
                memory_type=INTUITED,
                confidence=self.confidence,
                source="extraction",
            ))

        merged = sum(1 for r in results if r.merged)
        logger.info(f"Stored {len(results)} intuited memories ({merged} merged)")
        return results

    async def backfill(self, owner_id: str) -> int:
        """Embed (and re-merge) the owner's memories stored while embeddings were down."""
        return await self.coordinator.backfill_embeddings(owner_id)
