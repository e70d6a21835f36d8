"""
Memory Service - the process-wide state object.

Wires the embedding cache, memory store, conversation windows and the
background pipeline together and exposes one method per user-facing
operation. Provider and store failures are logged here and turned into
short user-facing messages.
"""

import logging
import re
from typing import Optional

from .config import Config, config as default_config, owner_context
from .conversation import ContextManager, ConversationHistory
from .errors import CompletionUnavailable, SemanticMemoryError, ValidationError
from .llm import LLMProvider, complete, create_llm_providers
from .memory import (
    EXPLICIT,
    ChromaMemoryStore,
    EmbeddingCache,
    MemoryCoordinator,
    MemoryRetriever,
    MemoryStore,
    create_embedding_service,
)
from .memory.base import MEMORY_CATEGORIES
from .pipeline import BackgroundPipeline, ConversationSummarizer, FactExtractor
from .text import MAX_MESSAGE_LENGTH, split_message

logger = logging.getLogger("semantic_memory.service")

MEMORY_COMMAND = re.compile(r"^(?:can you\s+)?remember\s+(.*)", re.IGNORECASE | re.DOTALL)

REMEMBERED = "Got it! I'll remember that. :)"
REMEMBERED_MERGED = "Got it! I've updated my memory. :)"
NOTHING_TO_REMEMBER = "Please tell me what you'd like me to remember."
MEMORY_ERROR = "Sorry, an error occurred processing your memory command."
NOTHING_RECALLED = "I don't remember anything about that. Maybe you haven't told me, or I forgot!"
RECALL_ERROR = "Sorry, there was an error recalling your memories."
REPLY_ERROR = "Sorry, an error occurred processing your message."
SETTINGS_ERROR = "Sorry, an error occurred updating your settings."


class MemoryService:
    """
    Chat-facing facade over the semantic memory subsystem.

    Call initialize() before use and close() at shutdown.
    """

    def __init__(
        self,
        context: ContextManager,
        coordinator: MemoryCoordinator,
        retriever: MemoryRetriever,
        llm: LLMProvider,
        pipeline: BackgroundPipeline,
        reply_max_tokens: int = 3000,
        llm_timeout: Optional[float] = None,
        max_message_length: int = MAX_MESSAGE_LENGTH,
    ):
        self.context = context
        self.coordinator = coordinator
        self.retriever = retriever
        self.llm = llm
        self.pipeline = pipeline
        self.reply_max_tokens = reply_max_tokens
        self.llm_timeout = llm_timeout
        self.max_message_length = max_message_length
        self._initialized = False

    @property
    def store(self) -> MemoryStore:
        return self.coordinator.store

    async def initialize(self) -> None:
        """Open the memory store."""
        await self.store.initialize()
        self._initialized = True
        logger.info("MemoryService initialized")

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("MemoryService not initialized. Call initialize() first.")

    async def close(self) -> None:
        """Finish background work and release the store."""
        await self.pipeline.shutdown()
        await self.store.close()
        self._initialized = False
        logger.info("MemoryService closed")

    async def handle_message(self, owner_id: str, text: str) -> list[str]:
        """
        Process one chat message and return the reply as sendable chunks.

        "remember ..." messages are stored as explicit memories instead of
        being sent to the LLM.
        """
        self._ensure_initialized()
        owner_context.set(owner_id)

        text = (text or "").strip()
        if not text:
            raise ValidationError("Message cannot be empty")

        match = MEMORY_COMMAND.match(text)
        if match:
            return [await self.remember(owner_id, match.group(1))]

        async with self.context.lock(owner_id):
            try:
                base_prompt = self.context.base_prompt(owner_id)
                memory_context = await self.retriever.build_memory_context(owner_id, text)
                combined = f"{base_prompt}\n\n{memory_context}" if memory_context else base_prompt
                self.context.set_system_prompt(owner_id, combined)

                window = self.context.append_turn(owner_id, "user", text)
            except SemanticMemoryError as e:
                logger.error(f"Could not update conversation window: {e}")
                return [REPLY_ERROR]

            try:
                reply = await complete(
                    self.llm,
                    messages=window,
                    max_tokens=self.reply_max_tokens,
                    timeout=self.llm_timeout,
                )
            except CompletionUnavailable as e:
                logger.error(f"Reply generation failed: {e}")
                return [REPLY_ERROR]

            if not reply.strip():
                logger.warning("LLM returned an empty reply")
                return [REPLY_ERROR]

            try:
                self.context.append_turn(owner_id, "assistant", reply)
            except SemanticMemoryError as e:
                logger.error(f"Could not save reply to conversation window: {e}")
                return [REPLY_ERROR]
            self.pipeline.maybe_trigger(owner_id, self.context.get_window(owner_id))

        return split_message(reply, self.max_message_length)

    async def remember(self, owner_id: str, text: str) -> str:
        """Store an explicit memory and report whether it merged."""
        self._ensure_initialized()
        owner_context.set(owner_id)

        try:
            result = await self.coordinator.upsert_memory(
                owner_id,
                text,
                memory_type=EXPLICIT,
                source="memory_command",
            )
        except ValidationError:
            return NOTHING_TO_REMEMBER
        except SemanticMemoryError as e:
            logger.error(f"remember failed: {e}")
            return MEMORY_ERROR

        return REMEMBERED_MERGED if result.merged else REMEMBERED

    async def recall(self, owner_id: str, query: str, category: Optional[str] = None) -> str:
        """Look up memories relevant to a query, optionally within one category."""
        self._ensure_initialized()
        owner_context.set(owner_id)

        if category and category not in MEMORY_CATEGORIES:
            return f"Unknown category '{category}'. Choose one of: {', '.join(MEMORY_CATEGORIES)}."

        try:
            memories = await self.retriever.retrieve(owner_id, query, category=category or None)
        except ValidationError:
            return "Please tell me what you'd like me to recall."
        except SemanticMemoryError as e:
            logger.error(f"recall failed: {e}")
            return RECALL_ERROR

        if not memories:
            return NOTHING_RECALLED

        lines = [f'Here\'s what I remember about "{query.strip()}":', ""]
        lines.extend(f"- {memory}" for memory in memories)
        return "\n".join(lines)

    async def set_prompt(self, owner_id: str, text: Optional[str]) -> str:
        """Set or (with None/empty) reset the owner's custom prompt."""
        owner_context.set(owner_id)
        async with self.context.lock(owner_id):
            try:
                self.context.set_dynamic_prompt(owner_id, text)
            except ValidationError:
                return "Your prompt is too long! Please keep it under 500 characters."
            except SemanticMemoryError as e:
                logger.error(f"set_prompt failed: {e}")
                return SETTINGS_ERROR

        if not text or not text.strip():
            return "Your prompt has been reset to the default!"
        return "Your custom prompt has been set! I will use this when chatting with you."

    async def set_context_length(self, owner_id: str, length: int) -> str:
        """Change how many messages the owner's window keeps."""
        owner_context.set(owner_id)
        async with self.context.lock(owner_id):
            try:
                self.context.set_context_length(owner_id, length)
            except ValidationError:
                return "Context length must be between 2 and 20."
            except SemanticMemoryError as e:
                logger.error(f"set_context_length failed: {e}")
                return SETTINGS_ERROR
        return f"Context length set to {length}."

    async def reset_conversation(self, owner_id: str) -> str:
        """Forget the current conversation window (memories are kept)."""
        owner_context.set(owner_id)
        async with self.context.lock(owner_id):
            try:
                self.context.reset(owner_id)
            except SemanticMemoryError as e:
                logger.error(f"reset_conversation failed: {e}")
                return SETTINGS_ERROR
        return "Our conversation has been reset."

    async def clear_memories(self, owner_id: str) -> str:
        """Delete every memory, the custom prompt and the conversation window."""
        self._ensure_initialized()
        owner_context.set(owner_id)

        async with self.context.lock(owner_id):
            try:
                await self.coordinator.clear_memories(owner_id)
                self.context.set_dynamic_prompt(owner_id, None)
                self.context.reset(owner_id)
            except SemanticMemoryError as e:
                logger.error(f"clear_memories failed: {e}")
                return MEMORY_ERROR

        return "All your memories have been cleared!"


async def create_memory_service(cfg: Optional[Config] = None) -> MemoryService:
    """
    Factory function to create an initialized MemoryService from configuration.

    Args:
        cfg: Configuration to use (defaults to the global config)

    Returns:
        Initialized MemoryService
    """
    cfg = cfg or default_config

    embedding_service = create_embedding_service(
        provider=cfg.memory.embedding_provider,
        api_key=cfg.openai.api_key,
        model=cfg.memory.openai_embedding_model if cfg.memory.embedding_provider == "openai" else "",
        dimensions=cfg.memory.embedding_dimensions,
    )
    embeddings = EmbeddingCache(
        embedding_service,
        max_entries=cfg.memory.embedding_cache_size,
        timeout_seconds=cfg.memory.embedding_timeout_seconds,
    )

    if cfg.memory.store_type == "chroma":
        store: MemoryStore = ChromaMemoryStore(
            persist_directory=cfg.memory.chroma_path,
            embedding_dimension=embedding_service.dimension,
        )
    elif cfg.memory.store_type == "pgvector":
        if not cfg.memory.postgres_url:
            raise ValueError("postgres_url required for pgvector store")
        from .memory.pgvector_store import PgVectorMemoryStore
        store = PgVectorMemoryStore(
            connection_string=cfg.memory.postgres_url,
            embedding_dimension=embedding_service.dimension,
        )
    else:
        raise ValueError(f"Unknown store type: {cfg.memory.store_type}")

    history = ConversationHistory(db_path=cfg.conversation.history_db_path)
    context = ContextManager(
        history,
        system_prompt=cfg.conversation.system_prompt,
        default_context_length=cfg.conversation.context_length,
    )

    coordinator = MemoryCoordinator(
        store,
        embeddings,
        history=history,
        merge_threshold=cfg.memory.merge_threshold,
    )
    retriever = MemoryRetriever(
        store,
        embeddings,
        history=history,
        relevance_threshold=cfg.memory.relevance_threshold,
        default_limit=cfg.memory.recall_limit,
    )

    llm, summary_llm = create_llm_providers(cfg)

    pipeline = BackgroundPipeline(
        summarizer=ConversationSummarizer(
            summary_llm,
            assistant_name=cfg.conversation.assistant_name,
            chunk_size=cfg.summary.chunk_size,
            max_tokens=cfg.summary.summary_max_tokens,
            timeout=cfg.llm.timeout_seconds,
        ),
        extractor=FactExtractor(
            summary_llm,
            coordinator,
            max_tokens=cfg.summary.extraction_max_tokens,
            confidence=cfg.summary.intuited_confidence,
            timeout=cfg.llm.timeout_seconds,
        ),
        message_threshold=cfg.summary.message_threshold,
        inactivity_hours=cfg.summary.inactivity_hours,
    )

    service = MemoryService(
        context=context,
        coordinator=coordinator,
        retriever=retriever,
        llm=llm,
        pipeline=pipeline,
        reply_max_tokens=cfg.llm.reply_max_tokens,
        llm_timeout=cfg.llm.timeout_seconds,
        max_message_length=cfg.conversation.max_message_length,
    )
    await service.initialize()
    return service
