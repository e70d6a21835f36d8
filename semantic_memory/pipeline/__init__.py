"""Background summarization and fact extraction."""

from .summarization import ConversationSummarizer
from .extraction import FactExtractor
from .scheduler import BackgroundPipeline, SummaryCheckpoint

__all__ = [
    "ConversationSummarizer",
    "FactExtractor",
    "BackgroundPipeline",
    "SummaryCheckpoint",
]
