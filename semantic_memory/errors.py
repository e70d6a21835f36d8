"""
Error taxonomy for the memory subsystem.

Provider and store failures are translated into these types at the
boundary so callers can choose between degrading (fuzzy fallback, raw
insert) and showing a generic failure message.
"""


class SemanticMemoryError(Exception):
    """Base class for all memory subsystem errors."""
    pass


class EmbeddingUnavailable(SemanticMemoryError):
    """The embedding provider failed or timed out."""
    pass


class CompletionUnavailable(SemanticMemoryError):
    """The completion provider failed or timed out."""
    pass


class StoreUnavailable(SemanticMemoryError):
    """A persistent store read or write failed."""
    pass


class ValidationError(SemanticMemoryError):
    """User input was rejected (empty query, prompt too long, ...)."""
    pass
