"""
Text normalization for cache keys and fuzzy matching.

Lowercases, tokenizes on whitespace/punctuation and Porter-stems each
token so that "Loves hiking!" and "love hike" share an embedding cache
entry.
"""

import re
from functools import lru_cache

from nltk.stem import PorterStemmer

_TOKEN_RE = re.compile(r"[^\W_]+", re.UNICODE)
_stemmer = PorterStemmer()
_MAX_STEM_PASSES = 8


def tokenize(text: str) -> list[str]:
    """Split text into lowercase word tokens, dropping punctuation."""
    if not text:
        return []
    return _TOKEN_RE.findall(text.lower().strip())


@lru_cache(maxsize=50000)
def stem(token: str) -> str:
    """
    Stem a single token to a fixed point.

    Porter stemming is not idempotent for every word ("generalization"
    keeps shrinking on repeated passes), so we re-stem until the token
    stops changing. This is what makes normalize_text idempotent.
    """
    current = token
    for _ in range(_MAX_STEM_PASSES):
        stemmed = _stemmer.stem(current)
        if stemmed == current or not stemmed:
            return current
        current = stemmed
    return current


def normalize_text(text: str) -> str:
    """
    Canonicalize text: lowercase, trim, tokenize, stem, rejoin.

    Args:
        text: Raw user text

    Returns:
        Space-joined stemmed tokens (empty string for empty input)
    """
    return " ".join(stem(token) for token in tokenize(text))
