"""
Similarity scoring for memory decisions.

Vector similarity is used when embeddings are available. When they are
not (embedding provider down), memories are ranked with a fuzzy
token-overlap score instead.
"""

import logging
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Iterable, Sequence

import numpy as np

from .normalize import tokenize

logger = logging.getLogger("semantic_memory.similarity")

# Distance below this => the new text replaces the nearest memory
MERGE_THRESHOLD = 0.5
# Distance below this => the memory is relevant to a query
RELEVANCE_THRESHOLD = 0.6

# Fuzzy fallback scoring
FUZZY_TOKEN_THRESHOLD = 0.85
FUZZY_TOKEN_BONUS = 0.5
EXACT_MATCH_BONUS = 3.0
MIN_TERM_FRACTION = 0.25
FUZZY_TOP_N = 3


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector is empty or has zero norm, never NaN.

    Raises:
        ValueError: If the vectors have different lengths
    """
    if len(a) != len(b):
        raise ValueError(f"Vector length mismatch: {len(a)} != {len(b)}")
    if len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0 or not np.isfinite(norm):
        return 0.0

    result = float(np.dot(va, vb) / norm)
    if not np.isfinite(result):
        return 0.0
    return result


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine distance (1 - similarity), the metric both vector stores report."""
    return 1.0 - cosine_similarity(a, b)


def should_merge(distance: float, threshold: float = MERGE_THRESHOLD) -> bool:
    """Is the nearest memory close enough to be overwritten?"""
    return distance < threshold


def is_relevant(distance: float, threshold: float = RELEVANCE_THRESHOLD) -> bool:
    """Is a retrieved memory close enough to the query to be returned?"""
    return distance < threshold


def string_similarity(a: str, b: str) -> float:
    """Normalized edit-distance-like similarity in [0, 1]."""
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return SequenceMatcher(None, a, b).ratio()


@dataclass
class FuzzyScore:
    """Fuzzy match score of a candidate memory against a query."""
    text: str
    score: float
    best_similarity: float


def fuzzy_score(query: str, candidate: str) -> FuzzyScore:
    """
    Score a candidate memory against a query without embeddings.

    - +1 for every query term contained in the candidate
    - +0.5 for every (candidate token, query term) pair that is similar
      above FUZZY_TOKEN_THRESHOLD, catching spelling variations
    - +3 if the whole query appears verbatim in the candidate
    """
    candidate_lower = candidate.lower()
    query_terms = tokenize(query)
    candidate_terms = tokenize(candidate)

    score = 0.0
    for term in query_terms:
        if term in candidate_lower:
            score += 1

    best = 0.0
    for cand_term in candidate_terms:
        for term in query_terms:
            similarity = string_similarity(cand_term, term)
            if similarity > FUZZY_TOKEN_THRESHOLD:
                score += FUZZY_TOKEN_BONUS
            best = max(best, similarity)

    query_lower = query.lower().strip()
    if query_lower and query_lower in candidate_lower:
        score += EXACT_MATCH_BONUS

    return FuzzyScore(text=candidate, score=score, best_similarity=best)


def rank_fuzzy(query: str, candidates: Iterable[str], limit: int) -> list[str]:
    """
    Rank candidate texts for a query using the fuzzy fallback score.

    A candidate must reach at least 25% of the query terms (minimum 1
    point) to be kept. At most min(limit, FUZZY_TOP_N) texts are returned.
    """
    query_terms = tokenize(query)
    if not query_terms or limit <= 0:
        return []

    threshold = max(len(query_terms) * MIN_TERM_FRACTION, 1)
    scored = [fuzzy_score(query, text) for text in candidates if text and text.strip()]
    scored = [s for s in scored if s.score >= threshold]
    scored.sort(key=lambda s: (s.score, s.best_similarity), reverse=True)

    results = [s.text for s in scored[:min(limit, FUZZY_TOP_N)]]
    logger.debug(f"Fuzzy ranking kept {len(results)}/{len(scored)} candidates")
    return results
