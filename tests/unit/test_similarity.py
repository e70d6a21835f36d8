"""
Unit tests for semantic_memory/similarity.py

Tests cosine similarity, threshold predicates and the fuzzy fallback ranking.
"""

import math

import pytest

from semantic_memory.similarity import (
    MERGE_THRESHOLD,
    RELEVANCE_THRESHOLD,
    cosine_distance,
    cosine_similarity,
    fuzzy_score,
    is_relevant,
    rank_fuzzy,
    should_merge,
    string_similarity,
)


class TestCosineSimilarity:
    """Tests for cosine_similarity() and cosine_distance()."""

    def test_identical_vectors(self):
        """Test identical vectors have similarity 1."""
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        """Test orthogonal vectors have similarity 0."""
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        """Test opposite vectors have similarity -1."""
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_vector_is_zero_not_nan(self):
        """Test a zero-norm vector gives 0.0 instead of NaN."""
        result = cosine_similarity([0.0, 0.0], [1.0, 1.0])
        assert result == 0.0
        assert not math.isnan(result)

    def test_empty_vectors(self):
        """Test empty vectors give 0.0."""
        assert cosine_similarity([], []) == 0.0

    def test_length_mismatch_raises(self):
        """Test vectors of different lengths are rejected."""
        with pytest.raises(ValueError):
            cosine_similarity([1.0, 2.0], [1.0])

    def test_symmetric(self):
        """Test similarity does not depend on argument order."""
        a, b = [0.3, 0.1, 0.9], [0.5, 0.7, 0.2]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_bounded(self):
        """Test similarity stays within [-1, 1]."""
        result = cosine_similarity([1e10, 3.0], [2e10, -1.0])
        assert -1.0 <= result <= 1.0 + 1e-9

    def test_distance_is_one_minus_similarity(self):
        """Test cosine_distance complements cosine_similarity."""
        a, b = [1.0, 2.0], [2.0, 1.0]
        assert cosine_distance(a, b) == pytest.approx(1.0 - cosine_similarity(a, b))


class TestThresholds:
    """Tests for should_merge() and is_relevant()."""

    def test_default_thresholds(self):
        """Test default threshold values."""
        assert MERGE_THRESHOLD == 0.5
        assert RELEVANCE_THRESHOLD == 0.6

    def test_merge_is_strict(self):
        """Test a distance exactly at the merge threshold does not merge."""
        assert should_merge(0.49) is True
        assert should_merge(0.5) is False
        assert should_merge(0.7) is False

    def test_relevance_is_strict(self):
        """Test a distance exactly at the relevance threshold is not relevant."""
        assert is_relevant(0.3) is True
        assert is_relevant(0.6) is False
        assert is_relevant(0.9) is False

    def test_custom_threshold(self):
        """Test thresholds can be overridden."""
        assert should_merge(0.2, threshold=0.1) is False
        assert is_relevant(0.7, threshold=0.8) is True


class TestStringSimilarity:
    """Tests for string_similarity()."""

    def test_identical(self):
        """Test identical strings are fully similar."""
        assert string_similarity("hiking", "hiking") == 1.0

    def test_empty(self):
        """Test empty string handling."""
        assert string_similarity("", "") == 1.0
        assert string_similarity("abc", "") == 0.0

    def test_spelling_variant(self):
        """Test near spellings score high."""
        assert string_similarity("colour", "color") > 0.85


class TestFuzzyScore:
    """Tests for fuzzy_score()."""

    def test_term_containment(self):
        """Test each contained query term scores a point."""
        score = fuzzy_score("cat", "User has a cat named Tom")
        # +1 containment, +0.5 token similarity, +3 exact match
        assert score.score == pytest.approx(4.5)

    def test_no_overlap(self):
        """Test unrelated text scores nothing."""
        score = fuzzy_score("guitar", "User lives in Paris")
        assert score.score == 0.0

    def test_exact_match_bonus(self):
        """Test the whole query appearing verbatim earns the bonus."""
        with_phrase = fuzzy_score("favorite color", "User's favorite color is blue")
        without_phrase = fuzzy_score("favorite color", "User's color, favorite is blue")
        assert with_phrase.score - without_phrase.score == pytest.approx(3.0)


class TestRankFuzzy:
    """Tests for rank_fuzzy()."""

    def test_ranks_best_first(self):
        """Test the strongest match comes first."""
        candidates = [
            "User lives in Seattle",
            "User's favorite color is blue",
            "User likes blue cheese",
        ]
        results = rank_fuzzy("favorite color", candidates, limit=5)
        assert results[0] == "User's favorite color is blue"

    def test_threshold_filters_weak_matches(self):
        """Test candidates below the term threshold are dropped."""
        results = rank_fuzzy("guitar lessons", ["User lives in Seattle"], limit=5)
        assert results == []

    def test_capped_at_three(self):
        """Test at most three results are returned."""
        candidates = [f"User has dog number {i}" for i in range(6)]
        assert len(rank_fuzzy("dog", candidates, limit=10)) == 3

    def test_limit_below_cap(self):
        """Test a smaller limit wins over the cap."""
        candidates = [f"User has dog number {i}" for i in range(6)]
        assert len(rank_fuzzy("dog", candidates, limit=2)) == 2

    def test_empty_query_or_limit(self):
        """Test degenerate inputs return nothing."""
        assert rank_fuzzy("", ["anything"], limit=3) == []
        assert rank_fuzzy("dog", ["User has a dog"], limit=0) == []
