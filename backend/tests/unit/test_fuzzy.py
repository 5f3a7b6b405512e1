"""
Unit tests for fuzzy similarity scoring.

Only threshold behaviour is asserted; exact scores may change with the scorer.
"""
import pytest

from app.services.fuzzy import all_matches, best_match, normalize, similarity, token_set_ratio


class TestNormalize:
    """Unit tests for text normalization."""

    def test_lowercases_and_collapses_whitespace(self):
        assert normalize("  Budget   Review ") == "budget review"

    def test_none_is_empty(self):
        assert normalize(None) == ""


class TestSimilarity:
    """Unit tests for the similarity score."""

    def test_case_insensitive_equality_scores_100(self):
        assert similarity("Launch", "launch") == 100

    def test_empty_side_scores_zero(self):
        assert similarity("", "launch") == 0
        assert similarity("launch", "   ") == 0

    def test_partial_name_passes_resolution_threshold(self):
        """A single word of a longer name is a strong match."""
        assert similarity("budget", "Budget Review") >= 70

    def test_word_order_does_not_matter(self):
        assert token_set_ratio("review budget", "Budget Review") == 100

    def test_typo_still_matches(self):
        assert similarity("bugdet", "budget") >= 70

    def test_unrelated_words_score_low(self):
        assert similarity("groceries", "taxes") < 50
        assert similarity("email sam", "Fix bike") < 50

    def test_score_range(self):
        for left, right in [("a", "b"), ("abc", "abd"), ("x y z", "z y x")]:
            assert 0 <= similarity(left, right) <= 100


class TestBestMatch:
    """Unit tests for best_match selection."""

    def test_threshold_is_inclusive(self):
        scorer = lambda q, c: 70
        assert best_match("q", ["a"], key=str, threshold=70, scorer=scorer) == ("a", 70)

    def test_below_threshold_is_rejected(self):
        scorer = lambda q, c: 69
        assert best_match("q", ["a"], key=str, threshold=70, scorer=scorer) is None

    def test_tie_keeps_first_candidate(self):
        scorer = lambda q, c: 80
        match = best_match("q", ["first", "second"], key=str, threshold=70, scorer=scorer)
        assert match == ("first", 80)

    def test_highest_score_wins(self):
        scores = {"low": 71, "high": 90, "mid": 80}
        match = best_match("q", list(scores), key=str, threshold=70, scorer=lambda q, c: scores[c])
        assert match == ("high", 90)


class TestAllMatches:
    """Unit tests for all_matches ordering."""

    def test_sorted_best_first_and_stable_on_ties(self):
        scores = {"a": 60, "b": 90, "c": 60, "d": 10}
        matches = all_matches("q", ["a", "b", "c", "d"], key=str, threshold=50, scorer=lambda q, c: scores[c])
        assert matches == [("b", 90), ("a", 60), ("c", 60)]

    @pytest.mark.parametrize("threshold,expected", [(50, 1), (51, 0)])
    def test_threshold_boundary(self, threshold, expected):
        matches = all_matches("q", ["a"], key=str, threshold=threshold, scorer=lambda q, c: 50)
        assert len(matches) == expected
