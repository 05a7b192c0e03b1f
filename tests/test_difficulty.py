"""
Tests for test difficulty scoring
"""

from datetime import datetime, timedelta

import pytest

from vocab_analytics.analytics.difficulty import TestDifficultyScorer, size_adjustment
from vocab_analytics.core.models import Attempt, Word, WordPerformance


@pytest.fixture
def scorer():
    return TestDifficultyScorer()


class TestScoring:
    """Test weighted scoring of word statuses"""

    def test_mostly_problematic_words_is_hard(self, scorer):
        """Test 60% critical or struggling words"""
        statuses = ["critical"] * 7 + ["struggling"] * 5 + ["promising"] * 5 + ["consolidated"] * 3

        analysis = scorer.score(statuses)

        assert analysis.difficulty == "hard"
        assert analysis.total_words == 20
        assert analysis.weighted_score == 1.9
        assert analysis.size_adjustment == 0.0
        assert analysis.difficulty_reason == "Hard test: 60.0% problematic words (12/20)"
        assert analysis.distribution["hard"].count == 12
        assert analysis.distribution["hard"].percentage == 60.0
        assert analysis.distribution["medium"].count == 5
        assert analysis.distribution["easy"].count == 3
        assert analysis.status_breakdown["critical"] == 7
        assert analysis.status_breakdown["struggling"] == 5

    def test_high_weighted_score_is_hard(self, scorer):
        """Test the weighted score alone can make a test hard"""
        analysis = scorer.score(["inconsistent"] * 9 + ["new"] * 11)

        assert analysis.distribution["hard"].percentage == 45.0
        assert analysis.weighted_score == 1.9
        assert analysis.difficulty == "hard"

    def test_small_consolidated_test_is_easy(self, scorer):
        """Test a small test of known words"""
        analysis = scorer.score(["consolidated"] * 10 + ["promising"] * 2)

        assert analysis.difficulty == "easy"
        assert analysis.size_adjustment == 0.2
        assert analysis.weighted_score == -0.47
        assert analysis.difficulty_reason == (
            "Easy test: 83.3% consolidated or improving words (10/12)"
        )

    def test_mixed_test_is_medium(self, scorer):
        """Test a balanced test"""
        statuses = ["critical"] * 6 + ["promising"] * 8 + ["improving"] * 6

        analysis = scorer.score(statuses)

        assert analysis.difficulty == "medium"
        assert analysis.weighted_score == 1.0
        assert analysis.difficulty_reason == "Balanced test: 30.0% hard, 30.0% easy (20 words)"

    def test_empty_test_is_medium(self, scorer):
        """Test a test without words"""
        analysis = scorer.score([])

        assert analysis.difficulty == "medium"
        assert analysis.weighted_score == 0.0
        assert analysis.total_words == 0
        assert all(bucket.count == 0 for bucket in analysis.distribution.values())

    def test_unknown_status_counts_as_new(self, scorer):
        analysis = scorer.score(["mystery", "new"])

        assert analysis.status_breakdown["new"] == 2
        assert analysis.distribution["medium"].count == 2

    def test_percentages_sum_to_hundred(self, scorer):
        analysis = scorer.score(["critical", "promising", "consolidated"])
        total = sum(bucket.percentage for bucket in analysis.distribution.values())

        assert total == pytest.approx(100.0, abs=0.2)


class TestSizeAdjustment:
    """Test the test size offset"""

    @pytest.mark.parametrize(
        "total_words, expected",
        [(51, -0.3), (50, 0.0), (15, 0.0), (14, 0.2), (1, 0.2)],
    )
    def test_size_adjustment(self, total_words, expected):
        assert size_adjustment(total_words) == expected


class TestScoreWords:
    """Test scoring from word histories"""

    def test_score_words_classifies_pre_test_history(self, scorer):
        """Test statuses are derived from each word's attempts"""
        start = datetime(2024, 3, 1, 9, 0)
        failed = [
            Attempt(correct=False, time_spent=2000, timestamp=start + timedelta(minutes=i))
            for i in range(3)
        ]
        words = [
            Word(id="w1", english="cat", italian="gatto"),
            Word(id="w2", english="dog", italian="cane"),
        ]
        performances = {"w1": WordPerformance(word_id="w1", attempts=failed)}

        analysis = scorer.score_words(words, performances)

        assert analysis.status_breakdown["critical"] == 1
        assert analysis.status_breakdown["new"] == 1
        assert analysis.total_words == 2
