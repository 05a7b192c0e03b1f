"""
Weighted difficulty scoring of a single test
"""

import logging
from typing import Iterable

from ..core.models import (
    WORD_STATUSES,
    DifficultyAnalysis,
    DifficultyBucket,
    Word,
    WordPerformance,
)
from .word_classifier import WordClassifier

logger = logging.getLogger(__name__)

HARD_STATUSES = ("critical", "inconsistent", "struggling")
MEDIUM_STATUSES = ("promising", "new")
EASY_STATUSES = ("improving", "consolidated")

HARD_WEIGHT = 3
MEDIUM_WEIGHT = 1
EASY_WEIGHT = -1


def size_adjustment(total_words: int) -> float:
    """Score offset for very large or very small tests"""
    if total_words > 50:
        return -0.3
    if total_words < 15:
        return 0.2
    return 0.0


class TestDifficultyScorer:
    """Scores a test from the pre-test statuses of its words.

    The result is computed once when a test completes and stored on the test
    history item; it is never recalculated afterwards.
    """

    __test__ = False

    def __init__(self, classifier: WordClassifier | None = None):
        self.classifier = classifier or WordClassifier()

    def score(self, statuses: Iterable[str]) -> DifficultyAnalysis:
        """Score a test given one status per word.

        Args:
            statuses: Pre-test WordStatus of every word in the test

        Returns:
            DifficultyAnalysis with label, reason, weighted score and breakdown
        """
        breakdown = {status: 0 for status in WORD_STATUSES}
        for status in statuses:
            # Unknown labels count as untested words
            breakdown[status if status in breakdown else "new"] += 1

        hard = sum(breakdown[s] for s in HARD_STATUSES)
        medium = sum(breakdown[s] for s in MEDIUM_STATUSES)
        easy = sum(breakdown[s] for s in EASY_STATUSES)
        total = hard + medium + easy

        if total == 0:
            return DifficultyAnalysis(
                difficulty="medium",
                difficulty_reason="Balanced test: no words to score",
                weighted_score=0.0,
                total_words=0,
                size_adjustment=0.0,
                distribution={
                    level: DifficultyBucket() for level in ("hard", "medium", "easy")
                },
                status_breakdown=breakdown,
            )

        hard_pct = hard / total * 100
        medium_pct = medium / total * 100
        easy_pct = easy / total * 100

        weighted = (hard * HARD_WEIGHT + medium * MEDIUM_WEIGHT + easy * EASY_WEIGHT) / total
        adjustment = size_adjustment(total)
        adjusted = weighted + adjustment

        if hard_pct >= 50 or adjusted >= 1.5:
            difficulty = "hard"
            reason = f"Hard test: {hard_pct:.1f}% problematic words ({hard}/{total})"
        elif easy_pct >= 70 or adjusted <= -0.5:
            difficulty = "easy"
            reason = f"Easy test: {easy_pct:.1f}% consolidated or improving words ({easy}/{total})"
        else:
            difficulty = "medium"
            reason = (
                f"Balanced test: {hard_pct:.1f}% hard, {easy_pct:.1f}% easy ({total} words)"
            )

        logger.debug(f"Scored test of {total} words as {difficulty} (score={adjusted:.2f})")

        return DifficultyAnalysis(
            difficulty=difficulty,
            difficulty_reason=reason,
            weighted_score=round(adjusted, 2),
            total_words=total,
            size_adjustment=adjustment,
            distribution={
                "hard": DifficultyBucket(count=hard, percentage=round(hard_pct, 1)),
                "medium": DifficultyBucket(count=medium, percentage=round(medium_pct, 1)),
                "easy": DifficultyBucket(count=easy, percentage=round(easy_pct, 1)),
            },
            status_breakdown=breakdown,
        )

    def score_words(
        self, words: Iterable[Word], performances: dict[str, WordPerformance]
    ) -> DifficultyAnalysis:
        """Score a test by classifying each word against its pre-test history"""
        statuses = []
        for word in words:
            performance = performances.get(word.id)
            attempts = performance.attempts if performance else []
            statuses.append(self.classifier.classify(attempts))
        return self.score(statuses)
