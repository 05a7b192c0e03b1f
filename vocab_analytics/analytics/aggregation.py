"""
Dashboard roll-ups over test history, word performance and the statistics
accumulator
"""

import copy
import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta

from ..config import Settings, get_settings
from ..core.models import (
    WORD_STATUSES,
    AppState,
    CategoryProgress,
    DayProgress,
    DifficultyStats,
    MonthlyStats,
    Statistics,
    TestHistoryItem,
    WordPerformance,
)
from ..utils import (
    date_key,
    log_execution_time,
    mean,
    month_key,
    percentage,
    round_half_up,
    safe_divide,
)
from .word_classifier import WordClassifier, WordPerformanceAnalysis, classify_direction

logger = logging.getLogger(__name__)

DEFAULT_PERCENTILES: dict[str, float] = {"p25": 2000, "p50": 3000, "p75": 4000, "p90": 5000}
PERCENTILE_POINTS: dict[str, float] = {"p25": 0.25, "p50": 0.5, "p75": 0.75, "p90": 0.9}


@dataclass
class DayBucket:
    date: str
    tests: int = 0
    correct: int = 0
    incorrect: int = 0
    hints: int = 0

    @property
    def accuracy(self) -> int:
        return percentage(self.correct, self.correct + self.incorrect)


@dataclass
class WeeklyProgress:
    """Last seven calendar days, oldest first, and the seven days before"""

    current_week: list[DayBucket]
    previous_week: list[DayBucket]
    tests_change: int = 0
    accuracy_change: int = 0
    consistency: int = 0


@dataclass
class ProgressRollup:
    correct: int = 0
    total: int = 0
    hints: int = 0

    @property
    def percentage(self) -> int:
        return percentage(self.correct, self.total)


@dataclass
class TimeDistribution:
    percentiles: dict[str, float]
    fastest: float = 0.0
    slowest: float = 0.0
    average: float = 0.0
    sample_size: int = 0


@dataclass
class StatusDistribution:
    counts: dict[str, int]
    total_tracked: int = 0
    words_needing_work: int = 0
    mastered_words: int = 0
    average_accuracy: int = 0
    average_response_time: float = 0.0
    average_hint_usage: int = 0


@dataclass
class TrendResult:
    direction: str = "stable"
    change_percentage: float = 0.0
    data_points: list[float] = field(default_factory=list)


@dataclass
class LearningTrends:
    accuracy_trend: TrendResult = field(default_factory=TrendResult)
    speed_trend: TrendResult = field(default_factory=TrendResult)


@dataclass
class DifficultyPerformance:
    difficulty: str
    tests: int = 0
    average_percentage: int = 0


@dataclass
class Overview:
    total_tests: int = 0
    total_answers: int = 0
    correct_answers: int = 0
    accuracy_rate: int = 0
    hints_rate: int = 0
    average_score: int = 0
    average_time_per_test: float = 0.0
    time_spent: int = 0
    streak_days: int = 0
    active_today: bool = False


@dataclass
class AggregatedStatistics:
    """Everything a dashboard needs, computed from one snapshot"""

    statistics: Statistics
    overview: Overview
    word_analyses: list[WordPerformanceAnalysis]
    status_distribution: StatusDistribution
    chapter_progress: dict[str, ProgressRollup]
    category_progress: dict[str, ProgressRollup]
    weekly_progress: WeeklyProgress
    daily_progress: dict[str, DayProgress]
    monthly_progress: dict[str, MonthlyStats]
    time_distribution: TimeDistribution
    learning_trends: LearningTrends
    difficulty_performance: dict[str, DifficultyPerformance]
    has_data: bool = False
    skipped_records: int = 0

    def summary(self) -> dict:
        """Flat dict for format_progress_stats"""
        return {
            "total_words": self.statistics.total_words,
            "tests_completed": self.overview.total_tests,
            "accuracy_rate": self.overview.accuracy_rate,
            "average_score": self.overview.average_score,
            "streak_days": self.overview.streak_days,
            "mastered_words": self.status_distribution.mastered_words,
            "words_needing_work": self.status_distribution.words_needing_work,
            "time_spent_seconds": self.overview.time_spent // 1000,
        }


def chronological(test_history: list[TestHistoryItem]) -> list[TestHistoryItem]:
    return sorted(test_history, key=lambda t: t.timestamp)


class AggregationEngine:
    """Folds history, performance and counters into dashboard views.

    Every method is a pure function of its arguments; nothing is cached
    between calls.
    """

    def __init__(self, settings: Settings | None = None, classifier: WordClassifier | None = None):
        settings = settings or get_settings()
        self.streak_max_days = settings.streak_max_days
        self.streak_idle_days = settings.streak_idle_days
        self.classifier = classifier or WordClassifier(settings)

    # Accumulator updates

    def apply_test(
        self, statistics: Statistics, test: TestHistoryItem, today: date | None = None
    ) -> Statistics:
        """Return a copy of ``statistics`` with one completed test folded in"""
        stats = copy.deepcopy(statistics)

        previous_count = stats.tests_completed
        stats.average_score = (
            stats.average_score * previous_count + test.accuracy
        ) / (previous_count + 1)
        stats.tests_completed = previous_count + 1

        stats.correct_answers += test.correct_words
        stats.incorrect_answers += test.incorrect_words
        stats.hints_used += test.hints_used
        stats.time_spent += test.total_time

        day = date_key(test.timestamp)
        day_progress = stats.daily_progress.setdefault(day, DayProgress())
        day_progress.tests += 1
        day_progress.correct += test.correct_words
        day_progress.incorrect += test.incorrect_words
        day_progress.hints += test.hints_used

        month = stats.monthly_stats.setdefault(month_key(test.timestamp), MonthlyStats())
        month.tests += 1
        month.correct += test.correct_words
        month.incorrect += test.incorrect_words
        month.hints += test.hints_used
        month.time_spent += test.total_time

        for chapter, chapter_stats in test.chapter_stats.items():
            category = stats.categories_progress.setdefault(chapter, CategoryProgress())
            category.correct += chapter_stats.correct_words
            category.total += chapter_stats.total_words
            category.hints += chapter_stats.hints_used

        bucket = stats.difficulty_stats.setdefault(test.difficulty, DifficultyStats())
        bucket.correct += test.correct_words
        bucket.total += test.correct_words + test.incorrect_words

        if stats.last_study_date is None or day > stats.last_study_date:
            stats.last_study_date = day

        reference = max(today or date.today(), test.timestamp.date())
        stats.streak_days = self.calculate_streak(stats.daily_progress, reference)
        return stats

    def rebuild_statistics(
        self,
        test_history: list[TestHistoryItem],
        total_words: int = 0,
        today: date | None = None,
    ) -> Statistics:
        """Rebuild the accumulator from history, oldest test first"""
        stats = Statistics(total_words=total_words)
        for test in chronological(test_history):
            stats = self.apply_test(stats, test, today)
        stats.migrated = True
        logger.info(f"Rebuilt statistics from {len(test_history)} tests")
        return stats

    # Time windows

    def calculate_streak(self, daily_progress: dict[str, DayProgress], today: date | None = None) -> int:
        """Count consecutive study days ending today.

        An empty today does not break the streak since the day is not over.
        """
        today = today or date.today()
        streak = 0

        for offset in range(self.streak_max_days):
            day = daily_progress.get(date_key(today - timedelta(days=offset)))
            if day is not None and day.tests > 0:
                streak += 1
            elif offset == 0:
                continue
            else:
                break

            if offset > self.streak_idle_days and streak == 0:
                break

        return streak

    def weekly_progress(
        self, daily_progress: dict[str, DayProgress], today: date | None = None
    ) -> WeeklyProgress:
        today = today or date.today()

        def bucket(day: date) -> DayBucket:
            key = date_key(day)
            progress = daily_progress.get(key) or DayProgress()
            return DayBucket(
                date=key,
                tests=progress.tests,
                correct=progress.correct,
                incorrect=progress.incorrect,
                hints=progress.hints,
            )

        current = [bucket(today - timedelta(days=offset)) for offset in range(6, -1, -1)]
        previous = [bucket(today - timedelta(days=offset)) for offset in range(13, 6, -1)]

        def week_accuracy(days: list[DayBucket]) -> int:
            correct = sum(d.correct for d in days)
            return percentage(correct, correct + sum(d.incorrect for d in days))

        return WeeklyProgress(
            current_week=current,
            previous_week=previous,
            tests_change=sum(d.tests for d in current) - sum(d.tests for d in previous),
            accuracy_change=week_accuracy(current) - week_accuracy(previous),
            consistency=percentage(sum(1 for d in current if d.tests > 0), 7),
        )

    def daily_progress_from_history(
        self, test_history: list[TestHistoryItem]
    ) -> dict[str, DayProgress]:
        daily: dict[str, DayProgress] = {}
        for test in chronological(test_history):
            day = daily.setdefault(date_key(test.timestamp), DayProgress())
            day.tests += 1
            day.correct += test.correct_words
            day.incorrect += test.incorrect_words
            day.hints += test.hints_used
        return daily

    def monthly_progress(self, test_history: list[TestHistoryItem]) -> dict[str, MonthlyStats]:
        monthly: dict[str, MonthlyStats] = {}
        for test in chronological(test_history):
            month = monthly.setdefault(month_key(test.timestamp), MonthlyStats())
            month.tests += 1
            month.correct += test.correct_words
            month.incorrect += test.incorrect_words
            month.hints += test.hints_used
            month.time_spent += test.total_time
        return dict(sorted(monthly.items()))

    # Distributions

    @staticmethod
    def percentiles(sample: list[float]) -> dict[str, float]:
        """p25/p50/p75/p90 by floor(n * p) index, fixed defaults when empty"""
        if not sample:
            return dict(DEFAULT_PERCENTILES)
        ordered = sorted(sample)
        n = len(ordered)
        return {
            name: ordered[min(n - 1, int(math.floor(n * point)))]
            for name, point in PERCENTILE_POINTS.items()
        }

    def time_distribution(self, performances: dict[str, WordPerformance]) -> TimeDistribution:
        times = [
            a.time_spent
            for performance in performances.values()
            for a in performance.attempts
            if a.is_valid()
        ]
        return TimeDistribution(
            percentiles=self.percentiles(times),
            fastest=min(times) if times else 0.0,
            slowest=max(times) if times else 0.0,
            average=mean(times),
            sample_size=len(times),
        )

    @staticmethod
    def chapter_progress(performances: dict[str, WordPerformance]) -> dict[str, ProgressRollup]:
        rollups: dict[str, ProgressRollup] = {}
        for performance in performances.values():
            attempts = [a for a in performance.attempts if a.is_valid()]
            if not attempts:
                continue
            rollup = rollups.setdefault(performance.chapter_label, ProgressRollup())
            rollup.total += len(attempts)
            rollup.correct += sum(1 for a in attempts if a.correct)
            rollup.hints += sum(1 for a in attempts if a.used_hint)
        return dict(sorted(rollups.items()))

    @staticmethod
    def category_progress(statistics: Statistics) -> dict[str, ProgressRollup]:
        return {
            name: ProgressRollup(correct=p.correct, total=p.total, hints=p.hints)
            for name, p in sorted(statistics.categories_progress.items())
        }

    @staticmethod
    def status_distribution(analyses: list[WordPerformanceAnalysis]) -> StatusDistribution:
        counts = {status: 0 for status in WORD_STATUSES}
        for analysis in analyses:
            counts[analysis.status] = counts.get(analysis.status, 0) + 1

        return StatusDistribution(
            counts=counts,
            total_tracked=len(analyses),
            words_needing_work=counts["struggling"] + counts["critical"] + counts["inconsistent"],
            mastered_words=sum(1 for a in analyses if a.mastered),
            average_accuracy=round_half_up(mean([a.accuracy for a in analyses])),
            average_response_time=mean([a.average_response_time for a in analyses]),
            average_hint_usage=round_half_up(mean([a.hints_percentage for a in analyses])),
        )

    # Trends over tests

    @staticmethod
    def learning_trends(test_history: list[TestHistoryItem]) -> LearningTrends:
        """Accuracy and speed direction over history, halves compared"""
        tests = chronological(test_history)
        if len(tests) < 2:
            return LearningTrends()

        scores = [t.accuracy for t in tests]
        times = [
            t.avg_time_per_word or safe_divide(t.total_time, max(t.total_words, 1))
            for t in tests
        ]

        middle = len(tests) // 2
        accuracy_direction, accuracy_change = classify_direction(
            mean(scores[:middle]), mean(scores[middle:])
        )
        speed_direction, speed_change = classify_direction(
            mean(times[:middle]), mean(times[middle:]), higher_is_better=False
        )
        return LearningTrends(
            accuracy_trend=TrendResult(accuracy_direction, round(accuracy_change, 2), scores),
            speed_trend=TrendResult(speed_direction, round(speed_change, 2), times),
        )

    @staticmethod
    def difficulty_performance(
        test_history: list[TestHistoryItem],
    ) -> dict[str, DifficultyPerformance]:
        grouped: dict[str, list[TestHistoryItem]] = {level: [] for level in ("easy", "medium", "hard")}
        for test in test_history:
            grouped.setdefault(test.difficulty, []).append(test)
        return {
            level: DifficultyPerformance(
                difficulty=level,
                tests=len(tests),
                average_percentage=round_half_up(mean([t.accuracy for t in tests])),
            )
            for level, tests in grouped.items()
        }

    # Dashboard

    @log_execution_time
    def aggregate(self, state: AppState, today: date | None = None) -> AggregatedStatistics:
        """Compute the dashboard roll-up for one snapshot. Never raises on partial data."""
        today = today or date.today()
        statistics = state.statistics
        skipped = state.skipped_records + sum(
            1 for p in state.word_performance.values() for a in p.attempts if not a.is_valid()
        )
        if skipped:
            logger.warning(f"Skipping {skipped} malformed records during aggregation")

        valid_performances = {
            word_id: p.with_attempts([a for a in p.attempts if a.is_valid()])
            for word_id, p in state.word_performance.items()
        }
        report = self.classifier.analyze_all(state.words, valid_performances)

        daily = statistics.daily_progress or self.daily_progress_from_history(state.test_history)
        total_answers = statistics.correct_answers + statistics.incorrect_answers
        overview = Overview(
            total_tests=statistics.tests_completed,
            total_answers=total_answers,
            correct_answers=statistics.correct_answers,
            accuracy_rate=percentage(statistics.correct_answers, total_answers),
            hints_rate=percentage(statistics.hints_used, total_answers),
            average_score=round_half_up(statistics.average_score),
            average_time_per_test=safe_divide(statistics.time_spent, statistics.tests_completed),
            time_spent=statistics.time_spent,
            streak_days=self.calculate_streak(daily, today),
            active_today=(daily.get(date_key(today)) or DayProgress()).tests > 0,
        )

        return AggregatedStatistics(
            statistics=statistics,
            overview=overview,
            word_analyses=report.analyzed,
            status_distribution=self.status_distribution(report.analyzed),
            chapter_progress=self.chapter_progress(valid_performances),
            category_progress=self.category_progress(statistics),
            weekly_progress=self.weekly_progress(daily, today),
            daily_progress=daily,
            monthly_progress=self.monthly_progress(state.test_history),
            time_distribution=self.time_distribution(valid_performances),
            learning_trends=self.learning_trends(state.test_history),
            difficulty_performance=self.difficulty_performance(state.test_history),
            has_data=bool(state.test_history or statistics.tests_completed or report.analyzed),
            skipped_records=skipped,
        )
