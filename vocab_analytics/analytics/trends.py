"""
Long-horizon learning trends and projections

Heuristic, explainable estimates built on test history and word performance.
Every figure carries a plain-language rationale.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from ..config import Settings, get_settings
from ..core.errors import InsufficientData
from ..core.models import AppState, Attempt, TestHistoryItem
from ..utils import clamp, mean, percentage, round_half_up, safe_divide
from .aggregation import AggregationEngine, chronological
from .word_classifier import WordClassifier, WordPerformanceAnalysis, classify_direction

logger = logging.getLogger(__name__)

PROJECTION_DAYS = (7, 30, 60, 90)
MOVING_AVERAGE_WEIGHTS = (0.1, 0.15, 0.2, 0.25, 0.3)
MASTERY_MILESTONES = (25, 50, 75, 100)


@dataclass
class Regression:
    slope: float = 0.0
    intercept: float = 0.0
    r_squared: float = 0.0


def linear_regression(values: list[float]) -> Regression:
    """Least squares fit of values against their index"""
    n = len(values)
    if n < 2:
        return Regression()

    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_xx = sum(x * x for x in xs)

    slope = safe_divide(n * sum_xy - sum_x * sum_y, n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    ss_total = sum((y - mean_y) ** 2 for y in values)
    ss_residual = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, values))
    r_squared = 1 - ss_residual / ss_total if ss_total > 0 else 0.0
    return Regression(slope=slope, intercept=intercept, r_squared=r_squared)


def weighted_moving_average(values: list[float], weights: tuple[float, ...]) -> float:
    """Weighted mean of the most recent values, weights oldest first"""
    if not values:
        return 0.0
    used = weights[: len(values)]
    values = values[-len(used):]
    return safe_divide(sum(v * w for v, w in zip(values, used)), sum(used))


def acceleration(values: list[float]) -> float:
    """Mean second difference of a series"""
    if len(values) < 3:
        return 0.0
    first = [b - a for a, b in zip(values, values[1:])]
    second = [b - a for a, b in zip(first, first[1:])]
    return mean(second)


def standard_deviation(values: list[float]) -> float:
    if len(values) < 2:
        return 0.0
    average = mean(values)
    return math.sqrt(mean([(v - average) ** 2 for v in values]))


def improvement_rate(attempts: list[Attempt]) -> float:
    """Share of consecutive attempt pairs that went from wrong to right"""
    if len(attempts) < 2:
        return 0.0
    improvements = sum(
        1 for previous, current in zip(attempts, attempts[1:])
        if current.correct and not previous.correct
    )
    return improvements / (len(attempts) - 1)


def correct_answers_needed(total: int, correct: int) -> int:
    """Consecutive correct answers that lift accuracy to 90%"""
    # (c + k) / (t + k) >= 0.9  <=>  k >= 9t - 10c
    return max(1, 9 * total - 10 * correct)


def days_to_mastery(attempts: list[Attempt]) -> int | None:
    """Days until a word reaches 90% accuracy at its current pace"""
    if not attempts:
        return None
    correct = sum(1 for a in attempts if a.correct)
    span_days = (attempts[-1].timestamp - attempts[0].timestamp).total_seconds() / 86400
    attempts_per_week = len(attempts) / max(1.0, span_days / 7)
    success = max(correct / len(attempts), improvement_rate(attempts))
    weekly_correct = attempts_per_week * success
    if weekly_correct <= 0:
        return None
    return math.ceil(correct_answers_needed(len(attempts), correct) / weekly_correct * 7)


@dataclass
class LearningVelocity:
    current_velocity: float
    weighted_average: float
    acceleration: float
    direction: str
    stability_factor: float
    confidence: int
    rationale: str


@dataclass
class PeriodTrend:
    period: str
    direction: str
    change_percentage: float
    current_average: float
    previous_average: float
    current_tests: int
    previous_tests: int
    rationale: str


@dataclass
class Projection:
    days: int
    projected_accuracy: float
    confidence: int
    milestones: list[str]
    rationale: str


@dataclass
class MasteryMilestone:
    target_percentage: int
    reached: bool
    estimated_days: int | None


@dataclass
class MasteryTimeline:
    total_words: int
    mastered_words: int
    current_mastery: int
    mastery_rate: float
    average_improvement_rate: float
    estimated_days: int | None
    milestones: list[MasteryMilestone]
    rationale: str


@dataclass
class StudySchedule:
    sessions_per_week: int
    distribution: str
    session_minutes: int
    best_hour: int | None
    streak_days: int
    streak_advice: str
    rationale: str


@dataclass
class AccelerationOpportunity:
    word_id: str
    english: str
    status: str
    accuracy: int
    correct_needed: int
    mastery_gain: float
    rationale: str


@dataclass
class ComprehensiveTrendsAnalysis:
    generated_at: datetime
    tests_analyzed: int
    velocity: LearningVelocity
    weekly_trend: PeriodTrend
    monthly_trend: PeriodTrend
    projections: list[Projection]
    mastery_timeline: MasteryTimeline
    study_schedule: StudySchedule
    acceleration_opportunities: list[AccelerationOpportunity] = field(default_factory=list)


class TrendsProjector:
    """Computes long-horizon projections with a TTL cache.

    The cache holds the last result only. Callers invalidate it after any
    write to attempts or history.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        engine: AggregationEngine | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = settings or get_settings()
        self.min_tests = settings.trends_min_tests
        self.ttl_seconds = settings.trends_cache_ttl_minutes * 60
        self.opportunities_limit = settings.acceleration_opportunities_limit
        self.engine = engine or AggregationEngine(settings)
        self.classifier: WordClassifier = self.engine.classifier
        self.clock = clock
        self._cached: ComprehensiveTrendsAnalysis | None = None
        self._cached_at: float | None = None

    def invalidate(self) -> None:
        """Drop the cached result"""
        self._cached = None
        self._cached_at = None
        logger.debug("Trends cache invalidated")

    def project(
        self, state: AppState, force: bool = False, now: datetime | None = None
    ) -> ComprehensiveTrendsAnalysis | InsufficientData:
        available = len(state.test_history)
        if available < self.min_tests:
            return InsufficientData(
                analysis="Trends analysis",
                available_tests=available,
                required_tests=self.min_tests,
                missing_requirements=[
                    f"Complete {self.min_tests - available} more tests"
                ],
            )

        if not force and self._cached is not None and self._cached_at is not None:
            if self.clock() - self._cached_at < self.ttl_seconds:
                logger.debug("Returning cached trends analysis")
                return self._cached

        result = self._compute(state, now or datetime.now())
        self._cached = result
        self._cached_at = self.clock()
        return result

    def _compute(self, state: AppState, now: datetime) -> ComprehensiveTrendsAnalysis:
        tests = chronological(state.test_history)
        scores = [clamp(float(t.percentage), 0, 100) for t in tests]
        report = self.classifier.analyze_all(state.words, state.word_performance)

        total_words = len(state.words) or len(report.analyzed)
        logger.info(f"Computing trends over {len(tests)} tests and {total_words} words")

        return ComprehensiveTrendsAnalysis(
            generated_at=now,
            tests_analyzed=len(tests),
            velocity=self.learning_velocity(scores),
            weekly_trend=self.period_trend(tests, now, 7, "weekly"),
            monthly_trend=self.period_trend(tests, now, 30, "monthly"),
            projections=self.projections(scores),
            mastery_timeline=self.mastery_timeline(tests, report.analyzed, state, total_words),
            study_schedule=self.study_schedule(tests, now),
            acceleration_opportunities=self.acceleration_opportunities(
                report.analyzed, total_words
            ),
        )

    def learning_velocity(self, scores: list[float]) -> LearningVelocity:
        regression = linear_regression(scores)
        weighted = weighted_moving_average(scores[-5:], MOVING_AVERAGE_WEIGHTS)
        accel = acceleration(scores)
        stability = 1 - min(1.0, standard_deviation(scores[-10:]) / 100)

        if accel > 0.1:
            direction = "accelerating"
        elif accel < -0.1:
            direction = "decelerating"
        else:
            direction = "steady"

        return LearningVelocity(
            current_velocity=round(regression.slope, 2),
            weighted_average=round(weighted, 2),
            acceleration=round(accel, 2),
            direction=direction,
            stability_factor=round(stability, 2),
            confidence=min(100, round_half_up(stability * 100)),
            rationale=(
                f"Accuracy moves {regression.slope:+.2f} points per test; "
                f"recent weighted average is {weighted:.1f}% and progress is {direction}"
            ),
        )

    @staticmethod
    def period_trend(
        tests: list[TestHistoryItem], now: datetime, days: int, period: str
    ) -> PeriodTrend:
        current_start = now - timedelta(days=days)
        previous_start = now - timedelta(days=days * 2)
        current = [t.accuracy for t in tests if current_start < t.timestamp <= now]
        previous = [t.accuracy for t in tests if previous_start < t.timestamp <= current_start]

        current_avg = mean(current)
        previous_avg = mean(previous)
        if not current or not previous:
            direction, change = "stable", 0.0
            rationale = (
                f"Not enough activity to compare the last {days} days "
                f"({len(current)} tests) with the {days} days before ({len(previous)} tests)"
            )
        else:
            direction, change = classify_direction(previous_avg, current_avg)
            rationale = (
                f"Average accuracy {current_avg:.1f}% over the last {days} days "
                f"vs {previous_avg:.1f}% before ({change:+.1f}%)"
            )

        return PeriodTrend(
            period=period,
            direction=direction,
            change_percentage=round(change, 1),
            current_average=round(current_avg, 1),
            previous_average=round(previous_avg, 1),
            current_tests=len(current),
            previous_tests=len(previous),
            rationale=rationale,
        )

    @staticmethod
    def projections(scores: list[float]) -> list[Projection]:
        regression = linear_regression(scores)
        n = len(scores)
        confidence = int(clamp(round_half_up(regression.r_squared * 100), 10, 100))

        result = []
        for days in PROJECTION_DAYS:
            projected = clamp(regression.slope * (n + days / 7) + regression.intercept, 0, 100)
            milestones = []
            if projected >= 70:
                milestones.append("intermediate")
            if projected >= 85:
                milestones.append("advanced")
            result.append(
                Projection(
                    days=days,
                    projected_accuracy=round(projected, 2),
                    confidence=confidence,
                    milestones=milestones,
                    rationale=(
                        f"Extending the current trend by {days} days at about one test "
                        f"per week gives {projected:.1f}% (fit quality {confidence}%)"
                    ),
                )
            )
        return result

    @staticmethod
    def mastery_timeline(
        tests: list[TestHistoryItem],
        analyses: list[WordPerformanceAnalysis],
        state: AppState,
        total_words: int,
    ) -> MasteryTimeline:
        """Extrapolate each unmastered word's own pace towards mastery.

        A word's weekly correct answers are its attempts per week scaled by
        the better of its accuracy and its improvement rate. Words without a
        usable pace are assumed to take the average of the words that have one.
        """
        mastered = sum(1 for a in analyses if a.mastered)
        span_days = max(1.0, (tests[-1].timestamp - tests[0].timestamp).total_seconds() / 86400)
        rate = mastered / max(1.0, span_days / 7)

        rates = [
            improvement_rate(p.attempts)
            for p in state.word_performance.values()
            if len(p.attempts) > 1
        ]

        known_days = []
        for analysis in analyses:
            if analysis.mastered:
                continue
            performance = state.word_performance.get(analysis.word_id)
            if performance is None or not performance.attempts:
                continue
            days = days_to_mastery(performance.attempts)
            if days is not None:
                known_days.append(days)

        remaining = max(0, total_words - mastered)
        word_days: list[int] = []
        if known_days:
            fallback = math.ceil(mean(known_days))
            word_days = sorted(known_days + [fallback] * max(0, remaining - len(known_days)))
            word_days = word_days[:remaining]

        def days_for(words_needed: int) -> int | None:
            if words_needed <= 0:
                return 0
            if words_needed > len(word_days):
                return None
            return word_days[words_needed - 1]

        estimated_days = days_for(remaining)

        milestones = []
        for target in MASTERY_MILESTONES:
            needed = math.ceil(total_words * target / 100) - mastered
            if needed <= 0:
                milestones.append(MasteryMilestone(target, True, 0))
            else:
                milestones.append(MasteryMilestone(target, False, days_for(needed)))

        if remaining == 0:
            rationale = f"All {total_words} words are mastered"
        elif estimated_days is None:
            rationale = "No unmastered word has correct answers yet, so there is no pace to extrapolate"
        else:
            rationale = (
                f"{mastered} of {total_words} words mastered; {len(known_days)} of the "
                f"{remaining} remaining words project mastery from their own pace, "
                f"the last in about {estimated_days} days"
            )

        return MasteryTimeline(
            total_words=total_words,
            mastered_words=mastered,
            current_mastery=percentage(mastered, total_words),
            mastery_rate=round(rate, 2),
            average_improvement_rate=round(mean(rates), 2),
            estimated_days=estimated_days,
            milestones=milestones,
            rationale=rationale,
        )

    def study_schedule(self, tests: list[TestHistoryItem], now: datetime) -> StudySchedule:
        scores = [t.percentage for t in tests]
        span_days = max(1.0, (tests[-1].timestamp - tests[0].timestamp).total_seconds() / 86400)
        frequency = len(tests) / span_days * 7
        average = mean(scores)
        if average > 80:
            frequency *= 1.2
        elif average < 50:
            frequency *= 0.8
        sessions = int(clamp(round_half_up(frequency), 2, 7))

        if sessions >= 6:
            distribution = "daily"
        elif sessions >= 4:
            distribution = "every_other_day"
        elif sessions <= 2:
            distribution = "weekends"
        else:
            distribution = "custom"

        good_sessions = [t.total_time / 60000 for t in tests if t.percentage > 70]
        minutes = int(clamp(round_half_up(mean(good_sessions)), 10, 45)) if good_sessions else 20

        by_hour: dict[int, list[float]] = {}
        for test in tests:
            by_hour.setdefault(test.timestamp.hour, []).append(test.percentage)
        candidates = [(mean(s), hour) for hour, s in by_hour.items() if len(s) >= 2]
        best_hour = max(candidates)[1] if candidates else None

        daily = self.engine.daily_progress_from_history(tests)
        streak = self.engine.calculate_streak(daily, now.date())
        idle_days = (now.date() - tests[-1].timestamp.date()).days
        if streak == 0 and idle_days > 2:
            advice = f"{idle_days} days without practice: a short session today limits forgetting"
        elif streak == 0:
            advice = "Start a new streak with a session today"
        elif streak >= 7:
            advice = f"Keep your {streak}-day streak going"
        else:
            advice = f"Study tomorrow to extend your {streak}-day streak"

        rationale = (
            f"{len(tests)} tests over {span_days:.0f} days with {average:.0f}% average accuracy"
        )
        if best_hour is not None:
            rationale += f"; best results around {best_hour:02d}:00"

        return StudySchedule(
            sessions_per_week=sessions,
            distribution=distribution,
            session_minutes=minutes,
            best_hour=best_hour,
            streak_days=streak,
            streak_advice=advice,
            rationale=rationale,
        )

    def acceleration_opportunities(
        self, analyses: list[WordPerformanceAnalysis], total_words: int
    ) -> list[AccelerationOpportunity]:
        """Non-mastered words closest to 90% accuracy"""
        gain = round(safe_divide(100, total_words), 1)
        opportunities = []
        for analysis in analyses:
            if analysis.mastered or analysis.total_attempts == 0:
                continue
            needed = correct_answers_needed(analysis.total_attempts, analysis.correct_attempts)
            opportunities.append(
                AccelerationOpportunity(
                    word_id=analysis.word_id,
                    english=analysis.english,
                    status=analysis.status,
                    accuracy=analysis.accuracy,
                    correct_needed=needed,
                    mastery_gain=gain,
                    rationale=(
                        f"{needed} more correct answers take '{analysis.english}' from "
                        f"{analysis.accuracy}% to mastery (+{gain}% mastered vocabulary)"
                    ),
                )
            )

        opportunities.sort(key=lambda o: (o.correct_needed, -o.accuracy, o.english.casefold()))
        return opportunities[: self.opportunities_limit]
