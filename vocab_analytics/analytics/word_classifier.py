"""
Per-word mastery classification and metrics
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from ..config import Settings, get_settings
from ..core.models import NO_CHAPTER, Attempt, Word, WordPerformance, WordStatus
from ..utils import mean, percentage, round_half_up, safe_divide

logger = logging.getLogger(__name__)

# Lower value sorts first: words that need attention lead the list
STATUS_PRIORITY: dict[str, int] = {
    "critical": 1,
    "inconsistent": 2,
    "struggling": 3,
    "promising": 4,
    "improving": 5,
    "consolidated": 6,
    "new": 7,
}

TREND_THRESHOLD = 5.0
MIN_TREND_ATTEMPTS = 4


def classify_direction(
    before: float, after: float, higher_is_better: bool = True, threshold: float = TREND_THRESHOLD
) -> tuple[str, float]:
    """Classify the change between two period means.

    Returns ``(direction, change_percentage)`` where a positive change always
    means improvement. For metrics where lower is better (response time) the
    relative change is negated, so a faster second period is ``improving``.
    """
    if before == 0:
        if higher_is_better and after > 0:
            return "improving", 100.0
        return "stable", 0.0

    change = safe_divide(after - before, before) * 100
    if not higher_is_better:
        change = -change

    if change > threshold:
        return "improving", change
    if change < -threshold:
        return "declining", change
    return "stable", change


def _current_streak(attempts: list[Attempt]) -> int:
    streak = 0
    for attempt in reversed(attempts):
        if not attempt.correct:
            break
        streak += 1
    return streak


def _halves(values: list[float]) -> tuple[list[float], list[float]]:
    middle = len(values) // 2
    return values[:middle], values[middle:]


def difficulty_label(accuracy: int) -> str:
    if accuracy >= 80:
        return "easy"
    if accuracy >= 60:
        return "medium"
    if accuracy > 0:
        return "hard"
    return "unknown"


@dataclass
class WordPerformanceAnalysis:
    """Classified, metric-annotated view of one tracked word"""

    word_id: str
    english: str
    italian: str
    chapter: str | None
    status: str
    accuracy: int = 0
    total_attempts: int = 0
    correct_attempts: int = 0
    hints_used: int = 0
    hints_percentage: int = 0
    total_hints: int = 0
    avg_time: int = 0
    average_response_time: float = 0.0
    current_streak: int = 0
    recent_accuracy: int = 0
    trend: str = "stable"
    trend_change: float = 0.0
    speed_trend: str = "stable"
    speed_change: float = 0.0
    needs_work: bool = False
    mastered: bool = False
    difficulty: str = "unknown"
    recommendations: list[str] = field(default_factory=list)
    last_attempt: datetime | None = None
    group: str = ""
    learned: bool = False
    difficult: bool = False
    has_word: bool = True

    @property
    def chapter_label(self) -> str:
        return self.chapter or NO_CHAPTER

    @property
    def priority(self) -> int:
        return STATUS_PRIORITY.get(self.status, len(STATUS_PRIORITY) + 1)


@dataclass
class WordAnalysisReport:
    analyzed: list[WordPerformanceAnalysis] = field(default_factory=list)
    unattempted: list[Word] = field(default_factory=list)


@dataclass
class WordStats:
    total: int = 0
    learned: int = 0
    difficult: int = 0
    with_performance: int = 0
    average_accuracy: int = 0


class WordClassifier:
    """Derives a mastery status and metrics from a word's attempt history"""

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.recent_window = settings.recent_attempts_window

    def classify(self, attempts: list[Attempt]) -> WordStatus:
        """Status label for a chronological attempt sequence (first rule wins)"""
        total = len(attempts)
        if total == 0:
            return "new"
        if total < 3:
            return "promising"

        correct = sum(1 for a in attempts if a.correct)
        accuracy = correct / total * 100
        avg_response_time = mean([a.time_spent for a in attempts])

        if accuracy >= 90 and avg_response_time <= 3000:
            return "consolidated"

        if accuracy >= 70 and all(a.correct for a in attempts[-5:]):
            return "improving"

        if accuracy < 40 or not any(a.correct for a in attempts[-3:]):
            return "critical"

        if accuracy < 60:
            return "struggling"

        recent = attempts[-10:]
        if len(recent) >= 5:
            recent_correct = sum(1 for a in recent if a.correct)
            ratio = abs(recent_correct - len(recent) / 2) / len(recent)
            if ratio < 0.3:
                return "inconsistent"

        return "promising"

    def analyze(
        self, performance: WordPerformance, word: Word | None = None
    ) -> WordPerformanceAnalysis:
        """Full analysis of one word. Never raises."""
        attempts = performance.attempts
        total = len(attempts)
        correct = sum(1 for a in attempts if a.correct)
        hints_used = sum(1 for a in attempts if a.used_hint)
        times = [a.time_spent for a in attempts]

        accuracy = percentage(correct, total)
        avg_response_time = mean(times)
        recent = attempts[-self.recent_window:] if self.recent_window > 0 else []
        recent_accuracy = percentage(sum(1 for a in recent if a.correct), len(recent))

        trend, trend_change = "stable", 0.0
        speed_trend, speed_change = "stable", 0.0
        if total >= MIN_TREND_ATTEMPTS:
            first, second = _halves([100.0 if a.correct else 0.0 for a in attempts])
            trend, trend_change = classify_direction(mean(first), mean(second))
            first_times, second_times = _halves([float(t) for t in times])
            speed_trend, speed_change = classify_direction(
                mean(first_times), mean(second_times), higher_is_better=False
            )

        analysis = WordPerformanceAnalysis(
            word_id=word.id if word else performance.word_id,
            english=word.english if word else performance.english,
            italian=word.italian if word else performance.italian,
            chapter=word.chapter if word else performance.chapter,
            status=self.classify(attempts),
            accuracy=accuracy,
            total_attempts=total,
            correct_attempts=correct,
            hints_used=hints_used,
            hints_percentage=percentage(hints_used, total),
            total_hints=sum(a.hints_count for a in attempts),
            avg_time=round_half_up(avg_response_time / 1000),
            average_response_time=avg_response_time,
            current_streak=_current_streak(attempts),
            recent_accuracy=recent_accuracy,
            trend=trend,
            trend_change=round(trend_change, 1),
            speed_trend=speed_trend,
            speed_change=round(speed_change, 1),
            needs_work=accuracy < 70,
            mastered=accuracy >= 90,
            difficulty=difficulty_label(accuracy),
            last_attempt=performance.last_attempt_at,
            group=word.group if word else "",
            learned=word.learned if word else False,
            difficult=word.difficult if word else False,
            has_word=word is not None,
        )
        analysis.recommendations = self.recommendations(analysis)
        return analysis

    def recommendations(self, analysis: WordPerformanceAnalysis) -> list[str]:
        """Plain-language study tips for one analysed word"""
        if analysis.total_attempts == 0:
            return ["Start practicing this word"]

        tips = []
        if analysis.accuracy < 60:
            tips.append("Review this word more often")
        if analysis.hints_percentage > 50:
            tips.append("Try answering without hints")
        if analysis.avg_time > 20:
            tips.append("Practice recall speed")
        if analysis.current_streak >= 5:
            tips.append("Great streak, keep it up")
        if analysis.accuracy >= 80 and analysis.current_streak >= 3:
            tips.append("Well consolidated word")
        if analysis.accuracy == 0:
            tips.append("Very hard word: study it with examples")
        if not tips:
            tips.append("Keep practicing regularly")
        return tips

    def analyze_all(
        self, words: Iterable[Word], performances: dict[str, WordPerformance]
    ) -> WordAnalysisReport:
        """Analyse every tracked word.

        Words without attempts are returned separately. Performance records
        whose word was deleted are analysed from their own identity fields.
        """
        report = WordAnalysisReport()
        seen: set[str] = set()

        for word in words:
            seen.add(word.id)
            performance = performances.get(word.id)
            if performance is None or not performance.attempts:
                report.unattempted.append(word)
                continue
            report.analyzed.append(self.analyze(performance, word))

        for word_id, performance in performances.items():
            if word_id in seen or not performance.attempts:
                continue
            report.analyzed.append(self.analyze(performance))

        report.analyzed = self.sort_by_priority(report.analyzed)
        logger.debug(
            f"Analysed {len(report.analyzed)} words, "
            f"{len(report.unattempted)} without attempts"
        )
        return report

    @staticmethod
    def sort_by_priority(
        analyses: list[WordPerformanceAnalysis],
    ) -> list[WordPerformanceAnalysis]:
        return sorted(analyses, key=lambda a: (a.priority, a.accuracy, a.english.casefold()))

    @staticmethod
    def filter_words(
        analyses: list[WordPerformanceAnalysis],
        search: str | None = None,
        chapter: str | None = None,
        group: str | None = None,
        learned: bool | None = None,
        difficult: bool | None = None,
    ) -> list[WordPerformanceAnalysis]:
        needle = search.strip().casefold() if search else ""
        result = []
        for analysis in analyses:
            if needle and needle not in analysis.english.casefold() and (
                needle not in analysis.italian.casefold()
            ):
                continue
            if chapter is not None and analysis.chapter_label != chapter:
                continue
            if group is not None and analysis.group != group:
                continue
            if learned is not None and analysis.learned != learned:
                continue
            if difficult is not None and analysis.difficult != difficult:
                continue
            result.append(analysis)
        return result

    @staticmethod
    def group_by_chapter(
        analyses: list[WordPerformanceAnalysis],
    ) -> dict[str, list[WordPerformanceAnalysis]]:
        groups: dict[str, list[WordPerformanceAnalysis]] = {}
        for analysis in analyses:
            groups.setdefault(analysis.chapter_label, []).append(analysis)
        return dict(sorted(groups.items()))

    @staticmethod
    def word_stats(words: list[Word], performances: dict[str, WordPerformance]) -> WordStats:
        tracked = [performances[w.id] for w in words if w.id in performances]
        tracked = [p for p in tracked if p.attempts]
        return WordStats(
            total=len(words),
            learned=sum(1 for w in words if w.learned),
            difficult=sum(1 for w in words if w.difficult),
            with_performance=len(tracked),
            average_accuracy=round_half_up(mean([p.accuracy for p in tracked])),
        )
