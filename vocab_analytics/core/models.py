"""
Data models for the vocabulary analytics engine

Records are plain dataclasses. ``from_dict`` parses the camelCase shapes used by
the export document and the persistence layer and raises ``InvalidRecord`` for
malformed input; ``to_dict`` emits the same shapes back.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, ClassVar, Literal

from ..utils import parse_timestamp, percentage, safe_divide, safe_float, safe_int
from .errors import InvalidRecord

WordStatus = Literal[
    "new",
    "promising",
    "struggling",
    "improving",
    "inconsistent",
    "consolidated",
    "critical",
]
TestDifficulty = Literal["easy", "medium", "hard"]
TrendDirection = Literal["improving", "stable", "declining"]

WORD_STATUSES: tuple[str, ...] = (
    "new",
    "promising",
    "struggling",
    "improving",
    "inconsistent",
    "consolidated",
    "critical",
)
DIFFICULTY_LEVELS: tuple[str, ...] = ("easy", "medium", "hard")
NO_CHAPTER = "No chapter"


def _require(data: dict[str, Any], key: str, kind: str, record_id: str | None = None) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise InvalidRecord(kind, f"missing required field '{key}'", record_id)
    return value


def _non_negative(value: Any, key: str, kind: str, record_id: str | None = None) -> float:
    number = safe_float(value, default=-1.0) if value is not None else 0.0
    if number < 0:
        raise InvalidRecord(kind, f"'{key}' must be a non-negative number", record_id)
    return number


def _mapping(data: dict[str, Any], key: str, kind: str, record_id: str | None = None) -> dict:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidRecord(kind, f"'{key}' must be an object", record_id)
    return value


def _sequence(data: dict[str, Any], key: str, kind: str, record_id: str | None = None) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidRecord(kind, f"'{key}' must be a list", record_id)
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


@dataclass
class Word:
    """A vocabulary word pair"""

    id: str
    english: str
    italian: str
    chapter: str | None = None
    group: str = ""
    notes: str = ""
    sentences: list[str] = field(default_factory=list)
    learned: bool = False
    difficult: bool = False

    @property
    def chapter_label(self) -> str:
        return self.chapter or NO_CHAPTER

    @classmethod
    def from_dict(cls, data: Any) -> "Word":
        if not isinstance(data, dict):
            raise InvalidRecord("word", "record is not an object")
        word_id = str(_require(data, "id", "word"))
        english = str(_require(data, "english", "word", word_id)).strip()
        italian = str(data.get("italian") or "").strip()

        sentences = data.get("sentences")
        if isinstance(sentences, str):
            sentences = [sentences]
        elif not isinstance(sentences, list):
            legacy = data.get("sentence")
            sentences = [legacy] if legacy else []

        chapter = data.get("chapter")
        return cls(
            id=word_id,
            english=english,
            italian=italian,
            chapter=str(chapter) if chapter not in (None, "") else None,
            group=str(data.get("group") or ""),
            notes=str(data.get("notes") or ""),
            sentences=[str(s) for s in sentences if s],
            learned=_as_bool(data.get("learned", False)),
            difficult=_as_bool(data.get("difficult", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "english": self.english,
            "italian": self.italian,
            "chapter": self.chapter,
            "group": self.group,
            "notes": self.notes,
            "sentences": list(self.sentences),
            "learned": self.learned,
            "difficult": self.difficult,
        }


@dataclass(frozen=True)
class Attempt:
    """One recorded answer for one word"""

    correct: bool
    time_spent: int
    timestamp: datetime
    used_hint: bool = False
    hints_count: int = 0

    def __post_init__(self):
        if self.hints_count > 0 and not self.used_hint:
            object.__setattr__(self, "used_hint", True)

    def is_valid(self) -> bool:
        return self.time_spent >= 0 and self.hints_count >= 0

    def content_key(self) -> tuple:
        return (
            self.timestamp.isoformat(),
            self.correct,
            self.time_spent,
            self.used_hint,
            self.hints_count,
        )

    @classmethod
    def from_dict(cls, data: Any, word_id: str | None = None) -> "Attempt":
        if not isinstance(data, dict):
            raise InvalidRecord("attempt", "record is not an object", word_id)
        if "correct" not in data or data["correct"] is None:
            raise InvalidRecord("attempt", "missing required field 'correct'", word_id)

        timestamp = parse_timestamp(_require(data, "timestamp", "attempt", word_id))
        if timestamp is None:
            raise InvalidRecord("attempt", "unreadable timestamp", word_id)

        time_spent = _non_negative(data.get("timeSpent"), "timeSpent", "attempt", word_id)
        hints_count = _non_negative(data.get("hintsCount"), "hintsCount", "attempt", word_id)
        return cls(
            correct=_as_bool(data["correct"]),
            time_spent=int(time_spent),
            timestamp=timestamp,
            used_hint=_as_bool(data.get("usedHint", False)),
            hints_count=int(hints_count),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "correct": self.correct,
            "timeSpent": self.time_spent,
            "usedHint": self.used_hint,
            "hintsCount": self.hints_count,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class WordPerformance:
    """Attempt history of one word.

    The aggregate fields are properties over ``attempts`` so they can never
    drift from the canonical attempt list.
    """

    word_id: str
    english: str = ""
    italian: str = ""
    chapter: str | None = None
    attempts: list[Attempt] = field(default_factory=list)

    @property
    def total_attempts(self) -> int:
        return len(self.attempts)

    @property
    def correct_attempts(self) -> int:
        return sum(1 for a in self.attempts if a.correct)

    @property
    def accuracy(self) -> float:
        return safe_divide(self.correct_attempts, self.total_attempts) * 100

    @property
    def average_response_time(self) -> float:
        return safe_divide(sum(a.time_spent for a in self.attempts), self.total_attempts)

    @property
    def last_attempt_at(self) -> datetime | None:
        return self.attempts[-1].timestamp if self.attempts else None

    @property
    def chapter_label(self) -> str:
        return self.chapter or NO_CHAPTER

    def with_attempts(self, attempts: list[Attempt]) -> "WordPerformance":
        ordered = sorted(attempts, key=lambda a: a.timestamp)
        return replace(self, attempts=ordered)

    def to_dict(self) -> dict[str, Any]:
        last = self.last_attempt_at
        return {
            "wordId": self.word_id,
            "english": self.english,
            "italian": self.italian,
            "chapter": self.chapter,
            "attempts": [a.to_dict() for a in self.attempts],
            "totalAttempts": self.total_attempts,
            "correctAttempts": self.correct_attempts,
            "accuracy": self.accuracy,
            "averageResponseTime": self.average_response_time,
            "lastAttemptAt": last.isoformat() if last else None,
        }


def parse_word_performance(word_id: str, data: Any) -> tuple[WordPerformance, int]:
    """Parse a performance record, skipping malformed attempts.

    Returns the performance and the number of attempts that were skipped.
    Cached aggregate fields in ``data`` are ignored.
    """
    if not isinstance(data, dict):
        raise InvalidRecord("performance", "record is not an object", word_id)
    raw_attempts = data.get("attempts") or []
    if not isinstance(raw_attempts, list):
        raise InvalidRecord("performance", "'attempts' must be a list", word_id)

    attempts: list[Attempt] = []
    skipped = 0
    for raw in raw_attempts:
        try:
            attempts.append(Attempt.from_dict(raw, word_id))
        except InvalidRecord:
            skipped += 1

    chapter = data.get("chapter")
    performance = WordPerformance(
        word_id=str(data.get("wordId") or word_id),
        english=str(data.get("english") or ""),
        italian=str(data.get("italian") or ""),
        chapter=str(chapter) if chapter not in (None, "") else None,
        attempts=sorted(attempts, key=lambda a: a.timestamp),
    )
    return performance, skipped


@dataclass
class ChapterTestStats:
    """Per-chapter slice of one test"""

    total_words: int = 0
    correct_words: int = 0
    incorrect_words: int = 0
    hints_used: int = 0

    @property
    def percentage(self) -> int:
        return percentage(self.correct_words, self.total_words)

    @classmethod
    def from_dict(cls, data: Any) -> "ChapterTestStats":
        if not isinstance(data, dict):
            raise InvalidRecord("chapter stats", "record is not an object")
        return cls(
            total_words=max(0, safe_int(data.get("totalWords"))),
            correct_words=max(0, safe_int(data.get("correctWords"))),
            incorrect_words=max(0, safe_int(data.get("incorrectWords"))),
            hints_used=max(0, safe_int(data.get("hintsUsed"))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalWords": self.total_words,
            "correctWords": self.correct_words,
            "incorrectWords": self.incorrect_words,
            "hintsUsed": self.hints_used,
            "percentage": self.percentage,
        }


@dataclass
class DifficultyBucket:
    count: int = 0
    percentage: float = 0.0


@dataclass
class DifficultyAnalysis:
    """Weighted difficulty of one test, derived from pre-test word statuses"""

    difficulty: str
    difficulty_reason: str
    weighted_score: float
    total_words: int
    size_adjustment: float
    distribution: dict[str, DifficultyBucket]
    status_breakdown: dict[str, int]

    @classmethod
    def from_dict(cls, data: Any) -> "DifficultyAnalysis":
        if not isinstance(data, dict):
            raise InvalidRecord("difficulty analysis", "record is not an object")
        distribution = {}
        raw_distribution = _mapping(data, "distribution", "difficulty analysis")
        for level in ("hard", "medium", "easy"):
            bucket = _mapping(raw_distribution, level, "difficulty analysis")
            distribution[level] = DifficultyBucket(
                count=safe_int(bucket.get("count")),
                percentage=safe_float(bucket.get("percentage")),
            )
        raw_breakdown = _mapping(data, "statusBreakdown", "difficulty analysis")
        return cls(
            difficulty=str(data.get("difficulty") or "medium"),
            difficulty_reason=str(data.get("difficultyReason") or ""),
            weighted_score=safe_float(data.get("weightedScore")),
            total_words=safe_int(data.get("totalWords")),
            size_adjustment=safe_float(data.get("sizeAdjustment")),
            distribution=distribution,
            status_breakdown={s: safe_int(raw_breakdown.get(s)) for s in WORD_STATUSES},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "difficulty": self.difficulty,
            "difficultyReason": self.difficulty_reason,
            "weightedScore": self.weighted_score,
            "totalWords": self.total_words,
            "sizeAdjustment": self.size_adjustment,
            "distribution": {
                level: {"count": b.count, "percentage": b.percentage}
                for level, b in self.distribution.items()
            },
            "statusBreakdown": dict(self.status_breakdown),
        }


@dataclass
class TestHistoryItem:
    """One completed test, immutable once recorded"""

    __test__ = False

    id: str
    timestamp: datetime
    total_words: int
    correct_words: int
    incorrect_words: int
    hints_used: int = 0
    total_time: int = 0
    avg_time_per_word: float = 0.0
    percentage: int = 0
    wrong_words: list[str] = field(default_factory=list)
    chapter_stats: dict[str, ChapterTestStats] = field(default_factory=dict)
    difficulty: str = "medium"
    difficulty_analysis: DifficultyAnalysis | None = None
    test_parameters: dict[str, Any] = field(default_factory=dict)

    @property
    def accuracy(self) -> float:
        """Unrounded accuracy used for running averages"""
        return safe_divide(self.correct_words, self.correct_words + self.incorrect_words) * 100

    @classmethod
    def from_dict(cls, data: Any) -> "TestHistoryItem":
        if not isinstance(data, dict):
            raise InvalidRecord("test", "record is not an object")
        test_id = str(_require(data, "id", "test"))
        timestamp = parse_timestamp(_require(data, "timestamp", "test", test_id))
        if timestamp is None:
            raise InvalidRecord("test", "unreadable timestamp", test_id)

        correct = int(_non_negative(data.get("correctWords"), "correctWords", "test", test_id))
        incorrect = int(_non_negative(data.get("incorrectWords"), "incorrectWords", "test", test_id))
        total = int(_non_negative(data.get("totalWords"), "totalWords", "test", test_id))
        total_time = int(_non_negative(data.get("totalTime"), "totalTime", "test", test_id))
        total = total or correct + incorrect

        wrong_words = []
        for wrong in _sequence(data, "wrongWords", "test", test_id):
            if isinstance(wrong, dict):
                wrong = wrong.get("id") or wrong.get("english")
            if wrong:
                wrong_words.append(str(wrong))

        chapter_stats = {}
        for chapter, raw in _mapping(data, "chapterStats", "test", test_id).items():
            chapter_stats[str(chapter)] = ChapterTestStats.from_dict(raw)

        analysis = None
        if data.get("difficultyAnalysis") is not None:
            analysis = DifficultyAnalysis.from_dict(data["difficultyAnalysis"])

        difficulty = data.get("difficulty")
        if difficulty not in DIFFICULTY_LEVELS:
            difficulty = analysis.difficulty if analysis else "medium"

        test_parameters = _mapping(data, "testParameters", "test", test_id)
        raw_percentage = data.get("percentage")
        return cls(
            id=test_id,
            timestamp=timestamp,
            total_words=total,
            correct_words=correct,
            incorrect_words=incorrect,
            hints_used=max(0, safe_int(data.get("hintsUsed"))),
            total_time=total_time,
            avg_time_per_word=max(0.0, safe_float(data.get("avgTimePerWord"))),
            percentage=(
                safe_int(raw_percentage)
                if raw_percentage is not None
                else percentage(correct, correct + incorrect)
            ),
            wrong_words=wrong_words,
            chapter_stats=chapter_stats,
            difficulty=difficulty,
            difficulty_analysis=analysis,
            test_parameters=dict(test_parameters),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "totalWords": self.total_words,
            "correctWords": self.correct_words,
            "incorrectWords": self.incorrect_words,
            "hintsUsed": self.hints_used,
            "totalTime": self.total_time,
            "avgTimePerWord": self.avg_time_per_word,
            "percentage": self.percentage,
            "wrongWords": list(self.wrong_words),
            "chapterStats": {c: s.to_dict() for c, s in self.chapter_stats.items()},
            "difficulty": self.difficulty,
            "difficultyAnalysis": (
                self.difficulty_analysis.to_dict() if self.difficulty_analysis else None
            ),
            "testParameters": dict(self.test_parameters),
        }


@dataclass
class DayProgress:
    tests: int = 0
    correct: int = 0
    incorrect: int = 0
    hints: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "DayProgress":
        data = data if isinstance(data, dict) else {}
        return cls(
            tests=safe_int(data.get("tests")),
            correct=safe_int(data.get("correct")),
            incorrect=safe_int(data.get("incorrect")),
            hints=safe_int(data.get("hints")),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "tests": self.tests,
            "correct": self.correct,
            "incorrect": self.incorrect,
            "hints": self.hints,
        }


@dataclass
class CategoryProgress:
    correct: int = 0
    total: int = 0
    hints: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "CategoryProgress":
        data = data if isinstance(data, dict) else {}
        return cls(
            correct=safe_int(data.get("correct")),
            total=safe_int(data.get("total")),
            hints=safe_int(data.get("hints")),
        )

    def to_dict(self) -> dict[str, int]:
        return {"correct": self.correct, "total": self.total, "hints": self.hints}


@dataclass
class MonthlyStats:
    tests: int = 0
    correct: int = 0
    incorrect: int = 0
    hints: int = 0
    time_spent: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "MonthlyStats":
        data = data if isinstance(data, dict) else {}
        return cls(
            tests=safe_int(data.get("tests")),
            correct=safe_int(data.get("correct")),
            incorrect=safe_int(data.get("incorrect")),
            hints=safe_int(data.get("hints")),
            time_spent=safe_int(data.get("timeSpent")),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "tests": self.tests,
            "correct": self.correct,
            "incorrect": self.incorrect,
            "hints": self.hints,
            "timeSpent": self.time_spent,
        }


@dataclass
class DifficultyStats:
    correct: int = 0
    total: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "DifficultyStats":
        data = data if isinstance(data, dict) else {}
        return cls(correct=safe_int(data.get("correct")), total=safe_int(data.get("total")))

    def to_dict(self) -> dict[str, int]:
        return {"correct": self.correct, "total": self.total}


def _empty_difficulty_stats() -> dict[str, DifficultyStats]:
    return {level: DifficultyStats() for level in DIFFICULTY_LEVELS}


@dataclass
class Statistics:
    """Global learning counters, updated once per completed test"""

    total_words: int = 0
    correct_answers: int = 0
    incorrect_answers: int = 0
    hints_used: int = 0
    time_spent: int = 0
    tests_completed: int = 0
    average_score: float = 0.0
    categories_progress: dict[str, CategoryProgress] = field(default_factory=dict)
    daily_progress: dict[str, DayProgress] = field(default_factory=dict)
    monthly_stats: dict[str, MonthlyStats] = field(default_factory=dict)
    difficulty_stats: dict[str, DifficultyStats] = field(default_factory=_empty_difficulty_stats)
    streak_days: int = 0
    last_study_date: str | None = None
    migrated: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "Statistics":
        if not isinstance(data, dict):
            raise InvalidRecord("statistics", "record is not an object")

        def mapping(key: str) -> dict[str, Any]:
            value = data.get(key)
            return value if isinstance(value, dict) else {}

        difficulty_stats = _empty_difficulty_stats()
        for level, raw in mapping("difficultyStats").items():
            difficulty_stats[str(level)] = DifficultyStats.from_dict(raw)

        last_study_date = data.get("lastStudyDate")
        return cls(
            total_words=safe_int(data.get("totalWords")),
            correct_answers=safe_int(data.get("correctAnswers")),
            incorrect_answers=safe_int(data.get("incorrectAnswers")),
            hints_used=safe_int(data.get("hintsUsed")),
            time_spent=safe_int(data.get("timeSpent")),
            tests_completed=safe_int(data.get("testsCompleted")),
            average_score=safe_float(data.get("averageScore")),
            categories_progress={
                str(k): CategoryProgress.from_dict(v)
                for k, v in mapping("categoriesProgress").items()
            },
            daily_progress={
                str(k): DayProgress.from_dict(v) for k, v in mapping("dailyProgress").items()
            },
            monthly_stats={
                str(k): MonthlyStats.from_dict(v) for k, v in mapping("monthlyStats").items()
            },
            difficulty_stats=difficulty_stats,
            streak_days=safe_int(data.get("streakDays")),
            last_study_date=str(last_study_date) if last_study_date else None,
            migrated=_as_bool(data.get("migrated", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalWords": self.total_words,
            "correctAnswers": self.correct_answers,
            "incorrectAnswers": self.incorrect_answers,
            "hintsUsed": self.hints_used,
            "timeSpent": self.time_spent,
            "testsCompleted": self.tests_completed,
            "averageScore": self.average_score,
            "categoriesProgress": {k: v.to_dict() for k, v in self.categories_progress.items()},
            "dailyProgress": {k: v.to_dict() for k, v in self.daily_progress.items()},
            "monthlyStats": {k: v.to_dict() for k, v in self.monthly_stats.items()},
            "difficultyStats": {k: v.to_dict() for k, v in self.difficulty_stats.items()},
            "streakDays": self.streak_days,
            "lastStudyDate": self.last_study_date,
            "migrated": self.migrated,
        }


# Completed-test payloads. A test session reports either per-word results
# or, for legacy callers, bare counters.


@dataclass
class WordResult:
    word_id: str
    correct: bool
    time_spent: int = 0
    used_hint: bool = False
    hints_count: int = 0


@dataclass
class DetailedTestStats:
    kind: ClassVar[str] = "detailed"

    word_results: list[WordResult]
    total_time: int | None = None


@dataclass
class SummaryTestStats:
    kind: ClassVar[str] = "summary"

    correct: int
    incorrect: int
    hints: int = 0
    total_time: int = 0
    wrong_word_ids: list[str] = field(default_factory=list)


TestStats = DetailedTestStats | SummaryTestStats


@dataclass
class AppState:
    """Snapshot of everything the analytics core reads"""

    words: list[Word] = field(default_factory=list)
    statistics: Statistics = field(default_factory=Statistics)
    test_history: list[TestHistoryItem] = field(default_factory=list)
    word_performance: dict[str, WordPerformance] = field(default_factory=dict)
    skipped_records: int = field(default=0, compare=False)
