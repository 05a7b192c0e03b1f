"""
Utility functions for the vocabulary analytics engine
"""

import logging
import math
import time
from datetime import date, datetime, timezone
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert value to integer"""
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert value to a finite float"""
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning 0 instead of NaN/Infinity"""
    if not denominator:
        return 0.0
    result = numerator / denominator
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def mean(values: list[float]) -> float:
    """Arithmetic mean, 0 for an empty list"""
    return safe_divide(sum(values), len(values))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives"""
    return int(math.floor(value + 0.5))


def percentage(part: float, total: float) -> int:
    """Rounded percentage, 0 when total is 0"""
    return round_half_up(safe_divide(part, total) * 100)


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a timestamp into a naive local datetime.

    Accepts datetimes, dates, ISO strings (with or without a trailing Z)
    and epoch milliseconds.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.warning(f"Failed to parse epoch timestamp: {value}")
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
            for fmt in ["%Y-%m-%d %H:%M:%S", "%d.%m.%Y", "%d/%m/%Y"]:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
            if parsed is None:
                logger.warning(f"Failed to parse timestamp: {value}")
                return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def date_key(moment: datetime | date) -> str:
    """Local calendar date key (YYYY-MM-DD)"""
    if isinstance(moment, datetime):
        moment = moment.date()
    return moment.isoformat()


def month_key(moment: datetime | date) -> str:
    """Calendar month key (YYYY-MM)"""
    return f"{moment.year:04d}-{moment.month:02d}"


def format_duration(seconds: int) -> str:
    """Format duration in human-readable format"""
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        return f"{minutes}m"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m"


def format_progress_stats(stats: dict[str, Any]) -> str:
    """Format dashboard statistics for the console"""
    total_words = stats.get("total_words", 0)
    tests_completed = stats.get("tests_completed", 0)
    accuracy_rate = stats.get("accuracy_rate", 0)
    average_score = stats.get("average_score", 0.0)
    streak_days = stats.get("streak_days", 0)
    mastered_words = stats.get("mastered_words", 0)
    words_needing_work = stats.get("words_needing_work", 0)
    time_spent = stats.get("time_spent_seconds", 0)

    result = "Your statistics:\n\n"
    result += f"Words: {total_words}\n"
    result += f"Tests completed: {tests_completed}\n"
    result += f"Accuracy: {accuracy_rate}%\n"
    result += f"Average score: {average_score}%\n"
    result += f"Study streak: {streak_days} days\n"
    result += f"Mastered words: {mastered_words}\n"
    result += f"Words needing work: {words_needing_work}\n"
    result += f"Time studied: {format_duration(time_spent)}\n"

    return result


class Timer:
    """Simple timer for measuring duration"""

    def __init__(self):
        self.start_time = None
        self.end_time = None

    def start(self):
        """Start the timer"""
        self.start_time = time.monotonic()
        self.end_time = None

    def stop(self):
        """Stop the timer"""
        if self.start_time is not None:
            self.end_time = time.monotonic()

    def elapsed(self) -> float | None:
        """Get elapsed time in seconds"""
        if self.start_time is None:
            return None

        end = self.end_time or time.monotonic()
        return end - self.start_time

    def elapsed_ms(self) -> int | None:
        """Get elapsed time in milliseconds"""
        elapsed = self.elapsed()
        return int(elapsed * 1000) if elapsed is not None else None


def log_execution_time(func):
    """Decorator to log function execution time"""

    @wraps(func)
    def wrapper(*args, **kwargs):
        timer = Timer()
        timer.start()
        try:
            result = func(*args, **kwargs)
            timer.stop()
            logger.debug(f"{func.__name__} executed in {timer.elapsed():.3f}s")
            return result
        except Exception as e:
            timer.stop()
            logger.error(f"{func.__name__} failed after {timer.elapsed():.3f}s: {e}")
            raise

    return wrapper
