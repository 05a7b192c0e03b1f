"""
Unit tests for utility functions
"""

import logging
import time
from datetime import date, datetime, timezone

import pytest

from vocab_analytics.utils import (
    Timer,
    clamp,
    date_key,
    format_duration,
    format_progress_stats,
    log_execution_time,
    mean,
    month_key,
    parse_timestamp,
    percentage,
    round_half_up,
    safe_divide,
    safe_float,
    safe_int,
)


class TestNumbers:
    """Test numeric helpers"""

    def test_safe_int(self):
        """Test safe integer conversion"""
        assert safe_int("123") == 123
        assert safe_int(123.7) == 123
        assert safe_int("invalid") == 0
        assert safe_int(None) == 0
        assert safe_int("invalid", default=42) == 42

    def test_safe_float(self):
        """Test safe float conversion"""
        assert safe_float("123.45") == 123.45
        assert safe_float(123) == 123.0
        assert safe_float("invalid") == 0.0
        assert safe_float(None) == 0.0
        assert safe_float(float("nan")) == 0.0
        assert safe_float(float("inf"), default=1.5) == 1.5

    def test_safe_divide(self):
        """Test division never yields NaN or infinity"""
        assert safe_divide(1, 4) == 0.25
        assert safe_divide(5, 0) == 0.0
        assert safe_divide(0, 0) == 0.0

    def test_mean(self):
        assert mean([]) == 0.0
        assert mean([1, 2, 3]) == 2.0

    def test_round_half_up(self):
        """Test halves round up rather than to even"""
        assert round_half_up(12.5) == 13
        assert round_half_up(2.5) == 3
        assert round_half_up(2.4) == 2
        assert round_half_up(0) == 0

    def test_percentage(self):
        """Test rounded percentages"""
        assert percentage(2, 3) == 67
        assert percentage(1, 8) == 13
        assert percentage(5, 0) == 0

    def test_clamp(self):
        assert clamp(150, 10, 100) == 100
        assert clamp(3, 10, 100) == 10
        assert clamp(50, 10, 100) == 50


class TestTimestamps:
    """Test timestamp parsing and keys"""

    def test_iso_strings(self):
        """Test naive and Z-suffixed ISO strings"""
        assert parse_timestamp("2024-03-01T10:15:00") == datetime(2024, 3, 1, 10, 15)

        expected = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc).astimezone().replace(
            tzinfo=None
        )
        assert parse_timestamp("2024-03-01T10:00:00Z") == expected
        assert parse_timestamp("2024-03-01T10:00:00.000Z") == expected

    def test_epoch_milliseconds(self):
        """Test epoch values are read as milliseconds"""
        millis = 1709287200000
        assert parse_timestamp(millis) == datetime.fromtimestamp(millis / 1000)

    def test_fallback_formats(self):
        assert parse_timestamp("25.12.2023") == datetime(2023, 12, 25)
        assert parse_timestamp("25/12/2023") == datetime(2023, 12, 25)

    def test_invalid_values(self):
        """Test unparseable values yield None"""
        assert parse_timestamp("invalid") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None
        assert parse_timestamp(True) is None
        assert parse_timestamp([2024]) is None

    def test_dates_and_datetimes(self):
        moment = datetime(2024, 3, 1, 8, 30)
        assert parse_timestamp(moment) == moment
        assert parse_timestamp(date(2024, 3, 1)) == datetime(2024, 3, 1)

    def test_keys(self):
        """Test date and month keys"""
        assert date_key(datetime(2024, 3, 1, 23, 59)) == "2024-03-01"
        assert date_key(date(2024, 3, 1)) == "2024-03-01"
        assert month_key(date(2024, 3, 1)) == "2024-03"


class TestFormatting:
    """Test text formatting functions"""

    def test_format_duration(self):
        """Test duration formatting"""
        assert format_duration(30) == "30s"
        assert format_duration(90) == "1m"
        assert format_duration(3600) == "1h 0m"
        assert format_duration(3750) == "1h 2m"

    def test_format_progress_stats(self):
        """Test dashboard formatting"""
        stats = {
            "total_words": 120,
            "tests_completed": 8,
            "accuracy_rate": 76,
            "average_score": 74.5,
            "streak_days": 3,
            "mastered_words": 40,
            "words_needing_work": 12,
            "time_spent_seconds": 3750,
        }

        result = format_progress_stats(stats)

        assert result.startswith("Your statistics:\n\n")
        assert "Words: 120" in result
        assert "Tests completed: 8" in result
        assert "Accuracy: 76%" in result
        assert "Average score: 74.5%" in result
        assert "Study streak: 3 days" in result
        assert "Mastered words: 40" in result
        assert "Words needing work: 12" in result
        assert "Time studied: 1h 2m" in result

    def test_format_progress_stats_defaults(self):
        """Test missing keys fall back to zero"""
        result = format_progress_stats({})

        assert "Words: 0" in result
        assert "Average score: 0.0%" in result
        assert "Time studied: 0s" in result


class TestTimer:
    """Test Timer class"""

    def test_timer_basic_functionality(self):
        """Test basic timer functionality"""
        timer = Timer()

        assert timer.elapsed() is None
        assert timer.elapsed_ms() is None

        timer.start()
        time.sleep(0.01)

        elapsed = timer.elapsed()
        assert elapsed is not None
        assert 0 < elapsed < 1
        assert timer.elapsed_ms() > 0

    def test_timer_stop(self):
        """Test elapsed time is frozen after stop"""
        timer = Timer()
        timer.start()
        time.sleep(0.01)
        timer.stop()

        first_elapsed = timer.elapsed()
        time.sleep(0.01)
        assert timer.elapsed() == first_elapsed


class TestDecorators:
    """Test decorator functions"""

    def test_log_execution_time_returns_result(self, caplog):
        """Test decorated function result and debug log"""

        @log_execution_time
        def compute(value):
            return value * 2

        with caplog.at_level(logging.DEBUG, logger="vocab_analytics.utils"):
            assert compute(21) == 42

        assert "compute executed in" in caplog.text

    def test_log_execution_time_reraises(self, caplog):
        """Test failures are logged and propagated"""

        @log_execution_time
        def broken():
            raise ValueError("Test error")

        with pytest.raises(ValueError):
            broken()

        assert "broken failed after" in caplog.text
