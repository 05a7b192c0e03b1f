"""
Tests for recording completed tests
"""

import os
import tempfile
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from vocab_analytics.config import Settings
from vocab_analytics.core.database.database_manager import DatabaseManager
from vocab_analytics.core.models import (
    AppState,
    Attempt,
    DetailedTestStats,
    SummaryTestStats,
    Word,
    WordPerformance,
    WordResult,
)
from vocab_analytics.core.session.test_recorder import TestRecorder

NOW = datetime(2024, 3, 10, 18, 0)


@pytest.fixture
def temp_db():
    """Create temporary database for testing"""
    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    temp_file.close()

    db_manager = DatabaseManager(temp_file.name)
    db_manager.init_database()

    yield db_manager

    os.unlink(temp_file.name)


@pytest.fixture
def words(temp_db):
    words = [
        Word(id="w1", english="cat", italian="gatto", chapter="Animals"),
        Word(id="w2", english="dog", italian="cane", chapter="Animals"),
        Word(id="w3", english="house", italian="casa"),
    ]
    for word in words:
        temp_db.save_word(word)
    return words


@pytest.fixture
def projector():
    return MagicMock()


@pytest.fixture
def recorder(temp_db, projector):
    return TestRecorder(temp_db, settings=Settings(_env_file=None), projector=projector)


@pytest.fixture
def detailed_stats():
    return DetailedTestStats(
        word_results=[
            WordResult("w1", True, time_spent=1200),
            WordResult("w2", False, time_spent=3000, used_hint=True, hints_count=1),
            WordResult("w3", True, time_spent=800),
        ]
    )


class TestDetailedResults:
    """Test recording per-word results"""

    def test_history_item(self, recorder, words, detailed_stats):
        item = recorder.complete_test(words, detailed_stats, now=NOW)

        assert item.id == str(int(NOW.timestamp() * 1000))
        assert item.total_words == 3
        assert item.correct_words == 2
        assert item.incorrect_words == 1
        assert item.hints_used == 1
        assert item.total_time == 5000
        assert item.avg_time_per_word == pytest.approx(5000 / 3)
        assert item.percentage == 67
        assert item.wrong_words == ["w2"]
        assert item.difficulty == "medium"
        assert item.difficulty_analysis.status_breakdown["new"] == 3

    def test_chapter_stats_and_parameters(self, recorder, words, detailed_stats):
        item = recorder.complete_test(words, detailed_stats, now=NOW)

        animals = item.chapter_stats["Animals"]
        assert animals.total_words == 2
        assert animals.correct_words == 1
        assert animals.incorrect_words == 1
        assert animals.hints_used == 1
        assert item.chapter_stats["No chapter"].correct_words == 1
        assert item.test_parameters == {
            "selectedChapters": ["Animals", "No chapter"],
            "includeLearnedWords": False,
            "totalAvailableWords": 3,
            "testType": "complete",
        }

    def test_everything_is_stored(self, recorder, temp_db, words, detailed_stats):
        item = recorder.complete_test(words, detailed_stats, now=NOW)

        state = temp_db.load_state()
        assert state.test_history == [item]
        assert state.statistics.tests_completed == 1
        assert state.statistics.total_words == 3
        assert state.statistics.correct_answers == 2
        assert state.statistics.daily_progress["2024-03-10"].tests == 1
        assert state.statistics.categories_progress["Animals"].total == 2
        assert state.statistics.streak_days == 1
        assert state.word_performance["w2"].attempts == [
            Attempt(correct=False, time_spent=3000, timestamp=NOW, used_hint=True, hints_count=1)
        ]
        assert state.word_performance["w1"].chapter == "Animals"

    def test_trends_cache_is_invalidated(self, recorder, projector, words, detailed_stats):
        recorder.complete_test(words, detailed_stats, now=NOW)
        projector.invalidate.assert_called_once()

    def test_ids_are_unique(self, recorder, words, detailed_stats):
        first = recorder.complete_test(words, detailed_stats, now=NOW)
        second = recorder.complete_test(words, detailed_stats, now=NOW)

        assert int(second.id) == int(first.id) + 1

    def test_results_outside_the_test_are_ignored(self, recorder, words):
        stats = DetailedTestStats(
            word_results=[WordResult("w1", True, 900), WordResult("ghost", False, 900)]
        )

        item = recorder.complete_test(words[:1], stats, now=NOW)

        assert item.total_words == 1
        assert item.wrong_words == []
        assert item.test_parameters["testType"] == "selective"

    def test_difficulty_uses_history_before_the_test(self, recorder, temp_db, words, detailed_stats):
        """Test the scored statuses ignore the answers being recorded"""
        failed = [
            Attempt(correct=False, time_spent=2000, timestamp=NOW - timedelta(days=3 - i))
            for i in range(3)
        ]
        temp_db.replace_state(
            AppState(
                words=words,
                word_performance={
                    "w1": WordPerformance("w1", "cat", "gatto", "Animals", failed)
                },
            )
        )

        item = recorder.complete_test(words, detailed_stats, now=NOW)

        assert item.difficulty_analysis.status_breakdown["critical"] == 1
        assert item.difficulty_analysis.status_breakdown["new"] == 2
        assert temp_db.get_word_performance("w1").total_attempts == 4


class TestSummaryResults:
    """Test recording bare counters"""

    def test_summary_stats(self, recorder, temp_db, words):
        stats = SummaryTestStats(correct=2, incorrect=1, hints=2, total_time=45000, wrong_word_ids=["w3", "x"])

        item = recorder.complete_test(words, stats, now=NOW)

        assert item.correct_words == 2
        assert item.hints_used == 2
        assert item.total_time == 45000
        assert item.wrong_words == ["w3"]
        assert item.chapter_stats["No chapter"].incorrect_words == 1

        state = temp_db.load_state()
        assert state.word_performance == {}
        assert state.statistics.tests_completed == 1

    def test_unsupported_stats(self, recorder, words):
        with pytest.raises(TypeError):
            recorder.complete_test(words, {"correct": 1}, now=NOW)


class TestRecordingFailure:
    """Test a failed write"""

    def test_returns_none(self, recorder, temp_db, projector, words, detailed_stats):
        with patch.object(temp_db, "record_completed_test", return_value=False):
            assert recorder.complete_test(words, detailed_stats, now=NOW) is None

        projector.invalidate.assert_not_called()
        assert temp_db.load_state().test_history == []
