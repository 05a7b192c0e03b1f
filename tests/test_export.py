"""
Tests for export documents and import in overwrite and merge modes
"""

import copy
import json
from datetime import datetime, timedelta

import pytest

from vocab_analytics.analytics.difficulty import TestDifficultyScorer
from vocab_analytics.config import Settings
from vocab_analytics.core.errors import ImportValidationError
from vocab_analytics.core.models import (
    AppState,
    Attempt,
    ChapterTestStats,
    DayProgress,
    Statistics,
    TestHistoryItem,
    Word,
    WordPerformance,
)
from vocab_analytics.export.assembler import EXPORT_VERSION, ExportAssembler

START = datetime(2024, 3, 1, 9, 0)
EXPORTED_AT = datetime(2024, 3, 20, 12, 0)


def make_attempt(minutes, correct=True, time_spent=1000):
    return Attempt(correct=correct, time_spent=time_spent, timestamp=START + timedelta(minutes=minutes))


def make_test(test_id, days, correct, incorrect, **kwargs):
    return TestHistoryItem(
        id=test_id,
        timestamp=START + timedelta(days=days),
        total_words=correct + incorrect,
        correct_words=correct,
        incorrect_words=incorrect,
        percentage=round(correct / (correct + incorrect) * 100),
        **kwargs,
    )


@pytest.fixture
def assembler():
    return ExportAssembler(Settings(_env_file=None), clock=lambda: EXPORTED_AT)


@pytest.fixture
def full_state():
    """Consistent snapshot with every component populated"""
    difficulty = TestDifficultyScorer().score(["critical", "new", "consolidated"])
    return AppState(
        words=[
            Word(id="w1", english="cat", italian="gatto", chapter="Animals", notes="pet"),
            Word(id="w2", english="house", italian="casa", sentences=["La casa è grande."]),
        ],
        statistics=Statistics(
            total_words=2,
            correct_answers=3,
            incorrect_answers=1,
            hints_used=1,
            time_spent=20000,
            tests_completed=2,
            average_score=75.0,
            daily_progress={
                "2024-03-01": DayProgress(tests=1, correct=1, incorrect=1),
                "2024-03-02": DayProgress(tests=1, correct=2, incorrect=0, hints=1),
            },
            streak_days=2,
            last_study_date="2024-03-02",
        ),
        test_history=[
            make_test(
                "t2",
                1,
                2,
                0,
                hints_used=1,
                chapter_stats={"Animals": ChapterTestStats(1, 1, 0, 1)},
                difficulty=difficulty.difficulty,
                difficulty_analysis=difficulty,
                test_parameters={"selectedChapters": ["Animals", "No chapter"]},
            ),
            make_test("t1", 0, 1, 1, wrong_words=["w1"]),
        ],
        word_performance={
            "w1": WordPerformance(
                word_id="w1",
                english="cat",
                italian="gatto",
                chapter="Animals",
                attempts=[make_attempt(0, correct=False, time_spent=2500), make_attempt(1440)],
            ),
            "w2": WordPerformance(
                word_id="w2", english="house", italian="casa", attempts=[make_attempt(1)]
            ),
        },
    )


@pytest.fixture
def other_state():
    """Snapshot from another device that overlaps with full_state"""
    return AppState(
        words=[
            Word(id="x1", english="CAT", italian="gatto"),
            Word(id="x2", english="tree", italian="albero"),
        ],
        statistics=Statistics(tests_completed=2, correct_answers=4, average_score=80.0),
        test_history=[
            make_test("t3", 5, 4, 1),
            make_test("t1", 0, 1, 1, wrong_words=["w1"]),
        ],
        word_performance={
            "w1": WordPerformance(
                word_id="w1",
                english="cat",
                attempts=[make_attempt(0, correct=False, time_spent=2500), make_attempt(7200)],
            ),
            "x2": WordPerformance(word_id="x2", english="tree", attempts=[make_attempt(3)]),
        },
    )


class TestExport:
    """Test document assembly"""

    def test_metadata(self, assembler, full_state):
        document = assembler.export_document(full_state)

        assert document["metadata"] == {
            "exportedAt": EXPORTED_AT.isoformat(),
            "totalWords": 2,
            "totalTests": 2,
            "totalWordPerformance": 2,
            "version": EXPORT_VERSION,
        }
        assert [t["id"] for t in document["testHistory"]] == ["t2", "t1"]
        assert document["wordPerformance"]["w1"]["totalAttempts"] == 2

    def test_export_json_is_valid_json(self, assembler, full_state):
        document = json.loads(assembler.export_json(full_state))
        assert document["statistics"]["testsCompleted"] == 2


class TestOverwrite:
    """Test overwrite imports"""

    def test_round_trip(self, assembler, full_state):
        """Test importing an export restores the same state"""
        payload = assembler.export_json(full_state)

        result = assembler.import_document(AppState(), payload, mode="overwrite")

        assert result.success is True
        assert result.version == EXPORT_VERSION
        assert result.skipped_records == 0
        assert result.state == full_state

    def test_round_trip_replaces_existing_data(self, assembler, full_state, other_state):
        document = assembler.export_document(full_state)

        result = assembler.import_document(other_state, document)

        assert result.state == full_state
        assert result.words_imported == 2
        assert result.tests_imported == 2
        assert result.attempts_imported == 3

    def test_missing_components_become_empty(self, assembler, full_state):
        """Test overwrite leaves nothing behind from the local state"""
        result = assembler.import_document(
            full_state, {"words": [{"id": "w9", "english": "sun", "italian": "sole"}]}
        )

        assert [w.id for w in result.state.words] == ["w9"]
        assert result.state.test_history == []
        assert result.state.word_performance == {}
        assert result.state.statistics == Statistics()

    def test_input_state_is_not_mutated(self, assembler, full_state, other_state):
        before = copy.deepcopy(full_state)
        assembler.import_document(full_state, assembler.export_document(other_state))

        assert full_state == before


class TestMerge:
    """Test merge imports"""

    def test_merge_unions_records(self, assembler, full_state, other_state):
        result = assembler.import_document(
            full_state, assembler.export_document(other_state), mode="merge"
        )
        state = result.state

        assert [w.id for w in state.words] == ["w1", "w2", "x2"]
        assert [t.id for t in state.test_history] == ["t3", "t2", "t1"]
        assert state.word_performance["w1"].total_attempts == 3
        assert state.word_performance["x2"].total_attempts == 1
        assert result.words_imported == 1
        assert result.tests_imported == 1
        assert result.attempts_imported == 2

    def test_merge_folds_new_tests_into_statistics(self, assembler, full_state, other_state):
        result = assembler.import_document(
            full_state, assembler.export_document(other_state), mode="merge"
        )
        statistics = result.state.statistics

        assert statistics.tests_completed == 3
        assert statistics.correct_answers == 7
        assert statistics.average_score == pytest.approx((75.0 * 2 + 80.0) / 3)
        assert statistics.daily_progress["2024-03-06"].tests == 1

    def test_merge_into_empty_state_adopts_statistics(self, assembler, other_state):
        result = assembler.import_document(
            AppState(), assembler.export_document(other_state), mode="merge"
        )

        assert result.state.statistics == other_state.statistics

    def test_merge_is_idempotent(self, assembler, full_state, other_state):
        """Test merging the same document twice changes nothing the second time"""
        document = assembler.export_document(other_state)

        once = assembler.import_document(full_state, document, mode="merge").state
        twice_result = assembler.import_document(once, document, mode="merge")

        assert twice_result.state == once
        assert twice_result.words_imported == 0
        assert twice_result.tests_imported == 0
        assert twice_result.attempts_imported == 0

    def test_merge_own_export_is_noop(self, assembler, full_state):
        result = assembler.import_document(
            full_state, assembler.export_document(full_state), mode="merge"
        )
        assert result.state == full_state

    def test_merge_performance_chronological(self, assembler, full_state, other_state):
        result = assembler.import_document(
            full_state, assembler.export_document(other_state), mode="merge"
        )
        attempts = result.state.word_performance["w1"].attempts

        assert attempts == sorted(attempts, key=lambda a: a.timestamp)

    def test_merge_rekeys_conflicting_words(self, assembler, full_state):
        """Test records of a word known under another id join the existing word"""
        payload = {
            "words": [{"id": "x1", "english": "Cat", "italian": "gatto"}],
            "testHistory": [make_test("t9", 6, 0, 1, wrong_words=["x1"]).to_dict()],
            "wordPerformance": {
                "x1": {"english": "Cat", "attempts": [make_attempt(8640, correct=False).to_dict()]}
            },
        }

        result = assembler.import_document(full_state, payload, mode="merge")
        state = result.state

        assert result.words_imported == 0
        assert "x1" not in state.word_performance
        assert state.word_performance["w1"].total_attempts == 3
        assert state.word_performance["w1"].word_id == "w1"
        assert state.test_history[0].wrong_words == ["w1"]

    def test_merge_rekeyed_words_are_counted_once(self, assembler, full_state):
        payload = {
            "words": [{"id": "x1", "english": "CAT", "italian": "gatto"}],
            "wordPerformance": {"x1": {"attempts": [make_attempt(5000).to_dict()]}},
        }

        state = assembler.import_document(full_state, payload, mode="merge").state

        assert sorted(state.word_performance) == ["w1", "w2"]


class TestValidation:
    """Test document validation and malformed records"""

    @pytest.mark.parametrize(
        "payload",
        ["not json", "[1, 2]", [1, 2], {}, {"metadata": {"version": "3.0"}}, {"words": "cat"}],
    )
    def test_invalid_documents_are_rejected(self, assembler, full_state, payload):
        result = assembler.import_document(full_state, payload)

        assert result.success is False
        assert result.error
        assert result.state is None

    def test_validate_raises(self, assembler):
        with pytest.raises(ImportValidationError):
            assembler.validate("{broken")

    def test_unknown_mode(self, assembler, full_state):
        result = assembler.import_document(full_state, {"words": []}, mode="append")

        assert result.success is False
        assert "append" in result.error

    def test_legacy_document(self, assembler):
        """Test older documents with top-level version and stats keys"""
        payload = {
            "version": 2.1,
            "stats": {"testsCompleted": 3, "averageScore": 70},
            "testHistory": [],
        }

        result = assembler.import_document(AppState(), payload)

        assert result.success is True
        assert result.version == "2.1"
        assert result.state.statistics.tests_completed == 3

    def test_malformed_records_are_skipped(self, assembler):
        payload = {
            "words": [{"id": "w1", "english": "cat"}, {"id": "w2"}, "junk"],
            "testHistory": [{"id": "t1", "correctWords": 1}],
            "wordPerformance": {
                "w1": {
                    "attempts": [
                        {"correct": True, "timeSpent": 900, "timestamp": "2024-03-01T10:00:00"},
                        {"correct": True, "timeSpent": 900, "timestamp": "yesterday"},
                    ]
                },
                "w2": "junk",
            },
        }

        result = assembler.import_document(AppState(), payload)

        assert result.success is True
        assert result.skipped_records == 5
        assert [w.id for w in result.state.words] == ["w1"]
        assert result.state.test_history == []
        assert result.state.word_performance["w1"].total_attempts == 1

    @pytest.mark.parametrize(
        "extra",
        [
            {"wrongWords": 5},
            {"testParameters": "chapter-1"},
            {"difficultyAnalysis": {"distribution": {"hard": 3}}},
            {"difficultyAnalysis": {"statusBreakdown": ["critical"]}},
        ],
    )
    def test_badly_typed_test_is_skipped(self, assembler, extra):
        """Test one badly typed history record does not abort the import"""
        good = make_test("t1", 0, 1, 1).to_dict()
        payload = {"testHistory": [good, dict(good, id="t2", **extra)]}

        result = assembler.import_document(AppState(), payload)

        assert result.success is True
        assert result.skipped_records == 1
        assert [t.id for t in result.state.test_history] == ["t1"]
