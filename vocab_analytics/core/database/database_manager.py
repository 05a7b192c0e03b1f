"""
Unified database manager that coordinates all repositories
"""

import logging

from ..models import AppState, Attempt, Statistics, TestHistoryItem, Word, WordPerformance
from .connection import DatabaseConnection
from .repositories.history_repository import HistoryRepository
from .repositories.performance_repository import PerformanceRepository
from .repositories.word_repository import WordRepository

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Unified database manager that coordinates all repositories"""

    def __init__(self, db_path: str | None = None):
        self.db_connection = DatabaseConnection(db_path)
        self.word_repo = WordRepository(self.db_connection)
        self.performance_repo = PerformanceRepository(self.db_connection)
        self.history_repo = HistoryRepository(self.db_connection)

    def init_database(self) -> None:
        """Initialize database tables and indexes"""
        self.db_connection.init_database()

    def get_connection(self):
        """Get database connection for direct SQL access in tests"""
        return self.db_connection.get_connection()

    # Snapshots

    def load_state(self) -> AppState:
        """Read a full snapshot for the analytics core"""
        words, skipped_words = self.word_repo.load_words()
        performances, skipped_attempts = self.performance_repo.load_performances()
        history, skipped_tests = self.history_repo.load_test_history()
        statistics = self.history_repo.get_statistics()

        skipped = skipped_words + skipped_attempts + skipped_tests
        if skipped:
            logger.warning(f"Loaded state with {skipped} unreadable records skipped")

        return AppState(
            words=words,
            statistics=statistics,
            test_history=history,
            word_performance=performances,
            skipped_records=skipped,
        )

    def replace_state(self, state: AppState) -> bool:
        """Replace everything stored with ``state`` in one transaction"""
        try:
            with self.db_connection.get_connection() as conn:
                self.performance_repo.clear(conn)
                self.history_repo.clear(conn)
                self.word_repo.clear(conn)

                for word in state.words:
                    self.word_repo.write_word(conn, word)
                for performance in state.word_performance.values():
                    self.performance_repo.write_performance(conn, performance)
                for test in state.test_history:
                    self.history_repo.add_test(conn, test)
                self.history_repo.save_statistics(conn, state.statistics)
                conn.commit()

            logger.info(
                f"Stored state: {len(state.words)} words, {len(state.test_history)} tests, "
                f"{len(state.word_performance)} performance records"
            )
            return True
        except Exception as e:
            logger.error(f"Error replacing state: {e}")
            return False

    # Recording

    def record_completed_test(
        self,
        test: TestHistoryItem,
        attempts: dict[str, tuple[WordPerformance, list[Attempt]]],
        statistics: Statistics,
    ) -> bool:
        """Store a completed test atomically.

        Args:
            test: History item for the test
            attempts: New attempts per word id, with the word's performance identity
            statistics: Accumulator with the test already applied

        Returns:
            True when attempts, history item and statistics were all written
        """
        try:
            with self.db_connection.get_connection() as conn:
                for performance, new_attempts in attempts.values():
                    self.performance_repo.append_attempts(conn, performance, new_attempts)
                self.history_repo.add_test(conn, test)
                self.history_repo.save_statistics(conn, statistics)
                conn.commit()

            logger.info(
                f"Recorded test {test.id}: {test.correct_words}/{test.total_words} correct, "
                f"difficulty {test.difficulty}"
            )
            return True
        except Exception as e:
            logger.error(f"Error recording test {test.id}: {e}")
            return False

    # Words

    def save_word(self, word: Word) -> bool:
        return self.word_repo.save_word(word)

    def get_word_by_id(self, word_id: str) -> Word | None:
        return self.word_repo.get_word_by_id(word_id)

    def get_word_by_english(self, english: str) -> Word | None:
        return self.word_repo.get_word_by_english(english)

    def get_words(self) -> list[Word]:
        words, _ = self.word_repo.load_words()
        return words

    def delete_word(self, word_id: str) -> bool:
        """Delete a word together with its performance record"""
        try:
            with self.db_connection.get_connection() as conn:
                deleted = self.word_repo.delete_word(conn, word_id)
                self.performance_repo.delete_performance(conn, word_id)
                conn.commit()
            if deleted:
                logger.info(f"Deleted word {word_id} and its performance")
            return deleted
        except Exception as e:
            logger.error(f"Error deleting word {word_id}: {e}")
            return False

    # Progress

    def get_word_performance(self, word_id: str) -> WordPerformance | None:
        return self.performance_repo.get_performance(word_id)

    def get_statistics(self) -> Statistics:
        return self.history_repo.get_statistics()

    def save_statistics(self, statistics: Statistics) -> bool:
        try:
            with self.db_connection.get_connection() as conn:
                self.history_repo.save_statistics(conn, statistics)
                conn.commit()
            return True
        except Exception as e:
            logger.error(f"Error saving statistics: {e}")
            return False

    def reset_progress(self) -> bool:
        """Remove all attempts, history and statistics, keeping the words"""
        try:
            with self.db_connection.get_connection() as conn:
                self.performance_repo.clear(conn)
                self.history_repo.clear(conn)
                conn.commit()
            logger.info("Reset all learning progress")
            return True
        except Exception as e:
            logger.error(f"Error resetting progress: {e}")
            return False
