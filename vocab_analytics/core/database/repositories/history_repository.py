"""
History repository for completed tests and the statistics accumulator
"""

import json
import logging
import sqlite3

from ...errors import InvalidRecord
from ...models import Statistics, TestHistoryItem
from ..connection import DatabaseConnection

logger = logging.getLogger(__name__)


class HistoryRepository:
    """Repository for test history and statistics operations"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def add_test(self, conn: sqlite3.Connection, test: TestHistoryItem) -> None:
        """Insert a completed test inside the caller's transaction"""
        conn.execute(
            "INSERT OR REPLACE INTO test_history (id, completed_at, payload) VALUES (?, ?, ?)",
            (test.id, test.timestamp, json.dumps(test.to_dict(), ensure_ascii=False)),
        )

    def test_exists(self, test_id: str) -> bool:
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("SELECT 1 FROM test_history WHERE id = ?", (test_id,))
                return cursor.fetchone() is not None
        except Exception as e:
            logger.error(f"Error checking test existence: {e}")
            return False

    def load_test_history(self) -> tuple[list[TestHistoryItem], int]:
        """Load history newest first, with the count of unreadable rows"""
        history: list[TestHistoryItem] = []
        skipped = 0
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "SELECT id, payload FROM test_history ORDER BY completed_at DESC, rowid DESC"
                )
                for row in cursor.fetchall():
                    try:
                        history.append(TestHistoryItem.from_dict(json.loads(row["payload"])))
                    except Exception as e:
                        logger.warning(f"Skipping test history row {row['id']}: {e}")
                        skipped += 1
        except Exception as e:
            logger.error(f"Error loading test history: {e}")
        return history, skipped

    def save_statistics(self, conn: sqlite3.Connection, statistics: Statistics) -> None:
        """Store the accumulator inside the caller's transaction"""
        conn.execute(
            """
            INSERT INTO statistics (id, payload) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET
                payload = excluded.payload,
                updated_at = CURRENT_TIMESTAMP
            """,
            (json.dumps(statistics.to_dict(), ensure_ascii=False),),
        )

    def get_statistics(self) -> Statistics:
        """Get the accumulator, empty when nothing was recorded yet"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("SELECT payload FROM statistics WHERE id = 1")
                row = cursor.fetchone()
                if row:
                    return Statistics.from_dict(json.loads(row["payload"]))
        except (InvalidRecord, ValueError) as e:
            logger.warning(f"Stored statistics are unreadable, starting empty: {e}")
        except Exception as e:
            logger.error(f"Error loading statistics: {e}")
        return Statistics()

    def clear(self, conn: sqlite3.Connection) -> None:
        conn.execute("DELETE FROM test_history")
        conn.execute("DELETE FROM statistics")
