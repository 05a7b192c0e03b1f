"""
Performance repository for per-word attempt logs
"""

import logging
import sqlite3

from ...errors import InvalidRecord
from ...models import Attempt, WordPerformance
from ..connection import DatabaseConnection

logger = logging.getLogger(__name__)


class PerformanceRepository:
    """Repository for word performance and attempt operations.

    Only identity fields and raw attempts are stored; accuracy and the other
    aggregates are recomputed from the attempts on read.
    """

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def ensure_performance(self, conn: sqlite3.Connection, performance: WordPerformance) -> None:
        """Create the performance record or refresh its identity fields"""
        conn.execute(
            """
            INSERT INTO word_performance (word_id, english, italian, chapter)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(word_id) DO UPDATE SET
                english = excluded.english,
                italian = excluded.italian,
                chapter = excluded.chapter,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                performance.word_id,
                performance.english,
                performance.italian,
                performance.chapter,
            ),
        )

    def append_attempts(
        self, conn: sqlite3.Connection, performance: WordPerformance, attempts: list[Attempt]
    ) -> int:
        """Append attempts to one word's log inside the caller's transaction"""
        self.ensure_performance(conn, performance)
        conn.executemany(
            """
            INSERT INTO attempts (
                word_id, correct, time_spent, used_hint, hints_count, attempted_at
            )
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    performance.word_id,
                    a.correct,
                    a.time_spent,
                    a.used_hint,
                    a.hints_count,
                    a.timestamp,
                )
                for a in attempts
            ],
        )
        return len(attempts)

    def write_performance(self, conn: sqlite3.Connection, performance: WordPerformance) -> None:
        """Replace one word's whole attempt log"""
        self.delete_performance(conn, performance.word_id)
        self.append_attempts(conn, performance, performance.attempts)

    def delete_performance(self, conn: sqlite3.Connection, word_id: str) -> None:
        # Attempts go with it through the foreign key cascade
        conn.execute("DELETE FROM word_performance WHERE word_id = ?", (word_id,))

    def clear(self, conn: sqlite3.Connection) -> None:
        conn.execute("DELETE FROM attempts")
        conn.execute("DELETE FROM word_performance")

    def get_performance(self, word_id: str) -> WordPerformance | None:
        """Get one word's performance with attempts in chronological order"""
        performances, _ = self.load_performances(word_id)
        return performances.get(word_id)

    def load_performances(self, word_id: str | None = None) -> tuple[dict[str, WordPerformance], int]:
        """Load performance records keyed by word id.

        Returns the records and the number of attempt rows that were skipped
        as malformed.
        """
        performances: dict[str, WordPerformance] = {}
        skipped = 0
        where = "WHERE word_id = ?" if word_id else ""
        params = (word_id,) if word_id else ()
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(f"SELECT * FROM word_performance {where}", params)  # noqa: S608
                for row in cursor.fetchall():
                    performances[row["word_id"]] = WordPerformance(
                        word_id=row["word_id"],
                        english=row["english"] or "",
                        italian=row["italian"] or "",
                        chapter=row["chapter"],
                    )

                cursor = conn.execute(
                    f"SELECT * FROM attempts {where} ORDER BY attempted_at, id",  # noqa: S608
                    params,
                )
                for row in cursor.fetchall():
                    performance = performances.get(row["word_id"])
                    if performance is None:
                        skipped += 1
                        continue
                    try:
                        attempt = Attempt(
                            correct=bool(row["correct"]),
                            time_spent=int(row["time_spent"]),
                            timestamp=row["attempted_at"],
                            used_hint=bool(row["used_hint"]),
                            hints_count=int(row["hints_count"] or 0),
                        )
                        if not attempt.is_valid():
                            raise InvalidRecord("attempt", "negative time", row["word_id"])
                    except Exception as e:
                        logger.warning(f"Skipping attempt row {row['id']}: {e}")
                        skipped += 1
                        continue
                    performance.attempts.append(attempt)
        except Exception as e:
            logger.error(f"Error loading word performance: {e}")
        return performances, skipped
