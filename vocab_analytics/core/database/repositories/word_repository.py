"""
Word repository for database operations
"""

import json
import logging
import sqlite3

from ...models import Word
from ..connection import DatabaseConnection

logger = logging.getLogger(__name__)


def _row_to_word(row: sqlite3.Row) -> Word:
    return Word.from_dict(
        {
            "id": row["id"],
            "english": row["english"],
            "italian": row["italian"],
            "chapter": row["chapter"],
            "group": row["group_name"],
            "notes": row["notes"],
            "sentences": json.loads(row["sentences"] or "[]"),
            "learned": bool(row["learned"]),
            "difficult": bool(row["difficult"]),
        }
    )


class WordRepository:
    """Repository for word-related database operations"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def save_word(self, word: Word) -> bool:
        """Create or update a word"""
        try:
            with self.db_connection.get_connection() as conn:
                self.write_word(conn, word)
                conn.commit()
                return True
        except Exception as e:
            logger.error(f"Error saving word {word.id}: {e}")
            return False

    def write_word(self, conn: sqlite3.Connection, word: Word) -> None:
        """Upsert a word inside the caller's transaction"""
        conn.execute(
            """
            INSERT INTO words (
                id, english, italian, chapter, group_name, notes,
                sentences, learned, difficult
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                english = excluded.english,
                italian = excluded.italian,
                chapter = excluded.chapter,
                group_name = excluded.group_name,
                notes = excluded.notes,
                sentences = excluded.sentences,
                learned = excluded.learned,
                difficult = excluded.difficult,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                word.id,
                word.english,
                word.italian,
                word.chapter,
                word.group,
                word.notes,
                json.dumps(word.sentences, ensure_ascii=False),
                word.learned,
                word.difficult,
            ),
        )

    def get_word_by_id(self, word_id: str) -> Word | None:
        """Get word by ID"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("SELECT * FROM words WHERE id = ?", (word_id,))
                row = cursor.fetchone()
                return _row_to_word(row) if row else None
        except Exception as e:
            logger.error(f"Error getting word by ID: {e}")
            return None

    def get_word_by_english(self, english: str) -> Word | None:
        """Get word by its English text, ignoring case"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "SELECT * FROM words WHERE LOWER(english) = LOWER(?)", (english.strip(),)
                )
                row = cursor.fetchone()
                return _row_to_word(row) if row else None
        except Exception as e:
            logger.error(f"Error getting word by english: {e}")
            return None

    def load_words(self) -> tuple[list[Word], int]:
        """Load every word, oldest first, with the count of unreadable rows"""
        words: list[Word] = []
        skipped = 0
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("SELECT * FROM words ORDER BY created_at, rowid")
                for row in cursor.fetchall():
                    try:
                        words.append(_row_to_word(row))
                    except Exception as e:
                        logger.warning(f"Skipping word row {row['id']}: {e}")
                        skipped += 1
        except Exception as e:
            logger.error(f"Error loading words: {e}")
        return words, skipped

    def delete_word(self, conn: sqlite3.Connection, word_id: str) -> bool:
        """Delete a word inside the caller's transaction"""
        cursor = conn.execute("DELETE FROM words WHERE id = ?", (word_id,))
        return cursor.rowcount > 0

    def clear(self, conn: sqlite3.Connection) -> None:
        conn.execute("DELETE FROM words")
