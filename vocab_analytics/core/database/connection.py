"""
Database connection manager for the vocabulary analytics store
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from ...config import get_database_path
from ...utils import parse_timestamp

logger = logging.getLogger(__name__)


def _adapt_datetime(val: datetime) -> str:
    return val.isoformat()


def _convert_timestamp(val: bytes) -> datetime:
    parsed = parse_timestamp(val.decode())
    if parsed is None:
        raise ValueError(f"Invalid datetime format: {val.decode()}")
    return parsed


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("timestamp", _convert_timestamp)


class DatabaseConnection:
    """Manages SQLite database connections and settings"""

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or get_database_path()
        self._ensure_database_directory()
        self._init_connection_settings()

    def _ensure_database_directory(self) -> None:
        """Ensure the database directory exists"""
        db_dir = Path(self.db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

    def _init_connection_settings(self) -> None:
        """Initialize database connection settings"""
        with self.get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")

    @contextmanager
    def get_connection(self):
        """Get database connection with proper cleanup.

        The caller commits; any exception rolls the transaction back.
        """
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, detect_types=sqlite3.PARSE_DECLTYPES)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA busy_timeout=30000")
            yield conn
        except Exception as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    def init_database(self) -> None:
        """Initialize database tables"""
        with self.get_connection() as conn:
            self._create_tables(conn)
            self._create_indexes(conn)
            conn.commit()

    def _create_tables(self, conn: sqlite3.Connection) -> None:
        """Create database tables"""
        tables = [
            """
            CREATE TABLE IF NOT EXISTS words (
                id TEXT PRIMARY KEY,
                english TEXT NOT NULL,
                italian TEXT NOT NULL DEFAULT '',
                chapter TEXT,
                group_name TEXT DEFAULT '',
                notes TEXT DEFAULT '',
                sentences TEXT DEFAULT '[]',
                learned BOOLEAN DEFAULT 0,
                difficult BOOLEAN DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS word_performance (
                word_id TEXT PRIMARY KEY,
                english TEXT DEFAULT '',
                italian TEXT DEFAULT '',
                chapter TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS attempts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                word_id TEXT NOT NULL,
                correct BOOLEAN NOT NULL,
                time_spent INTEGER NOT NULL DEFAULT 0,
                used_hint BOOLEAN DEFAULT 0,
                hints_count INTEGER DEFAULT 0,
                attempted_at TIMESTAMP NOT NULL,
                FOREIGN KEY (word_id) REFERENCES word_performance(word_id) ON DELETE CASCADE
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS test_history (
                id TEXT PRIMARY KEY,
                completed_at TIMESTAMP NOT NULL,
                payload TEXT NOT NULL
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS statistics (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                payload TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
        ]

        for table_sql in tables:
            conn.execute(table_sql)

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create database indexes for performance"""
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_words_english ON words(english COLLATE NOCASE)",
            "CREATE INDEX IF NOT EXISTS idx_attempts_word_id ON attempts(word_id)",
            "CREATE INDEX IF NOT EXISTS idx_attempts_attempted_at ON attempts(attempted_at)",
            "CREATE INDEX IF NOT EXISTS idx_test_history_completed_at ON test_history(completed_at)",
        ]

        for index_sql in indexes:
            try:
                conn.execute(index_sql)
            except sqlite3.OperationalError as e:
                logger.warning(f"Failed to create index: {index_sql}, error: {e}")
