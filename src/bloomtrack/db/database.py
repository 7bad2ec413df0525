"""SQLite database connection and schema management.

Provides connection management and schema initialization for bloomtrack.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/bloomtrack.db")

# Current database path (module-level for simplicity in CLI context)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/bloomtrack.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    """Path of the active database."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM students").fetchall()
    """
    db_path = get_db_path()

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def use_db(
    conn: sqlite3.Connection | None = None,
) -> Generator[sqlite3.Connection, None, None]:
    """Reuse a caller's connection, or open one with get_db().

    A reused connection is left to its owner to commit or roll back.
    """
    if conn is not None:
        yield conn
        return
    with get_db() as own:
        yield own


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS students (
            student_id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            email TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS classes (
            class_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS class_enrollments (
            class_id TEXT NOT NULL REFERENCES classes(class_id) ON DELETE CASCADE,
            student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
            enrolled_at TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (class_id, student_id)
        );

        CREATE TABLE IF NOT EXISTS subjects (
            subject_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS topics (
            topic_id TEXT PRIMARY KEY,
            subject_id TEXT NOT NULL REFERENCES subjects(subject_id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Raw results; level_results is JSON {LEVEL: {score, max_score}}
        CREATE TABLE IF NOT EXISTS assessment_results (
            result_id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
            topic_id TEXT NOT NULL REFERENCES topics(topic_id) ON DELETE CASCADE,
            assessment_id TEXT NOT NULL DEFAULT '',
            level_results TEXT NOT NULL DEFAULT '{}',
            completed_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS topic_mastery (
            student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
            topic_id TEXT NOT NULL REFERENCES topics(topic_id) ON DELETE CASCADE,
            subject_id TEXT NOT NULL,
            remember_level REAL NOT NULL DEFAULT 0 CHECK(remember_level BETWEEN 0 AND 100),
            understand_level REAL NOT NULL DEFAULT 0 CHECK(understand_level BETWEEN 0 AND 100),
            apply_level REAL NOT NULL DEFAULT 0 CHECK(apply_level BETWEEN 0 AND 100),
            analyze_level REAL NOT NULL DEFAULT 0 CHECK(analyze_level BETWEEN 0 AND 100),
            evaluate_level REAL NOT NULL DEFAULT 0 CHECK(evaluate_level BETWEEN 0 AND 100),
            create_level REAL NOT NULL DEFAULT 0 CHECK(create_level BETWEEN 0 AND 100),
            overall_mastery REAL NOT NULL DEFAULT 0 CHECK(overall_mastery BETWEEN 0 AND 100),
            last_assessment_date TEXT,
            assessment_count INTEGER NOT NULL DEFAULT 0,
            last_decay_date TEXT,
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (student_id, topic_id)
        );

        -- Snapshots taken after every update, for trends and growth
        CREATE TABLE IF NOT EXISTS mastery_history (
            history_id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
            topic_id TEXT NOT NULL REFERENCES topics(topic_id) ON DELETE CASCADE,
            subject_id TEXT NOT NULL,
            remember_level REAL NOT NULL DEFAULT 0,
            understand_level REAL NOT NULL DEFAULT 0,
            apply_level REAL NOT NULL DEFAULT 0,
            analyze_level REAL NOT NULL DEFAULT 0,
            evaluate_level REAL NOT NULL DEFAULT 0,
            create_level REAL NOT NULL DEFAULT 0,
            overall_mastery REAL NOT NULL DEFAULT 0,
            recorded_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_topics_subject ON topics(subject_id);
        CREATE INDEX IF NOT EXISTS idx_results_student ON assessment_results(student_id);
        CREATE INDEX IF NOT EXISTS idx_mastery_topic ON topic_mastery(topic_id);
        CREATE INDEX IF NOT EXISTS idx_mastery_subject ON topic_mastery(subject_id);
        CREATE INDEX IF NOT EXISTS idx_history_student ON mastery_history(student_id, recorded_at);
        """
    )
