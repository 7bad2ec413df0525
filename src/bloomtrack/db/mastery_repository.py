"""Repository functions for assessment results, topic mastery and history.

Level scores are stored in one column per Bloom's level
(remember_level ... create_level).
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone

import structlog

from bloomtrack.core.blooms import BLOOMS_LEVEL_ORDER, BloomsLevel
from bloomtrack.core.mastery_calculator import AssessmentResult, TopicMastery, as_utc
from bloomtrack.db.database import get_db, use_db

logger = structlog.get_logger(__name__)

LEVEL_COLUMNS: dict[BloomsLevel, str] = {
    level: f"{level.value.lower()}_level" for level in BLOOMS_LEVEL_ORDER
}

_MASTERY_COLUMNS = (
    "student_id, topic_id, subject_id, "
    + ", ".join(LEVEL_COLUMNS.values())
    + ", overall_mastery, last_assessment_date, assessment_count, last_decay_date"
)


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value))


def _row_to_mastery(row) -> TopicMastery:
    """Convert database row to TopicMastery."""
    keys = row.keys()
    return TopicMastery(
        student_id=row["student_id"],
        topic_id=row["topic_id"],
        subject_id=row["subject_id"],
        levels={level: float(row[column]) for level, column in LEVEL_COLUMNS.items()},
        overall_mastery=float(row["overall_mastery"]),
        last_assessment_date=(
            _parse_datetime(row["last_assessment_date"])
            if "last_assessment_date" in keys
            else _parse_datetime(row["recorded_at"])
        ),
        assessment_count=row["assessment_count"] if "assessment_count" in keys else 0,
        last_decay_date=(
            _parse_datetime(row["last_decay_date"]) if "last_decay_date" in keys else None
        ),
    )


# =============================================================================
# ASSESSMENT RESULTS
# =============================================================================


def save_assessment_result(
    result: AssessmentResult, conn: sqlite3.Connection | None = None
) -> int:
    """Persist a raw assessment result.

    Args:
        result: The result to store
        conn: Connection of an enclosing transaction, if any

    Returns:
        The new result_id
    """
    level_results = {
        level.value: {"score": r.score, "max_score": r.max_score}
        for level, r in result.level_results.items()
    }
    with use_db(conn) as db:
        cursor = db.execute(
            """
            INSERT INTO assessment_results (
                student_id, topic_id, assessment_id, level_results, completed_at
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                result.student_id,
                result.topic_id,
                result.assessment_id,
                json.dumps(level_results),
                as_utc(result.completed_at).isoformat(),
            ),
        )
        result_id = cursor.lastrowid

    logger.debug("results.inserted", result_id=result_id, student_id=result.student_id)
    return result_id


def count_assessment_results(student_id: str) -> int:
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) FROM assessment_results WHERE student_id = ?",
            (student_id,),
        ).fetchone()
    return int(row[0])


# =============================================================================
# TOPIC MASTERY
# =============================================================================


def get_topic_mastery(
    student_id: str, topic_id: str, conn: sqlite3.Connection | None = None
) -> TopicMastery | None:
    with use_db(conn) as db:
        row = db.execute(
            "SELECT * FROM topic_mastery WHERE student_id = ? AND topic_id = ?",
            (student_id, topic_id),
        ).fetchone()
    return _row_to_mastery(row) if row else None


def upsert_topic_mastery(
    mastery: TopicMastery, conn: sqlite3.Connection | None = None
) -> None:
    """Insert or replace the mastery of a student on a topic."""
    values = (
        mastery.student_id,
        mastery.topic_id,
        mastery.subject_id,
        *(mastery.levels.get(level, 0.0) for level in BLOOMS_LEVEL_ORDER),
        mastery.overall_mastery,
        mastery.last_assessment_date.isoformat() if mastery.last_assessment_date else None,
        mastery.assessment_count,
        mastery.last_decay_date.isoformat() if mastery.last_decay_date else None,
    )
    updates = ", ".join(
        f"{column} = excluded.{column}"
        for column in (
            "subject_id",
            *LEVEL_COLUMNS.values(),
            "overall_mastery",
            "last_assessment_date",
            "assessment_count",
            "last_decay_date",
        )
    )
    with use_db(conn) as db:
        db.execute(
            f"""
            INSERT INTO topic_mastery ({_MASTERY_COLUMNS})
            VALUES ({", ".join("?" * len(values))})
            ON CONFLICT(student_id, topic_id) DO UPDATE SET
                {updates},
                updated_at = datetime('now')
            """,
            values,
        )

    logger.debug(
        "mastery.saved",
        student_id=mastery.student_id,
        topic_id=mastery.topic_id,
        overall=round(mastery.overall_mastery, 2),
    )


def list_masteries_for_student(student_id: str) -> list[TopicMastery]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM topic_mastery WHERE student_id = ? ORDER BY topic_id",
            (student_id,),
        ).fetchall()
    return [_row_to_mastery(row) for row in rows]


def list_masteries_for_class(class_id: str) -> list[TopicMastery]:
    """Masteries of every student enrolled in a class."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT m.* FROM topic_mastery m
            JOIN class_enrollments e ON e.student_id = m.student_id
            WHERE e.class_id = ?
            ORDER BY m.student_id, m.topic_id
            """,
            (class_id,),
        ).fetchall()
    return [_row_to_mastery(row) for row in rows]


def list_masteries_for_subject(subject_id: str) -> list[TopicMastery]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM topic_mastery WHERE subject_id = ? ORDER BY student_id, topic_id",
            (subject_id,),
        ).fetchall()
    return [_row_to_mastery(row) for row in rows]


def list_masteries_for_topic(topic_id: str) -> list[TopicMastery]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM topic_mastery WHERE topic_id = ? ORDER BY student_id",
            (topic_id,),
        ).fetchall()
    return [_row_to_mastery(row) for row in rows]


def list_all_masteries() -> list[TopicMastery]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM topic_mastery ORDER BY student_id, topic_id"
        ).fetchall()
    return [_row_to_mastery(row) for row in rows]


# =============================================================================
# HISTORY
# =============================================================================


def append_history(
    mastery: TopicMastery,
    recorded_at: datetime | None = None,
    conn: sqlite3.Connection | None = None,
) -> None:
    """Store a snapshot of a mastery record."""
    recorded_at = as_utc(recorded_at or datetime.now(timezone.utc))
    with use_db(conn) as db:
        db.execute(
            f"""
            INSERT INTO mastery_history (
                student_id, topic_id, subject_id,
                {", ".join(LEVEL_COLUMNS.values())},
                overall_mastery, recorded_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                mastery.student_id,
                mastery.topic_id,
                mastery.subject_id,
                *(mastery.levels.get(level, 0.0) for level in BLOOMS_LEVEL_ORDER),
                mastery.overall_mastery,
                recorded_at.isoformat(),
            ),
        )


def get_history(student_id: str, topic_id: str) -> list[tuple[datetime, float]]:
    """(recorded_at, overall_mastery) snapshots, oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT recorded_at, overall_mastery FROM mastery_history
            WHERE student_id = ? AND topic_id = ?
            ORDER BY recorded_at, history_id
            """,
            (student_id, topic_id),
        ).fetchall()
    return [(_parse_datetime(row["recorded_at"]), float(row["overall_mastery"])) for row in rows]


def get_snapshot_before(student_id: str, before: datetime) -> list[TopicMastery]:
    """Latest snapshot per topic recorded strictly before a date.

    Used as the baseline for growth.
    """
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT h.* FROM mastery_history h
            WHERE h.student_id = ? AND h.recorded_at < ?
              AND h.history_id = (
                SELECT h2.history_id FROM mastery_history h2
                WHERE h2.student_id = h.student_id
                  AND h2.topic_id = h.topic_id
                  AND h2.recorded_at < ?
                ORDER BY h2.recorded_at DESC, h2.history_id DESC
                LIMIT 1
              )
            ORDER BY h.topic_id
            """,
            (student_id, as_utc(before).isoformat(), as_utc(before).isoformat()),
        ).fetchall()
    return [_row_to_mastery(row) for row in rows]
