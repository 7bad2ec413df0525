"""Repository functions for students, classes, subjects and topics.

IDs are sequential and prefixed: stu001, cls001, sub001, top001.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

import structlog

from bloomtrack.db.database import get_db

logger = structlog.get_logger(__name__)


class EntityNotFoundError(Exception):
    """Raised when a referenced student, class, subject or topic is missing."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} '{entity_id}' not found")


class DuplicateEntityError(Exception):
    """Raised when a unique name is already taken."""

    pass


@dataclass
class StudentRecord:
    student_id: str
    name: str
    email: str
    created_at: str


@dataclass
class ClassRecord:
    class_id: str
    name: str
    created_at: str


@dataclass
class SubjectRecord:
    subject_id: str
    name: str
    created_at: str


@dataclass
class TopicRecord:
    topic_id: str
    subject_id: str
    title: str
    created_at: str


def _next_id(conn: sqlite3.Connection, table: str, column: str, prefix: str) -> str:
    """Generate the next sequential ID for a table.

    Format: {prefix}{NNN}
    """
    rows = conn.execute(
        f"SELECT {column} FROM {table} WHERE {column} LIKE ?", (f"{prefix}%",)
    ).fetchall()
    numbers = [
        int(row[0][len(prefix):]) for row in rows if row[0][len(prefix):].isdigit()
    ]
    return f"{prefix}{max(numbers, default=0) + 1:03d}"


# =============================================================================
# STUDENTS
# =============================================================================


def insert_student(name: str, email: str = "") -> StudentRecord:
    """Insert a new student.

    Raises:
        DuplicateEntityError: If a student with the same name exists
    """
    with get_db() as conn:
        student_id = _next_id(conn, "students", "student_id", "stu")
        try:
            conn.execute(
                "INSERT INTO students (student_id, name, email) VALUES (?, ?, ?)",
                (student_id, name, email),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateEntityError(
                f"Student with name '{name}' already exists"
            ) from e
        row = conn.execute(
            "SELECT * FROM students WHERE student_id = ?", (student_id,)
        ).fetchone()

    logger.debug("students.inserted", student_id=student_id)
    return StudentRecord(**dict(row))


def get_student(student_id: str) -> StudentRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM students WHERE student_id = ?", (student_id,)
        ).fetchone()
    return StudentRecord(**dict(row)) if row else None


def list_students() -> list[StudentRecord]:
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM students ORDER BY student_id").fetchall()
    return [StudentRecord(**dict(row)) for row in rows]


def delete_student(student_id: str) -> bool:
    """Delete student by ID (cascades to mastery data).

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM students WHERE student_id = ?", (student_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("students.deleted", student_id=student_id)
    return deleted


# =============================================================================
# CLASSES
# =============================================================================


def insert_class(name: str) -> ClassRecord:
    with get_db() as conn:
        class_id = _next_id(conn, "classes", "class_id", "cls")
        conn.execute(
            "INSERT INTO classes (class_id, name) VALUES (?, ?)", (class_id, name)
        )
        row = conn.execute(
            "SELECT * FROM classes WHERE class_id = ?", (class_id,)
        ).fetchone()

    logger.debug("classes.inserted", class_id=class_id)
    return ClassRecord(**dict(row))


def get_class(class_id: str) -> ClassRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM classes WHERE class_id = ?", (class_id,)
        ).fetchone()
    return ClassRecord(**dict(row)) if row else None


def list_classes() -> list[ClassRecord]:
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM classes ORDER BY class_id").fetchall()
    return [ClassRecord(**dict(row)) for row in rows]


def enroll_student(class_id: str, student_id: str) -> bool:
    """Enroll a student into a class.

    Returns:
        True if newly enrolled, False if already enrolled

    Raises:
        EntityNotFoundError: If class or student doesn't exist
    """
    if get_class(class_id) is None:
        raise EntityNotFoundError("class", class_id)
    if get_student(student_id) is None:
        raise EntityNotFoundError("student", student_id)

    with get_db() as conn:
        cursor = conn.execute(
            "INSERT OR IGNORE INTO class_enrollments (class_id, student_id) VALUES (?, ?)",
            (class_id, student_id),
        )

    enrolled = cursor.rowcount > 0
    if enrolled:
        logger.debug("classes.enrolled", class_id=class_id, student_id=student_id)
    return enrolled


def list_class_students(class_id: str) -> list[StudentRecord]:
    """Students enrolled in a class, by name."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT s.* FROM students s
            JOIN class_enrollments e ON e.student_id = s.student_id
            WHERE e.class_id = ?
            ORDER BY s.name
            """,
            (class_id,),
        ).fetchall()
    return [StudentRecord(**dict(row)) for row in rows]


# =============================================================================
# SUBJECTS AND TOPICS
# =============================================================================


def insert_subject(name: str) -> SubjectRecord:
    with get_db() as conn:
        subject_id = _next_id(conn, "subjects", "subject_id", "sub")
        conn.execute(
            "INSERT INTO subjects (subject_id, name) VALUES (?, ?)", (subject_id, name)
        )
        row = conn.execute(
            "SELECT * FROM subjects WHERE subject_id = ?", (subject_id,)
        ).fetchone()

    logger.debug("subjects.inserted", subject_id=subject_id)
    return SubjectRecord(**dict(row))


def get_subject(subject_id: str) -> SubjectRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM subjects WHERE subject_id = ?", (subject_id,)
        ).fetchone()
    return SubjectRecord(**dict(row)) if row else None


def list_subjects() -> list[SubjectRecord]:
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM subjects ORDER BY subject_id").fetchall()
    return [SubjectRecord(**dict(row)) for row in rows]


def insert_topic(subject_id: str, title: str) -> TopicRecord:
    """Insert a topic under a subject.

    Raises:
        EntityNotFoundError: If the subject doesn't exist
    """
    if get_subject(subject_id) is None:
        raise EntityNotFoundError("subject", subject_id)

    with get_db() as conn:
        topic_id = _next_id(conn, "topics", "topic_id", "top")
        conn.execute(
            "INSERT INTO topics (topic_id, subject_id, title) VALUES (?, ?, ?)",
            (topic_id, subject_id, title),
        )
        row = conn.execute(
            "SELECT * FROM topics WHERE topic_id = ?", (topic_id,)
        ).fetchone()

    logger.debug("topics.inserted", topic_id=topic_id, subject_id=subject_id)
    return TopicRecord(**dict(row))


def get_topic(topic_id: str) -> TopicRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM topics WHERE topic_id = ?", (topic_id,)
        ).fetchone()
    return TopicRecord(**dict(row)) if row else None


def list_topics(subject_id: str | None = None) -> list[TopicRecord]:
    with get_db() as conn:
        if subject_id is None:
            rows = conn.execute("SELECT * FROM topics ORDER BY topic_id").fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM topics WHERE subject_id = ? ORDER BY topic_id",
                (subject_id,),
            ).fetchall()
    return [TopicRecord(**dict(row)) for row in rows]


def get_topic_names() -> dict[str, str]:
    """topic_id -> title for every topic."""
    return {t.topic_id: t.title for t in list_topics()}


def get_subject_names() -> dict[str, str]:
    """subject_id -> name for every subject."""
    return {s.subject_id: s.name for s in list_subjects()}
