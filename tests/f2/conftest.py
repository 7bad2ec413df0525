"""Fixtures for F2 tests - persistence and mastery service."""

from datetime import datetime, timezone

import pytest

from bloomtrack.config.app_config import DecayConfig, MasteryConfig
from bloomtrack.db import database
from bloomtrack.db.database import init_db
from bloomtrack.db import registry_repository as registry


@pytest.fixture
def init_test_db(tmp_path, monkeypatch):
    """Initialize an isolated test database."""
    monkeypatch.setattr(database, "_db_path", None)
    db_path = tmp_path / "db" / "bloomtrack.db"
    init_db(db_path)
    return db_path


@pytest.fixture
def school(init_test_db):
    """Two students in a class, one subject with two topics."""
    ana = registry.insert_student("Ana", "ana@example.com")
    bruno = registry.insert_student("Bruno")
    klass = registry.insert_class("Physics 1A")
    registry.enroll_student(klass.class_id, ana.student_id)
    registry.enroll_student(klass.class_id, bruno.student_id)
    subject = registry.insert_subject("Physics")
    vectors = registry.insert_topic(subject.subject_id, "Vectors")
    forces = registry.insert_topic(subject.subject_id, "Forces")
    return {
        "ana": ana,
        "bruno": bruno,
        "class": klass,
        "subject": subject,
        "vectors": vectors,
        "forces": forces,
    }


@pytest.fixture
def no_decay_config():
    """Mastery config with decay disabled."""
    return MasteryConfig(decay=DecayConfig(enabled=False))


@pytest.fixture
def t0():
    return datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
