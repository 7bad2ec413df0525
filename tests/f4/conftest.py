"""Fixtures for F4 tests - Web API."""

import pytest
from fastapi.testclient import TestClient

from bloomtrack.config.app_config import clear_config_cache
from bloomtrack.db import database
from bloomtrack.web.api import create_app


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Create test client with an isolated database."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(database, "_db_path", None)
    clear_config_cache()

    app = create_app(db_path=tmp_path / "web.db")
    yield TestClient(app)

    clear_config_cache()


@pytest.fixture
def school(client):
    """Ana and Bruno in cls001, subject sub001 with topics top001 and top002."""
    client.post("/api/students", json={"name": "Ana", "email": "ana@example.com"})
    client.post("/api/students", json={"name": "Bruno"})
    client.post("/api/classes", json={"name": "Physics 1A"})
    client.post("/api/classes/cls001/enroll", json={"student_id": "stu001"})
    client.post("/api/classes/cls001/enroll", json={"student_id": "stu002"})
    client.post("/api/subjects", json={"name": "Physics"})
    client.post("/api/subjects/sub001/topics", json={"title": "Vectors"})
    client.post("/api/subjects/sub001/topics", json={"title": "Forces"})
    return client
