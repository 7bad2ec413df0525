"""Health check endpoint."""

import sqlite3
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter

from bloomtrack.db import get_db, get_db_path
from bloomtrack.web.schemas import HealthResponse

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])


def _database_status() -> tuple[str, int]:
    """Check the database; returns (status, stored mastery records)."""
    try:
        with get_db() as conn:
            row = conn.execute("SELECT COUNT(*) FROM topic_mastery").fetchone()
    except sqlite3.Error as e:
        logger.warning("health.database_unavailable", path=str(get_db_path()), error=str(e))
        return "unavailable", 0
    return "ok", int(row[0])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Report API and database status."""
    database, mastery_records = _database_status()
    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        database=database,
        mastery_records=mastery_records,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
