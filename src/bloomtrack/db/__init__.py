"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repositories for the school registry (students, classes, subjects, topics)
- Repositories for assessment results, topic mastery and mastery history
"""

from bloomtrack.db.database import get_db, get_db_path, init_db

__all__ = ["get_db", "get_db_path", "init_db"]
