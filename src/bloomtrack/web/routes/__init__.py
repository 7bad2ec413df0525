"""Route handlers for the Web API."""

from bloomtrack.web.routes.health import router as health_router
from bloomtrack.web.routes.students import router as students_router
from bloomtrack.web.routes.classes import router as classes_router
from bloomtrack.web.routes.subjects import router as subjects_router
from bloomtrack.web.routes.mastery import router as mastery_router

__all__ = [
    "health_router",
    "students_router",
    "classes_router",
    "subjects_router",
    "mastery_router",
]
