"""FastAPI application factory.

Main entry point for the Bloomtrack Web API.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bloomtrack.config.app_config import load_app_config
from bloomtrack.db import get_db_path, init_db
from bloomtrack.web.routes import (
    health_router,
    students_router,
    classes_router,
    subjects_router,
    mastery_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    if not app.state.db_ready:
        init_db(load_app_config().db_path)
        app.state.db_ready = True
    logger.info("api_startup", db_path=str(get_db_path().absolute()))
    yield
    # Shutdown (nothing to do for now)


def create_app(db_path: Path | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        db_path: Database to use. When given, the schema is initialized
            immediately; otherwise at startup from the app config.

    Returns:
        Configured FastAPI app instance
    """
    config = load_app_config()

    app = FastAPI(
        title=config.api.title,
        description="Bloom's Taxonomy mastery tracking API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.db_ready = False
    if db_path is not None:
        init_db(db_path)
        app.state.db_ready = True

    # CORS middleware for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(students_router)
    app.include_router(classes_router)
    app.include_router(subjects_router)
    app.include_router(mastery_router)

    return app


# Default app instance for uvicorn
app = create_app()
