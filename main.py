"""
RosterGuard API
===============
Player data integrity service for rugby squads

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from rosterguard.config import Settings, configure_logging, get_settings
from rosterguard.database import build_engine, build_session_factory, check_database_connection, create_tables
from rosterguard.middleware import setup_middleware
from rosterguard.routers import data_router, health_router, players_router
from rosterguard.services import IntegrityEngine, PlayerUpdateService

logger = logging.getLogger(__name__)


# OpenAPI tags metadata for better documentation
tags_metadata = [
    {
        "name": "Health",
        "description": "Health check and status endpoints",
    },
    {
        "name": "Players",
        "description": "Player documents, domain updates, history and integrity reports",
    },
    {
        "name": "Data",
        "description": "Dry-run validation and cascade impact analysis",
    },
]


def create_app(settings: Optional[Settings] = None, engine: Optional[AsyncEngine] = None) -> FastAPI:
    """
    Build the application.

    One IntegrityEngine and one PlayerUpdateService are created per app
    and stored on ``app.state``; pass ``engine`` to run against an
    existing database engine (tests use in-memory SQLite).
    """
    settings = settings or get_settings()
    db_engine = engine or build_engine(settings=settings)
    session_factory = build_session_factory(db_engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("RosterGuard API starting up...")
        await check_database_connection(db_engine)
        if settings.auto_create_tables:
            await create_tables(db_engine)
        logger.info("Database connection verified")
        yield
        logger.info("RosterGuard API shutting down...")
        await db_engine.dispose()

    app = FastAPI(
        title="RosterGuard API",
        description="""
## Player data integrity for rugby squads

Every change to a player document passes through one integrity engine:

- **Validation**: all rule violations are reported together; nothing is written on failure
- **Cascades**: medical status, availability and composite scores are recomputed from injuries,
  physical attributes, game stats, skills and medical appointments
- **History**: each accepted batch is recorded with before/after values

### Features

- Domain update endpoints (medical, training, GPS, AI analysis, CSV import, external sync)
- Dry-run validation and impact analysis
- Per-player integrity report
""",
        version=settings.api_version,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=tags_metadata,
    )

    integrity_engine = IntegrityEngine(session_factory, settings=settings)

    app.state.settings = settings
    app.state.db_engine = db_engine
    app.state.session_factory = session_factory
    app.state.integrity_engine = integrity_engine
    app.state.update_service = PlayerUpdateService(integrity_engine)

    setup_middleware(app, settings)

    # Health endpoints at root level
    app.include_router(health_router)

    app.include_router(players_router, prefix="/api")
    app.include_router(data_router, prefix="/api")

    @app.get("/", response_class=ORJSONResponse)
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "RosterGuard API",
            "version": settings.api_version,
            "description": "Player data integrity service for rugby squads",
            "docs": "/docs",
            "health": "/health",
            "api": {
                "player": "/api/players/{player_id}",
                "history": "/api/players/{player_id}/update-history",
                "report": "/api/players/{player_id}/integrity-report",
                "validate": "/api/data/validate",
            },
            "timestamp": datetime.utcnow().isoformat(),
        }

    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
