"""
Health Check Router
===================

Provides health, readiness, and liveness endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rosterguard.config import Settings
from rosterguard.dependencies import get_db, get_settings_dependency
from rosterguard.schemas import HealthResponse, ReadyResponse

router = APIRouter(tags=["Health"])


async def _database_ok(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dependency),
) -> HealthResponse:
    """
    Health check endpoint.

    Reports the database status; the service is "degraded" when the
    database cannot be reached.
    """
    db_status = "healthy" if await _database_ok(db) else "unhealthy"

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        version=settings.api_version,
        timestamp=datetime.utcnow(),
        database=db_status,
        environment=settings.environment,
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check(db: AsyncSession = Depends(get_db)) -> ReadyResponse:
    """
    Kubernetes readiness probe.

    Returns true only if all critical dependencies are available.
    """
    checks = {"database": await _database_ok(db)}
    return ReadyResponse(ready=all(checks.values()), checks=checks)


@router.get("/live")
async def liveness_check() -> dict:
    """
    Kubernetes liveness probe.

    Simple check that the service is responding.
    """
    return {"alive": True}
