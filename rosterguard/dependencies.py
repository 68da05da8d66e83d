"""
FastAPI Dependencies
====================

Providers for the per-application objects stored on ``app.state`` by
``create_app``.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from rosterguard.config import Settings
from rosterguard.services import IntegrityEngine, PlayerUpdateService


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_settings_dependency(request: Request) -> Settings:
    return request.app.state.settings


def get_integrity_engine(request: Request) -> IntegrityEngine:
    return request.app.state.integrity_engine


def get_update_service(request: Request) -> PlayerUpdateService:
    return request.app.state.update_service
