"""
RosterGuard API Routers
=======================

All API routers for the RosterGuard API.
"""

from rosterguard.routers.health import router as health_router
from rosterguard.routers.players import router as players_router
from rosterguard.routers.data import router as data_router

__all__ = [
    "health_router",
    "players_router",
    "data_router",
]
