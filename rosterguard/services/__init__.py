"""
RosterGuard Services
====================

Business logic behind the HTTP and CLI surfaces.
"""

from rosterguard.services.integrity import IntegrityEngine
from rosterguard.services.updates import PlayerUpdateService

__all__ = [
    "IntegrityEngine",
    "PlayerUpdateService",
]
