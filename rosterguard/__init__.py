"""
RosterGuard
===========

Player data integrity service for rugby squads:
- Validation of every player document change
- Cascading recomputation of derived scores
- Persistent update history and integrity reports
"""

__version__ = "1.0.0"
