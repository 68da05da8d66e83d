"""
Domain exceptions raised by the service layer.

Routers translate these into HTTP errors; update batches never raise
them and report failures through UpdateResult instead.
"""


class RosterGuardError(Exception):
    """Base class for service-layer errors."""


class PlayerNotFoundError(RosterGuardError):
    def __init__(self, player_id: str):
        super().__init__(f"Player {player_id} not found")
        self.player_id = player_id


class PlayerExistsError(RosterGuardError):
    def __init__(self, player_id: str):
        super().__init__(f"Player {player_id} already exists")
        self.player_id = player_id
