"""
Error outcomes of the scoring engine and its persistence boundary.

The engine raises these instead of silently dropping an event; the API layer
maps each one onto an HTTP status.
"""


class ScoringError(Exception):
    """Base class for every outcome the engine reports to its caller."""


class InvalidState(ScoringError):
    """Operation not allowed in the current match state (e.g. ball while not LIVE)."""


class NothingToUndo(ScoringError):
    """Undo requested with an empty match history."""


class PersistenceFailure(ScoringError):
    """
    The external save/delete failed; local state was not advanced.

    ``landed`` is True when a write reported as timed out completed anyway,
    so the caller knows storage has to be repaired.
    """

    def __init__(self, message: str, landed: bool = False) -> None:
        super().__init__(message)
        self.landed = landed


class MatchNotFound(ScoringError):
    """No match with the requested id exists."""

    def __init__(self, match_id: str) -> None:
        super().__init__(f"Match not found: {match_id}")
        self.match_id = match_id
