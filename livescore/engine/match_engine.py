from typing import Optional

from livescore.engine import ball_processor as bp
from livescore.engine.history import undo_last
from livescore.models import (
    BallEvent,
    ExtraType,
    Match,
    MatchEventType,
    WicketType,
)


class MatchEngine:
    """
    Holds the authoritative Match for one scoring session.

    One instance per match being scored; the engine is synchronous and assumes
    a single writer. Each operation replaces ``self.match`` with the new value
    returned by the ball processor and returns it. ``restore`` puts back a
    previous value, which is how the session rolls back a failed persist.
    """

    def __init__(self, match: Match) -> None:
        self.match = match

    def _commit(self, match: Match) -> Match:
        self.match = match
        return match

    def restore(self, match: Match) -> None:
        self.match = match

    # --- balls ---

    def apply_ball(self, ball: BallEvent) -> Match:
        return self._commit(bp.apply_ball(self.match, ball))

    def record_ball(
        self,
        runs: int = 0,
        extra_type: ExtraType = ExtraType.NONE,
        extra_runs: int = 0,
        wicket_type: WicketType = WicketType.NONE,
        out_batsman: Optional[str] = None,
        fielder: Optional[str] = None,
    ) -> Match:
        """Build a ball from scorer input and apply it to the current innings."""
        ball = BallEvent(
            runs=runs,
            extra_type=extra_type,
            extra_runs=extra_runs,
            wicket_type=wicket_type,
            out_batsman=out_batsman,
            fielder=fielder,
        )
        return self.apply_ball(ball)

    def undo_last(self) -> Match:
        return self._commit(undo_last(self.match))

    @property
    def last_ball(self) -> Optional[BallEvent]:
        return self.match.match_history[-1] if self.match.match_history else None

    # --- selection ---

    def select_striker(self, player_id: str) -> Match:
        return self._commit(bp.select_striker(self.match, player_id))

    def select_non_striker(self, player_id: str) -> Match:
        return self._commit(bp.select_non_striker(self.match, player_id))

    def select_bowler(self, player_id: str) -> Match:
        return self._commit(bp.select_bowler(self.match, player_id))

    def swap_batsmen(self) -> Match:
        return self._commit(bp.swap_batsmen(self.match))

    # --- lifecycle ---

    def start(self) -> Match:
        return self._commit(bp.start(self.match))

    def pause(self, event_type: MatchEventType = MatchEventType.DRINKS, description: Optional[str] = None) -> Match:
        return self._commit(bp.pause(self.match, event_type, description))

    def delay(self, description: Optional[str] = None, duration: Optional[int] = None) -> Match:
        return self._commit(bp.delay(self.match, description, duration))

    def resume(self) -> Match:
        return self._commit(bp.resume(self.match))

    def end_innings(self) -> Match:
        return self._commit(bp.end_innings(self.match))

    def end_match(self) -> Match:
        return self._commit(bp.end_match(self.match))
