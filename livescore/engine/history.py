"""
Undo by replay.

Figures are accumulated forward only (over rollover, strike rates, lazily
created records), so the last ball is reversed by rebuilding the innings from
a zeroed state and re-scoring every remaining ball, never by subtraction.
"""

import logging
from typing import Optional

from livescore.engine.ball_processor import score_ball
from livescore.engine.tracker import required_run_rate
from livescore.errors import InvalidState, NothingToUndo
from livescore.models import BallEvent, BatsmanInnings, BowlerInnings, Innings, Match, MatchStatus

logger = logging.getLogger(__name__)


def reset_innings(innings: Innings, target: Optional[int] = None) -> Innings:
    """Zero every total and figure, keeping the roster keys and batting order."""
    return Innings(
        id=innings.id,
        innings_number=innings.innings_number,
        team_id=innings.team_id,
        batting_order=list(innings.batting_order),
        striker=innings.striker,
        non_striker=innings.non_striker,
        current_bowler=innings.current_bowler,
        batsmen={pid: BatsmanInnings(player_id=pid) for pid in innings.batsmen},
        bowlers={pid: BowlerInnings(player_id=pid) for pid in innings.bowlers},
        max_overs=innings.max_overs,
        required_run_rate=required_run_rate(target, 0, 0, 0, innings.max_overs),
    )


def replay_innings(innings: Innings, balls: list[BallEvent], target: Optional[int] = None) -> Innings:
    rebuilt = reset_innings(innings, target)
    for ball in balls:
        rebuilt = score_ball(rebuilt, ball, target)
    return rebuilt


def undo_last(match: Match) -> Match:
    """Return the match as if its most recent ball had never been bowled."""
    if not match.match_history:
        raise NothingToUndo("No balls to undo")
    if match.status == MatchStatus.COMPLETED:
        raise InvalidState("Cannot undo: match is completed")

    last = match.match_history[-1]
    innings = match.current_innings
    if last.innings != innings.innings_number:
        raise InvalidState(f"Cannot undo into innings {last.innings}: it has been closed")

    remaining = match.match_history[:-1]
    rebuilt = replay_innings(
        innings,
        [b for b in remaining if b.innings == innings.innings_number],
        match.target_score,
    )
    # Slots go back to who was at the crease and bowling for the undone ball
    rebuilt = rebuilt.model_copy(update={
        "striker": last.striker,
        "non_striker": last.non_striker,
        "current_bowler": last.bowler,
    })

    innings_list = [*match.innings]
    innings_list[match.current_innings_number - 1] = rebuilt
    logger.info(f"Match {match.id}: undid ball {last.ball_number} ({last.id})")
    return match.model_copy(update={"innings": innings_list, "match_history": remaining})
