"""
Per-player figures: pure functions from (previous record, ball) to a new record.

Nothing here mutates its inputs, so the same functions serve both forward
scoring and the replay that undo performs.
"""

from typing import Optional

from livescore.models import (
    BALLS_PER_OVER,
    BallEvent,
    BatsmanInnings,
    BowlerInnings,
    ExtraType,
    WicketType,
)


# ------------------------------------------------------------------ #
#  Derived figures
# ------------------------------------------------------------------ #

def strike_rate(runs: int, balls: int) -> float:
    if balls == 0:
        return 0.0
    return runs / balls * 100


def economy(runs: int, legal_balls: int) -> Optional[float]:
    """Runs per over; None until a legal ball is bowled, even if wides were conceded."""
    if legal_balls == 0:
        return None
    return runs / (legal_balls / BALLS_PER_OVER)


def overs_notation(legal_balls: int) -> float:
    """Legal balls as cricket overs notation: 26 balls -> 4.2."""
    return (legal_balls // BALLS_PER_OVER) + (legal_balls % BALLS_PER_OVER) / 10


def bowler_runs_conceded(ball: BallEvent) -> int:
    """Byes and leg-byes go to the team total but not against the bowler."""
    if ball.extra_type in (ExtraType.BYE, ExtraType.LEG_BYE):
        return ball.runs
    return ball.runs + ball.extra_runs


def credits_bowler(ball: BallEvent) -> bool:
    return ball.is_wicket and ball.wicket_type != WicketType.RUN_OUT


def dismissed_batsman(ball: BallEvent) -> Optional[str]:
    """The batter out on this ball: ``out_batsman`` if given, else the striker."""
    if not ball.is_wicket:
        return None
    return ball.out_batsman or ball.striker


# ------------------------------------------------------------------ #
#  Record updates
# ------------------------------------------------------------------ #

def update_striker(batsman: BatsmanInnings, ball: BallEvent) -> BatsmanInnings:
    """Credit the striker with runs off the bat and (for legal balls) a ball faced."""
    runs = batsman.runs + ball.runs
    balls = batsman.balls + (1 if ball.is_legal else 0)
    updated = batsman.model_copy(update={
        "runs": runs,
        "balls": balls,
        "fours": batsman.fours + (1 if ball.runs == 4 else 0),
        "sixes": batsman.sixes + (1 if ball.runs == 6 else 0),
        "strike_rate": strike_rate(runs, balls),
    })
    if dismissed_batsman(ball) == batsman.player_id:
        updated = record_dismissal(updated, ball)
    return updated


def record_dismissal(batsman: BatsmanInnings, ball: BallEvent) -> BatsmanInnings:
    return batsman.model_copy(update={
        "is_out": True,
        "is_batting": False,
        "out_method": ball.wicket_type,
        "out_bowler": ball.bowler,
        "out_fielder": ball.fielder,
    })


def update_bowler(bowler: BowlerInnings, ball: BallEvent) -> BowlerInnings:
    runs = bowler.runs + bowler_runs_conceded(ball)
    legal_balls = bowler.legal_balls + (1 if ball.is_legal else 0)
    return bowler.model_copy(update={
        "runs": runs,
        "legal_balls": legal_balls,
        "overs": overs_notation(legal_balls),
        "wickets": bowler.wickets + (1 if credits_bowler(ball) else 0),
        "economy": economy(runs, legal_balls),
    })


def credit_maiden(bowler: BowlerInnings) -> BowlerInnings:
    return bowler.model_copy(update={"maidens": bowler.maidens + 1})
