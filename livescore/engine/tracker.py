"""
Innings-level bookkeeping: totals, over rollover, sealed overs and run rates.
"""

from typing import Optional

from livescore.engine.stats import bowler_runs_conceded
from livescore.models import ALL_OUT_WICKETS, BALLS_PER_OVER, BallEvent, Innings, Over

# Smallest remaining-overs divisor for the required rate: one ball
MIN_REMAINING_OVERS = 1 / BALLS_PER_OVER


def current_run_rate(total_runs: int, total_overs: int, current_over_balls: int) -> float:
    overs = total_overs + current_over_balls / BALLS_PER_OVER
    if overs == 0:
        return 0.0
    return total_runs / overs


def required_run_rate(
    target: Optional[int],
    total_runs: int,
    total_overs: int,
    current_over_balls: int,
    max_overs: Optional[int],
) -> Optional[float]:
    """Runs per over still needed; None when not chasing or already home."""
    if target is None or max_overs is None or total_runs >= target:
        return None
    remaining = max_overs - total_overs - current_over_balls / BALLS_PER_OVER
    return (target - total_runs) / max(remaining, MIN_REMAINING_OVERS)


def seal_over(over_number: int, balls: list[BallEvent]) -> Over:
    bowler = balls[-1].bowler if balls else None
    conceded = sum(bowler_runs_conceded(b) for b in balls)
    return Over(
        over_number=over_number,
        bowler=bowler,
        balls=balls,
        runs=sum(b.total_runs for b in balls),
        wickets=sum(1 for b in balls if b.is_wicket),
        # A maiden belongs to one bowler; an over shared after a change is never one
        maiden_over=conceded == 0 and all(b.bowler == bowler for b in balls),
    )


def advance_innings(innings: Innings, ball: BallEvent, target: Optional[int] = None) -> Innings:
    """Return a new Innings with the ball's totals applied.

    A sixth legal ball seals the over in the same update, so
    ``current_over_balls == 6`` is never observable.
    """
    total_runs = innings.total_runs + ball.total_runs
    total_wickets = innings.total_wickets + (1 if ball.is_wicket else 0)
    total_overs = innings.total_overs
    current_over_balls = innings.current_over_balls
    current_over = [*innings.current_over, ball]
    overs = innings.overs

    if ball.is_legal:
        current_over_balls += 1
        if current_over_balls == BALLS_PER_OVER:
            overs = [*overs, seal_over(len(overs) + 1, current_over)]
            current_over = []
            current_over_balls = 0
            total_overs += 1

    rrr = innings.required_run_rate
    if target is not None:
        rrr = required_run_rate(target, total_runs, total_overs, current_over_balls, innings.max_overs)

    return innings.model_copy(update={
        "total_runs": total_runs,
        "total_wickets": total_wickets,
        "total_overs": total_overs,
        "current_over_balls": current_over_balls,
        "extras": innings.extras + ball.extra_runs,
        "overs": overs,
        "current_over": current_over,
        "current_run_rate": current_run_rate(total_runs, total_overs, current_over_balls),
        "required_run_rate": rrr,
    })


def over_just_completed(before: Innings, after: Innings) -> Optional[Over]:
    if len(after.overs) > len(before.overs):
        return after.overs[-1]
    return None


def is_all_out(innings: Innings) -> bool:
    return innings.total_wickets >= ALL_OUT_WICKETS


def overs_exhausted(innings: Innings) -> bool:
    return innings.max_overs is not None and innings.total_overs >= innings.max_overs


def innings_complete(innings: Innings, target: Optional[int] = None) -> bool:
    """All out, out of overs, or (when chasing) the target reached."""
    if is_all_out(innings) or overs_exhausted(innings):
        return True
    return target is not None and innings.total_runs >= target
