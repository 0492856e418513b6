"""
Match state machine: ball application, player selection and lifecycle.

Every function takes a Match and returns a new Match; the input is left
untouched so callers can keep the previous value for rollback.

    UPCOMING -> LIVE <-> PAUSED / DELAYED -> COMPLETED (terminal)
"""

import logging
from typing import Optional

from livescore.engine.stats import (
    credit_maiden,
    dismissed_batsman,
    record_dismissal,
    update_bowler,
    update_striker,
)
from livescore.engine.tracker import (
    advance_innings,
    innings_complete,
    over_just_completed,
    required_run_rate,
)
from livescore.errors import InvalidState
from livescore.models import (
    ALL_OUT_WICKETS,
    FORMAT_MAX_OVERS,
    BallEvent,
    BatsmanInnings,
    BowlerInnings,
    Innings,
    Match,
    MatchEvent,
    MatchEventType,
    MatchFormat,
    MatchResult,
    MatchStatus,
    Player,
    Team,
    TossDecision,
    WinMarginType,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
#  Construction
# ------------------------------------------------------------------ #

def new_match(
    team1: Team,
    team2: Team,
    toss_winner: str,
    toss_decision: TossDecision,
    format: MatchFormat = MatchFormat.T20,
    max_overs: Optional[int] = None,
    venue: str = "",
    date: str = "",
    match_id: Optional[str] = None,
) -> Match:
    """Build an UPCOMING match with innings 1 opened for the side batting first."""
    if team1.id == team2.id:
        raise InvalidState(f"Both teams have id {team1.id!r}")
    if toss_winner not in (team1.id, team2.id):
        raise InvalidState(f"Toss winner {toss_winner!r} is not playing in this match")
    if max_overs is None:
        max_overs = FORMAT_MAX_OVERS[format]

    loser = team2.id if toss_winner == team1.id else team1.id
    batting_first = toss_winner if toss_decision == TossDecision.BAT else loser

    fields = {"id": match_id} if match_id else {}
    return Match(
        **fields,
        format=format,
        venue=venue,
        date=date,
        team1=team1,
        team2=team2,
        toss_winner=toss_winner,
        toss_decision=toss_decision,
        max_overs=max_overs,
        innings=[Innings(innings_number=1, team_id=batting_first, max_overs=max_overs)],
    )


# ------------------------------------------------------------------ #
#  Helpers
# ------------------------------------------------------------------ #

def _replace_current_innings(match: Match, innings: Innings, **changes) -> Match:
    innings_list = [*match.innings]
    innings_list[match.current_innings_number - 1] = innings
    return match.model_copy(update={"innings": innings_list, **changes})


def _require_open(match: Match, action: str) -> None:
    if match.status == MatchStatus.COMPLETED:
        raise InvalidState(f"Cannot {action}: match is completed")


def _with_event(match: Match, event_type: MatchEventType, **kw) -> list[MatchEvent]:
    return [*match.events, MatchEvent(type=event_type, **kw)]


# ------------------------------------------------------------------ #
#  Balls
# ------------------------------------------------------------------ #

def stamp_ball(innings: Innings, ball: BallEvent) -> BallEvent:
    """
    Fill the ball's player ids, innings and ball number from the innings.

    Ids the caller did provide must match the occupied slots, so a ball can
    never be credited to someone other than the selected players.
    """
    slots = {
        "striker": innings.striker,
        "non_striker": innings.non_striker,
        "bowler": innings.current_bowler,
    }
    update: dict = {}
    for field, occupant in slots.items():
        given = getattr(ball, field)
        if given is None:
            update[field] = occupant
        elif given != occupant:
            raise InvalidState(f"Ball names {field} {given!r} but {occupant!r} is selected")

    if ball.innings is None:
        update["innings"] = innings.innings_number
    elif ball.innings != innings.innings_number:
        raise InvalidState(f"Ball is for innings {ball.innings}, current is {innings.innings_number}")

    if ball.ball_number is None:
        update["ball_number"] = round(innings.total_overs + (innings.current_over_balls + 1) / 10, 1)

    stamped = ball.model_copy(update=update) if update else ball

    if stamped.out_batsman is not None:
        if not stamped.is_wicket:
            raise InvalidState("out_batsman given on a ball without a wicket")
        if stamped.out_batsman not in (stamped.striker, stamped.non_striker):
            raise InvalidState(f"{stamped.out_batsman!r} is not at the crease")
    return stamped


def score_ball(innings: Innings, ball: BallEvent, target: Optional[int] = None) -> Innings:
    """Apply one stamped ball to an innings: totals, then player figures."""
    after = advance_innings(innings, ball, target)

    batsmen = dict(after.batsmen)
    batsmen[ball.striker] = update_striker(batsmen[ball.striker], ball)
    dismissed = dismissed_batsman(ball)
    if dismissed is not None and dismissed != ball.striker:
        batsmen[dismissed] = record_dismissal(batsmen[dismissed], ball)

    bowlers = dict(after.bowlers)
    bowler = update_bowler(bowlers[ball.bowler], ball)
    sealed = over_just_completed(innings, after)
    if sealed is not None and sealed.maiden_over:
        bowler = credit_maiden(bowler)
    bowlers[ball.bowler] = bowler

    update: dict = {"batsmen": batsmen, "bowlers": bowlers}
    # The dismissed batter leaves the crease; the scorer selects the next one
    if dismissed is not None and dismissed == after.striker:
        update["striker"] = None
    elif dismissed is not None and dismissed == after.non_striker:
        update["non_striker"] = None
    return after.model_copy(update=update)


def apply_ball(match: Match, ball: BallEvent) -> Match:
    """Validate and apply one delivery; the ball is appended to match_history."""
    if match.status != MatchStatus.LIVE:
        raise InvalidState(f"Cannot record a ball while match is {match.status.value}")
    innings = match.current_innings
    if innings.striker is None or innings.current_bowler is None:
        raise InvalidState("Select a striker and a bowler before recording a ball")
    if innings_complete(innings, match.target_score):
        raise InvalidState("Innings is complete; end the innings to continue")

    ball = stamp_ball(innings, ball)
    scored = score_ball(innings, ball, match.target_score)
    return _replace_current_innings(match, scored, match_history=[*match.match_history, ball])


# ------------------------------------------------------------------ #
#  Player selection
# ------------------------------------------------------------------ #

def available_batters(match: Match) -> list[Player]:
    """Batting-side players who are neither out nor already at the crease."""
    innings = match.current_innings
    at_crease = {innings.striker, innings.non_striker}
    out = {pid for pid, b in innings.batsmen.items() if b.is_out}
    return [p for p in match.batting_team.players if p.id not in at_crease and p.id not in out]


def available_bowlers(match: Match) -> list[Player]:
    return list(match.bowling_team.players)


def _select_batter(match: Match, player_id: str, slot: str, other: str) -> Match:
    _require_open(match, "select a batter")
    innings = match.current_innings
    if not match.batting_team.has_player(player_id):
        raise InvalidState(f"{player_id!r} is not in the batting team")
    if getattr(innings, other) == player_id:
        raise InvalidState(f"{player_id!r} is already at the other end")

    record = innings.batsmen.get(player_id)
    if record is not None and record.is_out:
        raise InvalidState(f"{player_id!r} is already out")

    update: dict = {slot: player_id}
    if record is None:
        update["batsmen"] = {**innings.batsmen, player_id: BatsmanInnings(player_id=player_id)}
        update["batting_order"] = [*innings.batting_order, player_id]
    return _replace_current_innings(match, innings.model_copy(update=update))


def select_striker(match: Match, player_id: str) -> Match:
    return _select_batter(match, player_id, slot="striker", other="non_striker")


def select_non_striker(match: Match, player_id: str) -> Match:
    return _select_batter(match, player_id, slot="non_striker", other="striker")


def select_bowler(match: Match, player_id: str) -> Match:
    _require_open(match, "select a bowler")
    innings = match.current_innings
    if not match.bowling_team.has_player(player_id):
        raise InvalidState(f"{player_id!r} is not in the bowling team")

    update: dict = {"current_bowler": player_id}
    if player_id not in innings.bowlers:
        update["bowlers"] = {**innings.bowlers, player_id: BowlerInnings(player_id=player_id)}
    return _replace_current_innings(match, innings.model_copy(update=update))


def swap_batsmen(match: Match) -> Match:
    _require_open(match, "swap batsmen")
    innings = match.current_innings
    return _replace_current_innings(
        match,
        innings.model_copy(update={"striker": innings.non_striker, "non_striker": innings.striker}),
    )


# ------------------------------------------------------------------ #
#  Lifecycle
# ------------------------------------------------------------------ #

def start(match: Match) -> Match:
    if match.status != MatchStatus.UPCOMING:
        raise InvalidState(f"Cannot start a match that is {match.status.value}")
    logger.info(f"Match {match.id} is live")
    return match.model_copy(update={"status": MatchStatus.LIVE})


def pause(
    match: Match,
    event_type: MatchEventType = MatchEventType.DRINKS,
    description: Optional[str] = None,
) -> Match:
    _require_open(match, "pause")
    if match.status != MatchStatus.LIVE:
        raise InvalidState(f"Cannot pause a match that is {match.status.value}")
    return match.model_copy(update={
        "status": MatchStatus.PAUSED,
        "events": _with_event(match, event_type, description=description),
    })


def delay(match: Match, description: Optional[str] = None, duration: Optional[int] = None) -> Match:
    _require_open(match, "delay")
    if match.status not in (MatchStatus.LIVE, MatchStatus.PAUSED):
        raise InvalidState(f"Cannot delay a match that is {match.status.value}")
    return match.model_copy(update={
        "status": MatchStatus.DELAYED,
        "events": _with_event(match, MatchEventType.DELAY, description=description, duration=duration),
    })


def resume(match: Match) -> Match:
    _require_open(match, "resume")
    if match.status not in (MatchStatus.PAUSED, MatchStatus.DELAYED):
        raise InvalidState(f"Cannot resume a match that is {match.status.value}")
    return match.model_copy(update={
        "status": MatchStatus.LIVE,
        "events": _with_event(match, MatchEventType.RESUME),
    })


def compute_result(match: Match) -> MatchResult:
    """Compare the two innings totals. Equal totals are a tie."""
    if len(match.innings) < 2:
        return MatchResult(win_margin_type=WinMarginType.DRAW)

    first, second = match.innings[0], match.innings[1]
    if second.total_runs > first.total_runs:
        return MatchResult(
            winner=second.team_id,
            win_margin=ALL_OUT_WICKETS - second.total_wickets,
            win_margin_type=WinMarginType.WICKETS,
        )
    if first.total_runs > second.total_runs:
        return MatchResult(
            winner=first.team_id,
            win_margin=first.total_runs - second.total_runs,
            win_margin_type=WinMarginType.RUNS,
        )
    return MatchResult(win_margin_type=WinMarginType.TIE)


def _complete(match: Match) -> Match:
    result = compute_result(match)
    logger.info(
        f"Match {match.id} completed: winner={result.winner} "
        f"by {result.win_margin} {result.win_margin_type.value}"
    )
    return match.model_copy(update={"status": MatchStatus.COMPLETED, "result": result})


def end_innings(match: Match) -> Match:
    """Close innings 1 (opening the chase) or, in innings 2, finish the match."""
    _require_open(match, "end the innings")
    if match.status == MatchStatus.UPCOMING:
        raise InvalidState("Cannot end an innings before the match has started")

    if match.current_innings_number == 2:
        return _complete(match)

    first = match.innings[0]
    target = first.total_runs + 1
    if len(match.innings) > 1:
        second = match.innings[1]
    else:
        second = Innings(
            innings_number=2,
            team_id=match.opponent_of(first.team_id).id,
            max_overs=match.max_overs,
            required_run_rate=required_run_rate(target, 0, 0, 0, match.max_overs),
        )

    logger.info(
        f"Match {match.id}: innings 1 closed at {first.total_runs}/{first.total_wickets}, "
        f"target {target}"
    )
    return match.model_copy(update={
        "innings": [first, second],
        "current_innings_number": 2,
        "target_score": target,
        "events": _with_event(match, MatchEventType.INNINGS_BREAK),
    })


def end_match(match: Match) -> Match:
    """Explicit end: result by comparison once the chase is open, else a draw."""
    _require_open(match, "end the match")
    if match.current_innings_number == 2:
        return _complete(match)
    logger.info(f"Match {match.id} ended during the first innings")
    return match.model_copy(update={
        "status": MatchStatus.COMPLETED,
        "result": MatchResult(win_margin_type=WinMarginType.DRAW),
    })
