from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


BALLS_PER_OVER = 6
ALL_OUT_WICKETS = 10


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =========================================================================== #
#  Enums
# =========================================================================== #

class MatchFormat(str, Enum):
    T20 = "T20"
    ODI = "ODI"
    TEST = "TEST"


# None means the innings has no over limit
FORMAT_MAX_OVERS: dict[MatchFormat, Optional[int]] = {
    MatchFormat.T20: 20,
    MatchFormat.ODI: 50,
    MatchFormat.TEST: None,
}


class ExtraType(str, Enum):
    NONE = "NONE"
    WIDE = "WIDE"
    NO_BALL = "NO_BALL"
    BYE = "BYE"
    LEG_BYE = "LEG_BYE"


class WicketType(str, Enum):
    NONE = "NONE"
    BOWLED = "BOWLED"
    CAUGHT = "CAUGHT"
    LBW = "LBW"
    RUN_OUT = "RUN_OUT"
    STUMPED = "STUMPED"
    HIT_WICKET = "HIT_WICKET"
    RETIRED_HURT = "RETIRED_HURT"
    RETIRED_OUT = "RETIRED_OUT"
    TIMED_OUT = "TIMED_OUT"
    OBSTRUCTING_FIELD = "OBSTRUCTING_FIELD"
    HANDLED_BALL = "HANDLED_BALL"


class MatchStatus(str, Enum):
    UPCOMING = "UPCOMING"
    LIVE = "LIVE"
    DELAYED = "DELAYED"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class TossDecision(str, Enum):
    BAT = "BAT"
    FIELD = "FIELD"


class WinMarginType(str, Enum):
    RUNS = "RUNS"
    WICKETS = "WICKETS"
    DRAW = "DRAW"
    TIE = "TIE"


class MatchEventType(str, Enum):
    """Non-ball interruptions logged against a match."""

    DELAY = "DELAY"
    RESUME = "RESUME"
    DRINKS = "DRINKS"
    INNINGS_BREAK = "INNINGS_BREAK"


# =========================================================================== #
#  Roster (read-only to the engine)
# =========================================================================== #

class Player(BaseModel):
    id: str
    name: str
    team_id: str


class Team(BaseModel):
    id: str
    name: str
    short_name: str = ""
    logo_url: Optional[str] = None
    players: list[Player] = Field(default_factory=list)

    def has_player(self, player_id: str) -> bool:
        """True if the player is on the roster, or if no roster was supplied."""
        if not self.players:
            return True
        return any(p.id == player_id for p in self.players)


# =========================================================================== #
#  Ball events
# =========================================================================== #

class BallInput(BaseModel):
    """What the scorer enters for one delivery."""

    runs: int = Field(0, ge=0, le=6, description="Runs scored off the bat")
    extra_type: ExtraType = ExtraType.NONE
    extra_runs: int = Field(0, ge=0)
    wicket_type: WicketType = WicketType.NONE
    out_batsman: Optional[str] = Field(None, description="Dismissed batter if not the striker")
    fielder: Optional[str] = None

    @model_validator(mode="after")
    def _check_extras(self) -> "BallInput":
        if self.extra_type == ExtraType.NONE and self.extra_runs != 0:
            raise ValueError("extra_runs must be 0 when extra_type is NONE")
        if self.extra_type != ExtraType.NONE and self.extra_runs < 1:
            raise ValueError(f"{self.extra_type.value} needs at least one extra run")
        if self.extra_type in (ExtraType.WIDE, ExtraType.BYE, ExtraType.LEG_BYE) and self.runs:
            raise ValueError(f"no runs off the bat on a {self.extra_type.value}")
        return self


class BallEvent(BallInput):
    """A single delivery. Frozen: undo removes events, nothing edits them."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    innings: Optional[int] = Field(None, description="Innings number (1 or 2), stamped on apply")
    ball_number: Optional[float] = Field(None, description="Logical over.ball, e.g. 12.3")
    striker: Optional[str] = None
    non_striker: Optional[str] = None
    bowler: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def total_runs(self) -> int:
        """Runs credited to the batting side for this delivery."""
        return self.runs + self.extra_runs

    @property
    def is_legal(self) -> bool:
        return self.extra_type not in (ExtraType.WIDE, ExtraType.NO_BALL)

    @property
    def is_wicket(self) -> bool:
        return self.wicket_type != WicketType.NONE


class Over(BaseModel):
    """A completed (sealed) over."""

    over_number: int
    bowler: Optional[str] = None
    balls: list[BallEvent] = Field(default_factory=list)
    runs: int = 0
    wickets: int = 0
    maiden_over: bool = False


# =========================================================================== #
#  Per-player figures
# =========================================================================== #

class BatsmanInnings(BaseModel):
    player_id: str
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0
    strike_rate: float = 0.0
    is_batting: bool = True
    is_out: bool = False
    out_method: Optional[WicketType] = None
    out_bowler: Optional[str] = None
    out_fielder: Optional[str] = None


class BowlerInnings(BaseModel):
    player_id: str
    legal_balls: int = 0
    overs: float = Field(0.0, description="Cricket notation: 4.2 is four overs and two balls")
    maidens: int = 0
    runs: int = 0
    wickets: int = 0
    economy: Optional[float] = Field(None, description="None until the first legal ball")


# =========================================================================== #
#  Innings & match
# =========================================================================== #

class Innings(BaseModel):
    id: str = Field(default_factory=new_id)
    innings_number: int
    team_id: str
    batting_order: list[str] = Field(default_factory=list)
    striker: Optional[str] = None
    non_striker: Optional[str] = None
    batsmen: dict[str, BatsmanInnings] = Field(default_factory=dict)
    bowlers: dict[str, BowlerInnings] = Field(default_factory=dict)
    current_bowler: Optional[str] = None
    total_runs: int = 0
    total_wickets: int = 0
    total_overs: int = 0
    current_over_balls: int = 0
    extras: int = 0
    overs: list[Over] = Field(default_factory=list)
    current_over: list[BallEvent] = Field(default_factory=list)
    current_run_rate: float = 0.0
    required_run_rate: Optional[float] = None
    max_overs: Optional[int] = None

    @property
    def current_batsmen(self) -> list[Optional[str]]:
        return [self.striker, self.non_striker]

    @property
    def legal_balls(self) -> int:
        return self.total_overs * BALLS_PER_OVER + self.current_over_balls


class MatchResult(BaseModel):
    winner: Optional[str] = Field(None, description="Winning team id; None for a tie or draw")
    win_margin: int = 0
    win_margin_type: WinMarginType


class MatchEvent(BaseModel):
    id: str = Field(default_factory=new_id)
    type: MatchEventType
    timestamp: datetime = Field(default_factory=utcnow)
    duration: Optional[int] = Field(None, description="Minutes, if known")
    description: Optional[str] = None


class Match(BaseModel):
    """Root aggregate: everything the scorer and viewers see."""

    id: str = Field(default_factory=new_id)
    format: MatchFormat = MatchFormat.T20
    venue: str = ""
    date: str = ""
    status: MatchStatus = MatchStatus.UPCOMING
    team1: Team
    team2: Team
    toss_winner: str
    toss_decision: TossDecision
    current_innings_number: int = 1
    innings: list[Innings] = Field(default_factory=list)
    max_overs: Optional[int] = None
    target_score: Optional[int] = None
    result: Optional[MatchResult] = None
    events: list[MatchEvent] = Field(default_factory=list)
    match_history: list[BallEvent] = Field(default_factory=list)

    @property
    def current_innings(self) -> Innings:
        return self.innings[self.current_innings_number - 1]

    def team(self, team_id: str) -> Team:
        if team_id == self.team1.id:
            return self.team1
        if team_id == self.team2.id:
            return self.team2
        raise KeyError(team_id)

    def opponent_of(self, team_id: str) -> Team:
        return self.team2 if team_id == self.team1.id else self.team1

    @property
    def batting_team(self) -> Team:
        return self.team(self.current_innings.team_id)

    @property
    def bowling_team(self) -> Team:
        return self.opponent_of(self.current_innings.team_id)
