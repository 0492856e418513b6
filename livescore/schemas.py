"""Request/response bodies for the HTTP API."""

from typing import Optional

from pydantic import BaseModel, Field

from livescore.models import MatchEventType, MatchFormat, Player, Team, TossDecision


class CreateMatchRequest(BaseModel):
    id: Optional[str] = None
    format: MatchFormat = MatchFormat.T20
    venue: str = ""
    date: str = ""
    team1: Team
    team2: Team
    toss_winner: str
    toss_decision: TossDecision
    max_overs: Optional[int] = Field(None, gt=0, description="Defaults from the format")


class PlayerRequest(BaseModel):
    player_id: str


class PauseRequest(BaseModel):
    event_type: MatchEventType = MatchEventType.DRINKS
    description: Optional[str] = None


class DelayRequest(BaseModel):
    description: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0, description="Minutes")


class SelectablePlayersResponse(BaseModel):
    """Who the scorer can pick next in the current innings."""

    batting_team_id: str
    bowling_team_id: str
    batters: list[Player]
    bowlers: list[Player]
