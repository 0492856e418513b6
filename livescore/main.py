import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from livescore.config import settings
from livescore.engine.ball_processor import available_batters, available_bowlers, new_match
from livescore.errors import InvalidState, MatchNotFound, NothingToUndo, PersistenceFailure
from livescore.feed import broadcaster
from livescore.models import BallEvent, BallInput, Match, MatchStatus
from livescore.schemas import (
    CreateMatchRequest,
    DelayRequest,
    PauseRequest,
    PlayerRequest,
    SelectablePlayersResponse,
)
from livescore.session import close_all, create_session, open_session
from livescore.storage import database as db

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App startup/shutdown lifecycle."""
    logger.info("Live scoring service starting up")
    await db.init_db()
    yield
    close_all()
    await db.close_db()
    logger.info("Shutting down")


app = FastAPI(
    title="Live Cricket Scoring",
    description="Ball-by-ball scoring engine with undo and live updates",
    lifespan=lifespan,
)


# ------------------------------------------------------------------ #
#  Error mapping
# ------------------------------------------------------------------ #

_STATUS_CODES = {
    MatchNotFound: 404,
    InvalidState: 409,
    NothingToUndo: 409,
    PersistenceFailure: 503,
}


def _error_response(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )
    return handler


for _exc_type, _code in _STATUS_CODES.items():
    app.add_exception_handler(_exc_type, _error_response(_code))


# ------------------------------------------------------------------ #
#  Matches
# ------------------------------------------------------------------ #

@app.post("/api/matches", status_code=201)
async def create_match(payload: CreateMatchRequest) -> Match:
    match = new_match(
        team1=payload.team1,
        team2=payload.team2,
        toss_winner=payload.toss_winner,
        toss_decision=payload.toss_decision,
        format=payload.format,
        max_overs=payload.max_overs,
        venue=payload.venue,
        date=payload.date,
        match_id=payload.id,
    )
    session = await create_session(match)
    return session.match


@app.get("/api/matches")
async def list_matches(status: MatchStatus | None = None) -> list[Match]:
    return await db.list_matches(status.value if status else None)


@app.get("/api/matches/{match_id}")
async def get_match(match_id: str) -> Match:
    session = await open_session(match_id)
    return session.match


@app.get("/api/matches/{match_id}/players")
async def get_selectable_players(match_id: str) -> SelectablePlayersResponse:
    match = (await open_session(match_id)).match
    return SelectablePlayersResponse(
        batting_team_id=match.batting_team.id,
        bowling_team_id=match.bowling_team.id,
        batters=available_batters(match),
        bowlers=available_bowlers(match),
    )


# ------------------------------------------------------------------ #
#  Balls
# ------------------------------------------------------------------ #

@app.post("/api/matches/{match_id}/balls", status_code=201)
async def record_ball(match_id: str, payload: BallInput) -> Match:
    session = await open_session(match_id)
    match = await session.record_ball(BallEvent(**payload.model_dump()))
    ball = match.match_history[-1]
    innings = match.current_innings
    logger.info(
        f"[{match_id} {ball.ball_number}] {ball.striker}: {ball.runs}+{ball.extra_runs} "
        f"{ball.extra_type.value} {ball.wicket_type.value} | "
        f"{innings.total_runs}/{innings.total_wickets}"
    )
    return match


@app.post("/api/matches/{match_id}/undo")
async def undo_last_ball(match_id: str) -> Match:
    session = await open_session(match_id)
    return await session.undo_last()


# ------------------------------------------------------------------ #
#  Player selection
# ------------------------------------------------------------------ #

@app.post("/api/matches/{match_id}/striker")
async def select_striker(match_id: str, payload: PlayerRequest) -> Match:
    return await (await open_session(match_id)).select_striker(payload.player_id)


@app.post("/api/matches/{match_id}/non-striker")
async def select_non_striker(match_id: str, payload: PlayerRequest) -> Match:
    return await (await open_session(match_id)).select_non_striker(payload.player_id)


@app.post("/api/matches/{match_id}/bowler")
async def select_bowler(match_id: str, payload: PlayerRequest) -> Match:
    return await (await open_session(match_id)).select_bowler(payload.player_id)


@app.post("/api/matches/{match_id}/swap")
async def swap_batsmen(match_id: str) -> Match:
    return await (await open_session(match_id)).swap_batsmen()


# ------------------------------------------------------------------ #
#  Lifecycle
# ------------------------------------------------------------------ #

@app.post("/api/matches/{match_id}/start")
async def start_match(match_id: str) -> Match:
    return await (await open_session(match_id)).start()


@app.post("/api/matches/{match_id}/pause")
async def pause_match(match_id: str, payload: PauseRequest | None = None) -> Match:
    payload = payload or PauseRequest()
    return await (await open_session(match_id)).pause(payload.event_type, payload.description)


@app.post("/api/matches/{match_id}/delay")
async def delay_match(match_id: str, payload: DelayRequest | None = None) -> Match:
    payload = payload or DelayRequest()
    return await (await open_session(match_id)).delay(payload.description, payload.duration)


@app.post("/api/matches/{match_id}/resume")
async def resume_match(match_id: str) -> Match:
    return await (await open_session(match_id)).resume()


@app.post("/api/matches/{match_id}/end-innings")
async def end_innings(match_id: str) -> Match:
    return await (await open_session(match_id)).end_innings()


@app.post("/api/matches/{match_id}/end-match")
async def end_match(match_id: str) -> Match:
    return await (await open_session(match_id)).end_match()


# ------------------------------------------------------------------ #
#  Live updates
# ------------------------------------------------------------------ #

@app.get("/api/matches/{match_id}/stream")
async def stream(match_id: str, request: Request):
    """SSE endpoint: the current match, then every committed change."""
    session = await open_session(match_id)
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = broadcaster.subscribe(match_id, queue.put_nowait)

    async def event_generator():
        try:
            yield {"event": "match", "data": session.match.model_dump_json()}
            while True:
                if await request.is_disconnected():
                    break
                try:
                    match = await asyncio.wait_for(queue.get(), timeout=settings.stream_keepalive_seconds)
                    yield {"event": "match", "data": match.model_dump_json()}
                except asyncio.TimeoutError:
                    yield {"event": "ping", "data": "{}"}
        finally:
            unsubscribe()

    return EventSourceResponse(event_generator())
