"""
Shared fixtures for the test suite.

Key design decisions:
  - Storage tests get a fresh SQLite file per test via the `database` fixture.
  - Overrides the database module's `DB_DIR` / `DB_PATH` before each test.
  - Provides an `httpx.AsyncClient` wired to the FastAPI app via ASGITransport.
  - Supplies two small squads and a ready-to-score match for the engine tests.
"""

from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import livescore.session as session_mod
import livescore.storage.database as db_mod
from livescore.engine import ball_processor as bp
from livescore.feed import broadcaster
from livescore.main import app
from livescore.models import Player, Team, TossDecision


# --------------------------------------------------------------------------- #
#  Global state: sessions and subscribers are module-level registries
# --------------------------------------------------------------------------- #

@pytest.fixture(autouse=True)
def _reset_registries():
    session_mod.close_all()
    broadcaster.clear()
    yield
    session_mod.close_all()
    broadcaster.clear()


# --------------------------------------------------------------------------- #
#  Temp-file database: fresh for every test that asks for it
# --------------------------------------------------------------------------- #

@pytest_asyncio.fixture
async def database(tmp_path: Path):
    """
    Before the test:
      1. Point the DB module to a temp file.
      2. Run init_db() to create all tables.
    After the test:
      3. Close the connection.
    """
    db_mod.DB_DIR = tmp_path
    db_mod.DB_PATH = tmp_path / "test.db"

    await db_mod.init_db()
    yield db_mod
    await db_mod.close_db()


# --------------------------------------------------------------------------- #
#  HTTP client: talks to FastAPI app without a real server
# --------------------------------------------------------------------------- #

@pytest_asyncio.fixture
async def client(database) -> AsyncClient:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# --------------------------------------------------------------------------- #
#  Squads
# --------------------------------------------------------------------------- #

def _squad(team_id: str, name: str, prefix: str, size: int = 11) -> Team:
    return Team(
        id=team_id,
        name=name,
        short_name=team_id.upper(),
        players=[Player(id=f"{prefix}{i}", name=f"{name} {i}", team_id=team_id) for i in range(1, size + 1)],
    )


@pytest.fixture
def home() -> Team:
    """Batters a1..a11."""
    return _squad("home", "Home XI", "a")


@pytest.fixture
def away() -> Team:
    """Batters b1..b11."""
    return _squad("away", "Away XI", "b")


@pytest.fixture
def upcoming(home, away):
    """T20 where the home side won the toss and bats first."""
    return bp.new_match(home, away, toss_winner="home", toss_decision=TossDecision.BAT, match_id="m1")


@pytest.fixture
def live(upcoming):
    """Live match with a1 on strike, a2 at the other end and b1 bowling."""
    m = bp.start(upcoming)
    m = bp.select_striker(m, "a1")
    m = bp.select_non_striker(m, "a2")
    return bp.select_bowler(m, "b1")
