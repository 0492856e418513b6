"""
SQLite persistence layer.

Tables:
  - matches: one row per match, the full Match snapshot as JSON
  - ball_events: append-only ball log (one row per delivery, ordered by seq)

The ball log mirrors ``Match.match_history`` so other consumers can follow a
match delivery by delivery without loading the whole snapshot.

Uses aiosqlite for async access. Database file: settings.database_path
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from livescore.config import settings
from livescore.models import BallEvent, Match

logger = logging.getLogger(__name__)

DB_PATH = Path(settings.database_path)
DB_DIR = DB_PATH.parent

_db: aiosqlite.Connection | None = None


# ------------------------------------------------------------------ #
#  Connection management
# ------------------------------------------------------------------ #

async def init_db() -> None:
    """Create tables if they don't exist. Called once at app startup."""
    global _db
    DB_DIR.mkdir(parents=True, exist_ok=True)

    _db = await aiosqlite.connect(str(DB_PATH))
    _db.row_factory = aiosqlite.Row

    await _db.executescript("""
        CREATE TABLE IF NOT EXISTS matches (
            match_id    TEXT PRIMARY KEY,
            status      TEXT NOT NULL,
            data        TEXT NOT NULL,
            created_at  TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_matches_status
            ON matches(status);

        CREATE TABLE IF NOT EXISTS ball_events (
            id          TEXT PRIMARY KEY,
            match_id    TEXT NOT NULL,
            innings     INTEGER NOT NULL,
            seq         INTEGER NOT NULL,
            data        TEXT NOT NULL,
            created_at  TEXT NOT NULL,
            FOREIGN KEY (match_id) REFERENCES matches(match_id)
        );

        CREATE INDEX IF NOT EXISTS idx_ball_events
            ON ball_events(match_id, seq);
    """)
    await _db.commit()
    logger.info(f"SQLite database initialized at {DB_PATH}")


async def close_db() -> None:
    """Close the database connection."""
    global _db
    if _db:
        await _db.close()
        _db = None


def _get_db() -> aiosqlite.Connection:
    if _db is None:
        raise RuntimeError("Database not initialized: call init_db() first")
    return _db


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ------------------------------------------------------------------ #
#  Matches
# ------------------------------------------------------------------ #

async def create_match(match: Match) -> Match:
    """Insert a new match. Fails if the id already exists."""
    db = _get_db()
    now = _now()
    await db.execute(
        """INSERT INTO matches (match_id, status, data, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?)""",
        (match.id, match.status.value, match.model_dump_json(), now, now),
    )
    await db.commit()
    logger.info(f"Created match {match.id} ({match.team1.name} vs {match.team2.name})")
    return match


async def get_match(match_id: str) -> Match | None:
    db = _get_db()
    async with db.execute("SELECT data FROM matches WHERE match_id = ?", (match_id,)) as cur:
        row = await cur.fetchone()
        return Match.model_validate_json(row["data"]) if row else None


async def list_matches(status: str | None = None) -> list[Match]:
    db = _get_db()
    if status:
        query = "SELECT data FROM matches WHERE status = ? ORDER BY created_at DESC"
        params: tuple = (status,)
    else:
        query = "SELECT data FROM matches ORDER BY created_at DESC"
        params = ()
    async with db.execute(query, params) as cur:
        return [Match.model_validate_json(r["data"]) for r in await cur.fetchall()]


async def save_match(match: Match) -> None:
    """Write the full match snapshot (insert or replace)."""
    db = _get_db()
    now = _now()
    await db.execute(
        """INSERT INTO matches (match_id, status, data, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?)
           ON CONFLICT(match_id) DO UPDATE SET
               status = excluded.status,
               data = excluded.data,
               updated_at = excluded.updated_at""",
        (match.id, match.status.value, match.model_dump_json(), now, now),
    )
    await db.commit()


# ------------------------------------------------------------------ #
#  Ball events
# ------------------------------------------------------------------ #

async def append_ball_event(match_id: str, ball: BallEvent) -> int:
    """Append one delivery to the match's ball log. Returns its seq number."""
    db = _get_db()
    async with db.execute(
        "SELECT COALESCE(MAX(seq), 0) + 1 AS next_seq FROM ball_events WHERE match_id = ?",
        (match_id,),
    ) as cur:
        row = await cur.fetchone()
        seq = row["next_seq"]

    await db.execute(
        """INSERT INTO ball_events (id, match_id, innings, seq, data, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (ball.id, match_id, ball.innings or 0, seq, ball.model_dump_json(), _now()),
    )
    await db.commit()
    return seq


async def delete_ball_event(ball_id: str) -> bool:
    """Delete one delivery. Returns False if no such ball was stored."""
    db = _get_db()
    cursor = await db.execute("DELETE FROM ball_events WHERE id = ?", (ball_id,))
    await db.commit()
    return cursor.rowcount > 0


async def get_ball_events(match_id: str) -> list[BallEvent]:
    """The match's ball log in bowling order."""
    db = _get_db()
    async with db.execute(
        "SELECT data FROM ball_events WHERE match_id = ? ORDER BY seq",
        (match_id,),
    ) as cur:
        return [BallEvent.model_validate_json(r["data"]) for r in await cur.fetchall()]
