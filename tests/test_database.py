"""
Unit tests for the database layer.

Every test takes the `database` fixture from conftest, which creates a fresh
SQLite file per test.
"""

import pytest

from livescore.engine import ball_processor as bp
from livescore.models import BallEvent, MatchStatus, TossDecision
from livescore.storage import database as db


# --------------------------------------------------------------------------- #
#  Matches
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_create_and_get_match(database, upcoming):
    created = await db.create_match(upcoming)
    assert created.id == "m1"

    retrieved = await db.get_match("m1")
    assert retrieved is not None
    assert retrieved.model_dump() == upcoming.model_dump()
    assert retrieved.team1.players[0].id == "a1"


@pytest.mark.asyncio
async def test_get_missing_match(database):
    assert await db.get_match("nope") is None


@pytest.mark.asyncio
async def test_create_duplicate_match_fails(database, upcoming):
    await db.create_match(upcoming)
    with pytest.raises(Exception):
        await db.create_match(upcoming)


@pytest.mark.asyncio
async def test_save_match_overwrites_snapshot(database, upcoming, live):
    await db.create_match(upcoming)
    scored = bp.apply_ball(live, BallEvent(runs=4))
    await db.save_match(scored)

    stored = await db.get_match("m1")
    assert stored.status == MatchStatus.LIVE
    assert stored.current_innings.total_runs == 4
    assert stored.match_history[0].id == scored.match_history[0].id
    assert stored.model_dump() == scored.model_dump()


@pytest.mark.asyncio
async def test_save_match_inserts_when_missing(database, live):
    await db.save_match(live)
    assert (await db.get_match("m1")).status == MatchStatus.LIVE


@pytest.mark.asyncio
async def test_list_matches_by_status(database, home, away, upcoming, live):
    await db.create_match(upcoming)
    other = bp.start(bp.new_match(home, away, "away", TossDecision.FIELD, match_id="m2"))
    await db.create_match(other)

    assert {m.id for m in await db.list_matches()} == {"m1", "m2"}
    assert [m.id for m in await db.list_matches("UPCOMING")] == ["m1"]
    assert [m.id for m in await db.list_matches("LIVE")] == ["m2"]
    assert await db.list_matches("COMPLETED") == []


# --------------------------------------------------------------------------- #
#  Ball events
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_ball_log_append_and_order(database, upcoming, live):
    await db.create_match(upcoming)
    m = live
    for runs in (1, 0, 4):
        m = bp.apply_ball(m, BallEvent(runs=runs))

    seqs = [await db.append_ball_event("m1", b) for b in m.match_history]
    assert seqs == [1, 2, 3]

    log = await db.get_ball_events("m1")
    assert [b.runs for b in log] == [1, 0, 4]
    assert log[0].model_dump() == m.match_history[0].model_dump()
    assert log[2].ball_number == pytest.approx(0.3)


@pytest.mark.asyncio
async def test_delete_ball_event(database, upcoming, live):
    await db.create_match(upcoming)
    m = bp.apply_ball(bp.apply_ball(live, BallEvent(runs=1)), BallEvent(runs=2))
    for b in m.match_history:
        await db.append_ball_event("m1", b)

    assert await db.delete_ball_event(m.match_history[-1].id) is True
    assert await db.delete_ball_event(m.match_history[-1].id) is False
    assert [b.runs for b in await db.get_ball_events("m1")] == [1]

    # The next ball continues the sequence after the surviving one
    assert await db.append_ball_event("m1", m.match_history[-1]) == 2


@pytest.mark.asyncio
async def test_ball_logs_are_per_match(database, upcoming, live):
    await db.create_match(upcoming)
    m = bp.apply_ball(live, BallEvent(runs=6))
    await db.append_ball_event("m1", m.match_history[0])
    assert await db.get_ball_events("other") == []


@pytest.mark.asyncio
async def test_uninitialized_database_raises():
    with pytest.raises(RuntimeError):
        await db.get_match("m1")
