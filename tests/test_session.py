"""
Tests for scoring sessions: persistence ordering, rollback on storage
failure, the session registry and live fan-out.
"""

import asyncio

import pytest

from livescore import session as session_mod
from livescore.errors import InvalidState, MatchNotFound, NothingToUndo, PersistenceFailure
from livescore.feed import broadcaster
from livescore.models import BallEvent, MatchStatus
from livescore.session import ScoringSession, create_session, open_session
from livescore.storage import database as db


async def _ready(session: ScoringSession) -> ScoringSession:
    await session.start()
    await session.select_striker("a1")
    await session.select_non_striker("a2")
    await session.select_bowler("b1")
    return session


async def _failing(*args, **kwargs):
    raise OSError("disk full")


# --------------------------------------------------------------------------- #
#  Registry
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_create_and_open_session(database, upcoming):
    session = await create_session(upcoming)
    assert await open_session("m1") is session
    assert (await db.get_match("m1")).status == MatchStatus.UPCOMING


@pytest.mark.asyncio
async def test_open_session_loads_from_storage(database, upcoming):
    session = await _ready(await create_session(upcoming))
    await session.record_ball(BallEvent(runs=4))

    session_mod.close_session("m1")
    reopened = await open_session("m1")
    assert reopened is not session
    assert reopened.match.current_innings.total_runs == 4
    assert reopened.match.current_innings.striker == "a1"


@pytest.mark.asyncio
async def test_open_unknown_match(database):
    with pytest.raises(MatchNotFound) as exc:
        await open_session("missing")
    assert exc.value.match_id == "missing"


@pytest.mark.asyncio
async def test_create_duplicate_session(database, upcoming):
    await create_session(upcoming)
    with pytest.raises(InvalidState):
        await create_session(upcoming)


# --------------------------------------------------------------------------- #
#  Writes
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_record_ball_persists_and_publishes(database, upcoming):
    session = await _ready(await create_session(upcoming))
    seen = []
    broadcaster.subscribe("m1", seen.append)

    match = await session.record_ball(BallEvent(runs=2))

    assert match is session.match
    assert seen == [match]
    log = await db.get_ball_events("m1")
    assert [b.id for b in log] == [match.match_history[0].id]
    stored = await db.get_match("m1")
    assert stored.current_innings.total_runs == 2


@pytest.mark.asyncio
async def test_invalid_operation_writes_nothing(database, upcoming):
    session = await create_session(upcoming)
    seen = []
    broadcaster.subscribe("m1", seen.append)

    with pytest.raises(InvalidState):
        await session.record_ball(BallEvent(runs=1))
    assert seen == []
    assert session.match is upcoming
    assert await db.get_ball_events("m1") == []


@pytest.mark.asyncio
async def test_failed_snapshot_save_rolls_back_ball(database, upcoming, monkeypatch):
    session = await _ready(await create_session(upcoming))
    before = session.match
    seen = []
    broadcaster.subscribe("m1", seen.append)

    monkeypatch.setattr(db, "save_match", _failing)
    with pytest.raises(PersistenceFailure):
        await session.record_ball(BallEvent(runs=4))

    assert session.match is before
    assert seen == []
    # The appended ball was removed again
    assert await db.get_ball_events("m1") == []


@pytest.mark.asyncio
async def test_failed_ball_append_rolls_back(database, upcoming, monkeypatch):
    session = await _ready(await create_session(upcoming))
    before = session.match

    monkeypatch.setattr(db, "append_ball_event", _failing)
    with pytest.raises(PersistenceFailure):
        await session.record_ball(BallEvent(runs=4))

    assert session.match is before
    assert (await db.get_match("m1")).current_innings.total_runs == 0

    # Storage recovers: scoring carries on from the untouched state
    monkeypatch.undo()
    match = await session.record_ball(BallEvent(runs=1))
    assert match.current_innings.total_runs == 1


@pytest.mark.asyncio
async def test_late_snapshot_save_is_reverted(database, upcoming, monkeypatch):
    session = await _ready(await create_session(upcoming))
    session.timeout = 0.01
    before = session.match
    real_save = db.save_match

    async def slow_save(match):
        await asyncio.sleep(0.1)
        await real_save(match)

    monkeypatch.setattr(db, "save_match", slow_save)
    with pytest.raises(PersistenceFailure) as exc:
        await session.swap_batsmen()
    assert exc.value.landed is True
    assert session.match is before

    # The swap did reach storage after the timeout; it was written back
    stored = await db.get_match("m1")
    assert stored.current_innings.striker == "a1"
    assert stored.current_innings.non_striker == "a2"


@pytest.mark.asyncio
async def test_ball_stored_before_append_error_is_removed(database, upcoming, monkeypatch):
    session = await _ready(await create_session(upcoming))
    before = session.match
    real_append = db.append_ball_event

    async def append_then_fail(match_id, ball):
        await real_append(match_id, ball)
        raise OSError("connection reset")

    monkeypatch.setattr(db, "append_ball_event", append_then_fail)
    with pytest.raises(PersistenceFailure):
        await session.record_ball(BallEvent(runs=4))

    assert session.match is before
    assert await db.get_ball_events("m1") == []


async def _assert_storage_matches_engine(session: ScoringSession) -> None:
    local = [b.id for b in session.match.match_history]
    assert [b.id for b in await db.get_ball_events(session.match.id)] == local

    stored = await db.get_match(session.match.id)
    assert [b.id for b in stored.match_history] == local
    assert stored.current_innings.total_runs == session.match.current_innings.total_runs


@pytest.mark.asyncio
async def test_short_timeouts_keep_storage_in_step(database, upcoming):
    """Whatever a timed-out write managed to store is undone before the next operation."""
    session = await _ready(await create_session(upcoming))
    timeouts = [0.0001, 0.0005, 0.001, 0.002]

    for i in range(30):
        session.timeout = timeouts[i % len(timeouts)]
        try:
            await session.record_ball(BallEvent(runs=1))
        except PersistenceFailure:
            pass
        await _assert_storage_matches_engine(session)

    session.timeout = 5.0
    for _ in range(3):
        await session.record_ball(BallEvent(runs=2))

    for i in range(10):
        session.timeout = timeouts[i % len(timeouts)]
        try:
            await session.undo_last()
        except (PersistenceFailure, NothingToUndo):
            pass
        await _assert_storage_matches_engine(session)


# --------------------------------------------------------------------------- #
#  Undo
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_undo_removes_stored_ball(database, upcoming):
    session = await _ready(await create_session(upcoming))
    await session.record_ball(BallEvent(runs=1))
    await session.record_ball(BallEvent(runs=6))

    match = await session.undo_last()
    assert match.current_innings.total_runs == 1
    assert [b.runs for b in await db.get_ball_events("m1")] == [1]
    assert (await db.get_match("m1")).current_innings.total_runs == 1


@pytest.mark.asyncio
async def test_undo_with_nothing_to_undo(database, upcoming):
    session = await _ready(await create_session(upcoming))
    with pytest.raises(NothingToUndo):
        await session.undo_last()


@pytest.mark.asyncio
async def test_failed_undo_restores_ball(database, upcoming, monkeypatch):
    session = await _ready(await create_session(upcoming))
    await session.record_ball(BallEvent(runs=3))
    before = session.match

    monkeypatch.setattr(db, "save_match", _failing)
    with pytest.raises(PersistenceFailure):
        await session.undo_last()

    assert session.match is before
    assert [b.runs for b in await db.get_ball_events("m1")] == [3]


@pytest.mark.asyncio
async def test_writes_are_serialized(database, upcoming):
    session = await _ready(await create_session(upcoming))
    await asyncio.gather(*(session.record_ball(BallEvent(runs=1)) for _ in range(5)))

    match = session.match
    assert match.current_innings.total_runs == 5
    assert [b.ball_number for b in match.match_history] == pytest.approx([0.1, 0.2, 0.3, 0.4, 0.5])
    assert len(await db.get_ball_events("m1")) == 5


# --------------------------------------------------------------------------- #
#  Broadcaster
# --------------------------------------------------------------------------- #


def test_broadcaster_subscribe_and_unsubscribe(upcoming):
    seen = []
    unsubscribe = broadcaster.subscribe("m1", seen.append)
    assert broadcaster.subscriber_count("m1") == 1

    assert broadcaster.publish(upcoming) == 1
    assert seen == [upcoming]

    unsubscribe()
    assert broadcaster.subscriber_count("m1") == 0
    assert broadcaster.publish(upcoming) == 0
    assert len(seen) == 1


def test_broadcaster_isolates_failing_subscriber(upcoming):
    def broken(match):
        raise RuntimeError("viewer went away")

    seen = []
    broadcaster.subscribe("m1", broken)
    broadcaster.subscribe("m1", seen.append)
    broadcaster.subscribe("m2", seen.append)

    assert broadcaster.publish(upcoming) == 2
    assert seen == [upcoming]
