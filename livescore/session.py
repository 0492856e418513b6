"""
Scoring sessions: the async boundary between the engine and persistence.

A session owns one MatchEngine. Each operation computes the new match, writes
it through the storage layer under a timeout, and only then leaves it in the
engine and publishes it to subscribers. A failed write restores the previous
match and repairs storage, so local and stored state never diverge.

aiosqlite runs statements on its own worker thread, and cancelling the
awaiting coroutine does not stop a statement already handed over. Writes
therefore run as shielded tasks that are always awaited to completion: a
timeout only decides that the operation failed, after which whatever did land
is undone before the next operation can start.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from livescore.config import settings
from livescore.engine.match_engine import MatchEngine
from livescore.errors import InvalidState, MatchNotFound, PersistenceFailure
from livescore.feed import broadcaster
from livescore.models import BallEvent, Match, MatchEventType
from livescore.storage import database as db

logger = logging.getLogger(__name__)


async def _finish(task: asyncio.Future) -> bool:
    """Wait for a write task to settle. Returns True if it succeeded."""
    await asyncio.wait([task])
    return not task.cancelled() and task.exception() is None


async def _persist(awaitable: Awaitable, what: str, timeout: float):
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
    except asyncio.TimeoutError as e:
        landed = await _finish(task)
        raise PersistenceFailure(f"Timed out {what}", landed=landed) from e
    except Exception as e:
        raise PersistenceFailure(f"Failed {what}: {e}") from e


class ScoringSession:
    """Serialized, persisted access to one match's engine."""

    def __init__(self, match: Match, timeout: Optional[float] = None) -> None:
        self.engine = MatchEngine(match)
        self.timeout = timeout if timeout is not None else settings.persistence_timeout_seconds
        self._lock = asyncio.Lock()

    @property
    def match(self) -> Match:
        return self.engine.match

    async def _write(self, awaitable: Awaitable, what: str):
        return await _persist(awaitable, what, self.timeout)

    async def _compensate(self, awaitable: Awaitable, what: str) -> None:
        """Repair a half-written change; runs to completion, and the original error still propagates."""
        try:
            await awaitable
        except Exception as e:
            logger.error(f"Match {self.match.id}: could not repair storage while {what} ({e})")

    async def _run(
        self,
        apply: Callable[[], Match],
        write: Callable[[Match, Match], Awaitable[None]],
    ) -> Match:
        async with self._lock:
            previous = self.engine.match
            updated = apply()
            task = asyncio.ensure_future(write(previous, updated))
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                # Caller went away mid-write: settle the write so engine and storage agree
                if await _finish(task):
                    broadcaster.publish(updated)
                else:
                    self.engine.restore(previous)
                raise
            except PersistenceFailure as e:
                self.engine.restore(previous)
                logger.error(f"Match {previous.id}: rolled back local change ({e})")
                raise
            broadcaster.publish(updated)
            return updated

    async def _save(self, match: Match) -> None:
        await self._write(db.save_match(match), "saving match")

    async def _save_only(self, previous: Match, match: Match) -> None:
        try:
            await self._save(match)
        except PersistenceFailure as e:
            if e.landed:
                await self._compensate(db.save_match(previous), "restoring match")
            raise

    # --- balls ---

    async def record_ball(self, ball: BallEvent) -> Match:
        async def write(previous: Match, match: Match) -> None:
            stored = match.match_history[-1]
            try:
                await self._write(db.append_ball_event(match.id, stored), "appending ball")
            except PersistenceFailure:
                # Deleting by id is a no-op when the row never landed
                await self._compensate(db.delete_ball_event(stored.id), "removing orphan ball")
                raise
            try:
                await self._save(match)
            except PersistenceFailure as e:
                await self._compensate(db.delete_ball_event(stored.id), "removing orphan ball")
                if e.landed:
                    await self._compensate(db.save_match(previous), "restoring match")
                raise

        return await self._run(lambda: self.engine.apply_ball(ball), write)

    async def undo_last(self) -> Match:
        async def write(previous: Match, match: Match) -> None:
            removed = previous.match_history[-1]
            try:
                deleted = await self._write(db.delete_ball_event(removed.id), "deleting ball")
            except PersistenceFailure as e:
                if e.landed:
                    await self._compensate(db.append_ball_event(match.id, removed), "restoring ball")
                raise
            if not deleted:
                raise PersistenceFailure(f"Ball {removed.id} is not in storage")
            try:
                await self._save(match)
            except PersistenceFailure as e:
                await self._compensate(db.append_ball_event(match.id, removed), "restoring ball")
                if e.landed:
                    await self._compensate(db.save_match(previous), "restoring match")
                raise

        return await self._run(self.engine.undo_last, write)

    # --- selection ---

    async def select_striker(self, player_id: str) -> Match:
        return await self._run(lambda: self.engine.select_striker(player_id), self._save_only)

    async def select_non_striker(self, player_id: str) -> Match:
        return await self._run(lambda: self.engine.select_non_striker(player_id), self._save_only)

    async def select_bowler(self, player_id: str) -> Match:
        return await self._run(lambda: self.engine.select_bowler(player_id), self._save_only)

    async def swap_batsmen(self) -> Match:
        return await self._run(self.engine.swap_batsmen, self._save_only)

    # --- lifecycle ---

    async def start(self) -> Match:
        return await self._run(self.engine.start, self._save_only)

    async def pause(self, event_type: MatchEventType = MatchEventType.DRINKS, description: Optional[str] = None) -> Match:
        return await self._run(lambda: self.engine.pause(event_type, description), self._save_only)

    async def delay(self, description: Optional[str] = None, duration: Optional[int] = None) -> Match:
        return await self._run(lambda: self.engine.delay(description, duration), self._save_only)

    async def resume(self) -> Match:
        return await self._run(self.engine.resume, self._save_only)

    async def end_innings(self) -> Match:
        return await self._run(self.engine.end_innings, self._save_only)

    async def end_match(self) -> Match:
        return await self._run(self.engine.end_match, self._save_only)


# ------------------------------------------------------------------ #
#  Session registry: one engine per active match
# ------------------------------------------------------------------ #

_sessions: dict[str, ScoringSession] = {}


async def create_session(match: Match) -> ScoringSession:
    """Store a brand-new match and open a session for it."""
    timeout = settings.persistence_timeout_seconds
    if match.id in _sessions or await _persist(db.get_match(match.id), "loading match", timeout):
        raise InvalidState(f"Match {match.id} already exists")
    await _persist(db.create_match(match), "creating match", timeout)
    session = ScoringSession(match)
    _sessions[match.id] = session
    return session


async def open_session(match_id: str) -> ScoringSession:
    """Return the live session for a match, loading it from storage on first use."""
    session = _sessions.get(match_id)
    if session is not None:
        return session

    match = await _persist(db.get_match(match_id), "loading match", settings.persistence_timeout_seconds)
    if match is None:
        raise MatchNotFound(match_id)
    return _sessions.setdefault(match_id, ScoringSession(match))


def close_session(match_id: str) -> None:
    _sessions.pop(match_id, None)


def close_all() -> None:
    _sessions.clear()
