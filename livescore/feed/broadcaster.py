"""
Fan-out of committed match snapshots to live viewers.

Subscribers register a callback per match id; the SSE endpoint wraps each
connection's asyncio.Queue in such a callback.
"""

import logging
from collections import defaultdict
from typing import Callable

from livescore.models import Match

logger = logging.getLogger(__name__)

OnChange = Callable[[Match], None]

_subscribers: dict[str, list[OnChange]] = defaultdict(list)


def subscribe(match_id: str, on_change: OnChange) -> Callable[[], None]:
    """Register a callback for a match. Returns a function that unsubscribes it."""
    _subscribers[match_id].append(on_change)

    def unsubscribe() -> None:
        callbacks = _subscribers.get(match_id)
        if callbacks and on_change in callbacks:
            callbacks.remove(on_change)
            if not callbacks:
                del _subscribers[match_id]

    return unsubscribe


def publish(match: Match) -> int:
    """Push a match snapshot to every subscriber of that match. Returns the count."""
    callbacks = list(_subscribers.get(match.id, ()))
    for callback in callbacks:
        try:
            callback(match)
        except Exception as e:
            logger.error(f"Subscriber for match {match.id} failed: {e}")
    return len(callbacks)


def subscriber_count(match_id: str) -> int:
    return len(_subscribers.get(match_id, ()))


def clear() -> None:
    _subscribers.clear()
