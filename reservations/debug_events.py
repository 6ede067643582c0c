"""Per-session event feed for live transcript and booking views.

A ReservationSession can have an EventBroadcaster attached. Every
transcript turn, step transition, weather lookup and save attempt is
pushed to each subscriber's asyncio.Queue, so a view layer (WebSocket,
admin page) can render the conversation without polling.

The feed mirrors the conversation: a restart starts a new history, so
nothing said before it is replayed to late subscribers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, TypedDict

log = logging.getLogger("reservations.debug_events")

SUBSCRIBER_QUEUE_SIZE = 200
HISTORY_SIZE = 500

RESTART_EVENT = "restart"


class ConversationEvent(TypedDict):
    type: str          # turn | transition | weather | save | restart | discarded
    timestamp: float
    session_id: str
    step: str
    data: dict[str, Any]


class EventBroadcaster:
    """Fan-out of conversation events with a bounded replay history.

    Subscribers get bounded queues; a slow one loses its oldest events
    rather than blocking the conversation.
    """

    def __init__(self, session_id: str, history_size: int = HISTORY_SIZE) -> None:
        self.session_id = session_id
        self._subscribers: set[asyncio.Queue[ConversationEvent]] = set()
        self._history: deque[ConversationEvent] = deque(maxlen=history_size)

    def subscribe(self) -> asyncio.Queue[ConversationEvent]:
        q: asyncio.Queue[ConversationEvent] = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers.add(q)
        log.debug("Subscriber added for session %s", self.session_id)
        return q

    def unsubscribe(self, q: asyncio.Queue[ConversationEvent]) -> None:
        self._subscribers.discard(q)

    def emit(self, event_type: str, step: str, data: dict[str, Any]) -> ConversationEvent:
        event: ConversationEvent = {
            "type": event_type,
            "timestamp": time.time(),
            "session_id": self.session_id,
            "step": step,
            "data": data,
        }
        if event_type == RESTART_EVENT:
            self._history.clear()
        self._history.append(event)
        for q in self._subscribers:
            _offer(q, event)
        return event

    @property
    def history(self) -> list[ConversationEvent]:
        return list(self._history)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


def _offer(q: asyncio.Queue[ConversationEvent], event: ConversationEvent) -> None:
    if q.full():
        q.get_nowait()
    q.put_nowait(event)


_broadcasters: dict[str, EventBroadcaster] = {}


def get_broadcaster(session_id: str) -> EventBroadcaster:
    """Get or create the broadcaster for a session."""
    broadcaster = _broadcasters.get(session_id)
    if broadcaster is None:
        broadcaster = _broadcasters[session_id] = EventBroadcaster(session_id)
    return broadcaster


def remove_broadcaster(session_id: str) -> None:
    if _broadcasters.pop(session_id, None) is not None:
        log.info("EventBroadcaster removed for session %s", session_id)
