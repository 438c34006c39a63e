from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from ballot_engine.core.settings import get_settings
from ballot_engine.security.logger import ballot_logger as logger

VOTER_WHITELISTED = "VoterWhitelisted"
VOTE_CAST = "VoteCast"
VOTING_STATE_CHANGED = "VotingStateChanged"
DELEGATED_VOTE = "DelegatedVote"
ADMIN_ADDED = "AdminAdded"
ADMIN_REMOVED = "AdminRemoved"
BALLOT_CREATED = "BallotCreated"


class BallotEvent(BaseModel):
    name: str
    # id of the ballot (or registry) that emitted the event
    subject: str
    payload: Dict[str, Any] = Field(default_factory=dict)


EventSink = Callable[[BallotEvent], None]


def log_event(event: BallotEvent) -> None:
    """Default sink: write the event to the ballot log."""
    if get_settings().log_events:
        logger.info("event %s subject=%s payload=%s", event.name, event.subject, event.payload)


class EventLog:
    """In-memory sink that records every event it receives, in order."""

    def __init__(self, forward: Optional[EventSink] = None) -> None:
        self._events: List[BallotEvent] = []
        self._lock = threading.Lock()
        self._forward = forward

    def __call__(self, event: BallotEvent) -> None:
        with self._lock:
            self._events.append(event)
        if self._forward is not None:
            self._forward(event)

    @property
    def events(self) -> List[BallotEvent]:
        with self._lock:
            return list(self._events)

    def named(self, name: str) -> List[BallotEvent]:
        return [e for e in self.events if e.name == name]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


__all__ = [
    "BallotEvent",
    "EventSink",
    "EventLog",
    "log_event",
    "VOTER_WHITELISTED",
    "VOTE_CAST",
    "VOTING_STATE_CHANGED",
    "DELEGATED_VOTE",
    "ADMIN_ADDED",
    "ADMIN_REMOVED",
    "BALLOT_CREATED",
]
