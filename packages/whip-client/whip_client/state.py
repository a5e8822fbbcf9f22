"""WHIP session lifecycle states and the explicit transition table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    IDLE = "idle"
    OFFER_PENDING = "offer_pending"
    AWAITING_ANSWER = "awaiting_answer"
    LIVE = "live"
    STOPPING = "stopping"


TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.OFFER_PENDING}),
    SessionState.OFFER_PENDING: frozenset({
        SessionState.AWAITING_ANSWER, SessionState.STOPPING, SessionState.IDLE,
    }),
    SessionState.AWAITING_ANSWER: frozenset({
        SessionState.LIVE, SessionState.STOPPING, SessionState.IDLE,
    }),
    # LIVE -> IDLE directly on a fatal connection failure
    SessionState.LIVE: frozenset({SessionState.STOPPING, SessionState.IDLE}),
    SessionState.STOPPING: frozenset({SessionState.IDLE}),
}


def can_transition(current: SessionState, target: SessionState) -> bool:
    return target in TRANSITIONS[current]


@dataclass(frozen=True)
class SessionResource:
    """Server-side handle of a published session.

    location: absolute URL to DELETE on teardown (from the Location header).
    session_id: the ETag of the offer response, reported with stats.
    """

    location: Optional[str] = None
    session_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.location is None and self.session_id is None
