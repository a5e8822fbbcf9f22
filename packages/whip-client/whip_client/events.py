"""Session events — one observer interface, one discriminated event type.

Observers are plain callables taking a SessionEvent. Dispatch on the
concrete class (or use ``match``)::

    def on_event(event):
        if isinstance(event, ConnectionStateChanged):
            ui.show(event.state)

    session.subscribe(on_event)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from whip_client.media import ConnectionState, SignalingState
from whip_client.state import SessionState

log = logging.getLogger("whip_client.events")


@dataclass(frozen=True)
class SessionStateChanged:
    previous: SessionState
    current: SessionState


@dataclass(frozen=True)
class SignalingStateChanged:
    state: SignalingState


@dataclass(frozen=True)
class ConnectionStateChanged:
    state: ConnectionState


@dataclass(frozen=True)
class OfferCreated:
    """Local offer created and applied (error is None) or not."""
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class AnswerReceived:
    """Answer POSTed back and applied (error is None) or not."""
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class TeardownCompleted:
    """Outcome of the fire-and-forget DELETE. Never an error for the session."""
    location: str
    status: Optional[int] = None
    error: Optional[Exception] = None


SessionEvent = Union[
    SessionStateChanged,
    SignalingStateChanged,
    ConnectionStateChanged,
    OfferCreated,
    AnswerReceived,
    TeardownCompleted,
]

SessionObserver = Callable[[SessionEvent], None]


class EventHub:
    """Fan-out of SessionEvents to registered observers."""

    def __init__(self):
        self._observers: list[SessionObserver] = []

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """Register an observer. Returns a callable that unsubscribes it."""
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: SessionObserver):
        if observer in self._observers:
            self._observers.remove(observer)

    def emit(self, event: SessionEvent):
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                log.exception("Observer %r failed on %s", observer, type(event).__name__)

