"""Media engine capability — the contract the WHIP session drives.

The engine owns ICE, DTLS, encoding and RTP. The session only asks it for an
offer, hands it descriptions, and tunes its senders. AiortcMediaEngine in
whip_client.engine is the production implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class ConnectionState(str, Enum):
    NEW = "new"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"


class SignalingState(str, Enum):
    STABLE = "stable"
    HAVE_LOCAL_OFFER = "have-local-offer"
    HAVE_REMOTE_OFFER = "have-remote-offer"
    HAVE_LOCAL_PRANSWER = "have-local-pranswer"
    HAVE_REMOTE_PRANSWER = "have-remote-pranswer"
    CLOSED = "closed"


AUDIO_MAX_BITRATE_BPS = 128_000


@dataclass(frozen=True)
class SenderParameters:
    """Encoding parameters applied to one outgoing sender."""

    max_bitrate_bps: int
    degradation_preference: str = "balanced"
    network_priority: str = "medium"


class MediaSender(ABC):
    """One outgoing track slot (audio or video)."""

    kind: str = ""

    @abstractmethod
    def set_parameters(self, params: SenderParameters):
        """Apply encoding parameters without renegotiation."""
        ...

    @abstractmethod
    def set_enabled(self, enabled: bool):
        """Enable or mute the sender's track."""
        ...


StateCallback = Callable[[str], None]


class MediaEngine(ABC):
    """Opaque WebRTC engine used to publish one session at a time."""

    @abstractmethod
    async def open(self, video_codec: str):
        """Create a fresh peer connection with send-only tracks attached."""
        ...

    @abstractmethod
    async def create_offer(self, receive_audio: bool = False, receive_video: bool = False) -> str:
        """Return offer SDP. Raises NegotiationError."""
        ...

    @abstractmethod
    async def set_local_description(self, sdp: str) -> str:
        """Apply the offer locally. Returns the SDP to send (may include candidates)."""
        ...

    @abstractmethod
    async def set_remote_description(self, sdp: str):
        """Apply the answer. Raises NegotiationError."""
        ...

    @abstractmethod
    def list_senders(self) -> list[MediaSender]:
        ...

    @abstractmethod
    def on_signaling_state_change(self, callback: StateCallback):
        ...

    @abstractmethod
    def on_connection_state_change(self, callback: StateCallback):
        ...

    @property
    def ice_connection_state(self) -> Optional[str]:
        return None

    @abstractmethod
    async def close(self):
        """Tear down the peer connection. Safe to call when not open."""
        ...


def parse_connection_state(value: str) -> ConnectionState:
    try:
        return ConnectionState(value)
    except ValueError:
        return ConnectionState.NEW


def parse_signaling_state(value: str) -> SignalingState:
    try:
        return SignalingState(value)
    except ValueError:
        return SignalingState.STABLE
