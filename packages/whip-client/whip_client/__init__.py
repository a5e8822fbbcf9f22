"""WHIP Client — publishes a live WebRTC session to a WHIP ingestion endpoint."""

from whip_client.errors import (
    WHIPError,
    InvalidEndpointError,
    TransportError,
    SignalingError,
    NegotiationError,
    SessionBusyError,
)
from whip_client.endpoint import Endpoint, parse_endpoint
from whip_client.state import SessionState, SessionResource
from whip_client.media import ConnectionState, SignalingState, MediaEngine, MediaSender, SenderParameters
from whip_client.events import (
    SessionEvent,
    SessionStateChanged,
    SignalingStateChanged,
    ConnectionStateChanged,
    OfferCreated,
    AnswerReceived,
    TeardownCompleted,
)
from whip_client.signaling import SignalingTransport, AiohttpTransport, HTTPResponse
from whip_client.preferences import MediaPreferences
from whip_client.config import SessionSettings
from whip_client.stats import StatsReporter, StatsSnapshot
from whip_client.session import WHIPSession
from whip_client.engine import AiortcMediaEngine
from whip_client.ice import ICEProvider, StaticICE

__all__ = [
    "WHIPError",
    "InvalidEndpointError",
    "TransportError",
    "SignalingError",
    "NegotiationError",
    "SessionBusyError",
    "Endpoint",
    "parse_endpoint",
    "SessionState",
    "SessionResource",
    "ConnectionState",
    "SignalingState",
    "MediaEngine",
    "MediaSender",
    "SenderParameters",
    "SessionEvent",
    "SessionStateChanged",
    "SignalingStateChanged",
    "ConnectionStateChanged",
    "OfferCreated",
    "AnswerReceived",
    "TeardownCompleted",
    "SignalingTransport",
    "AiohttpTransport",
    "HTTPResponse",
    "MediaPreferences",
    "SessionSettings",
    "StatsReporter",
    "StatsSnapshot",
    "WHIPSession",
    "AiortcMediaEngine",
    "ICEProvider",
    "StaticICE",
]
