"""Error taxonomy for the WHIP publisher."""

from __future__ import annotations

from typing import Optional


class WHIPError(Exception):
    """Base class for every error raised by whip_client."""


class InvalidEndpointError(WHIPError):
    """Broadcast URL is unparsable, has no host, or lacks workspace/device segments."""


class TransportError(WHIPError):
    """Connection-level HTTP failure (DNS, TLS, timeout, refused)."""


class SignalingError(WHIPError):
    """Offer POST failed: bad status, transport failure, or unusable SDP answer."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NegotiationError(WHIPError):
    """Media engine rejected offer creation or a description."""


class SessionBusyError(WHIPError):
    """start() called while a session is already starting or live."""
