"""ICE server providers for the publishing peer connection.

StaticICE returns a fixed list of servers (Cloudflare STUN by default).
ice_servers_to_rtc converts WebRTC-style dicts into aiortc objects.
"""

import logging
from abc import ABC, abstractmethod

from aiortc import RTCIceServer

log = logging.getLogger("whip_client.ice")

DEFAULT_ICE_SERVERS = [{"urls": "stun:stun.cloudflare.com:3478"}]


class ICEProvider(ABC):
    """Abstract base class for STUN/TURN server providers."""

    @abstractmethod
    async def fetch_ice_servers(self) -> list[dict]:
        """Return ICE server dicts in WebRTC format."""
        ...


class StaticICE(ICEProvider):
    """Return a fixed list of STUN/TURN servers."""

    def __init__(self, servers: list[dict] | None = None):
        self._servers = servers if servers is not None else list(DEFAULT_ICE_SERVERS)

    async def fetch_ice_servers(self) -> list[dict]:
        return self._servers


def ice_servers_to_rtc(servers: list) -> list:
    """Convert ICE server dicts to RTCIceServer objects."""
    result = []
    for s in servers:
        urls = s.get("urls", s.get("url", ""))
        if isinstance(urls, str):
            urls = [urls]
        if not urls:
            log.warning("Skipping ICE server entry without urls: %r", s)
            continue
        result.append(RTCIceServer(
            urls=urls,
            username=s.get("username") or None,
            credential=s.get("credential") or None,
        ))
    return result
