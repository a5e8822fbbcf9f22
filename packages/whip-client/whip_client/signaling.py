"""HTTP signaling transport for the WHIP exchange.

SignalingTransport is the seam the session talks to. It never retries and
never interprets status codes: any HTTP response is a successful result,
only connection-level failures raise TransportError.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping, Optional

import aiohttp

from whip_client.errors import TransportError

log = logging.getLogger("whip_client.signaling")


@dataclass
class HTTPResponse:
    """Status, headers and raw body of a completed request."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


class SignalingTransport(ABC):
    """Issues one HTTP request and returns the response."""

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: bytes = b"",
    ) -> HTTPResponse:
        """Send a request. Raises TransportError on connection-level failure."""
        ...

    async def close(self):
        """Release pooled connections. Default: nothing to release."""


class AiohttpTransport(SignalingTransport):
    """SignalingTransport backed by a shared aiohttp.ClientSession."""

    def __init__(self, timeout: float = 10.0):
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def send(self, method, url, headers=None, body=b""):
        session = self._get_session()
        try:
            async with session.request(
                method, url, headers=dict(headers or {}), data=body or None,
            ) as resp:
                payload = await resp.read()
                return HTTPResponse(
                    status=resp.status,
                    headers={str(k): v for k, v in resp.headers.items()},
                    body=payload,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug("%s %s failed: %r", method, url, e)
            raise TransportError(f"{method} {url} failed: {e or type(e).__name__}") from e

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
