"""Broadcast endpoint parsing.

Endpoint URLs have the shape::

    https://api.example/live/whip/<workspace_id>/<device_id>?auth=<token>

The path has exactly four segments; the workspace and device ids are the
last two. Longer or shorter paths are rejected. The value of the first
query parameter is the auth token.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qsl, quote, urlsplit

from whip_client.errors import InvalidEndpointError

_WORKSPACE_SEGMENT = 2
_DEVICE_SEGMENT = 3
_PATH_SEGMENTS = 4

STATS_PATH = "/api/device/stats"


@dataclass(frozen=True)
class Endpoint:
    """Identifiers parsed once from the broadcast URL at session start."""

    url: str
    scheme: str
    host: str
    workspace_id: str
    device_id: str
    auth_token: str
    port: int | None = None

    @property
    def base_url(self) -> str:
        """``scheme://host[:port]`` used to root relative URLs."""
        if self.port is None:
            return f"{self.scheme}://{self.host}"
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def stats_url(self) -> str:
        return (
            f"{self.base_url}{STATS_PATH}/{quote(self.workspace_id, safe='')}/"
            f"{quote(self.device_id, safe='')}?auth={quote(self.auth_token, safe='')}"
        )

    def resolve(self, location: str) -> str:
        """Resolve a Location header value; only root-relative paths are prefixed."""
        if location.startswith("/"):
            return f"{self.base_url}{location}"
        return location


def parse_endpoint(url: str) -> Endpoint:
    """Parse a broadcast URL. Raises InvalidEndpointError if it cannot be used."""
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except (AttributeError, ValueError) as exc:
        raise InvalidEndpointError(f"Unparsable endpoint URL: {url!r}") from exc

    if not parts.scheme or not parts.hostname:
        raise InvalidEndpointError(f"Endpoint URL has no scheme or host: {url!r}")

    segments = [s for s in parts.path.split("/") if s]
    if len(segments) != _PATH_SEGMENTS:
        raise InvalidEndpointError(
            f"Endpoint path must end in workspace and device ids: {parts.path!r}"
        )

    query = parse_qsl(parts.query, keep_blank_values=True)
    auth_token = query[0][1] if query else ""

    return Endpoint(
        url=url.strip(),
        scheme=parts.scheme,
        host=parts.hostname,
        workspace_id=segments[_WORKSPACE_SEGMENT],
        device_id=segments[_DEVICE_SEGMENT],
        auth_token=auth_token,
        port=port,
    )
