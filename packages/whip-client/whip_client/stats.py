"""Out-of-band telemetry for a live session.

StatsReporter POSTs a StatsSnapshot every interval while the session has an
id. Failures are logged and the next tick simply tries again: no retries,
no backoff, and nothing here ever reaches the session state.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from whip_client.errors import TransportError
from whip_client.signaling import SignalingTransport

log = logging.getLogger("whip_client.stats")


@dataclass(frozen=True)
class StatsSnapshot:
    device_id: str
    display_name: str
    app: str
    os: str
    live_status: str
    thermal_status: str
    session_id: str
    timestamp: int
    conn_state: str
    ice_state: str

    def to_payload(self) -> dict:
        """Wire shape expected by the device stats endpoint."""
        return {
            "identity": self.device_id,
            "info": {
                "userDisplayName": self.display_name,
                "app": self.app,
                "os": self.os,
                "liveStatus": self.live_status,
                "thermalStatus": self.thermal_status,
            },
            "live": {
                "id": self.session_id,
                # key spelling is what the stats endpoint expects
                "stats": {
                    "timetamp": self.timestamp,
                    "status": self.conn_state,
                    "statusICE": self.ice_state,
                },
            },
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_payload(), separators=(",", ":")).encode("utf-8")


# Returns (url, snapshot) for the current tick, or None to skip it.
SnapshotSource = Callable[[], Optional[tuple[str, StatsSnapshot]]]


class StatsReporter:
    """Periodic fire-and-forget stats push on the running event loop."""

    def __init__(self, transport: SignalingTransport, source: SnapshotSource, interval: float = 10.0):
        self._transport = transport
        self._source = source
        self._interval = interval
        self._task: asyncio.Task | None = None
        self.sent = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start ticking. Must be called from the event loop; no-op if already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        log.info("Stats reporting every %.1fs", self._interval)

    def stop(self):
        """Cancel the timer. Safe to call repeatedly."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            log.info("Stats reporting stopped")

    async def _run(self):
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.report_once()
            except Exception:
                self.failed += 1
                log.exception("Stats tick failed")

    async def report_once(self) -> bool:
        """Send one snapshot. Returns True if the server accepted it."""
        tick = self._source()
        if tick is None:
            return False
        url, snapshot = tick

        try:
            resp = await self._transport.send(
                "POST", url,
                headers={"Content-Type": "application/json"},
                body=snapshot.to_json(),
            )
        except TransportError as e:
            self.failed += 1
            log.warning("Error sending stats: %s", e)
            return False

        if not resp.ok:
            self.failed += 1
            log.warning("Stats push rejected (%d)", resp.status)
            return False

        self.sent += 1
        log.debug("Stats push responded: %d", resp.status)
        return True
