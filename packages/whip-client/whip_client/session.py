"""WHIP session — one published live broadcast.

Drives the media engine through offer/answer, POSTs the offer to the
ingestion endpoint, pushes stats while live, and DELETEs the server
resource on stop(). Everything runs on one event loop; a generation
counter keeps a start() that resumes after stop() from touching state.
"""

import asyncio
import logging
import time

from whip_client.config import SessionSettings
from whip_client.endpoint import Endpoint, parse_endpoint
from whip_client.errors import (
    NegotiationError,
    SessionBusyError,
    SignalingError,
    TransportError,
    WHIPError,
)
from whip_client.events import (
    AnswerReceived,
    ConnectionStateChanged,
    EventHub,
    OfferCreated,
    SessionObserver,
    SessionStateChanged,
    SignalingStateChanged,
    TeardownCompleted,
)
from whip_client.media import (
    AUDIO_MAX_BITRATE_BPS,
    ConnectionState,
    MediaEngine,
    SenderParameters,
    SignalingState,
    parse_connection_state,
    parse_signaling_state,
)
from whip_client.preferences import MediaPreferences
from whip_client.signaling import AiohttpTransport, HTTPResponse, SignalingTransport
from whip_client.state import SessionResource, SessionState, can_transition
from whip_client.stats import StatsReporter, StatsSnapshot

log = logging.getLogger("whip_client.session")

_ACCEPTED_OFFER_STATUS = (200, 201)


def answer_sdp(resp: HTTPResponse) -> str:
    """Extract the SDP answer from a successful offer response."""
    try:
        sdp = resp.body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SignalingError("SDP answer is not valid UTF-8", status=resp.status) from e
    if not sdp.lstrip("\ufeff \r\n\t").startswith("v="):
        raise SignalingError("Response body is not an SDP answer", status=resp.status)
    return sdp


class WHIPSession:
    """WHIP publisher state machine.

    idle -> offer_pending -> awaiting_answer -> live -> stopping -> idle,
    with live -> idle directly when the connection fails.

    start() raises the triggering error and also reports it to observers.
    If the engine rejects the answer, start() raises NegotiationError and the
    session stays in awaiting_answer; the caller decides whether to stop().
    """

    def __init__(
        self,
        engine: MediaEngine,
        transport: SignalingTransport | None = None,
        preferences: MediaPreferences | None = None,
        settings: SessionSettings | None = None,
    ):
        self.settings = settings or SessionSettings()
        self.preferences = preferences or MediaPreferences()
        self._engine = engine
        self._transport = transport or AiohttpTransport(timeout=self.settings.request_timeout)
        self._events = EventHub()

        self._state = SessionState.IDLE
        self._generation = 0
        self._endpoint: Endpoint | None = None
        self._resource = SessionResource()
        self._connection_state = ConnectionState.NEW
        self._signaling_state = SignalingState.STABLE
        self._background: set[asyncio.Task] = set()

        self.stats = StatsReporter(self._transport, self._stats_tick, interval=self.settings.stats_interval)

        engine.on_connection_state_change(self._on_connection_state)
        engine.on_signaling_state_change(self._on_signaling_state)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def signaling_state(self) -> SignalingState:
        return self._signaling_state

    @property
    def resource(self) -> SessionResource:
        return self._resource

    @property
    def endpoint(self) -> Endpoint | None:
        return self._endpoint

    def subscribe(self, observer: SessionObserver):
        """Register an observer for SessionEvents. Returns an unsubscribe callable."""
        return self._events.subscribe(observer)

    def unsubscribe(self, observer: SessionObserver):
        self._events.unsubscribe(observer)

    # -- lifecycle -------------------------------------------------------

    async def start(self, endpoint_url: str):
        """Publish to endpoint_url. Returns once live (or once superseded by stop())."""
        if self._state is not SessionState.IDLE:
            if self._state is SessionState.LIVE:
                raise SessionBusyError("Session already live")
            if self._state is SessionState.STOPPING:
                raise SessionBusyError("Session is stopping")
            raise SessionBusyError("Session already starting")

        endpoint = parse_endpoint(endpoint_url)
        self._generation += 1
        generation = self._generation
        self._endpoint = endpoint
        self._resource = SessionResource()
        self._transition(SessionState.OFFER_PENDING)
        log.info("Starting session: workspace=%s device=%s", endpoint.workspace_id, endpoint.device_id)

        try:
            await self._negotiate(endpoint, generation)
        except WHIPError:
            raise
        except BaseException:
            if self._is_current(generation):
                log.warning("Start interrupted in state %s, resetting", self._state.value)
                resource = self._resource
                self._reset()
                self._release(resource)
                self._spawn(self._engine.close())
            raise

    async def _negotiate(self, endpoint: Endpoint, generation: int):
        prefs = self.preferences.snapshot()

        try:
            await self._engine.open(video_codec=prefs["codec"])
            if not self._is_current(generation):
                return await self._discard_superseded()
            self._apply_bitrate(prefs["target_bitrate_bps"])
            self._apply_mute("audio", prefs["audio_muted"])
            self._apply_mute("video", prefs["video_muted"])
            offer = await self._engine.create_offer(receive_audio=False, receive_video=False)
            if not self._is_current(generation):
                return await self._discard_superseded()
            offer = await self._engine.set_local_description(offer)
        except NegotiationError as e:
            if not self._is_current(generation):
                return await self._discard_superseded()
            log.error("Failed to create offer: %s", e)
            self._events.emit(OfferCreated(error=e))
            await self._abort()
            raise

        if not self._is_current(generation):
            return await self._discard_superseded()
        self._events.emit(OfferCreated())
        self._transition(SessionState.AWAITING_ANSWER)

        try:
            resp = await self._post_offer(endpoint, offer, prefs)
        except SignalingError as e:
            if not self._is_current(generation):
                return self._superseded()
            log.error("WHIP POST failed: %s", e)
            self._events.emit(AnswerReceived(error=e))
            await self._abort()
            raise

        resource = self._resource_from(endpoint, resp)
        if not self._is_current(generation):
            # stop() ran while the POST was in flight; nobody else will DELETE this.
            self._release(resource)
            return self._superseded()
        self._resource = resource

        try:
            answer = answer_sdp(resp)
        except SignalingError as e:
            log.error("WHIP answer rejected: %s", e)
            self._events.emit(AnswerReceived(error=e))
            await self._abort()
            raise

        try:
            await self._engine.set_remote_description(answer)
        except NegotiationError as e:
            if not self._is_current(generation):
                return self._superseded()
            log.error("Failed to set remote description: %s", e)
            self._events.emit(AnswerReceived(error=e))
            raise

        if not self._is_current(generation):
            return self._superseded()
        self._transition(SessionState.LIVE)
        self._events.emit(AnswerReceived())
        self.stats.start()
        log.info("Connection established (session %s)", resource.session_id)

    async def stop(self):
        """End the session. Idempotent; never raises for teardown failures."""
        state = self._state
        resource = self._resource
        self._generation += 1
        self.stats.stop()
        self._resource = SessionResource()

        if state in (SessionState.IDLE, SessionState.STOPPING):
            return

        self._transition(SessionState.STOPPING)
        if resource.location:
            self._release(resource)
        else:
            log.info("No resource location, nothing to DELETE")
        try:
            await self._engine.close()
        finally:
            self._transition(SessionState.IDLE)

    async def aclose(self):
        """Stop, wait for outstanding teardown requests and close the transport."""
        await self.stop()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        await self._transport.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    # -- preferences -----------------------------------------------------

    def set_bitrate(self, bps: int):
        """Change the video bitrate cap; applied to live senders at once."""
        self.preferences["target_bitrate_bps"] = bps
        self._apply_bitrate(bps)

    def set_codec(self, codec: str):
        """Change the preferred video codec; takes effect on the next start()."""
        self.preferences["codec"] = codec

    def set_mode(self, mode: str):
        self.preferences["mode"] = mode

    def set_audio_muted(self, muted: bool):
        self.preferences["audio_muted"] = muted
        self._apply_mute("audio", muted)

    def set_video_muted(self, muted: bool):
        self.preferences["video_muted"] = muted
        self._apply_mute("video", muted)

    def update_preferences(self, patch: dict) -> dict:
        """Apply a partial preference update and push it to live senders."""
        snap = self.preferences.update(patch)
        if "target_bitrate_bps" in patch:
            self._apply_bitrate(snap["target_bitrate_bps"])
        if "audio_muted" in patch:
            self._apply_mute("audio", snap["audio_muted"])
        if "video_muted" in patch:
            self._apply_mute("video", snap["video_muted"])
        return snap

    def _apply_bitrate(self, bps: int):
        for sender in self._engine.list_senders():
            if sender.kind == "video":
                sender.set_parameters(SenderParameters(max_bitrate_bps=bps))
            else:
                sender.set_parameters(SenderParameters(max_bitrate_bps=AUDIO_MAX_BITRATE_BPS))

    def _apply_mute(self, kind: str, muted: bool):
        for sender in self._engine.list_senders():
            if sender.kind == kind:
                sender.set_enabled(not muted)

    # -- internals -------------------------------------------------------

    def _offer_headers(self, prefs: dict) -> dict:
        return {
            "Content-Type": "application/sdp",
            "liveMode": self.settings.live_mode,
            "liveQuality": self.settings.live_quality,
            "liveBitrate": str(prefs["target_bitrate_bps"]),
            "liveCodec": prefs["codec"].lower(),
            "liveConnMode": prefs["mode"],
            "livePlayoutDelayMs": str(self.settings.playout_delay_ms),
            "displayName": self.settings.display_name,
        }

    async def _post_offer(self, endpoint: Endpoint, sdp: str, prefs: dict) -> HTTPResponse:
        try:
            resp = await self._transport.send(
                "POST", endpoint.url,
                headers=self._offer_headers(prefs),
                body=sdp.encode("utf-8"),
            )
        except TransportError as e:
            raise SignalingError(str(e)) from e
        if resp.status not in _ACCEPTED_OFFER_STATUS:
            raise SignalingError(f"Offer rejected with status {resp.status}", status=resp.status)
        return resp

    @staticmethod
    def _resource_from(endpoint: Endpoint, resp: HTTPResponse) -> SessionResource:
        location = resp.header("Location")
        if not location:
            log.warning("Offer response has no Location header; stop() will not DELETE")
        return SessionResource(
            location=endpoint.resolve(location) if location else None,
            session_id=resp.header("ETag"),
        )

    def _transition(self, target: SessionState):
        previous = self._state
        if not can_transition(previous, target):
            raise RuntimeError(f"Illegal session transition {previous.value} -> {target.value}")
        self._state = target
        log.info("Session state: %s -> %s", previous.value, target.value)
        self._events.emit(SessionStateChanged(previous=previous, current=target))

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _superseded(self):
        log.info("Start superseded by stop()")

    async def _discard_superseded(self):
        """Close a peer connection opened by a start() that stop() overtook.

        A newer start() owns the engine while it negotiates or is live, so the
        connection is only closed when idle or stopping.
        """
        self._superseded()
        if self._state in (SessionState.IDLE, SessionState.STOPPING):
            await self._engine.close()

    def _reset(self):
        """Drop the current session and go straight back to idle."""
        self._generation += 1
        self.stats.stop()
        self._resource = SessionResource()
        if self._state is not SessionState.IDLE:
            self._transition(SessionState.IDLE)

    async def _abort(self):
        resource = self._resource
        self._reset()
        self._release(resource)
        await self._engine.close()

    def _release(self, resource: SessionResource):
        if resource.location:
            self._spawn(self._delete_resource(resource.location))

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _delete_resource(self, location: str):
        try:
            resp = await self._transport.send("DELETE", location)
        except TransportError as e:
            log.warning("DELETE %s failed: %s", location, e)
            self._events.emit(TeardownCompleted(location=location, error=e))
            return
        log.info("DELETE %s -> %d", location, resp.status)
        self._events.emit(TeardownCompleted(location=location, status=resp.status))

    def _stats_tick(self):
        endpoint, resource = self._endpoint, self._resource
        if endpoint is None or resource.session_id is None:
            return None
        snapshot = StatsSnapshot(
            device_id=endpoint.device_id,
            display_name=self.settings.display_name,
            app=self.settings.app,
            os=self.settings.os_name,
            live_status="broadcasting",
            thermal_status=self.settings.thermal_status(),
            session_id=resource.session_id,
            timestamp=int(time.time() * 1000),
            conn_state=self._connection_state.value,
            ice_state=self._engine.ice_connection_state or "new",
        )
        return endpoint.stats_url, snapshot

    def _on_connection_state(self, value: str):
        state = parse_connection_state(value)
        self._connection_state = state
        self._events.emit(ConnectionStateChanged(state=state))
        if state is ConnectionState.FAILED and self._state is SessionState.LIVE:
            log.error("Connection failed, ending session")
            resource = self._resource
            self._reset()
            self._release(resource)
            self._spawn(self._engine.close())

    def _on_signaling_state(self, value: str):
        state = parse_signaling_state(value)
        self._signaling_state = state
        self._events.emit(SignalingStateChanged(state=state))
