"""Shared fakes for whip_client tests: an in-memory transport and media engine."""

import asyncio
from dataclasses import dataclass, field

import pytest

from whip_client.config import SessionSettings
from whip_client.media import MediaEngine, MediaSender
from whip_client.session import WHIPSession
from whip_client.signaling import HTTPResponse, SignalingTransport

ENDPOINT = "https://api.example/live/whip/WK123/DEV456?auth=TOKEN789"

OFFER_SDP = "v=0\r\no=- 1 1 IN IP4 0.0.0.0\r\ns=-\r\nt=0 0\r\nm=audio 9 UDP/TLS/RTP/SAVPF 111\r\na=sendonly\r\n"
ANSWER_SDP = "v=0\r\no=- 2 2 IN IP4 0.0.0.0\r\ns=-\r\nt=0 0\r\nm=audio 9 UDP/TLS/RTP/SAVPF 111\r\na=recvonly\r\n"


def whip_answer(location="/whip/resource/abc", etag="live-1", status=201) -> HTTPResponse:
    headers = {}
    if location is not None:
        headers["Location"] = location
    if etag is not None:
        headers["ETag"] = etag
    return HTTPResponse(status=status, headers=headers, body=ANSWER_SDP.encode())


async def settle(rounds: int = 10):
    """Let scheduled background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@dataclass
class SentRequest:
    method: str
    url: str
    headers: dict = field(default_factory=dict)
    body: bytes = b""


class FakeTransport(SignalingTransport):
    """Records requests and replays queued responses (or raises queued errors)."""

    def __init__(self):
        self.requests: list[SentRequest] = []
        self.closed = False
        self._responses: dict[str, list] = {}
        self._gates: dict[str, asyncio.Event] = {}

    def queue(self, method: str, *results):
        self._responses.setdefault(method, []).extend(results)

    def hold(self, method: str) -> asyncio.Event:
        """Block requests of this method until the returned event is set."""
        gate = asyncio.Event()
        self._gates[method] = gate
        return gate

    def sent(self, method: str) -> list[SentRequest]:
        return [r for r in self.requests if r.method == method]

    async def send(self, method, url, headers=None, body=b""):
        self.requests.append(SentRequest(method, url, dict(headers or {}), body))
        gate = self._gates.get(method)
        if gate is not None:
            await gate.wait()
        pending = self._responses.get(method)
        result = pending.pop(0) if pending else self._default(method)
        if isinstance(result, Exception):
            raise result
        return result

    @staticmethod
    def _default(method):
        if method == "POST":
            return whip_answer()
        return HTTPResponse(status=200)

    async def close(self):
        self.closed = True


class FakeSender(MediaSender):
    def __init__(self, kind: str):
        self.kind = kind
        self.parameters = None
        self.enabled = True

    def set_parameters(self, params):
        self.parameters = params

    def set_enabled(self, enabled):
        self.enabled = enabled


class FakeEngine(MediaEngine):
    """Scriptable stand-in for the WebRTC engine."""

    def __init__(self, kinds=("audio", "video")):
        self.kinds = kinds
        self.senders: list[FakeSender] = []
        self.opened_codecs: list[str] = []
        self.offer_constraints = None
        self.local_sdp = None
        self.remote_sdp = None
        self.close_count = 0
        self.fail_offer: Exception | None = None
        self.fail_remote: Exception | None = None
        self.ice_state = "new"
        self.is_open = False
        self.offer_count = 0
        self._open_gate: asyncio.Event | None = None
        self._open_lock = asyncio.Lock()
        self._connection_callbacks = []
        self._signaling_callbacks = []

    def hold_open(self) -> asyncio.Event:
        """Block the next open() until the returned event is set."""
        self._open_gate = asyncio.Event()
        return self._open_gate

    async def open(self, video_codec):
        async with self._open_lock:
            gate, self._open_gate = self._open_gate, None
            if gate is not None:
                await gate.wait()
            self.opened_codecs.append(video_codec)
            self.senders = [FakeSender(kind) for kind in self.kinds]
            self.is_open = True

    async def create_offer(self, receive_audio=False, receive_video=False):
        self.offer_count += 1
        self.offer_constraints = (receive_audio, receive_video)
        if self.fail_offer is not None:
            raise self.fail_offer
        return OFFER_SDP

    async def set_local_description(self, sdp):
        self.local_sdp = sdp
        self.emit_signaling("have-local-offer")
        return sdp

    async def set_remote_description(self, sdp):
        if self.fail_remote is not None:
            raise self.fail_remote
        self.remote_sdp = sdp
        self.emit_signaling("stable")

    def list_senders(self):
        return list(self.senders)

    def sender(self, kind) -> FakeSender:
        return next(s for s in self.senders if s.kind == kind)

    def on_signaling_state_change(self, callback):
        self._signaling_callbacks.append(callback)

    def on_connection_state_change(self, callback):
        self._connection_callbacks.append(callback)

    def emit_signaling(self, state):
        for cb in self._signaling_callbacks:
            cb(state)

    def emit_connection(self, state):
        for cb in self._connection_callbacks:
            cb(state)

    @property
    def ice_connection_state(self):
        return self.ice_state

    async def close(self):
        self.close_count += 1
        self.senders = []
        self.is_open = False


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def events():
    return []


@pytest.fixture
def session(engine, transport, events):
    s = WHIPSession(engine, transport=transport, settings=SessionSettings(os_name="TestOS"))
    s.subscribe(events.append)
    return s
