"""Publish a test tone (plus a blank video track) to a WHIP endpoint.

Demonstrates:
- CaptureSession pacing 44.1kHz producer buffers into 10ms 48kHz frames
- PacedAudioTrack + AiortcMediaEngine as the WebRTC side
- WHIPSession driven from the control API (start/stop, bitrate, mute)
- SessionSettings picked up from WHIP_* environment variables

Run:  uvicorn server:app --port 8090
Then: curl -X POST localhost:8090/api/session/start \\
        -H 'Content-Type: application/json' \\
        -d '{"endpoint": "https://ingest.example/live/whip/<workspace>/<device>?auth=<token>"}'
"""

import logging
import os
import threading
from contextlib import asynccontextmanager

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("publish-tone")

import numpy as np
from aiortc import VideoStreamTrack
from fastapi import FastAPI

from capture import CaptureConfig, CaptureSession, PacedAudioTrack
from whip_client import AiortcMediaEngine, SessionSettings, StaticICE, WHIPSession
from whip_client.control import create_control_router
from whip_client.events import ConnectionStateChanged, SessionStateChanged

TONE_HZ = float(os.getenv("TONE_HZ", "440"))
PRODUCER_RATE = 44100
PRODUCER_CHUNK = 441 * 4  # 40ms


class ToneProducer:
    """Stands in for a microphone callback thread."""

    def __init__(self, capture: CaptureSession, freq: float = TONE_HZ):
        self._capture = capture
        self._freq = freq
        self._phase = 0
        self._stop = threading.Event()
        self._thread = None

    def start(self):
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="tone-producer", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)

    def _run(self):
        interval = PRODUCER_CHUNK / PRODUCER_RATE
        while not self._stop.wait(interval):
            t = (self._phase + np.arange(PRODUCER_CHUNK)) / PRODUCER_RATE
            self._phase += PRODUCER_CHUNK
            samples = (np.sin(2 * np.pi * self._freq * t) * 8000).astype(np.int16)
            self._capture.deliver(samples)


track = PacedAudioTrack()
capture = CaptureSession(track.enqueue, CaptureConfig(sample_rate=PRODUCER_RATE))
producer = ToneProducer(capture)

engine = AiortcMediaEngine(audio_track=track, video_track=VideoStreamTrack(), ice_provider=StaticICE())
session = WHIPSession(engine, settings=SessionSettings.from_env())


def _log_event(event):
    if isinstance(event, SessionStateChanged):
        log.info("Session %s -> %s", event.previous.value, event.current.value)
    elif isinstance(event, ConnectionStateChanged):
        log.info("Connection %s", event.state.value)


session.subscribe(_log_event)


@asynccontextmanager
async def lifespan(app: FastAPI):
    capture.start_recording()
    producer.start()
    try:
        yield
    finally:
        producer.stop()
        capture.stop_recording()
        await session.aclose()
        log.info("Delivered %d frames, %d dropped by the track", capture.frames_delivered, track.dropped_frames)


app = FastAPI(lifespan=lifespan)
app.include_router(create_control_router(session=session))
