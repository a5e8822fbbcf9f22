"""Custom audio track for aiortc that publishes paced capture frames.

aiortc calls recv() once per packetization interval. We return the next
queued 10ms frame from the capture session, or silence if none is ready.
"""

import asyncio
import logging
import threading
import time
from collections import deque
from fractions import Fraction

import numpy as np
from aiortc import MediaStreamTrack
from av import AudioFrame

from capture.pacer import FRAME_SAMPLES, SAMPLE_RATE, Frame

log = logging.getLogger("capture.audio_source")

PTIME = FRAME_SAMPLES / SAMPLE_RATE  # 0.01 seconds
_LAYOUTS = {1: "mono", 2: "stereo"}


class PacedAudioTrack(MediaStreamTrack):
    """Outgoing audio track fed by CaptureSession (pass enqueue as the sink)."""

    kind = "audio"

    def __init__(self, channels: int = 1, max_queued_frames: int = 50):
        super().__init__()
        if channels not in _LAYOUTS:
            raise ValueError(f"Unsupported channel count: {channels}")
        self.enabled = True
        self.dropped_frames = 0
        self._channels = channels
        self._frames: deque[Frame] = deque()
        self._max_queued = max_queued_frames
        self._lock = threading.Lock()
        self._start_time = None
        self._frame_count = 0

    @property
    def queued(self) -> int:
        with self._lock:
            return len(self._frames)

    def enqueue(self, frame: Frame):
        """Queue one paced frame (thread-safe, called from the capture thread)."""
        if frame.channels not in _LAYOUTS:
            raise ValueError(f"Unsupported channel count: {frame.channels}")
        with self._lock:
            if len(self._frames) >= self._max_queued:
                self._frames.popleft()
                self.dropped_frames += 1
                if self.dropped_frames == 1 or self.dropped_frames % 100 == 0:
                    log.warning("Track queue full, %d frames dropped so far", self.dropped_frames)
            self._frames.append(frame)

    def clear(self):
        with self._lock:
            self._frames.clear()

    async def recv(self) -> AudioFrame:
        """Called by aiortc to get the next audio frame."""
        if self._start_time is None:
            self._start_time = time.monotonic()

        target_time = self._start_time + self._frame_count * PTIME
        now = time.monotonic()
        if target_time > now:
            await asyncio.sleep(target_time - now)

        self._frame_count += 1

        with self._lock:
            frame = self._frames.popleft() if self._frames else None

        if frame is not None:
            self._channels = frame.channels
        if frame is None or not self.enabled:
            samples = np.zeros(FRAME_SAMPLES * self._channels, dtype=np.int16)
        else:
            samples = frame.samples

        out = AudioFrame.from_ndarray(
            samples.reshape(1, -1),
            format="s16",
            layout=_LAYOUTS[self._channels],
        )
        out.sample_rate = SAMPLE_RATE
        out.pts = (self._frame_count - 1) * FRAME_SAMPLES
        out.time_base = Fraction(1, SAMPLE_RATE)

        return out
