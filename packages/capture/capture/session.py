"""Capture session — feeds device buffers through the frame pacer.

The capture device (out of scope here) calls deliver() from its own thread
with whatever buffer size it produced. Complete 10ms frames go to the sink;
anything shorter stays buffered until the next delivery.
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable

from capture.audio import StreamResampler
from capture.pacer import FRAME_DURATION_MS, SAMPLE_RATE, Frame, FramePacer, as_int16

log = logging.getLogger("capture.session")

FrameSink = Callable[[Frame], None]


@dataclass(frozen=True)
class CaptureConfig:
    """Input format of the capture device."""
    sample_rate: int = SAMPLE_RATE
    channels: int = 1
    frame_duration_ms: int = FRAME_DURATION_MS

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if self.channels <= 0:
            raise ValueError("channels must be > 0")
        if self.frame_duration_ms <= 0:
            raise ValueError("frame_duration_ms must be > 0")

    @property
    def frame_size(self) -> int:
        """Samples per channel in one output frame (always at the pipeline rate)."""
        return SAMPLE_RATE * self.frame_duration_ms // 1000

    def with_changes(self, **changes) -> "CaptureConfig":
        return replace(self, **changes)


class CaptureSession:
    """Owns one FramePacer and the config it is fed with.

    deliver() and reconfigure() may be called from different threads; both
    take the same lock. The sink is invoked outside the lock.
    """

    def __init__(self, sink: FrameSink, config: CaptureConfig | None = None):
        self._sink = sink
        self._config = config or CaptureConfig()
        self._pacer = FramePacer()
        self._resampler = self._make_resampler(self._config)
        self._lock = threading.Lock()
        self._recording = False
        self.frames_delivered = 0

    @property
    def config(self) -> CaptureConfig:
        with self._lock:
            return self._config

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def pending_samples(self) -> int:
        with self._lock:
            return self._pacer.available

    def start_recording(self):
        self._recording = True
        log.info("Recording started (%d Hz, %d ch)", self._config.sample_rate, self._config.channels)

    def stop_recording(self):
        """Stop accepting input. Queued samples are kept for a later restart."""
        self._recording = False
        log.info("Recording stopped")

    def reconfigure(self, config: CaptureConfig):
        """Switch to a new input format (e.g. after an audio route change)."""
        with self._lock:
            old = self._config
            self._config = config
            if old.channels != config.channels or old.sample_rate != config.sample_rate:
                self._resampler = self._make_resampler(config)
                dropped = self._pacer.clear()
                if dropped:
                    log.warning("Input format changed, discarded %d pending samples", dropped)
        log.info(
            "Capture reconfigured: %d Hz, %d ch, %d ms frames",
            config.sample_rate, config.channels, config.frame_duration_ms,
        )

    def deliver(self, samples) -> int:
        """Push one captured buffer. Returns the number of frames emitted."""
        if not self._recording:
            return 0

        with self._lock:
            config = self._config
            data = as_int16(samples)
            if self._resampler is not None:
                data = self._resampler.process(data)
            self._pacer.push(data, config.channels)
            frames = list(self._pacer.drain(config.frame_size))

        for frame in frames:
            self._sink(frame)
        self.frames_delivered += len(frames)
        return len(frames)

    @staticmethod
    def _make_resampler(config: CaptureConfig) -> StreamResampler | None:
        if config.sample_rate == SAMPLE_RATE:
            return None
        return StreamResampler(config.sample_rate, SAMPLE_RATE, config.channels)
