"""Frame pacer — re-packetizes bursty capture buffers into fixed 10ms frames.

FramePacer: append-only FIFO of int16 samples, drained in whole frames only.
"""

from collections import deque
from dataclasses import dataclass

import numpy as np

SAMPLE_RATE = 48000
FRAME_DURATION_MS = 10
FRAME_SAMPLES = SAMPLE_RATE * FRAME_DURATION_MS // 1000  # 480 per channel


@dataclass(frozen=True)
class Frame:
    """One fixed-size chunk of interleaved int16 PCM."""
    samples: np.ndarray
    channels: int

    @property
    def samples_per_channel(self) -> int:
        return len(self.samples) // self.channels

    def tobytes(self) -> bytes:
        return self.samples.tobytes()


def as_int16(samples) -> np.ndarray:
    """Coerce PCM input (bytes, ndarray or int sequence) to a flat int16 array."""
    if isinstance(samples, (bytes, bytearray, memoryview)):
        return np.frombuffer(samples, dtype=np.int16)
    return np.asarray(samples, dtype=np.int16).reshape(-1)


class FramePacer:
    """Unbounded FIFO of int16 samples, read out in whole frames.

    The capture producer calls push() with whatever buffer size the device
    delivered, then drain() to pull every complete frame. A partial frame is
    never emitted; the remainder stays queued for the next push.

    Not thread-safe. Callers on more than one thread must serialize push()
    and drain() themselves (see CaptureSession).
    """

    def __init__(self):
        self._chunks: deque[np.ndarray] = deque()
        self._current = np.empty(0, dtype=np.int16)
        self._offset = 0
        self._available = 0
        self._channels: int | None = None

    @property
    def available(self) -> int:
        """Total samples (all channels) buffered."""
        return self._available

    @property
    def channels(self) -> int | None:
        return self._channels

    def push(self, samples, channels: int = 1):
        """Append interleaved samples to the tail of the queue."""
        if channels < 1:
            raise ValueError(f"channels must be >= 1, got {channels}")
        data = as_int16(samples)
        if not len(data):
            return
        if self._available and channels != self._channels:
            raise ValueError(
                f"channel count changed from {self._channels} to {channels} "
                f"with {self._available} samples pending"
            )
        self._channels = channels
        # queued audio must not alias the caller's buffer
        self._chunks.append(data.copy())
        self._available += len(data)

    def drain(self, frame_size: int = FRAME_SAMPLES):
        """Yield Frames of frame_size samples per channel while enough are queued."""
        if frame_size < 1:
            raise ValueError(f"frame_size must be >= 1, got {frame_size}")
        while self._channels is not None and self._available >= frame_size * self._channels:
            yield Frame(samples=self._take(frame_size * self._channels), channels=self._channels)

    def clear(self) -> int:
        """Discard all queued samples. Returns how many were dropped."""
        dropped = self._available
        self._chunks.clear()
        self._current = np.empty(0, dtype=np.int16)
        self._offset = 0
        self._available = 0
        self._channels = None
        return dropped

    def _take(self, n: int) -> np.ndarray:
        result = np.empty(n, dtype=np.int16)
        written = 0
        while written < n:
            if self._offset >= len(self._current):
                self._current = self._chunks.popleft()
                self._offset = 0
            to_copy = min(len(self._current) - self._offset, n - written)
            result[written:written + to_copy] = self._current[self._offset:self._offset + to_copy]
            self._offset += to_copy
            written += to_copy
        self._available -= n
        return result
