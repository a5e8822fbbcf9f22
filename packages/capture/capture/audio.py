"""Audio utilities for the capture path.

resample: Convert one interleaved int16 PCM buffer between sample rates (e.g., 44.1kHz mic -> 48kHz WebRTC).
StreamResampler: The same conversion for a stream delivered in pieces, without
    losing or duplicating samples at buffer boundaries.
"""

import numpy as np

from capture.pacer import as_int16


def resample(samples, from_rate: int, to_rate: int, channels: int = 1) -> np.ndarray:
    """Resample interleaved int16 PCM between sample rates.

    Args:
        samples: int16 PCM as ndarray, raw bytes or int sequence.
        from_rate: Source sample rate (e.g., 44100).
        to_rate: Target sample rate (e.g., 48000).
        channels: Number of interleaved channels.

    Returns:
        Resampled interleaved int16 array.
    """
    data = as_int16(samples)
    if from_rate == to_rate:
        return data

    frames = data[: len(data) - len(data) % channels].reshape(-1, channels).astype(np.float64)
    num_input = frames.shape[0]
    num_output = int(num_input * to_rate / from_rate)
    if num_input == 0 or num_output == 0:
        return np.empty(0, dtype=np.int16)

    positions = np.linspace(0, num_input - 1, num_output)
    index = np.arange(num_input)
    out = np.empty((num_output, channels), dtype=np.float64)
    for ch in range(channels):
        out[:, ch] = np.interp(positions, index, frames[:, ch])
    return np.clip(out, -32768, 32767).astype(np.int16).reshape(-1)


class StreamResampler:
    """Linear resampler for a continuous stream cut into arbitrary buffers.

    Output positions are tracked as exact integers in units of 1/to_rate, and
    the last input frame is carried into the next call, so chunking never
    changes the result: feeding a stream buffer by buffer yields the same
    samples as resampling it in one piece. N input frames produce
    floor((N - 1) * to_rate / from_rate) + 1 output frames in total.
    """

    def __init__(self, from_rate: int, to_rate: int, channels: int = 1):
        if from_rate <= 0 or to_rate <= 0:
            raise ValueError("sample rates must be > 0")
        if channels <= 0:
            raise ValueError("channels must be > 0")
        self.from_rate = from_rate
        self.to_rate = to_rate
        self.channels = channels
        self.reset()

    def reset(self):
        """Forget the carried frame; the next buffer starts a new stream."""
        self._history = None
        self._next = 0

    def process(self, samples) -> np.ndarray:
        """Resample one interleaved int16 buffer, returning interleaved int16."""
        data = as_int16(samples)
        usable = len(data) - len(data) % self.channels
        if usable == 0:
            return np.empty(0, dtype=np.int16)

        frames = data[:usable].reshape(-1, self.channels).astype(np.float64)
        if self._history is not None:
            frames = np.vstack([self._history, frames])
        last = len(frames) - 1

        span = last * self.to_rate
        count = (span - self._next) // self.from_rate + 1 if self._next <= span else 0
        q = self._next + self.from_rate * np.arange(count, dtype=np.int64)
        index = q // self.to_rate
        frac = ((q % self.to_rate) / self.to_rate)[:, None]
        after = np.minimum(index + 1, last)
        out = frames[index] * (1.0 - frac) + frames[after] * frac

        self._next += count * self.from_rate - span
        self._history = frames[-1:]
        return np.clip(np.rint(out), -32768, 32767).astype(np.int16).reshape(-1)
