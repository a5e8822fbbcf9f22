"""Tests for capture.pacer — FramePacer fixed-size frame emission."""

import numpy as np
import pytest

from capture.pacer import FramePacer, Frame, FRAME_SAMPLES


def ramp(start: int, count: int) -> np.ndarray:
    return np.arange(start, start + count, dtype=np.int16)


class TestFramePacer:
    def test_empty_drain_yields_nothing(self):
        p = FramePacer()
        assert list(p.drain(480)) == []

    def test_exact_frame(self):
        p = FramePacer()
        p.push(ramp(0, 480))
        frames = list(p.drain(480))
        assert len(frames) == 1
        assert np.array_equal(frames[0].samples, ramp(0, 480))
        assert p.available == 0

    def test_short_push_is_held_back(self):
        p = FramePacer()
        p.push(ramp(0, 479))
        assert list(p.drain(480)) == []
        assert p.available == 479

    def test_remainder_completes_on_next_push(self):
        p = FramePacer()
        p.push(ramp(0, 300))
        assert list(p.drain(480)) == []
        p.push(ramp(300, 300))
        frames = list(p.drain(480))
        assert len(frames) == 1
        assert np.array_equal(frames[0].samples, ramp(0, 480))
        assert p.available == 120

    def test_large_push_yields_multiple_frames_in_order(self):
        p = FramePacer()
        p.push(ramp(0, 480 * 3 + 10))
        frames = list(p.drain(480))
        assert len(frames) == 3
        joined = np.concatenate([f.samples for f in frames])
        assert np.array_equal(joined, ramp(0, 1440))
        assert p.available == 10

    def test_zero_length_push_is_noop(self):
        p = FramePacer()
        p.push(np.empty(0, dtype=np.int16))
        p.push(b"")
        assert p.available == 0
        assert p.channels is None

    def test_stereo_frames_hold_both_channels(self):
        p = FramePacer()
        p.push(ramp(0, 1000), channels=2)
        frames = list(p.drain(480))
        assert len(frames) == 1
        assert frames[0].channels == 2
        assert len(frames[0].samples) == 960
        assert frames[0].samples_per_channel == 480
        assert p.available == 40

    def test_accepts_raw_bytes(self):
        p = FramePacer()
        p.push(ramp(0, 480).tobytes())
        frame = next(p.drain(480))
        assert frame.tobytes() == ramp(0, 480).tobytes()

    def test_drain_is_lazy(self):
        p = FramePacer()
        p.push(ramp(0, 960))
        gen = p.drain(480)
        next(gen)
        assert p.available == 480

    def test_pushed_buffer_is_copied(self):
        p = FramePacer()
        buf = ramp(0, 480)
        p.push(buf)
        buf[:] = 0
        frame = next(p.drain(480))
        assert np.array_equal(frame.samples, ramp(0, 480))

    def test_channel_change_with_pending_samples_raises(self):
        p = FramePacer()
        p.push(ramp(0, 100), channels=1)
        with pytest.raises(ValueError):
            p.push(ramp(0, 100), channels=2)

    def test_channel_change_after_clear(self):
        p = FramePacer()
        p.push(ramp(0, 100), channels=1)
        assert p.clear() == 100
        p.push(ramp(0, 960), channels=2)
        assert len(list(p.drain(480))) == 1

    def test_invalid_frame_size_raises(self):
        p = FramePacer()
        with pytest.raises(ValueError):
            list(p.drain(0))

    def test_default_frame_size_is_10ms_at_48k(self):
        assert FRAME_SAMPLES == 480


class TestFramePacingInvariant:
    @pytest.mark.parametrize("channels", [1, 2])
    def test_random_pushes_yield_contiguous_frames(self, channels):
        rng = np.random.default_rng(1234)
        p = FramePacer()
        pushed = []
        frames: list[Frame] = []
        for _ in range(200):
            size = int(rng.integers(0, 1500))
            chunk = rng.integers(-32768, 32767, size=size, dtype=np.int16)
            pushed.append(chunk)
            p.push(chunk, channels=channels)
            frames.extend(p.drain(480))

        total = sum(len(c) for c in pushed)
        frame_len = 480 * channels
        assert len(frames) == total // frame_len
        assert all(len(f.samples) == frame_len for f in frames)
        assert p.available == total % frame_len
        assert p.available <= frame_len - 1

        stream = np.concatenate(pushed)
        emitted = np.concatenate([f.samples for f in frames])
        assert np.array_equal(emitted, stream[: len(emitted)])
