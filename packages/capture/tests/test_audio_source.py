"""Tests for capture.audio_source — paced aiortc audio track."""

import numpy as np
import pytest

from capture.audio_source import PacedAudioTrack
from capture.pacer import FRAME_SAMPLES, SAMPLE_RATE, Frame


def frame_of(value: int, channels: int = 1) -> Frame:
    return Frame(samples=np.full(FRAME_SAMPLES * channels, value, dtype=np.int16), channels=channels)


class TestPacedAudioTrack:
    @pytest.mark.asyncio
    async def test_recv_returns_silence_when_empty(self):
        track = PacedAudioTrack()
        frame = await track.recv()
        assert frame.sample_rate == SAMPLE_RATE
        arr = frame.to_ndarray().flatten()
        assert len(arr) == FRAME_SAMPLES
        assert np.all(arr == 0)

    @pytest.mark.asyncio
    async def test_recv_returns_queued_frames_in_order(self):
        track = PacedAudioTrack()
        track.enqueue(frame_of(1))
        track.enqueue(frame_of(2))
        first = await track.recv()
        second = await track.recv()
        assert np.all(first.to_ndarray() == 1)
        assert np.all(second.to_ndarray() == 2)
        assert second.pts == FRAME_SAMPLES

    @pytest.mark.asyncio
    async def test_disabled_track_sends_silence(self):
        track = PacedAudioTrack()
        track.enabled = False
        track.enqueue(frame_of(42))
        frame = await track.recv()
        assert np.all(frame.to_ndarray() == 0)
        assert track.queued == 0

    @pytest.mark.asyncio
    async def test_stereo_layout(self):
        track = PacedAudioTrack(channels=2)
        track.enqueue(frame_of(7, channels=2))
        frame = await track.recv()
        assert frame.layout.name == "stereo"
        assert frame.samples == FRAME_SAMPLES

    @pytest.mark.asyncio
    async def test_frame_format(self):
        track = PacedAudioTrack()
        frame = await track.recv()
        assert frame.format.name == "s16"
        assert frame.sample_rate == 48000

    def test_full_queue_drops_oldest(self):
        track = PacedAudioTrack(max_queued_frames=2)
        track.enqueue(frame_of(1))
        track.enqueue(frame_of(2))
        track.enqueue(frame_of(3))
        assert track.queued == 2
        assert track.dropped_frames == 1

    def test_unsupported_channels_raises(self):
        with pytest.raises(ValueError):
            PacedAudioTrack(channels=6)
