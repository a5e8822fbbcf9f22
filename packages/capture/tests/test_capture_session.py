"""Tests for capture.session — CaptureSession and CaptureConfig."""

import threading

import numpy as np
import pytest

from capture.session import CaptureConfig, CaptureSession


class Collector:
    def __init__(self):
        self.frames = []

    def __call__(self, frame):
        self.frames.append(frame)


@pytest.fixture
def sink():
    return Collector()


class TestCaptureConfig:
    def test_defaults(self):
        cfg = CaptureConfig()
        assert cfg.sample_rate == 48000
        assert cfg.channels == 1
        assert cfg.frame_size == 480

    def test_invalid_channels_raises(self):
        with pytest.raises(ValueError):
            CaptureConfig(channels=0)

    def test_with_changes_returns_new_value(self):
        cfg = CaptureConfig()
        stereo = cfg.with_changes(channels=2)
        assert stereo.channels == 2
        assert cfg.channels == 1


class TestCaptureSession:
    def test_ignores_input_when_not_recording(self, sink):
        session = CaptureSession(sink)
        assert session.deliver(np.zeros(960, dtype=np.int16)) == 0
        assert sink.frames == []
        assert session.pending_samples == 0

    def test_delivers_whole_frames(self, sink):
        session = CaptureSession(sink)
        session.start_recording()
        assert session.deliver(np.arange(1000, dtype=np.int16)) == 2
        assert len(sink.frames) == 2
        assert session.pending_samples == 40
        assert session.frames_delivered == 2

    def test_stop_recording_keeps_pending(self, sink):
        session = CaptureSession(sink)
        session.start_recording()
        session.deliver(np.zeros(100, dtype=np.int16))
        session.stop_recording()
        assert session.deliver(np.zeros(1000, dtype=np.int16)) == 0
        assert session.pending_samples == 100

    def test_resamples_to_48k(self, sink):
        session = CaptureSession(sink, CaptureConfig(sample_rate=16000))
        session.start_recording()
        # 20ms at 16kHz: one whole 48kHz frame, the rest waits for more input
        session.deliver(np.zeros(160, dtype=np.int16))
        session.deliver(np.zeros(160, dtype=np.int16))
        assert len(sink.frames) == 1
        assert len(sink.frames[0].samples) == 480
        assert session.pending_samples == 478

    def test_resampling_keeps_long_run_sample_count(self, sink):
        session = CaptureSession(sink, CaptureConfig(sample_rate=44100))
        session.start_recording()
        for _ in range(1000):
            session.deliver(np.zeros(1024, dtype=np.int16))
        produced = len(sink.frames) * 480 + session.pending_samples
        assert abs(produced - 1024 * 1000 * 48000 / 44100) < 1

    def test_reconfigure_rate_change_restarts_resampling(self, sink):
        session = CaptureSession(sink, CaptureConfig(sample_rate=44100))
        session.start_recording()
        session.deliver(np.zeros(441, dtype=np.int16))
        session.reconfigure(CaptureConfig(sample_rate=16000))
        assert session.pending_samples == 0
        session.deliver(np.zeros(161, dtype=np.int16))
        assert len(sink.frames) == 1
        assert session.pending_samples == 1

    def test_reconfigure_channel_change_clears_pending(self, sink):
        session = CaptureSession(sink)
        session.start_recording()
        session.deliver(np.zeros(100, dtype=np.int16))
        session.reconfigure(CaptureConfig(channels=2))
        assert session.pending_samples == 0
        session.deliver(np.zeros(960, dtype=np.int16))
        assert sink.frames[-1].channels == 2

    def test_reconfigure_same_format_keeps_pending(self, sink):
        session = CaptureSession(sink)
        session.start_recording()
        session.deliver(np.zeros(100, dtype=np.int16))
        session.reconfigure(CaptureConfig(frame_duration_ms=10))
        assert session.pending_samples == 100

    def test_concurrent_producers_never_lose_samples(self, sink):
        session = CaptureSession(sink)
        session.start_recording()
        chunk = np.ones(333, dtype=np.int16)

        def produce():
            for _ in range(200):
                session.deliver(chunk)

        threads = [threading.Thread(target=produce) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        total = 4 * 200 * 333
        assert len(sink.frames) == total // 480
        assert session.pending_samples == total % 480
