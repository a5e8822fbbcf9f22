"""Capture — paces raw microphone PCM into fixed 10ms frames for WebRTC."""

from capture.pacer import FramePacer, Frame, FRAME_SAMPLES, SAMPLE_RATE
from capture.session import CaptureConfig, CaptureSession
from capture.audio import StreamResampler, resample
from capture.audio_source import PacedAudioTrack

__all__ = [
    "FramePacer",
    "Frame",
    "FRAME_SAMPLES",
    "SAMPLE_RATE",
    "CaptureConfig",
    "CaptureSession",
    "resample",
    "StreamResampler",
    "PacedAudioTrack",
]
