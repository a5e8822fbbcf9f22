"""Media preferences store — thread-safe, in-memory, known-keys-only.

The UI may change these at any time. The session reads them at start() and
when a setter is called; bitrate and mute apply to live senders at once,
codec only on the next start().

Usage::

    prefs = MediaPreferences()
    prefs["target_bitrate_bps"] = 2_000_000
    prefs.update({"codec": "VP8", "video_muted": True})
    snap = prefs.snapshot()
"""

import threading


_DEFAULTS = {
    "codec": "H264",
    "mode": "calls",
    "target_bitrate_bps": 10_000_000,
    "audio_muted": False,
    "video_muted": False,
}


def _validate(key: str, value):
    if key == "target_bitrate_bps":
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"target_bitrate_bps must be a positive int, got {value!r}")
    elif key in ("codec", "mode"):
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{key} must be a non-empty string, got {value!r}")
    elif key in ("audio_muted", "video_muted"):
        if not isinstance(value, bool):
            raise ValueError(f"{key} must be a bool, got {value!r}")


class MediaPreferences:
    """Thread-safe preferences store. Only allows known keys."""

    KNOWN_KEYS = frozenset(_DEFAULTS)

    def __init__(self, **overrides):
        self._data = dict(_DEFAULTS)
        self._lock = threading.Lock()
        if overrides:
            self.update(overrides)

    def __getitem__(self, key: str):
        """Get value by key. Raises KeyError for unknown keys."""
        with self._lock:
            if key not in _DEFAULTS:
                raise KeyError(f"Unknown preference: {key!r}")
            return self._data[key]

    def __setitem__(self, key: str, value):
        """Set value by key. Raises KeyError for unknown keys, ValueError for bad values."""
        self.update({key: value})

    def get(self, key: str, default=None):
        with self._lock:
            if key not in _DEFAULTS:
                return default
            return self._data[key]

    def update(self, patch: dict) -> dict:
        """Apply a partial update atomically. Returns the full snapshot."""
        with self._lock:
            for key, value in patch.items():
                if key not in _DEFAULTS:
                    raise KeyError(f"Unknown preference: {key!r}")
                _validate(key, value)
            self._data.update(patch)
            return dict(self._data)

    def snapshot(self) -> dict:
        """Return a shallow copy of the current preferences as a plain dict."""
        with self._lock:
            return dict(self._data)
