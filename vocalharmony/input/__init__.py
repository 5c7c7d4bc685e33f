"""Input layer - decoding, microphone capture, sidecar files."""

from .loader import AudioLoader, clean_track_name
from .recorder import Recorder
from .lyrics import LyricLine, parse_lrc, load_lrc

__all__ = [
    "AudioLoader",
    "clean_track_name",
    "Recorder",
    "LyricLine",
    "parse_lrc",
    "load_lrc",
]
