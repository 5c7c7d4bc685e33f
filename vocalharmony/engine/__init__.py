"""Engine layer - real-time signal graph, transport and device hosts.

- Block-processing nodes and per-track chains into a master bus
- Transport/record state machine over an injectable clock
- Device hosts (sounddevice, or none for offline use)
- Intents consumed by the session
"""

from .clock import ManualClock, MonotonicClock
from .graph import PlaybackGraph, SignalGraphBuilder
from .host import AudioHost, NullAudioHost, SoundDeviceHost
from .transport import RecordingResult, TransportController, TransportState

__all__ = [
    "ManualClock",
    "MonotonicClock",
    "PlaybackGraph",
    "SignalGraphBuilder",
    "AudioHost",
    "NullAudioHost",
    "SoundDeviceHost",
    "RecordingResult",
    "TransportController",
    "TransportState",
]
