"""Vocal Harmony - Multitrack Vocal Recording and Pitch-Correction Engine.

Architecture Layers:
    1. core/        - Buffers, tracks, note blocks, errors, constants
    2. input/       - Decoding, microphone capture, lyric sidecars
    3. analysis/    - Pitch detection and note segmentation
    4. processing/  - Offline pitch shift, EQ design, destructive edits
    5. engine/      - Signal graph, transport, device hosts, session
    6. output/      - Mixdown, codecs, project archives, MIDI
"""

__version__ = "0.1.0"

# Core types
from .core import AudioBuffer, NoteBlock, Track

# Configuration
from .config import StudioConfig

# Input layer
from .input import AudioLoader, Recorder, parse_lrc

# Analysis layer
from .analysis import PitchDetector, NoteSegmenter

# Processing layer
from .processing import PitchShiftProcessor, BufferEditor

# Engine layer
from .engine import SignalGraphBuilder, TransportController, TransportState
from .engine.session import Studio

# Output layer
from .output import MixdownRenderer, MIDIExporter, ProjectStore

__all__ = [
    # Core
    "AudioBuffer",
    "NoteBlock",
    "Track",
    "StudioConfig",
    # Input
    "AudioLoader",
    "Recorder",
    "parse_lrc",
    # Analysis
    "PitchDetector",
    "NoteSegmenter",
    # Processing
    "PitchShiftProcessor",
    "BufferEditor",
    # Engine
    "SignalGraphBuilder",
    "TransportController",
    "TransportState",
    "Studio",
    # Output
    "MixdownRenderer",
    "MIDIExporter",
    "ProjectStore",
]
