"""Core types and constants for Vocal Harmony."""

from .buffer import AudioBuffer
from .note import NoteBlock, freq_to_midi, midi_to_freq, note_from_pitch
from .track import EQBand, EQSettings, Track, is_audible
from .errors import (
    StudioError,
    UserInputRejected,
    DecodeFailure,
    EngineNotReady,
    EncodeFailure,
)
from .constants import (
    PITCH_NAMES,
    DEFAULT_SR,
    MASTER_TRACK_ID,
)

__all__ = [
    "AudioBuffer",
    "NoteBlock",
    "freq_to_midi",
    "midi_to_freq",
    "note_from_pitch",
    "EQBand",
    "EQSettings",
    "Track",
    "is_audible",
    "StudioError",
    "UserInputRejected",
    "DecodeFailure",
    "EngineNotReady",
    "EncodeFailure",
    "PITCH_NAMES",
    "DEFAULT_SR",
    "MASTER_TRACK_ID",
]
