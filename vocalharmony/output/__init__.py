"""Output layer - Render and export sessions.

This layer handles:
- Offline mixdown of the whole session
- Audio codecs (WAV, FLAC, OGG, MP3) for mixes and stems
- Project archives and the local project store
- MIDI export of note blocks
"""

from .codecs import Codec, SoundFileCodec, get_codec
from .mixdown import MixdownRenderer
from .archive import ProjectArchive, ProjectManifest, pack, unpack
from .store import ProjectStore
from .midi import MIDIExporter

__all__ = [
    "Codec",
    "SoundFileCodec",
    "get_codec",
    "MixdownRenderer",
    "ProjectArchive",
    "ProjectManifest",
    "pack",
    "unpack",
    "ProjectStore",
    "MIDIExporter",
]
