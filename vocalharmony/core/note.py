"""NoteBlock data class - one detected musical pitch over a time span."""

from dataclasses import dataclass
from typing import Optional
import numpy as np

from .constants import PITCH_NAMES


@dataclass
class NoteBlock:
    """A contiguous span of one detected pitch in the selected track."""

    id: str
    start: float  # Start time in seconds
    end: float  # End time in seconds
    original_midi: int  # Detected MIDI pitch
    frequency: float = 0.0  # Average detected frequency (Hz)
    shift_cents: int = 0  # User fine-tune on top of the track pitch shift

    def __post_init__(self):
        if not 0 <= self.start < self.end:
            raise ValueError(f"Invalid note block range: {self.start}..{self.end}")

    @property
    def duration(self) -> float:
        """Block duration in seconds."""
        return self.end - self.start

    @property
    def current_midi(self) -> int:
        """MIDI pitch after the fine-tune, rounded to the nearest semitone."""
        return self.original_midi + int(round(self.shift_cents / 100.0))

    @property
    def pitch_name(self) -> str:
        """Get note name (e.g., 'C4', 'A#3')."""
        return midi_to_name(self.original_midi)

    def overlaps(self, other: "NoteBlock") -> bool:
        return self.start < other.end and other.start < self.end


def freq_to_midi(freq: float) -> int:
    """Convert frequency (Hz) to MIDI pitch."""
    if freq <= 0:
        return 0
    return int(round(69 + 12 * np.log2(freq / 440.0)))


def midi_to_freq(midi: float) -> float:
    """Convert MIDI pitch to frequency (Hz)."""
    return 440.0 * (2 ** ((midi - 69) / 12.0))


def midi_to_name(midi: int) -> str:
    octave = (midi // 12) - 1
    return f"{PITCH_NAMES[midi % 12]}{octave}"


@dataclass
class NoteReading:
    """Nearest equal-tempered note for a frequency, with cents deviation."""

    name: str
    octave: int
    midi: int
    deviation: int  # cents, truncated toward -inf
    frequency: float


def note_from_pitch(frequency: Optional[float]) -> Optional[NoteReading]:
    """Describe the note nearest to ``frequency``; None when unvoiced."""
    if not frequency or frequency <= 0:
        return None
    note_num = 12 * np.log2(frequency / 440.0)
    nearest = int(round(note_num))
    midi = nearest + 69
    return NoteReading(
        name=PITCH_NAMES[midi % 12],
        octave=(midi // 12) - 1,
        midi=midi,
        deviation=int(np.floor((note_num - nearest) * 100)),
        frequency=float(frequency),
    )
