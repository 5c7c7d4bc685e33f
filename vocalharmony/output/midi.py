"""MIDI export of note blocks."""

import pretty_midi
from typing import List, Sequence
from pathlib import Path

from ..core import NoteBlock


class MIDIExporter:
    """Export note blocks to MIDI format."""

    def __init__(
        self,
        tempo: float = 120.0,
        instrument_name: str = "Voice Oohs",
        instrument_program: int = 53,
        velocity: int = 100,
        apply_tuning: bool = True,
    ):
        """
        Initialize MIDIExporter.

        Args:
            tempo: Tempo in BPM
            instrument_name: MIDI instrument name
            instrument_program: MIDI program number (0-127)
            velocity: Velocity of every exported note
            apply_tuning: Export the fine-tuned pitch instead of the detected one
        """
        self.tempo = tempo
        self.instrument_name = instrument_name
        self.instrument_program = instrument_program
        self.velocity = velocity
        self.apply_tuning = apply_tuning

    def export(self, blocks: Sequence[NoteBlock], output_path: str) -> None:
        """
        Export note blocks to a MIDI file.

        Args:
            blocks: Note blocks of one track
            output_path: Path to output MIDI file
        """
        midi = self.blocks_to_pretty_midi(blocks)

        # Ensure output directory exists
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)

        midi.write(str(output_path))

    def blocks_to_pretty_midi(self, blocks: Sequence[NoteBlock]) -> pretty_midi.PrettyMIDI:
        """Convert note blocks to a PrettyMIDI object without saving."""
        midi = pretty_midi.PrettyMIDI(initial_tempo=self.tempo)

        instrument = pretty_midi.Instrument(
            program=self.instrument_program,
            name=self.instrument_name,
        )
        instrument.notes.extend(self._notes(blocks))
        midi.instruments.append(instrument)

        return midi

    def _notes(self, blocks: Sequence[NoteBlock]) -> List[pretty_midi.Note]:
        notes = []
        for block in blocks:
            pitch = block.current_midi if self.apply_tuning else block.original_midi
            notes.append(
                pretty_midi.Note(
                    velocity=self.velocity,
                    pitch=int(min(max(pitch, 0), 127)),
                    start=block.start,
                    end=block.end,
                )
            )
        return notes
