"""Note segmentation - group stable-pitch windows into note blocks."""

from typing import Iterator, List, Optional, Tuple
import numpy as np

from .pitch import PitchDetector
from ..core import AudioBuffer, NoteBlock, freq_to_midi
from ..core.constants import ANALYSIS_WINDOW_SIZE


class NoteSegmenter:
    """Splits a decoded buffer into voiced note blocks.

    Consecutive analysis windows are merged while their pitch stays within
    ``tolerance`` of the block's running average frequency. An unvoiced window
    or a larger deviation closes the block; blocks shorter than
    ``min_duration`` are dropped.
    """

    def __init__(
        self,
        window_size: int = ANALYSIS_WINDOW_SIZE,
        tolerance: float = 0.06,
        min_duration: float = 0.1,
        min_level: float = 0.015,
        fmin: float = 50.0,
        fmax: float = 3000.0,
        detector: Optional[PitchDetector] = None,
    ):
        """
        Initialize NoteSegmenter.

        Args:
            window_size: Analysis window (and hop) in samples
            tolerance: Relative deviation from the running average that
                still counts as the same note (0.06 is about a semitone)
            min_duration: Minimum block duration in seconds
            min_level: Minimum window RMS to count as voiced
            fmin: Lowest accepted pitch in Hz
            fmax: Highest accepted pitch in Hz
            detector: Pitch detector to use (default settings if None)
        """
        self.window_size = window_size
        self.tolerance = tolerance
        self.min_duration = min_duration
        self.min_level = min_level
        self.fmin = fmin
        self.fmax = fmax
        self.detector = detector or PitchDetector()

    def segment(self, buffer: AudioBuffer) -> Iterator[NoteBlock]:
        """
        Lazily yield note blocks in time order.

        Args:
            buffer: Decoded track audio (analysed as mono)

        Yields:
            Voiced NoteBlock objects; ranges never overlap
        """
        audio = buffer.mono()
        sr = buffer.sample_rate
        duration = buffer.duration
        count = 0

        run: List[float] = []
        run_start = 0

        for index, pitch in self._window_pitches(audio, sr):
            if pitch is not None and run:
                average = float(np.mean(run))
                if abs(pitch - average) <= self.tolerance * average:
                    run.append(pitch)
                    continue

            if run:
                block = self._close(run, run_start, index, sr, duration, count)
                if block is not None:
                    count += 1
                    yield block
                run = []

            if pitch is not None:
                run = [pitch]
                run_start = index

        if run:
            end_index = run_start + len(run)
            block = self._close(run, run_start, end_index, sr, duration, count)
            if block is not None:
                yield block

    def analyze(self, buffer: AudioBuffer) -> List[NoteBlock]:
        """Segment the whole buffer into a list."""
        return list(self.segment(buffer))

    def _window_pitches(
        self, audio: np.ndarray, sr: int
    ) -> Iterator[Tuple[int, Optional[float]]]:
        """Yield (window index, pitch or None) for each analysable window."""
        for index, offset in enumerate(range(0, len(audio), self.window_size)):
            chunk = audio[offset:offset + self.window_size]
            if len(chunk) < self.detector.min_window:
                return
            estimate = self.detector.detect(chunk, sr)
            pitch = estimate.pitch
            if (
                pitch is None
                or estimate.level <= self.min_level
                or not self.fmin < pitch < self.fmax
            ):
                pitch = None
            yield index, pitch

    def _close(
        self,
        run: List[float],
        first_index: int,
        end_index: int,
        sr: int,
        duration: float,
        count: int,
    ) -> Optional[NoteBlock]:
        start = first_index * self.window_size / sr
        end = min(end_index * self.window_size / sr, duration)
        if end - start < self.min_duration:
            return None
        frequency = float(np.mean(run))
        return NoteBlock(
            id=f"block-{count}",
            start=start,
            end=end,
            original_midi=freq_to_midi(frequency),
            frequency=frequency,
        )
