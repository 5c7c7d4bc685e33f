"""Offline, voicing-gated pitch shifting with a per-track result cache."""

import logging
from typing import Dict, Optional, Tuple

import librosa
import numpy as np

from ..analysis.pitch import PitchDetector
from ..core import AudioBuffer
from ..core.constants import ANALYSIS_WINDOW_SIZE
from ..core.track import validate_pitch_shift

logger = logging.getLogger(__name__)


class ProcessedBufferCache:
    """Pitch-shifted buffers keyed by track id.

    A pure cache: a missing entry only means the shift has to be recomputed
    (or the source buffer played instead).
    """

    def __init__(self):
        self._entries: Dict[int, Tuple[int, AudioBuffer]] = {}

    def get(self, track_id: int, semitones: Optional[int] = None) -> Optional[AudioBuffer]:
        entry = self._entries.get(track_id)
        if entry is None:
            return None
        if semitones is not None and entry[0] != semitones:
            return None
        return entry[1]

    def store(self, track_id: int, semitones: int, buffer: AudioBuffer) -> None:
        self._entries[track_id] = (semitones, buffer)

    def invalidate(self, track_id: int) -> None:
        self._entries.pop(track_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, track_id: int) -> bool:
        return track_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class PitchShiftProcessor:
    """Shifts voiced regions of a buffer by whole semitones.

    Voicing is sampled every ``hop`` samples with the autocorrelation
    detector. The shift fades in over voiced regions and back out over
    unvoiced or silent ones with short linear transitions, so breaths and
    consonants keep their original character.
    """

    def __init__(
        self,
        detector: Optional[PitchDetector] = None,
        hop: int = ANALYSIS_WINDOW_SIZE,
        min_level: float = 0.015,
        min_clarity: float = 0.75,
        transition_ms: float = 30.0,
        cache: Optional[ProcessedBufferCache] = None,
    ):
        """
        Initialize PitchShiftProcessor.

        Args:
            detector: Pitch detector for the voicing mask
            hop: Voicing mask resolution in samples
            min_level: Minimum RMS of a voiced chunk
            min_clarity: Minimum autocorrelation clarity of a voiced chunk
            transition_ms: Length of the linear ramps at voicing boundaries
            cache: Result cache (a private one if None)
        """
        self.detector = detector or PitchDetector()
        self.hop = hop
        self.min_level = min_level
        self.min_clarity = min_clarity
        self.transition_ms = transition_ms
        self.cache = cache if cache is not None else ProcessedBufferCache()

    def process(self, track_id: int, buffer: AudioBuffer, semitones: int) -> AudioBuffer:
        """
        Shift a track buffer and cache the result.

        A shift of 0 returns ``buffer`` itself and drops any cached result.
        """
        validate_pitch_shift(semitones)
        if semitones == 0:
            self.cache.invalidate(track_id)
            return buffer

        cached = self.cache.get(track_id, semitones)
        if cached is not None:
            return cached

        shifted = self.shift(buffer, semitones)
        self.cache.store(track_id, semitones, shifted)
        return shifted

    def shift(self, buffer: AudioBuffer, semitones: int) -> AudioBuffer:
        """
        Shift without caching.

        Returns:
            Buffer with the same shape and sample rate as ``buffer``
        """
        validate_pitch_shift(semitones)
        if semitones == 0:
            return buffer

        envelope = self.envelope(buffer)
        if not envelope.any():
            logger.info("No voiced audio found; pitch shift leaves the buffer unchanged")
            return buffer.with_samples(buffer.samples.copy())

        dry = buffer.samples
        wet = librosa.effects.pitch_shift(
            np.ascontiguousarray(dry), sr=buffer.sample_rate, n_steps=semitones
        )
        wet = librosa.util.fix_length(wet, size=buffer.frames, axis=-1)

        mixed = dry * (1.0 - envelope) + wet * envelope
        return buffer.with_samples(mixed.astype(np.float32))

    def envelope(self, buffer: AudioBuffer) -> np.ndarray:
        """Per-sample shift amount, 0 (unvoiced) to 1 (fully shifted)."""
        n = buffer.frames
        mask = self.detector.voicing_mask(
            buffer.mono(),
            buffer.sample_rate,
            hop=self.hop,
            min_level=self.min_level,
            min_clarity=self.min_clarity,
        )
        step = np.repeat(mask.astype(np.float64), self.hop)[:n]
        if len(step) < n:
            step = np.pad(step, (0, n - len(step)))

        ramp = max(1, int(buffer.sample_rate * self.transition_ms / 1000.0))
        if ramp == 1:
            return step
        padded = np.pad(step, (ramp // 2, ramp - 1 - ramp // 2), mode="edge")
        return np.convolve(padded, np.ones(ramp) / ramp, mode="valid")
