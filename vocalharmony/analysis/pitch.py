"""Autocorrelation pitch detection."""

from dataclasses import dataclass
from typing import Optional
import numpy as np
from scipy import signal

from ..core.constants import (
    ANALYSIS_WINDOW_SIZE,
    MIN_WINDOW_SIZE,
    SILENCE_RMS,
    TRIM_THRESHOLD,
)


@dataclass(frozen=True)
class PitchEstimate:
    """Result of analysing one window.

    ``pitch`` is None for an unvoiced window. ``clarity`` is the
    autocorrelation peak relative to the zero-lag energy (0..1).
    """

    pitch: Optional[float]
    level: float
    clarity: float = 0.0

    @property
    def voiced(self) -> bool:
        return self.pitch is not None


class PitchDetector:
    """Windowed autocorrelation pitch and level estimator.

    Stateless: the same window always yields the same estimate.
    """

    def __init__(
        self,
        silence_threshold: float = SILENCE_RMS,
        trim_threshold: float = TRIM_THRESHOLD,
        min_window: int = MIN_WINDOW_SIZE,
    ):
        """
        Initialize PitchDetector.

        Args:
            silence_threshold: RMS below which a window is unvoiced
            trim_threshold: Amplitude below which edge samples are trimmed
            min_window: Smallest accepted window in samples
        """
        self.silence_threshold = silence_threshold
        self.trim_threshold = trim_threshold
        self.min_window = min_window

    def detect(self, window: np.ndarray, sr: int) -> PitchEstimate:
        """
        Estimate pitch and level of a mono window.

        Args:
            window: Mono samples (at least ``min_window`` long)
            sr: Sample rate

        Returns:
            PitchEstimate (pitch None when unvoiced)

        Raises:
            ValueError: If the window is too short
        """
        x = np.asarray(window, dtype=np.float64)
        if x.ndim != 1:
            raise ValueError(f"Expected a mono window, got shape {x.shape}")
        if len(x) < self.min_window:
            raise ValueError(
                f"Window of {len(x)} samples is shorter than {self.min_window}"
            )

        level = float(np.sqrt(np.mean(x**2)))
        if level < self.silence_threshold:
            return PitchEstimate(pitch=None, level=level)

        x = self._trim(x)
        if len(x) < 3:
            return PitchEstimate(pitch=None, level=level)

        corr = signal.correlate(x, x, mode="full")[len(x) - 1:]

        # Walk down from the zero-lag peak to the first local minimum
        rising = np.flatnonzero(np.diff(corr) >= 0)
        if len(rising) == 0:
            return PitchEstimate(pitch=None, level=level)
        start = int(rising[0])

        peak = start + int(np.argmax(corr[start:]))
        peak_value = corr[peak]
        if peak <= 0 or peak_value <= 0:
            return PitchEstimate(pitch=None, level=level)

        period = float(peak)
        if 0 < peak < len(corr) - 1:
            x1, x2, x3 = corr[peak - 1], corr[peak], corr[peak + 1]
            a = (x1 + x3 - 2 * x2) / 2
            b = (x3 - x1) / 2
            if a:
                period = peak - b / (2 * a)
        if period <= 0:
            return PitchEstimate(pitch=None, level=level)

        clarity = float(peak_value / corr[0]) if corr[0] > 0 else 0.0
        return PitchEstimate(pitch=sr / period, level=level, clarity=clarity)

    def _trim(self, x: np.ndarray) -> np.ndarray:
        """Drop the loud edges up to the first quiet sample on each side."""
        size = len(x)
        half = size // 2

        head = np.flatnonzero(np.abs(x[:half]) < self.trim_threshold)
        r1 = int(head[0]) if len(head) else 0

        tail = np.flatnonzero(np.abs(x[size - 1:size - half:-1]) < self.trim_threshold)
        r2 = size - (int(tail[0]) + 1) if len(tail) else size - 1

        return x[r1:r2]

    def voicing_mask(
        self,
        audio: np.ndarray,
        sr: int,
        hop: int = ANALYSIS_WINDOW_SIZE,
        min_level: float = 0.015,
        min_clarity: float = 0.75,
    ) -> np.ndarray:
        """
        Classify consecutive ``hop``-sized chunks as voiced or unvoiced.

        A trailing chunk too short to analyse inherits the previous
        classification.

        Returns:
            Boolean array with one entry per chunk
        """
        n_chunks = int(np.ceil(len(audio) / hop)) if len(audio) else 0
        mask = np.zeros(n_chunks, dtype=bool)
        for i in range(n_chunks):
            chunk = audio[i * hop:(i + 1) * hop]
            if len(chunk) < self.min_window:
                mask[i] = mask[i - 1] if i > 0 else False
                continue
            estimate = self.detect(chunk, sr)
            mask[i] = (
                estimate.voiced
                and estimate.level > min_level
                and estimate.clarity > min_clarity
            )
        return mask


def detect_pitch(window: np.ndarray, sr: int) -> PitchEstimate:
    """Analyse one window with the default detector settings."""
    return PitchDetector().detect(window, sr)
