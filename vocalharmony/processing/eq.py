"""Five-band equalizer filter design (RBJ cookbook biquads)."""

import math
from typing import Dict, List

import numpy as np
from scipy import signal

from ..core.track import EQ_BANDS, EQSettings

BAND_TYPES = {
    "low": "lowshelf",
    "low_mid": "peaking",
    "mid": "peaking",
    "high_mid": "peaking",
    "high": "highshelf",
}

FLAT_DB = 1e-3


def biquad(kind: str, freq: float, gain_db: float, q: float, sr: int) -> List[float]:
    """
    Design one biquad section.

    Args:
        kind: 'lowshelf', 'peaking' or 'highshelf'
        freq: Corner/center frequency in Hz
        gain_db: Band gain in dB
        q: Quality factor (peaking bands)
        sr: Sample rate

    Returns:
        Normalized second-order section [b0, b1, b2, 1, a1, a2]
    """
    freq = min(max(freq, 10.0), 0.49 * sr)
    A = 10.0 ** (gain_db / 40.0)
    w0 = 2.0 * math.pi * freq / sr
    cos_w0 = math.cos(w0)
    sin_w0 = math.sin(w0)

    if kind == "peaking":
        alpha = sin_w0 / (2.0 * max(q, 1e-4))
        b0 = 1.0 + alpha * A
        b1 = -2.0 * cos_w0
        b2 = 1.0 - alpha * A
        a0 = 1.0 + alpha / A
        a1 = -2.0 * cos_w0
        a2 = 1.0 - alpha / A
    elif kind in ("lowshelf", "highshelf"):
        # Shelf slope S = 1
        alpha = sin_w0 / 2.0 * math.sqrt(2.0)
        sqrt_a = 2.0 * math.sqrt(A) * alpha
        if kind == "lowshelf":
            b0 = A * ((A + 1) - (A - 1) * cos_w0 + sqrt_a)
            b1 = 2 * A * ((A - 1) - (A + 1) * cos_w0)
            b2 = A * ((A + 1) - (A - 1) * cos_w0 - sqrt_a)
            a0 = (A + 1) + (A - 1) * cos_w0 + sqrt_a
            a1 = -2 * ((A - 1) + (A + 1) * cos_w0)
            a2 = (A + 1) + (A - 1) * cos_w0 - sqrt_a
        else:
            b0 = A * ((A + 1) + (A - 1) * cos_w0 + sqrt_a)
            b1 = -2 * A * ((A - 1) + (A + 1) * cos_w0)
            b2 = A * ((A + 1) + (A - 1) * cos_w0 - sqrt_a)
            a0 = (A + 1) - (A - 1) * cos_w0 + sqrt_a
            a1 = 2 * ((A - 1) - (A + 1) * cos_w0)
            a2 = (A + 1) - (A - 1) * cos_w0 - sqrt_a
    else:
        raise ValueError(f"Unknown filter type: {kind}")

    return [b0 / a0, b1 / a0, b2 / a0, 1.0, a1 / a0, a2 / a0]


def design_sos(eq: EQSettings, sr: int) -> np.ndarray:
    """
    Second-order sections for the active bands of ``eq``.

    Bands at 0 dB are left out, so a disabled or flat EQ yields an empty
    (0, 6) array and the signal passes through untouched.
    """
    gains: Dict[str, float] = eq.effective_gains()
    rows = []
    for name in EQ_BANDS:
        gain = gains[name]
        if abs(gain) <= FLAT_DB:
            continue
        band = eq.bands[name]
        rows.append(biquad(BAND_TYPES[name], band.freq, gain, band.q, sr))
    if not rows:
        return np.zeros((0, 6), dtype=np.float64)
    return np.array(rows, dtype=np.float64)


def magnitude_response(eq: EQSettings, freqs: np.ndarray, sr: int) -> np.ndarray:
    """Combined gain of the EQ at ``freqs`` in dB (for curve displays)."""
    sos = design_sos(eq, sr)
    if len(sos) == 0:
        return np.zeros(len(freqs))
    _, h = signal.sosfreqz(sos, worN=np.asarray(freqs, dtype=np.float64), fs=sr)
    return 20 * np.log10(np.maximum(np.abs(h), 1e-12))
