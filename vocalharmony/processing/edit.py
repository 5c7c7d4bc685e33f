"""Destructive buffer edits: region gain, silence, pan automation, time shift.

Every operation returns a new AudioBuffer; the session replaces a track's
source buffer only when a ``BufferEditor`` draft is confirmed.
"""

from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..core import AudioBuffer, UserInputRejected

Selection = Tuple[float, float]
PanPoint = Tuple[float, float]


def selection_indices(frames: int, selection: Selection) -> Tuple[int, int]:
    """Sample range of a normalized (0..1) selection; order does not matter."""
    lo, hi = sorted(selection)
    if lo < 0.0 or hi > 1.0:
        raise ValueError(f"Selection must lie within 0..1, got {selection}")
    start = int(np.floor(lo * frames))
    end = int(np.ceil(hi * frames))
    return start, min(end, frames)


def apply_gain(buffer: AudioBuffer, selection: Selection, factor: float) -> AudioBuffer:
    """Multiply the selected samples of every channel by ``factor`` (0..2)."""
    if not 0.0 <= factor <= 2.0:
        raise ValueError(f"Gain factor must be within 0..2, got {factor}")
    start, end = selection_indices(buffer.frames, selection)
    if start == end:
        return buffer
    data = buffer.samples.copy()
    data[:, start:end] *= factor
    return buffer.with_samples(data)


def silence(buffer: AudioBuffer, selection: Selection) -> AudioBuffer:
    """Zero the selected samples of every channel."""
    start, end = selection_indices(buffer.frames, selection)
    if start == end:
        return buffer
    data = buffer.samples.copy()
    data[:, start:end] = 0.0
    return buffer.with_samples(data)


def pan_curve(points: Sequence[PanPoint], frames: int) -> np.ndarray:
    """
    Evaluate a piecewise-linear pan curve at every sample.

    Args:
        points: (position 0..1, pan -1..1) pairs, in any order
        frames: Number of samples

    Returns:
        Pan value per sample
    """
    if not points:
        raise ValueError("Pan automation needs at least one point")
    ordered = sorted(points, key=lambda p: p[0])
    xs = np.array([p[0] for p in ordered], dtype=np.float64)
    ys = np.array([p[1] for p in ordered], dtype=np.float64)
    if np.any(np.abs(ys) > 1.0):
        raise ValueError("Pan values must lie within -1..1")
    t = np.arange(frames, dtype=np.float64) / frames
    return np.interp(t, xs, ys)


def pan_automation(buffer: AudioBuffer, points: Sequence[PanPoint]) -> AudioBuffer:
    """
    Render a mono track to stereo along a pan curve.

    Constant-power law: with theta = (pan + 1) * pi / 4, the left gain is
    cos(theta) and the right gain sin(theta). Stereo input is panned from
    its first channel.
    """
    source = buffer.channel(0).astype(np.float64)
    pan = pan_curve(points, buffer.frames)
    theta = (pan + 1.0) * (np.pi / 4.0)
    stereo = np.vstack([source * np.cos(theta), source * np.sin(theta)])
    return buffer.with_samples(stereo.astype(np.float32))


def time_shift(buffer: AudioBuffer, shift_ms: float) -> AudioBuffer:
    """
    Shift the whole buffer in time.

    A positive shift delays the audio by inserting leading silence; a
    negative one advances it by discarding leading samples.

    Raises:
        UserInputRejected: If the shift would leave no samples
    """
    shift = int(shift_ms / 1000.0 * buffer.sample_rate)
    if shift == 0:
        return buffer
    if shift > 0:
        data = np.pad(buffer.samples, ((0, 0), (shift, 0)))
    else:
        if -shift >= buffer.frames:
            raise UserInputRejected(
                f"A {shift_ms:.0f} ms shift would remove the whole {buffer.duration:.2f}s buffer"
            )
        data = buffer.samples[:, -shift:]
    return buffer.with_samples(data)


class BufferEditor:
    """Draft of destructive edits on one track buffer.

    Operations stack on a working copy. ``confirm`` hands the result to the
    owner (which replaces the source buffer); ``cancel`` drops it.
    """

    def __init__(
        self,
        buffer: AudioBuffer,
        on_confirm: Optional[Callable[[AudioBuffer], None]] = None,
    ):
        self.original = buffer
        self.working = buffer
        self._on_confirm = on_confirm
        self._history: List[str] = []
        self._closed = False

    @property
    def modified(self) -> bool:
        return self.working is not self.original

    @property
    def operations(self) -> List[str]:
        return list(self._history)

    def gain(self, selection: Selection, factor: float) -> "BufferEditor":
        self._apply("gain", apply_gain(self.working, selection, factor))
        return self

    def silence(self, selection: Selection) -> "BufferEditor":
        self._apply("silence", silence(self.working, selection))
        return self

    def pan(self, points: Sequence[PanPoint]) -> "BufferEditor":
        self._apply("pan", pan_automation(self.working, points))
        return self

    def time_shift(self, shift_ms: float) -> "BufferEditor":
        self._apply("time_shift", time_shift(self.working, shift_ms))
        return self

    def confirm(self) -> AudioBuffer:
        """Commit the working copy and close the draft."""
        self._check_open()
        self._closed = True
        if self.modified and self._on_confirm is not None:
            self._on_confirm(self.working)
        return self.working

    def cancel(self) -> None:
        self._check_open()
        self._closed = True
        self.working = self.original

    def _apply(self, name: str, result: AudioBuffer) -> None:
        self._check_open()
        if result is not self.working:
            self._history.append(name)
        self.working = result

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Edit draft is already closed")
