"""Block-processing audio nodes for the playback graph.

Every node is pulled one block at a time. Signals are channel-first float
arrays, shape ``(channels, frames)``. Times passed to nodes are graph
seconds: 0 is the moment the graph started.
"""

import math
from typing import List, Optional, Tuple

import numpy as np
import pedalboard
from scipy import signal

from ..core import AudioBuffer
from ..core.constants import ANALYSIS_WINDOW_SIZE
from ..core.track import EQSettings
from ..processing.eq import design_sos

# (kind, time, value, time_constant)
Event = Tuple[str, float, float, float]


class AudioParam:
    """A control value with scheduled automation.

    Supports step changes, linear ramps ending at a given time, and
    exponential approach to a target (``set_target_at_time``). A linear ramp
    starts at the previous event; with no previous event it acts as a step.
    """

    def __init__(self, value: float):
        self._base = float(value)
        self._events: List[Event] = []
        self._last = float(value)

    @property
    def value(self) -> float:
        """Most recently computed value."""
        return self._last

    @value.setter
    def value(self, value: float) -> None:
        self._base = float(value)
        self._last = float(value)
        self._events = []

    @property
    def automated(self) -> bool:
        return bool(self._events)

    def set_value_at_time(self, value: float, time: float) -> None:
        self._insert(("set", time, float(value), 0.0))

    def linear_ramp_to_value_at_time(self, value: float, time: float) -> None:
        self._insert(("linear", time, float(value), 0.0))

    def set_target_at_time(self, target: float, time: float, time_constant: float) -> None:
        if time_constant <= 0:
            self.set_value_at_time(target, time)
            return
        self._insert(("target", time, float(target), float(time_constant)))

    def cancel_scheduled_values(self, time: float) -> None:
        self._events = [e for e in self._events if e[1] < time]

    def ramp_to(self, target: float, now: float, time_constant: float) -> None:
        """Smoothly move to ``target``, replacing any pending automation."""
        self.cancel_scheduled_values(now)
        self.set_target_at_time(target, now, time_constant)

    def _insert(self, event: Event) -> None:
        index = len(self._events)
        while index > 0 and self._events[index - 1][1] > event[1]:
            index -= 1
        self._events.insert(index, event)

    def values(self, start: float, frames: int, sr: int) -> np.ndarray:
        """Per-sample values for a block starting at graph time ``start``."""
        if not self._events:
            self._last = self._base
            return np.full(frames, self._base)

        ts = start + np.arange(frames) / sr
        out = np.empty(frames)

        lower = -math.inf
        anchor_time, anchor_value = -math.inf, self._base
        target: Optional[Tuple[float, float, float, float]] = None
        settled: List[Tuple[int, float]] = []

        def current(t):
            if target is None:
                return np.full(np.shape(t), anchor_value) if np.ndim(t) else anchor_value
            t0, v0, goal, tau = target
            return goal + (v0 - goal) * np.exp(-(np.asarray(t) - t0) / tau)

        for i, (kind, time, value, tau) in enumerate(self._events):
            mask = (ts >= lower) & (ts < time)
            if kind == "linear":
                if math.isinf(anchor_time) or time <= anchor_time:
                    out[mask] = current(ts[mask])
                else:
                    start_value = float(current(anchor_time))
                    frac = (ts[mask] - anchor_time) / (time - anchor_time)
                    out[mask] = start_value + (value - start_value) * frac
                anchor_time, anchor_value, target = time, value, None
            else:
                out[mask] = current(ts[mask])
                at_time = float(current(time))
                if kind == "set":
                    anchor_time, anchor_value, target = time, value, None
                else:
                    anchor_time, anchor_value = time, at_time
                    target = (time, at_time, value, tau)
            settled.append((i, float(current(time)) if target is None else target[1]))
            lower = time

        mask = ts >= lower
        out[mask] = current(ts[mask])
        self._last = float(out[-1]) if frames else self._last
        self._prune(start + frames / sr, settled)
        return out

    def _prune(self, now: float, settled: List[Tuple[int, float]]) -> None:
        """Fold events that lie in the past into an equivalent short list."""
        past = [i for i, e in enumerate(self._events) if e[1] <= now]
        if not past:
            return
        k = past[-1]
        kind, time, value, tau = self._events[k]
        anchor = settled[k][1]
        head: List[Event] = [("set", time, anchor, 0.0)]
        if kind == "target":
            if abs(anchor - value) * math.exp(-(now - time) / tau) < 1e-6:
                head = [("set", time, value, 0.0)]
            else:
                head.append(self._events[k])
        self._events = head + self._events[k + 1:]
        if len(self._events) == 1 and self._events[0][0] == "set":
            self._base = self._events[0][2]
            self._events = []


class BufferSourceNode:
    """Plays one AudioBuffer from an offset, optionally looping.

    The read position advances by ``buffer_rate / context_rate`` per output
    sample, scaled by ``2 ** (detune / 1200)``. With a loop region set the
    position wraps from ``loop_end`` back to ``loop_start`` without a gap.
    """

    def __init__(
        self,
        buffer: AudioBuffer,
        sample_rate: int,
        offset: float = 0.0,
        loop: Optional[Tuple[float, float]] = None,
    ):
        self.buffer = buffer
        self.sample_rate = sample_rate
        self.detune = AudioParam(0.0)
        self._data = buffer.samples
        self._rate = buffer.sample_rate / sample_rate
        self._position = max(0.0, offset) * buffer.sample_rate
        self._loop: Optional[Tuple[float, float]] = None
        if loop is not None:
            ls = loop[0] * buffer.sample_rate
            le = min(loop[1] * buffer.sample_rate, buffer.frames)
            if le > ls:
                self._loop = (ls, le)
        self._stopped = False

    @property
    def channels(self) -> int:
        return self.buffer.channels

    @property
    def position(self) -> float:
        """Read position in seconds of buffer time."""
        return self._position / self.buffer.sample_rate

    @property
    def ended(self) -> bool:
        return self._stopped or (self._loop is None and self._position >= self.buffer.frames)

    def stop(self) -> None:
        self._stopped = True

    def render(self, start: float, frames: int) -> np.ndarray:
        if self.ended:
            return np.zeros((self.channels, frames), dtype=np.float32)

        if self.detune.automated or self.detune.value != 0.0:
            cents = self.detune.values(start, frames, self.sample_rate)
            rates = self._rate * np.power(2.0, cents / 1200.0)
            steps = np.concatenate(([0.0], np.cumsum(rates[:-1])))
            positions = self._position + steps
            advance = steps[-1] + rates[-1]
        else:
            positions = self._position + self._rate * np.arange(frames)
            advance = self._rate * frames

        positions = self._wrap(positions)
        self._position = float(self._wrap(np.array([self._position + advance]))[0])
        return self._read(positions)

    def _wrap(self, positions: np.ndarray) -> np.ndarray:
        if self._loop is None:
            return positions
        ls, le = self._loop
        over = positions >= le
        if over.any():
            positions = positions.copy()
            positions[over] = ls + np.mod(positions[over] - ls, le - ls)
        return positions

    def _read(self, positions: np.ndarray) -> np.ndarray:
        n = self.buffer.frames
        index = np.floor(positions).astype(np.int64)
        frac = (positions - index).astype(np.float32)
        valid = (index >= 0) & (index < n)
        i0 = np.clip(index, 0, n - 1)
        i1 = np.clip(index + 1, 0, n - 1)
        a = self._data[:, i0]
        b = self._data[:, i1]
        out = a + (b - a) * frac
        out[:, ~valid] = 0.0
        return out


class EqualizerNode:
    """Five-band EQ with filter state carried across blocks."""

    def __init__(self, eq: EQSettings, sample_rate: int, channels: int):
        self.sample_rate = sample_rate
        self.channels = channels
        self._sos = np.zeros((0, 6))
        self._zi = np.zeros((0, channels, 2))
        self.set_eq(eq)

    @property
    def active(self) -> bool:
        return len(self._sos) > 0

    def set_eq(self, eq: EQSettings) -> None:
        sos = design_sos(eq, self.sample_rate)
        if sos.shape != self._sos.shape:
            self._zi = np.zeros((len(sos), self.channels, 2))
        self._sos = sos

    def process(self, x: np.ndarray) -> np.ndarray:
        if not self.active:
            return x
        y, self._zi = signal.sosfilt(self._sos, x, axis=-1, zi=self._zi)
        return y.astype(np.float32)


class GainNode:
    def __init__(self, gain: float, sample_rate: int):
        self.gain = AudioParam(gain)
        self.sample_rate = sample_rate

    def process(self, x: np.ndarray, start: float) -> np.ndarray:
        if not self.gain.automated:
            return x * np.float32(self.gain.values(start, 1, self.sample_rate)[0])
        g = self.gain.values(start, x.shape[-1], self.sample_rate)
        return (x * g).astype(np.float32)


class StereoPannerNode:
    """Equal-power stereo panner (pan -1..1); always outputs two channels."""

    def __init__(self, pan: float, sample_rate: int):
        self.pan = AudioParam(pan)
        self.sample_rate = sample_rate

    def process(self, x: np.ndarray, start: float) -> np.ndarray:
        frames = x.shape[-1]
        pan = np.clip(self.pan.values(start, frames, self.sample_rate), -1.0, 1.0)
        if x.shape[0] == 1:
            theta = (pan + 1.0) * (np.pi / 4.0)
            return np.vstack([x[0] * np.cos(theta), x[0] * np.sin(theta)]).astype(np.float32)

        left, right = x[0], x[1]
        theta = np.where(pan <= 0, pan + 1.0, pan) * (np.pi / 2.0)
        out_l = np.where(pan <= 0, left + right * np.cos(theta), left * np.cos(theta))
        out_r = np.where(pan <= 0, right * np.sin(theta), right + left * np.sin(theta))
        return np.vstack([out_l, out_r]).astype(np.float32)


class MeterTap:
    """Level meter; keeps the most recent analysis window for pitch display."""

    def __init__(self, window_size: int = ANALYSIS_WINDOW_SIZE):
        self.window_size = window_size
        self.rms = 0.0
        self.peak = 0.0
        self._window = np.zeros(window_size, dtype=np.float32)

    def process(self, x: np.ndarray) -> np.ndarray:
        if x.shape[-1] == 0:
            return x
        mono = x.mean(axis=0)
        self.rms = float(np.sqrt(np.mean(mono**2)))
        self.peak = float(np.max(np.abs(x)))
        if len(mono) >= self.window_size:
            self._window = mono[-self.window_size:].astype(np.float32)
        else:
            self._window = np.concatenate([self._window[len(mono):], mono]).astype(np.float32)
        return x

    def window(self) -> np.ndarray:
        return self._window.copy()


class ReverbBus:
    """Shared reverb fed by per-track sends; wet signal only.

    Stops processing once its input has been silent for ``tail`` seconds.
    """

    def __init__(
        self,
        sample_rate: int,
        room_size: float = 0.6,
        damping: float = 0.5,
        tail: float = 5.0,
    ):
        self.sample_rate = sample_rate
        self._reverb = pedalboard.Reverb(
            room_size=room_size,
            damping=damping,
            wet_level=1.0,
            dry_level=0.0,
            width=1.0,
        )
        self._tail_frames = int(tail * sample_rate)
        self._idle_frames = self._tail_frames

    def process(self, x: np.ndarray) -> np.ndarray:
        frames = x.shape[-1]
        if np.any(x):
            self._idle_frames = 0
        elif self._idle_frames >= self._tail_frames:
            return np.zeros((2, frames), dtype=np.float32)
        else:
            self._idle_frames += frames
        wet = self._reverb.process(
            np.ascontiguousarray(x, dtype=np.float32), self.sample_rate, reset=False
        )
        return np.asarray(wet, dtype=np.float32)
