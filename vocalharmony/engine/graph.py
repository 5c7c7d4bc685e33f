"""Per-track signal chains and the master bus.

A ``PlaybackGraph`` is built once per transport start (play, record, seek,
loop change) and discarded on stop. Live mixer edits ramp parameters of the
running graph instead of rebuilding it.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..config import StudioConfig
from ..core import AudioBuffer, NoteBlock, Track, is_audible
from ..core.track import any_solo
from .nodes import (
    BufferSourceNode,
    EqualizerNode,
    GainNode,
    MeterTap,
    ReverbBus,
    StereoPannerNode,
)

logger = logging.getLogger(__name__)

BufferLookup = Callable[[Track], Optional[AudioBuffer]]


def track_gain(track: Track, solo_active: bool) -> float:
    return track.volume if is_audible(track, solo_active) else 0.0


def send_gain(track: Track, solo_active: bool) -> float:
    return track.reverb_send if is_audible(track, solo_active) else 0.0


class TrackChain:
    """source -> EQ -> gain -> pan -> meter, with an EQ-post reverb send."""

    def __init__(self, track: Track, source: BufferSourceNode, solo_active: bool, sample_rate: int):
        self.track_id = track.id
        self.source = source
        self.eq = EqualizerNode(track.eq, sample_rate, source.channels)
        self.gain = GainNode(track_gain(track, solo_active), sample_rate)
        self.send = GainNode(send_gain(track, solo_active), sample_rate)
        self.panner = StereoPannerNode(track.stereo_pan, sample_rate)
        self.meter = MeterTap()

    def process(self, start: float, frames: int) -> Tuple[np.ndarray, np.ndarray]:
        x = self.source.render(start, frames)
        x = self.eq.process(x)
        sent = self.send.process(x, start)
        if sent.shape[0] == 1:
            sent = np.repeat(sent, 2, axis=0)
        out = self.panner.process(self.gain.process(x, start), start)
        return self.meter.process(out), sent


class MasterChain:
    """The Master track's bus: EQ -> gain -> pan -> meter. Mute applies, solo never."""

    def __init__(self, track: Track, sample_rate: int):
        self.eq = EqualizerNode(track.eq, sample_rate, 2)
        self.gain = GainNode(0.0 if track.mute else track.volume, sample_rate)
        self.panner = StereoPannerNode(track.stereo_pan, sample_rate)
        self.meter = MeterTap()

    def process(self, bus: np.ndarray, start: float) -> np.ndarray:
        x = self.eq.process(bus)
        x = self.panner.process(self.gain.process(x, start), start)
        return self.meter.process(x)


class PlaybackGraph:
    """A running set of track chains feeding the master bus.

    ``process`` is called from the audio thread (or the offline renderer);
    parameter updates may come from any thread and are serialized by a lock.
    """

    def __init__(
        self,
        chains: Dict[int, TrackChain],
        master: MasterChain,
        reverb: ReverbBus,
        sample_rate: int,
        ramp_time_constant: float = 0.05,
    ):
        self.chains = chains
        self.master = master
        self.reverb = reverb
        self.sample_rate = sample_rate
        self.ramp_time_constant = ramp_time_constant
        self._frame = 0
        self._lock = threading.Lock()
        self._stopped = False

    @property
    def time(self) -> float:
        """Seconds of audio produced since the graph started."""
        return self._frame / self.sample_rate

    @property
    def stopped(self) -> bool:
        return self._stopped

    def process(self, frames: int) -> np.ndarray:
        """Pull the next block of stereo output, clipped to [-1, 1]."""
        with self._lock:
            if self._stopped:
                return np.zeros((2, frames), dtype=np.float32)
            start = self.time
            bus = np.zeros((2, frames), dtype=np.float32)
            sends = np.zeros((2, frames), dtype=np.float32)
            for chain in self.chains.values():
                out, sent = chain.process(start, frames)
                bus += out
                sends += sent
            bus += self.reverb.process(sends)
            out = self.master.process(bus, start)
            self._frame += frames
        return np.clip(out, -1.0, 1.0)

    def render(self, frames: int, block_size: int) -> np.ndarray:
        """Pull ``frames`` of output in blocks; used for offline rendering."""
        blocks = []
        remaining = frames
        while remaining > 0:
            n = min(block_size, remaining)
            blocks.append(self.process(n))
            remaining -= n
        if not blocks:
            return np.zeros((2, 0), dtype=np.float32)
        return np.concatenate(blocks, axis=1)

    def update_track(self, track: Track, solo_active: bool) -> None:
        """Ramp a running chain toward the track's current mixer state."""
        tc = self.ramp_time_constant
        with self._lock:
            now = self.time
            if track.is_master:
                self.master.gain.gain.ramp_to(0.0 if track.mute else track.volume, now, tc)
                self.master.panner.pan.ramp_to(track.stereo_pan, now, tc)
                self.master.eq.set_eq(track.eq)
                return
            chain = self.chains.get(track.id)
            if chain is None:
                return
            chain.gain.gain.ramp_to(track_gain(track, solo_active), now, tc)
            chain.send.gain.ramp_to(send_gain(track, solo_active), now, tc)
            chain.panner.pan.ramp_to(track.stereo_pan, now, tc)
            chain.eq.set_eq(track.eq)

    def update_all(self, tracks: Iterable[Track]) -> None:
        tracks = list(tracks)
        solo_active = any_solo(tracks)
        for track in tracks:
            self.update_track(track, solo_active)

    def level(self, track_id: int) -> float:
        chain = self.chains.get(track_id)
        return chain.meter.rms if chain is not None else 0.0

    def meter(self, track_id: int) -> Optional[MeterTap]:
        chain = self.chains.get(track_id)
        return chain.meter if chain is not None else None

    def stop(self) -> None:
        """Stop every source; later pulls return silence."""
        with self._lock:
            for chain in self.chains.values():
                chain.source.stop()
            self._stopped = True


class SignalGraphBuilder:
    """Builds a fresh PlaybackGraph from the Track Model."""

    def __init__(self, config: Optional[StudioConfig] = None):
        self.config = config or StudioConfig()

    def build(
        self,
        tracks: Sequence[Track],
        buffers: BufferLookup,
        offset: float = 0.0,
        loop: Optional[Tuple[float, float]] = None,
        note_blocks: Sequence[NoteBlock] = (),
        selected_track_id: Optional[int] = None,
        sample_rate: Optional[int] = None,
    ) -> PlaybackGraph:
        """
        Build a graph positioned at ``offset`` seconds.

        Args:
            tracks: Full track list, Master included
            buffers: Returns the buffer to play for a track (None if it has none)
            offset: Session time at which playback starts
            loop: Optional (loop_start, loop_end) in session seconds
            note_blocks: Note blocks of the selected track
            selected_track_id: Track whose fine-tuned blocks get detune automation
            sample_rate: Graph rate (config rate if None)

        Returns:
            PlaybackGraph ready to be pulled
        """
        sr = sample_rate or self.config.sample_rate
        solo_active = any_solo(tracks)

        master = next((t for t in tracks if t.is_master), None)
        if master is None:
            raise ValueError("Track list has no Master track")

        chains: Dict[int, TrackChain] = {}
        for track in tracks:
            if track.is_master:
                continue
            buffer = buffers(track)
            if buffer is None or buffer.frames == 0:
                continue
            source = BufferSourceNode(buffer, sr, offset=offset, loop=loop)
            if track.id == selected_track_id:
                self._schedule_fine_tune(source, note_blocks, offset)
            chains[track.id] = TrackChain(track, source, solo_active, sr)

        reverb = ReverbBus(
            sr,
            room_size=self.config.reverb_room_size,
            damping=self.config.reverb_damping,
        )
        logger.debug("Built playback graph: %d chains at %.3fs", len(chains), offset)
        return PlaybackGraph(
            chains,
            MasterChain(master, sr),
            reverb,
            sr,
            ramp_time_constant=self.config.ramp_time_constant,
        )

    def _schedule_fine_tune(
        self, source: BufferSourceNode, note_blocks: Sequence[NoteBlock], offset: float
    ) -> List[NoteBlock]:
        """Detune ramps around fine-tuned blocks that start after ``offset``."""
        ramp = self.config.fine_tune_ramp
        scheduled = []
        for block in note_blocks:
            if block.shift_cents == 0 or block.start < offset:
                continue
            t0 = block.start - offset
            t1 = block.end - offset
            edge = min(ramp, (t1 - t0) / 2.0)
            source.detune.set_value_at_time(0.0, t0)
            source.detune.linear_ramp_to_value_at_time(block.shift_cents, t0 + edge)
            source.detune.set_value_at_time(block.shift_cents, t1 - edge)
            source.detune.linear_ramp_to_value_at_time(0.0, t1)
            scheduled.append(block)
        return scheduled
