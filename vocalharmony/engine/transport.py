"""Transport and record state machine.

The controller owns the session clock. ``tick`` is the per-frame poll: it
derives the current time from elapsed clock time, wraps it around the loop
region and auto-stops at the end of the session.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from ..core import AudioBuffer, UserInputRejected
from ..input.recorder import Recorder
from .clock import MonotonicClock
from .graph import PlaybackGraph

logger = logging.getLogger(__name__)

Loop = Tuple[float, float]


class TransportState(Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    RECORDING = "recording"


@dataclass
class RecordingResult:
    """Audio captured by one record pass, ready to commit to ``track_id``."""

    track_id: int
    buffer: Optional[AudioBuffer]


class TransportController:
    """
    Play/stop/record/seek/loop over an injectable clock.

    Args:
        build_graph: Builds a fresh graph for (offset, loop)
        max_duration: Returns the current session length in seconds
        clock: Time source with ``now()`` (monotonic clock if None)
        recorder: Microphone capture used while recording
        on_graph: Called with the new graph on start and with None on stop
    """

    def __init__(
        self,
        build_graph: Callable[[float, Optional[Loop]], PlaybackGraph],
        max_duration: Callable[[], float],
        clock=None,
        recorder: Optional[Recorder] = None,
        on_graph: Optional[Callable[[Optional[PlaybackGraph]], None]] = None,
    ):
        self._build_graph = build_graph
        self._max_duration = max_duration
        self.clock = clock or MonotonicClock()
        self.recorder = recorder
        self._on_graph = on_graph

        self.state = TransportState.STOPPED
        self.graph: Optional[PlaybackGraph] = None
        self.current_time = 0.0
        self.pause_offset = 0.0
        self.loop_start: Optional[float] = None
        self.loop_end: Optional[float] = None
        self.recording_track_id: Optional[int] = None

        self._start_clock = 0.0
        self._start_offset = 0.0

    @property
    def is_playing(self) -> bool:
        return self.state is not TransportState.STOPPED

    @property
    def is_recording(self) -> bool:
        return self.state is TransportState.RECORDING

    @property
    def max_duration(self) -> float:
        return self._max_duration()

    def play(self) -> None:
        """Start (or restart) playback from the paused offset."""
        if self.is_recording:
            raise UserInputRejected("Stop recording before starting playback")
        if self.pause_offset >= self.max_duration:
            self.pause_offset = 0.0
        self._start(self.pause_offset)
        self.state = TransportState.PLAYING
        logger.info("Playback started at %.3fs", self.current_time)

    def record(self, armed_track_ids: Sequence[int]) -> None:
        """
        Start recording onto the single armed track while monitoring playback.

        Raises:
            UserInputRejected: If not exactly one track is armed; the
                transport is left as it was
        """
        armed = list(armed_track_ids)
        if len(armed) != 1:
            reason = "no track is armed" if not armed else f"{len(armed)} tracks are armed"
            raise UserInputRejected(f"Cannot record: {reason}")
        if self.is_recording:
            raise UserInputRejected("Already recording")

        if self.state is TransportState.PLAYING:
            self.pause_offset = self.tick()
        self._teardown()
        duration = self.max_duration
        if duration > 0 and self.pause_offset >= duration:
            self.pause_offset = 0.0
        self.recording_track_id = armed[0]
        if self.recorder is not None:
            self.recorder.start()
        self._start(self.pause_offset)
        self.state = TransportState.RECORDING
        logger.info("Recording on track %d from %.3fs", armed[0], self.current_time)

    def stop(self, output_latency: float = 0.0) -> Optional[RecordingResult]:
        """
        Stop playback or recording.

        Playback keeps its position as the pause offset. Recording returns
        the latency-compensated capture for the session to commit.
        """
        if self.state is TransportState.STOPPED:
            return None

        if self.state is TransportState.RECORDING:
            self.tick()
            self._teardown()
            buffer = None
            if self.recorder is not None:
                buffer = self.recorder.finish(output_latency)
            result = RecordingResult(self.recording_track_id, buffer)
            self.recording_track_id = None
            self.state = TransportState.STOPPED
            logger.info("Recording stopped")
            return result

        self.tick()
        self._teardown()
        self.pause_offset = self.current_time
        self.state = TransportState.STOPPED
        logger.info("Playback stopped at %.3fs", self.current_time)
        return None

    def seek(self, time: float) -> float:
        """Move the playhead; restarts the graph when playing."""
        if self.is_recording:
            raise UserInputRejected("Cannot seek while recording")
        target = max(0.0, min(time, self.max_duration))
        self.pause_offset = target
        self.current_time = target
        if self.state is TransportState.PLAYING:
            self._start(target)
        return target

    @property
    def loop(self) -> Optional[Loop]:
        """The active loop region; only set when both points are."""
        if self.loop_start is None or self.loop_end is None:
            return None
        return (self.loop_start, self.loop_end)

    def set_loop(self, start: Optional[float], end: Optional[float]) -> None:
        """Set either loop point (None clears it); restarts when playing."""
        if self.is_recording:
            raise UserInputRejected("Cannot change the loop region while recording")
        if start is not None and start < 0:
            raise ValueError(f"Loop start must be >= 0, got {start}")
        if start is not None and end is not None and not start < end:
            raise ValueError(f"Invalid loop region {start}..{end}")
        self.loop_start = None if start is None else float(start)
        self.loop_end = None if end is None else float(end)
        if self.state is TransportState.PLAYING:
            self.tick()
            self._start(self.current_time)

    def toggle_loop_point(self, point: str) -> None:
        """Set or clear loop point 'A' (start) or 'B' (end) at the playhead."""
        start, end = self.loop_start, self.loop_end
        now = self.current_time
        if point == "A":
            if start is not None:
                start = None
            else:
                start = now
                if end is not None and now >= end:
                    end = None
        elif point == "B":
            if end is not None:
                end = None
            else:
                if start is None or now <= start:
                    start = 0.0
                end = now
        else:
            raise ValueError(f"Unknown loop point: {point}")
        if start is not None and end is not None and end <= start:
            end = None
        self.set_loop(start, end)

    def tick(self) -> float:
        """Advance the session clock; call once per UI frame."""
        if self.state is TransportState.STOPPED:
            return self.current_time

        now = self.clock.now()
        t = self._start_offset + (now - self._start_clock)

        if self.loop is not None:
            loop_start, loop_end = self.loop
            if t >= loop_end:
                t = loop_start + (t - loop_start) % (loop_end - loop_start)
                self._start_offset = t
                self._start_clock = now
        self.current_time = t

        duration = self.max_duration
        if (
            self.loop is None
            and duration > 0
            and t > duration
            and self.state is TransportState.PLAYING
        ):
            logger.info("Reached end of session; stopping")
            self._teardown()
            self.state = TransportState.STOPPED
            self.current_time = 0.0
            self.pause_offset = 0.0
        return self.current_time

    def _start(self, offset: float) -> None:
        """Tear down any running graph, then start a new one at ``offset``."""
        self._teardown()
        if self.loop is not None:
            loop_start, loop_end = self.loop
            if offset < loop_start or offset >= loop_end:
                offset = loop_start
        self.graph = self._build_graph(offset, self.loop)
        self._start_clock = self.clock.now()
        self._start_offset = offset
        self.current_time = offset
        if self._on_graph is not None:
            self._on_graph(self.graph)

    def _teardown(self) -> None:
        if self.graph is None:
            return
        self.graph.stop()
        self.graph = None
        if self._on_graph is not None:
            self._on_graph(None)
