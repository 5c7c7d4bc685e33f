"""Microphone capture with latency compensation."""

import logging
from typing import List, Optional

import numpy as np

from ..core import AudioBuffer
from ..core.constants import CAPTURE_FRAME_SIZE, ESTIMATED_INPUT_LATENCY

logger = logging.getLogger(__name__)


class Recorder:
    """Collects fixed-size mono capture frames for one take.

    On ``finish`` the frames are concatenated and the head of the take is
    trimmed by the round-trip latency so the new recording lines up with the
    playback that was monitored while it was captured.
    """

    def __init__(
        self,
        sample_rate: int,
        frame_size: int = CAPTURE_FRAME_SIZE,
        input_latency: float = ESTIMATED_INPUT_LATENCY,
        manual_offset: float = 0.0,
    ):
        """
        Initialize Recorder.

        Args:
            sample_rate: Capture sample rate
            frame_size: Samples per capture frame
            input_latency: Fixed input latency estimate in seconds
            manual_offset: User-configured extra compensation in seconds
        """
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.input_latency = input_latency
        self.manual_offset = manual_offset
        self._frames: List[np.ndarray] = []
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def captured_samples(self) -> int:
        return sum(len(f) for f in self._frames)

    def start(self) -> None:
        self._frames = []
        self._active = True

    def push(self, frame: np.ndarray) -> None:
        """Append one capture frame (copied). Ignored when not recording."""
        if not self._active:
            return
        data = np.asarray(frame, dtype=np.float32)
        if data.ndim > 1:
            # (frames, channels) as delivered by the input stream
            data = data[:, 0]
        self._frames.append(data.copy())

    def compensation_samples(self, output_latency: float = 0.0) -> int:
        """Samples to trim from the head of a take."""
        seconds = (
            self.frame_size / self.sample_rate
            + output_latency
            + self.input_latency
            + self.manual_offset
        )
        return max(0, int(np.floor(seconds * self.sample_rate)))

    def finish(self, output_latency: float = 0.0) -> Optional[AudioBuffer]:
        """
        Stop capturing and build the compensated take.

        Args:
            output_latency: Measured output latency of the host in seconds

        Returns:
            Mono AudioBuffer, or None if nothing was captured
        """
        self._active = False
        frames, self._frames = self._frames, []
        if not frames:
            return None

        take = np.concatenate(frames)
        latency = self.compensation_samples(output_latency)
        if len(take) > latency:
            take = take[latency:]
        else:
            logger.warning(
                "Take of %d samples is shorter than the %d-sample latency; keeping it uncompensated",
                len(take),
                latency,
            )
        return AudioBuffer(take, self.sample_rate)
