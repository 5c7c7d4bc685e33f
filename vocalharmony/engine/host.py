"""Audio device hosts.

The engine only starts after an explicit ``initialize`` (the first user
gesture in an interactive front end). ``SoundDeviceHost`` drives a real
output/input device; ``NullAudioHost`` has no device and serves offline use
and tests.
"""

import logging
import threading
from typing import Optional

import numpy as np

from ..core import EngineNotReady
from ..input.recorder import Recorder
from .graph import PlaybackGraph

logger = logging.getLogger(__name__)


class AudioHost:
    """Base host: tracks readiness and the graph currently being played."""

    def __init__(self, sample_rate: int, block_size: int):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.ready = False
        self.recorder: Optional[Recorder] = None
        self._graph: Optional[PlaybackGraph] = None
        self._lock = threading.Lock()

    @property
    def output_latency(self) -> float:
        """Measured output latency in seconds."""
        return 0.0

    def initialize(self) -> None:
        self.ready = True

    def require_ready(self) -> None:
        if not self.ready:
            raise EngineNotReady("Audio engine is not initialized")

    def attach(self, graph: Optional[PlaybackGraph]) -> None:
        """Swap the graph pulled by the output stream."""
        with self._lock:
            self._graph = graph

    def start_input(self, recorder: Recorder) -> None:
        self.recorder = recorder

    def stop_input(self) -> None:
        self.recorder = None

    def pull(self, frames: int) -> np.ndarray:
        """Next output block, shape (2, frames); silence with no graph."""
        with self._lock:
            graph = self._graph
        if graph is None:
            return np.zeros((2, frames), dtype=np.float32)
        return graph.process(frames)

    def close(self) -> None:
        self.attach(None)
        self.ready = False


class NullAudioHost(AudioHost):
    """Host without a device. Output is only produced when ``pull`` is called."""


class SoundDeviceHost(AudioHost):
    """PortAudio output + microphone input via ``sounddevice``."""

    def __init__(
        self,
        sample_rate: int,
        block_size: int,
        capture_frame_size: int = 4096,
        output_device=None,
        input_device=None,
    ):
        super().__init__(sample_rate, block_size)
        self.capture_frame_size = capture_frame_size
        self.output_device = output_device
        self.input_device = input_device
        self._sd = None
        self._output = None
        self._input = None

    @property
    def output_latency(self) -> float:
        if self._output is None:
            return 0.0
        latency = self._output.latency
        return float(latency if np.isscalar(latency) else latency[-1])

    def initialize(self) -> None:
        if self.ready:
            return
        import sounddevice as sd

        self._sd = sd
        self._output = sd.OutputStream(
            samplerate=self.sample_rate,
            blocksize=self.block_size,
            channels=2,
            dtype="float32",
            callback=self._output_callback,
            device=self.output_device,
        )
        self._output.start()
        logger.info(
            "Audio output started sr=%d block=%d latency=%.4fs",
            self.sample_rate,
            self.block_size,
            self.output_latency,
        )
        super().initialize()

    def _output_callback(self, outdata, frames, time_info, status):
        if status:
            logger.debug("Output stream status: %s", status)
        outdata[:] = self.pull(frames).T

    def _input_callback(self, indata, frames, time_info, status):
        if status:
            logger.debug("Input stream status: %s", status)
        recorder = self.recorder
        if recorder is not None:
            recorder.push(indata)

    def start_input(self, recorder: Recorder) -> None:
        self.require_ready()
        super().start_input(recorder)
        self._input = self._sd.InputStream(
            samplerate=self.sample_rate,
            blocksize=self.capture_frame_size,
            channels=1,
            dtype="float32",
            callback=self._input_callback,
            device=self.input_device,
        )
        self._input.start()
        logger.info("Microphone capture started")

    def stop_input(self) -> None:
        if self._input is not None:
            self._input.stop()
            self._input.close()
            self._input = None
        super().stop_input()

    def close(self) -> None:
        self.stop_input()
        if self._output is not None:
            self._output.stop()
            self._output.close()
            self._output = None
            logger.info("Audio output stopped")
        super().close()
