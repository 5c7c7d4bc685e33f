"""AudioBuffer - immutable decoded PCM owned by the session."""

from dataclasses import dataclass
import numpy as np


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """Decoded PCM audio.

    Samples are stored channel-first, shape ``(channels, frames)``, as
    read-only float32. Edits never mutate a buffer; they build a new one.
    """

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        data = np.asarray(self.samples, dtype=np.float32)
        if data.ndim == 1:
            data = data[np.newaxis, :]
        if data.ndim != 2 or data.shape[0] not in (1, 2):
            raise ValueError(f"Expected mono or stereo samples, got shape {data.shape}")
        if self.sample_rate <= 0:
            raise ValueError(f"Invalid sample rate: {self.sample_rate}")
        if data is self.samples or np.shares_memory(data, self.samples):
            data = data.copy()
        data.setflags(write=False)
        object.__setattr__(self, "samples", data)

    @classmethod
    def silent(cls, frames: int, sample_rate: int, channels: int = 1) -> "AudioBuffer":
        return cls(np.zeros((channels, frames), dtype=np.float32), sample_rate)

    @property
    def channels(self) -> int:
        return self.samples.shape[0]

    @property
    def frames(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.frames / self.sample_rate

    def mono(self) -> np.ndarray:
        """Mono mixdown of all channels."""
        if self.channels == 1:
            return self.samples[0]
        return self.samples.mean(axis=0)

    def channel(self, index: int) -> np.ndarray:
        return self.samples[index]

    def with_samples(self, samples: np.ndarray) -> "AudioBuffer":
        """New buffer at the same sample rate."""
        return AudioBuffer(samples, self.sample_rate)

    def __eq__(self, other):
        if not isinstance(other, AudioBuffer):
            return NotImplemented
        return (
            self.sample_rate == other.sample_rate
            and self.samples.shape == other.samples.shape
            and bool(np.array_equal(self.samples, other.samples))
        )

