"""Engine configuration."""

from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Union
import json
import warnings

from .core.constants import (
    ANALYSIS_WINDOW_SIZE,
    CAPTURE_FRAME_SIZE,
    DEFAULT_BLOCK_SIZE,
    DEFAULT_RENDER_BLOCK_SIZE,
    DEFAULT_SR,
    ESTIMATED_INPUT_LATENCY,
)


@dataclass
class StudioConfig:
    """Configuration for the studio engine.

    Attributes:
        sample_rate: Engine sample rate in Hz (default: 48000)
        block_size: Frames pulled per real-time graph block (default: 512)
        render_block_size: Frames per block during offline mixdown (default: 4096)
        capture_frame_size: Samples per microphone capture frame (default: 4096)
        estimated_input_latency: Fixed input latency estimate in seconds (default: 0.02)
        manual_latency_offset: User recording offset in seconds (default: 0.0)
        ramp_time_constant: Time constant of live parameter ramps (default: 0.05)
        fine_tune_ramp: Ramp length around fine-tuned note blocks (default: 0.05)
        voicing_window: Hop of the pitch-shift voicing mask in samples (default: 2048)
        voicing_level: Minimum RMS for a voiced mask window (default: 0.015)
        voicing_clarity: Minimum autocorrelation clarity for voicing (default: 0.75)
        voicing_transition_ms: Ramp length at voicing boundaries (default: 30)
        reverb_room_size: Shared reverb room size, 0..1 (default: 0.6)
        reverb_damping: Shared reverb damping, 0..1 (default: 0.5)
        export_format: Default codec for mixdowns and stems (default: "wav")
        store_dir: Directory of the local project store
    """

    sample_rate: int = DEFAULT_SR
    block_size: int = DEFAULT_BLOCK_SIZE
    render_block_size: int = DEFAULT_RENDER_BLOCK_SIZE
    capture_frame_size: int = CAPTURE_FRAME_SIZE
    estimated_input_latency: float = ESTIMATED_INPUT_LATENCY
    manual_latency_offset: float = 0.0
    ramp_time_constant: float = 0.05
    fine_tune_ramp: float = 0.05
    voicing_window: int = ANALYSIS_WINDOW_SIZE
    voicing_level: float = 0.015
    voicing_clarity: float = 0.75
    voicing_transition_ms: float = 30.0
    reverb_room_size: float = 0.6
    reverb_damping: float = 0.5
    export_format: str = "wav"
    store_dir: str = "~/.local/share/vocal-harmony/projects"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudioConfig":
        names = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - names)
        if unknown:
            warnings.warn(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in names})

    @classmethod
    def load(cls, path: Union[str, Path]) -> "StudioConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as fh:
            return cls.from_dict(json.load(fh))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
