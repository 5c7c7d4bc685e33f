"""Processing layer - offline buffer transforms.

- Voicing-gated pitch shifting (with a per-track result cache)
- Destructive region edits
- Equalizer filter design
"""

from .pitch_shift import PitchShiftProcessor, ProcessedBufferCache
from .edit import (
    BufferEditor,
    apply_gain,
    silence,
    pan_automation,
    time_shift,
)
from .eq import design_sos, magnitude_response

__all__ = [
    "PitchShiftProcessor",
    "ProcessedBufferCache",
    "BufferEditor",
    "apply_gain",
    "silence",
    "pan_automation",
    "time_shift",
    "design_sos",
    "magnitude_response",
]
