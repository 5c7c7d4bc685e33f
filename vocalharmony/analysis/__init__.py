"""Analysis layer - pitch detection and note segmentation.

- Autocorrelation pitch/level estimation of single windows
- Voicing masks over whole buffers
- Note blocks for manual re-tuning
"""

from .pitch import PitchDetector, PitchEstimate, detect_pitch
from .segment import NoteSegmenter

__all__ = [
    "PitchDetector",
    "PitchEstimate",
    "detect_pitch",
    "NoteSegmenter",
]
