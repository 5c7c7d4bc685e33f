"""Timed lyric/chord sidecar parsing (LRC style)."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Union
import re

TIME_TAG = re.compile(r"\[(\d{2}):(\d{2})\.(\d{2,3})\]")
OFFSET_TAG = re.compile(r"\[offset:\s*([+-]?\d+)\]", re.IGNORECASE)


@dataclass
class LyricLine:
    """One timed line of a lyric or chord sidecar."""

    time: float  # Seconds
    text: str


def parse_lrc(text: str) -> List[LyricLine]:
    """
    Parse ``[mm:ss.xx] text`` lines.

    An ``[offset: ±ms]`` directive anywhere in the file shifts every line by
    the same amount; shifted times clamp at zero. Lines without text are
    skipped.

    Returns:
        Lines sorted by time
    """
    lines = text.splitlines()

    offset = 0.0
    for line in lines:
        match = OFFSET_TAG.search(line)
        if match:
            offset = int(match.group(1)) / 1000.0

    result = []
    for line in lines:
        match = TIME_TAG.search(line)
        if not match:
            continue
        minutes, seconds, fraction = match.groups()
        divisor = 1000.0 if len(fraction) == 3 else 100.0
        stamp = int(minutes) * 60 + int(seconds) + int(fraction) / divisor
        content = TIME_TAG.sub("", line, count=1).strip()
        if content and not OFFSET_TAG.search(content):
            result.append(LyricLine(time=max(0.0, stamp + offset), text=content))

    return sorted(result, key=lambda l: l.time)


def load_lrc(path: Union[str, Path]) -> List[LyricLine]:
    """Read and parse a sidecar file."""
    return parse_lrc(Path(path).read_text(encoding="utf-8"))
