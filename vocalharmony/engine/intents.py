"""Commands a front end sends to the studio session (see ``Studio.dispatch``)."""

from dataclasses import dataclass
from typing import Dict, Optional, Union


@dataclass(frozen=True)
class SetVolume:
    track_id: int
    volume: float


@dataclass(frozen=True)
class SetPan:
    track_id: int
    pan: float


@dataclass(frozen=True)
class SetMute:
    track_id: int
    mute: bool


@dataclass(frozen=True)
class SetSolo:
    track_id: int
    solo: bool


@dataclass(frozen=True)
class SetEQ:
    """Change EQ state; ``bands`` maps band name to a partial {gain, freq, q}."""

    track_id: int
    enabled: Optional[bool] = None
    bands: Optional[Dict[str, Dict[str, float]]] = None


@dataclass(frozen=True)
class SetReverbSend:
    track_id: int
    amount: float


@dataclass(frozen=True)
class SetPitchShift:
    track_id: int
    semitones: int


@dataclass(frozen=True)
class FineTuneNote:
    block_id: str
    cents: int


@dataclass(frozen=True)
class SelectTrack:
    track_id: Optional[int]


@dataclass(frozen=True)
class Arm:
    track_id: int
    armed: bool = True


@dataclass(frozen=True)
class Play:
    pass


@dataclass(frozen=True)
class Record:
    pass


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class Seek:
    time: float


@dataclass(frozen=True)
class SetLoop:
    start: Optional[float]
    end: Optional[float]


Intent = Union[
    SetVolume,
    SetPan,
    SetMute,
    SetSolo,
    SetEQ,
    SetReverbSend,
    SetPitchShift,
    FineTuneNote,
    SelectTrack,
    Arm,
    Play,
    Record,
    Stop,
    Seek,
    SetLoop,
]
