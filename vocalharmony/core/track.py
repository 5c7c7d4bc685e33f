"""Track model - authoritative per-track mixer state."""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Optional

from .constants import MASTER_COLOR, MASTER_TRACK_ID, MAX_PITCH_SHIFT, MIN_PITCH_SHIFT

EQ_BANDS = ("low", "low_mid", "mid", "high_mid", "high")
EQ_BAND_ALIASES = {"lowMid": "low_mid", "highMid": "high_mid"}

# project.json spells track keys in camelCase
TRACK_JSON_KEYS = {
    "has_file": "hasFile",
    "is_armed": "isArmed",
    "is_tuning": "isTuning",
    "pitch_shift": "pitchShift",
    "is_master": "isMaster",
    "reverb_send": "reverbSend",
}
TRACK_KEY_ALIASES = {v: k for k, v in TRACK_JSON_KEYS.items()}
TRACK_KEY_ALIASES["vol"] = "volume"


@dataclass
class EQBand:
    """One equalizer band. ``q`` is ignored by the shelving bands."""

    gain: float = 0.0  # dB
    freq: float = 1000.0  # Hz
    q: float = 1.0


def _default_bands() -> Dict[str, EQBand]:
    return {
        "low": EQBand(gain=0.0, freq=100.0),
        "low_mid": EQBand(gain=0.0, freq=250.0, q=1.0),
        "mid": EQBand(gain=0.0, freq=1000.0, q=1.0),
        "high_mid": EQBand(gain=0.0, freq=3500.0, q=1.0),
        "high": EQBand(gain=0.0, freq=10000.0),
    }


@dataclass
class EQSettings:
    """Five-band EQ: low shelf, three peaking bands, high shelf."""

    enabled: bool = False
    bands: Dict[str, EQBand] = field(default_factory=_default_bands)

    def effective_gains(self) -> Dict[str, float]:
        """Band gains as the filter chain should apply them.

        A disabled EQ forces every band to 0 dB.
        """
        if not self.enabled:
            return {name: 0.0 for name in EQ_BANDS}
        return {name: self.bands[name].gain for name in EQ_BANDS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EQSettings":
        bands = _default_bands()
        # older manifests keep the bands next to "enabled"
        bands_data = data.get("bands") or {k: v for k, v in data.items() if isinstance(v, dict)}
        for name, values in bands_data.items():
            name = EQ_BAND_ALIASES.get(name, name)
            if name in bands:
                bands[name] = EQBand(**{**asdict(bands[name]), **values})
        return cls(enabled=bool(data.get("enabled", False)), bands=bands)


@dataclass
class Track:
    """Mixer state of a single track.

    Volume is 0..1 and pan is 0..1 with 0.5 at center. ``duration`` mirrors
    the length of the track's source buffer and is maintained by the session.
    """

    id: int
    name: str
    color: str = "#f97316"
    volume: float = 1.0
    pan: float = 0.5
    mute: bool = False
    solo: bool = False
    has_file: bool = False
    is_armed: bool = False
    is_tuning: bool = False
    duration: float = 0.0
    pitch_shift: int = 0
    is_master: bool = False
    eq: EQSettings = field(default_factory=EQSettings)
    reverb_send: float = 0.0

    def __post_init__(self):
        validate_unit("volume", self.volume)
        validate_unit("pan", self.pan)
        validate_unit("reverb_send", self.reverb_send)
        validate_pitch_shift(self.pitch_shift)

    @property
    def stereo_pan(self) -> float:
        """Pan mapped to -1 (left) .. 1 (right)."""
        return self.pan * 2.0 - 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {TRACK_JSON_KEYS.get(k, k): v for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        """Build a track from camelCase, snake_case or legacy ("vol") keys."""
        known = {}
        for key, value in data.items():
            key = TRACK_KEY_ALIASES.get(key, key)
            if key in cls.__dataclass_fields__:
                known.setdefault(key, value)
        if "eq" in known and isinstance(known["eq"], dict):
            known["eq"] = EQSettings.from_dict(known["eq"])
        return cls(**known)


def validate_unit(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within 0..1, got {value}")


def validate_pitch_shift(semitones: int) -> None:
    if int(semitones) != semitones or not MIN_PITCH_SHIFT <= semitones <= MAX_PITCH_SHIFT:
        raise ValueError(
            f"pitch_shift must be an integer within {MIN_PITCH_SHIFT}..{MAX_PITCH_SHIFT}, "
            f"got {semitones}"
        )


def is_audible(track: Track, any_solo: bool) -> bool:
    """Solo/mute resolution for one track.

    A muted track is never audible. When any track is soloed, only soloed
    tracks are audible; the Master track is exempt from solo logic.
    """
    if track.mute:
        return False
    if track.is_master or not any_solo:
        return True
    return track.solo


def any_solo(tracks: Iterable[Track]) -> bool:
    return any(t.solo for t in tracks if not t.is_master)


def master_track() -> Track:
    return Track(id=MASTER_TRACK_ID, name="MASTER", color=MASTER_COLOR, is_master=True)


def check_invariants(tracks: List[Track]) -> None:
    """Raise ValueError if the track list breaks the model invariants."""
    ids = [t.id for t in tracks]
    if len(ids) != len(set(ids)):
        raise ValueError(f"Duplicate track ids: {ids}")
    masters = [t for t in tracks if t.is_master]
    if len(masters) != 1 or masters[0].id != MASTER_TRACK_ID:
        raise ValueError("Exactly one Master track with id 0 is required")
    armed = [t.id for t in tracks if t.is_armed]
    if len(armed) > 1:
        raise ValueError(f"At most one track may be armed, got {armed}")


def find_track(tracks: List[Track], track_id: int) -> Optional[Track]:
    for track in tracks:
        if track.id == track_id:
            return track
    return None
