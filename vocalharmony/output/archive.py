"""Project archive: one zip holding track audio, a JSON manifest and a cover.

Layout::

    {id}_{name}.{ext}   encoded audio, one per track with a buffer
    project.json        manifest (title, artist, genre, track state, globals)
    cover.{ext}         optional cover image
    *.lrc               optional lyric / chord sidecars
    key.txt             optional key signature
"""

import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core import DecodeFailure, Track
from ..core.constants import AUDIO_EXTENSIONS, PROJECT_MANIFEST, PROJECT_VERSION
from ..input.lyrics import LyricLine, parse_lrc

logger = logging.getLogger(__name__)

TRACK_FILE = re.compile(r"^(\d+)_")
CHORD_SIDECAR = re.compile(r"chord|acorde|harmony", re.IGNORECASE)
KEY_FILE = re.compile(r"(tonalidad|tonality|key)\.txt$", re.IGNORECASE)


@dataclass
class ProjectManifest:
    """Contents of ``project.json``."""

    title: str = "Untitled Project"
    artist: str = "Unknown Artist"
    genre: str = ""
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    version: str = PROJECT_VERSION
    track_state: List[Dict[str, Any]] = field(default_factory=list)
    key_signature: Optional[str] = None
    max_duration: float = 0.0
    loop_start: Optional[float] = None
    loop_end: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "title": self.title,
            "artist": self.artist,
            "genre": self.genre,
            "created": self.created,
            "trackState": self.track_state,
            "global": {
                "keySignature": self.key_signature,
                "maxDuration": self.max_duration,
                "loopStart": self.loop_start,
                "loopEnd": self.loop_end,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectManifest":
        glob = data.get("global") or {}
        return cls(
            title=data.get("title") or "Untitled Project",
            artist=data.get("artist") or "Unknown Artist",
            genre=data.get("genre") or "",
            created=data.get("created") or "",
            version=str(data.get("version") or PROJECT_VERSION),
            track_state=list(data.get("trackState") or []),
            key_signature=glob.get("keySignature"),
            max_duration=float(glob.get("maxDuration") or 0.0),
            loop_start=glob.get("loopStart"),
            loop_end=glob.get("loopEnd"),
        )

    def tracks(self) -> List[Track]:
        """Tracks restored from the saved state; audio is attached later."""
        restored = []
        for state in self.track_state:
            track = Track.from_dict(state)
            track.has_file = False
            track.duration = 0.0
            track.is_tuning = False
            restored.append(track)
        return restored


@dataclass
class ProjectArchive:
    """An unpacked archive."""

    manifest: Optional[ProjectManifest]
    audio: Dict[str, bytes] = field(default_factory=dict)
    lyrics: List[LyricLine] = field(default_factory=list)
    chords: List[LyricLine] = field(default_factory=list)
    key_signature: Optional[str] = None
    cover: Optional[Tuple[str, bytes]] = None


def track_file_name(track: Track, extension: str) -> str:
    safe = track.name.replace("/", "_").replace("\\", "_")
    return f"{track.id}_{safe}.{extension}"


def match_track(file_name: str, tracks: Sequence[Track]) -> Optional[Track]:
    """Track a stored audio file belongs to: by ``{id}_`` prefix, else by name."""
    base = PurePosixPath(file_name).name
    match = TRACK_FILE.match(base)
    if match:
        track_id = int(match.group(1))
        return next((t for t in tracks if t.id == track_id), None)
    stem = PurePosixPath(base).stem
    return next((t for t in tracks if t.name == stem), None)


def pack(
    manifest: ProjectManifest,
    audio: Dict[str, bytes],
    cover: Optional[Tuple[str, bytes]] = None,
) -> bytes:
    """
    Build an archive.

    Args:
        manifest: Project metadata
        audio: File name -> encoded audio
        cover: Optional (extension, image bytes)

    Returns:
        Zip bytes
    """
    out = io.BytesIO()
    with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in audio.items():
            zf.writestr(name, data)
        zf.writestr(PROJECT_MANIFEST, json.dumps(manifest.to_dict(), indent=2))
        if cover is not None:
            extension, image = cover
            zf.writestr(f"cover.{extension.lstrip('.')}", image)
    return out.getvalue()


def unpack(data: bytes) -> ProjectArchive:
    """
    Read an archive.

    Raises:
        DecodeFailure: If the bytes are not a zip or the manifest is not JSON
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise DecodeFailure("project archive", str(e)) from e

    archive = ProjectArchive(manifest=None)
    with zf:
        names = [n for n in zf.namelist() if not n.endswith("/")]
        if PROJECT_MANIFEST in names:
            try:
                manifest = json.loads(zf.read(PROJECT_MANIFEST).decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise DecodeFailure(PROJECT_MANIFEST, str(e)) from e
            archive.manifest = ProjectManifest.from_dict(manifest)
            archive.key_signature = archive.manifest.key_signature

        for name in names:
            path = PurePosixPath(name)
            suffix = path.suffix.lower()
            if suffix in AUDIO_EXTENSIONS:
                archive.audio[name] = zf.read(name)
            elif suffix == ".lrc":
                lines = parse_lrc(zf.read(name).decode("utf-8", errors="replace"))
                if not lines:
                    continue
                if CHORD_SIDECAR.search(path.name):
                    archive.chords = lines
                else:
                    archive.lyrics = lines
            elif KEY_FILE.search(path.name):
                text = zf.read(name).decode("utf-8", errors="replace").strip()
                if text:
                    archive.key_signature = text[:3]
            elif path.stem == "cover":
                archive.cover = (suffix.lstrip("."), zf.read(name))

    logger.debug(
        "Unpacked archive: %d audio files, manifest=%s",
        len(archive.audio),
        archive.manifest is not None,
    )
    return archive
