"""Local project library: archive blobs on disk plus a JSON index."""

import json
import logging
import uuid
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, List, Union

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"


@dataclass
class StoredProject:
    key: str
    title: str
    artist: str = ""
    genre: str = ""
    created: str = ""
    file: str = ""


class ProjectStore:
    """Keyed blob store for saved project archives."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser()

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_FILE

    def _read_index(self) -> Dict[str, StoredProject]:
        if not self.index_path.exists():
            return {}
        with open(self.index_path, "r", encoding="utf-8") as fh:
            entries = json.load(fh)
        return {e["key"]: StoredProject(**e) for e in entries}

    def _write_index(self, index: Dict[str, StoredProject]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        tmp = self.index_path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump([asdict(e) for e in index.values()], fh, indent=2)
        tmp.replace(self.index_path)

    def save(
        self,
        data: bytes,
        title: str,
        artist: str = "",
        genre: str = "",
        created: str = "",
    ) -> StoredProject:
        """Store an archive and return its index entry."""
        if not title.strip():
            raise ValueError("A project needs a title")
        key = uuid.uuid4().hex
        entry = StoredProject(
            key=key, title=title, artist=artist, genre=genre, created=created, file=f"{key}.zip"
        )
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / entry.file).write_bytes(data)
        index = self._read_index()
        index[key] = entry
        self._write_index(index)
        logger.info("Saved project %r as %s", title, key)
        return entry

    def load(self, key: str) -> bytes:
        """Archive bytes for ``key``; KeyError if unknown."""
        entry = self._read_index()[key]
        return (self.root / entry.file).read_bytes()

    def list(self) -> List[StoredProject]:
        return list(self._read_index().values())

    def delete(self, key: str) -> None:
        index = self._read_index()
        entry = index.pop(key)
        (self.root / entry.file).unlink(missing_ok=True)
        self._write_index(index)
