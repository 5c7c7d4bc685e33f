"""Audio decoding - files and in-memory bytes to AudioBuffer."""

import io
import logging
import tempfile
from pathlib import Path
from typing import Optional, Union

import librosa
import numpy as np
import soundfile as sf

from ..core import AudioBuffer, DecodeFailure
from ..core.constants import AUDIO_EXTENSIONS

logger = logging.getLogger(__name__)


class AudioLoader:
    """Decodes audio into engine buffers."""

    SUPPORTED_FORMATS = AUDIO_EXTENSIONS

    def __init__(
        self,
        target_sr: Optional[int] = None,
        normalize: bool = False,
    ):
        """
        Initialize AudioLoader.

        Args:
            target_sr: Resample decoded audio to this rate (None keeps the file rate)
            normalize: Peak-normalize decoded audio if True
        """
        self.target_sr = target_sr
        self.normalize = normalize

    def load(self, path: Union[str, Path]) -> AudioBuffer:
        """
        Decode an audio file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            DecodeFailure: If the format is unsupported or the data is corrupt
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")
        return self.decode(path.read_bytes(), path.name)

    def decode(self, data: bytes, name: str) -> AudioBuffer:
        """
        Decode compressed bytes.

        Args:
            data: File contents
            name: File name, used for the format check and error messages

        Returns:
            AudioBuffer (mono or stereo, float32)

        Raises:
            DecodeFailure: If the format is unsupported or the data is corrupt
        """
        suffix = Path(name).suffix.lower()
        if suffix not in self.SUPPORTED_FORMATS:
            raise DecodeFailure(
                name, f"unsupported format {suffix or '(none)'}; supported: {sorted(self.SUPPORTED_FORMATS)}"
            )
        if not data:
            raise DecodeFailure(name, "empty file")

        try:
            audio, sr = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
            audio = audio.T
        except (sf.LibsndfileError, RuntimeError, TypeError) as e:
            logger.debug("soundfile could not read %s (%s); trying librosa", name, e)
            audio, sr = self._decode_with_librosa(data, name, suffix)

        if audio.shape[1] == 0:
            raise DecodeFailure(name, "no audio frames")
        if audio.shape[0] > 2:
            audio = audio[:2]

        if self.target_sr and sr != self.target_sr:
            audio = librosa.resample(audio, orig_sr=sr, target_sr=self.target_sr)
            sr = self.target_sr

        if self.normalize:
            audio = self._normalize(audio)

        return AudioBuffer(audio, int(sr))

    def _decode_with_librosa(self, data: bytes, name: str, suffix: str):
        """Fallback for containers libsndfile cannot read (m4a and friends)."""
        with tempfile.NamedTemporaryFile(suffix=suffix) as tmp:
            tmp.write(data)
            tmp.flush()
            try:
                audio, sr = librosa.load(tmp.name, sr=None, mono=False)
            except Exception as e:
                raise DecodeFailure(name, str(e)) from e
        audio = np.atleast_2d(np.asarray(audio, dtype=np.float32))
        return audio, sr

    def _normalize(self, audio: np.ndarray) -> np.ndarray:
        """Normalize audio to [-1, 1] range using peak normalization."""
        peak = np.abs(audio).max()
        if peak > 0:
            audio = audio / peak
        return audio

    def get_duration(self, buffer: AudioBuffer) -> float:
        """Get duration in seconds."""
        return buffer.duration


def clean_track_name(file_name: str, limit: int = 20) -> str:
    """Track name from a file name: no directories, no extension, ``limit`` chars."""
    base = file_name.replace("\\", "/").split("/")[-1]
    stem = base.rsplit(".", 1)[0] if "." in base else base
    return stem[:limit]
