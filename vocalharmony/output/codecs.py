"""Audio codecs for mixdowns, stems and project archives."""

import io
import logging
from abc import ABC, abstractmethod
from typing import Dict, Union

import numpy as np
import soundfile as sf

from ..core import AudioBuffer, EncodeFailure

logger = logging.getLogger(__name__)


class Codec(ABC):
    """Encodes PCM into a file format."""

    name: str
    extension: str

    @abstractmethod
    def encode(self, audio: Union[AudioBuffer, np.ndarray], sample_rate: int = None) -> bytes:
        """
        Encode audio to bytes.

        Args:
            audio: AudioBuffer, or a (channels, frames) float array
            sample_rate: Required when ``audio`` is an array

        Raises:
            EncodeFailure: If the codec fails; nothing is returned
        """


class SoundFileCodec(Codec):
    """Any libsndfile format/subtype pair."""

    def __init__(self, name: str, extension: str, format: str, subtype: str):
        self.name = name
        self.extension = extension
        self.format = format
        self.subtype = subtype

    def encode(self, audio, sample_rate=None) -> bytes:
        if isinstance(audio, AudioBuffer):
            data, sample_rate = audio.samples, audio.sample_rate
        else:
            data = np.atleast_2d(np.asarray(audio, dtype=np.float32))
        if sample_rate is None:
            raise ValueError("sample_rate is required when encoding a raw array")

        frames = np.clip(data, -1.0, 1.0).T
        out = io.BytesIO()
        try:
            sf.write(out, frames, int(sample_rate), format=self.format, subtype=self.subtype)
        except (RuntimeError, TypeError, ValueError) as e:
            raise EncodeFailure(f"{self.name} encoding failed: {e}") from e
        logger.debug("Encoded %d frames as %s (%d bytes)", frames.shape[0], self.name, out.tell())
        return out.getvalue()

    def __repr__(self):
        return f"SoundFileCodec({self.name!r}, {self.format}/{self.subtype})"


CODECS: Dict[str, Codec] = {
    "wav": SoundFileCodec("wav", "wav", "WAV", "PCM_16"),
    "flac": SoundFileCodec("flac", "flac", "FLAC", "PCM_16"),
    "ogg": SoundFileCodec("ogg", "ogg", "OGG", "VORBIS"),
    "mp3": SoundFileCodec("mp3", "mp3", "MP3", "MPEG_LAYER_III"),
}


def get_codec(name: str) -> Codec:
    """
    Look up a codec by format name.

    Raises:
        EncodeFailure: If no codec is registered under ``name``
    """
    try:
        return CODECS[name.lower()]
    except KeyError:
        raise EncodeFailure(
            f"Unsupported export format: {name}. Available: {', '.join(sorted(CODECS))}"
        ) from None
