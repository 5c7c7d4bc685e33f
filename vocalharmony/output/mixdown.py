"""Offline mixdown of a whole session to one stereo buffer."""

import logging
from typing import Optional, Sequence

import numpy as np

from ..config import StudioConfig
from ..core import AudioBuffer, EngineNotReady, NoteBlock, Track, UserInputRejected
from ..engine.graph import BufferLookup, SignalGraphBuilder
from .codecs import get_codec

logger = logging.getLogger(__name__)


class MixdownRenderer:
    """Renders tracks through the same chains as live playback, offline.

    Solo, EQ, reverb and fine-tune automation behave exactly as they do
    during playback from time 0 with no loop.
    """

    def __init__(self, config: Optional[StudioConfig] = None, builder: Optional[SignalGraphBuilder] = None):
        self.config = config or StudioConfig()
        self.builder = builder or SignalGraphBuilder(self.config)

    def eligible_tracks(self, tracks: Sequence[Track], buffers: BufferLookup) -> list:
        """Non-master tracks that have audio and are not muted."""
        return [
            t for t in tracks
            if not t.is_master and not t.mute and buffers(t) is not None
        ]

    def render(
        self,
        tracks: Sequence[Track],
        buffers: BufferLookup,
        max_duration: float,
        note_blocks: Sequence[NoteBlock] = (),
        selected_track_id: Optional[int] = None,
        engine_ready: bool = True,
    ) -> AudioBuffer:
        """
        Render the session.

        Args:
            tracks: Full track list, Master included
            buffers: Buffer to play for each track
            max_duration: Session length in seconds
            note_blocks: Note blocks of the selected track
            selected_track_id: Track the note blocks belong to
            engine_ready: Whether the audio engine has been initialized

        Returns:
            Stereo AudioBuffer of round(max_duration * sample_rate) frames

        Raises:
            EngineNotReady: If the engine was never initialized
            UserInputRejected: If no track has audible content
        """
        if not engine_ready:
            raise EngineNotReady("Audio engine is not ready; initialize it before exporting")

        eligible = self.eligible_tracks(tracks, buffers)
        if not eligible or max_duration <= 0:
            raise UserInputRejected("Nothing to export: record or import audio first")

        sr = self.config.sample_rate
        frames = int(round(max_duration * sr))
        eligible_ids = {t.id for t in eligible}

        # solo is resolved over every track, muted ones included
        graph = self.builder.build(
            tracks,
            lambda t: buffers(t) if t.id in eligible_ids else None,
            offset=0.0,
            loop=None,
            note_blocks=note_blocks,
            selected_track_id=selected_track_id,
            sample_rate=sr,
        )
        logger.info("Rendering mixdown: %d tracks, %.2fs", len(eligible), max_duration)
        mix = graph.render(frames, self.config.render_block_size)
        graph.stop()
        return AudioBuffer(mix, sr)

    def render_to_bytes(
        self,
        tracks: Sequence[Track],
        buffers: BufferLookup,
        max_duration: float,
        format: str = "wav",
        **kwargs,
    ) -> bytes:
        """Render and encode; the codec is resolved before rendering starts."""
        codec = get_codec(format)
        mix = self.render(tracks, buffers, max_duration, **kwargs)
        return codec.encode(mix)


def peak_level(buffer: AudioBuffer) -> float:
    return float(np.max(np.abs(buffer.samples))) if buffer.frames else 0.0
