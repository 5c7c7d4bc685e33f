"""The studio session: track list, buffers, transport and exports.

``Studio`` is the one object a front end talks to. It owns every buffer
(keyed by track id), mutates the Track Model only in response to intents,
and keeps the running playback graph in step with it.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..analysis.pitch import PitchDetector, PitchEstimate
from ..analysis.segment import NoteSegmenter
from ..config import StudioConfig
from ..core import (
    AudioBuffer,
    DecodeFailure,
    NoteBlock,
    Track,
    UserInputRejected,
)
from ..core.constants import MAX_TRACK_NAME, RECORD_COLOR, TRACK_COLORS
from ..core.track import (
    EQBand,
    any_solo,
    check_invariants,
    find_track,
    master_track,
    validate_pitch_shift,
    validate_unit,
)
from ..input.loader import AudioLoader, clean_track_name
from ..input.lyrics import LyricLine
from ..input.recorder import Recorder
from ..output.archive import (
    ProjectManifest,
    match_track,
    pack,
    track_file_name,
    unpack,
)
from ..output.codecs import get_codec
from ..output.mixdown import MixdownRenderer
from ..output.store import ProjectStore, StoredProject
from ..processing.edit import BufferEditor
from ..processing.pitch_shift import PitchShiftProcessor, ProcessedBufferCache
from . import intents
from .graph import PlaybackGraph, SignalGraphBuilder
from .host import AudioHost, NullAudioHost
from .transport import Loop, TransportController, TransportState

logger = logging.getLogger(__name__)


def initial_tracks() -> List[Track]:
    """A new session: the Master track and one armed recording track."""
    return [
        master_track(),
        Track(id=1, name="VOX REC", color=RECORD_COLOR, is_armed=True),
    ]


class Studio:
    """
    A multitrack recording session.

    Args:
        config: Engine configuration (defaults if None)
        host: Audio device host (a device-less host if None)
        clock: Transport time source (monotonic clock if None)
    """

    def __init__(
        self,
        config: Optional[StudioConfig] = None,
        host: Optional[AudioHost] = None,
        clock=None,
    ):
        self.config = config or StudioConfig()
        cfg = self.config
        self.host = host or NullAudioHost(cfg.sample_rate, cfg.block_size)

        self.tracks: List[Track] = initial_tracks()
        self._buffers: Dict[int, AudioBuffer] = {}
        self.processed = ProcessedBufferCache()
        self.note_blocks: List[NoteBlock] = []
        self.selected_track_id: Optional[int] = None
        self.lyrics: List[LyricLine] = []
        self.chords: List[LyricLine] = []
        self.key_signature: Optional[str] = None

        self.detector = PitchDetector()
        self.segmenter = NoteSegmenter(detector=self.detector)
        self.pitch_shifter = PitchShiftProcessor(
            detector=self.detector,
            hop=cfg.voicing_window,
            min_level=cfg.voicing_level,
            min_clarity=cfg.voicing_clarity,
            transition_ms=cfg.voicing_transition_ms,
            cache=self.processed,
        )
        self.loader = AudioLoader(target_sr=cfg.sample_rate)
        self.recorder = Recorder(
            cfg.sample_rate,
            frame_size=cfg.capture_frame_size,
            input_latency=cfg.estimated_input_latency,
            manual_offset=cfg.manual_latency_offset,
        )
        self.builder = SignalGraphBuilder(cfg)
        self.mixdown = MixdownRenderer(cfg, self.builder)
        self.transport = TransportController(
            self._build_graph,
            lambda: self.max_duration,
            clock=clock,
            recorder=self.recorder,
            on_graph=self.host.attach,
        )

    # -- engine ---------------------------------------------------------------

    def initialize(self) -> None:
        """Start the audio engine (first user gesture)."""
        self.host.initialize()
        logger.info("Studio engine ready at %d Hz", self.config.sample_rate)

    @property
    def ready(self) -> bool:
        return self.host.ready

    @property
    def graph(self) -> Optional[PlaybackGraph]:
        return self.transport.graph

    def _build_graph(self, offset: float, loop: Optional[Loop]) -> PlaybackGraph:
        return self.builder.build(
            self.tracks,
            self.playback_buffer,
            offset=offset,
            loop=loop,
            note_blocks=self.note_blocks,
            selected_track_id=self.selected_track_id,
        )

    # -- tracks and buffers ----------------------------------------------------

    def track(self, track_id: int) -> Track:
        track = find_track(self.tracks, track_id)
        if track is None:
            raise KeyError(f"No track with id {track_id}")
        return track

    def buffer(self, track_id: int) -> Optional[AudioBuffer]:
        """Source buffer of a track."""
        return self._buffers.get(track_id)

    def playback_buffer(self, track: Track) -> Optional[AudioBuffer]:
        """The buffer a track plays: its pitch-shifted version when one is cached."""
        if track.pitch_shift != 0:
            processed = self.processed.get(track.id, track.pitch_shift)
            if processed is not None:
                return processed
        return self._buffers.get(track.id)

    @property
    def max_duration(self) -> float:
        """Length of the longest track buffer in seconds."""
        return max((b.duration for b in self._buffers.values()), default=0.0)

    def add_track(
        self,
        name: Optional[str] = None,
        color: Optional[str] = None,
        volume: float = 1.0,
    ) -> Track:
        track_id = max(t.id for t in self.tracks) + 1
        track = Track(
            id=track_id,
            name=(name or f"TRACK {track_id}")[:MAX_TRACK_NAME],
            color=color or TRACK_COLORS[track_id % len(TRACK_COLORS)],
            volume=volume,
        )
        self.tracks.append(track)
        return track

    def remove_track(self, track_id: int) -> None:
        track = self.track(track_id)
        if track.is_master:
            raise UserInputRejected("The Master track cannot be removed")
        self._stop_for_structure_change()
        self.tracks.remove(track)
        self._buffers.pop(track_id, None)
        self.processed.invalidate(track_id)
        if self.selected_track_id == track_id:
            self.selected_track_id = None
            self.note_blocks = []

    def set_buffer(self, track_id: int, buffer: AudioBuffer) -> None:
        """Replace a track's source buffer (import, recording or confirmed edit)."""
        track = self.track(track_id)
        if track.is_master:
            raise UserInputRejected("The Master track holds no audio")
        self._buffers[track_id] = buffer
        self.processed.invalidate(track_id)
        track.has_file = True
        track.duration = buffer.duration
        if track_id == self.selected_track_id:
            self.note_blocks = self.segmenter.analyze(buffer)
        logger.debug("Track %d buffer set: %.2fs", track_id, buffer.duration)

    def _stop_for_structure_change(self) -> None:
        if self.transport.state is TransportState.PLAYING:
            self.stop()

    def _restart_if_playing(self) -> None:
        """Rebuild the running graph at the current position."""
        if self.transport.state is TransportState.PLAYING:
            self.transport.seek(self.transport.tick())

    # -- mixer intents ---------------------------------------------------------

    def _sync(self, track: Track, all_tracks: bool = False) -> None:
        graph = self.transport.graph
        if graph is None:
            return
        if all_tracks:
            graph.update_all(self.tracks)
        else:
            graph.update_track(track, any_solo(self.tracks))

    def set_volume(self, track_id: int, volume: float) -> None:
        validate_unit("volume", volume)
        track = self.track(track_id)
        track.volume = volume
        self._sync(track)

    def set_pan(self, track_id: int, pan: float) -> None:
        validate_unit("pan", pan)
        track = self.track(track_id)
        track.pan = pan
        self._sync(track)

    def set_mute(self, track_id: int, mute: bool) -> None:
        track = self.track(track_id)
        track.mute = bool(mute)
        self._sync(track)

    def set_solo(self, track_id: int, solo: bool) -> None:
        track = self.track(track_id)
        if track.is_master:
            raise UserInputRejected("The Master track cannot be soloed")
        track.solo = bool(solo)
        # solo changes the audibility of every other track
        self._sync(track, all_tracks=True)

    def set_reverb_send(self, track_id: int, amount: float) -> None:
        validate_unit("reverb_send", amount)
        track = self.track(track_id)
        track.reverb_send = amount
        self._sync(track)

    def set_eq(
        self,
        track_id: int,
        enabled: Optional[bool] = None,
        bands: Optional[Dict[str, Dict[str, float]]] = None,
    ) -> None:
        """
        Update EQ state.

        Args:
            track_id: Track to change
            enabled: New enabled flag (unchanged if None)
            bands: Band name -> partial {gain, freq, q} overrides
        """
        track = self.track(track_id)
        for name, values in (bands or {}).items():
            if name not in track.eq.bands:
                raise KeyError(f"Unknown EQ band: {name}")
            unknown = set(values) - set(EQBand.__dataclass_fields__)
            if unknown:
                raise KeyError(f"Unknown EQ band fields: {sorted(unknown)}")
            track.eq.bands[name] = replace(track.eq.bands[name], **values)
        if enabled is not None:
            track.eq.enabled = bool(enabled)
        self._sync(track)

    def set_pitch_shift(self, track_id: int, semitones: int) -> None:
        """Set a track's global shift and compute the shifted buffer (blocking)."""
        validate_pitch_shift(semitones)
        track = self.track(track_id)
        if track.is_master:
            raise UserInputRejected("The Master track has no pitch shift")
        track.pitch_shift = int(semitones)
        source = self._buffers.get(track_id)
        if source is not None:
            self.pitch_shifter.process(track_id, source, track.pitch_shift)
        self._restart_if_playing()

    def fine_tune(self, block_id: str, cents: int) -> NoteBlock:
        """Set the fine-tune of one note block of the selected track."""
        block = next((b for b in self.note_blocks if b.id == block_id), None)
        if block is None:
            raise KeyError(f"No note block {block_id!r}")
        block.shift_cents = int(cents)
        self._restart_if_playing()
        return block

    def select_track(self, track_id: Optional[int]) -> List[NoteBlock]:
        """Select a track and derive its note blocks."""
        if track_id is None:
            self.selected_track_id = None
            self.note_blocks = []
            return self.note_blocks
        self.track(track_id)
        self.selected_track_id = track_id
        source = self._buffers.get(track_id)
        self.note_blocks = self.segmenter.analyze(source) if source is not None else []
        return self.note_blocks

    def arm(self, track_id: int, armed: bool = True) -> None:
        """Arm a track for recording; arming is exclusive."""
        target = self.track(track_id)
        if target.is_master and armed:
            raise UserInputRejected("The Master track cannot be armed")
        for track in self.tracks:
            track.is_armed = armed and track.id == track_id
            track.is_tuning = False

    def cycle_track_mode(self, track_id: int) -> Track:
        """Step a track through normal -> armed -> tuning -> normal.

        Tuning is skipped for tracks without audio. Only one track is ever
        armed or tuning.
        """
        target = self.track(track_id)
        if target.is_master:
            raise UserInputRejected("The Master track has no record mode")
        next_armed = next_tuning = False
        if target.is_armed:
            next_tuning = target.has_file
        elif not target.is_tuning:
            next_armed = True
        for track in self.tracks:
            track.is_armed = next_armed and track.id == track_id
            track.is_tuning = next_tuning and track.id == track_id
        return target

    # -- transport -------------------------------------------------------------

    def play(self) -> None:
        self.host.require_ready()
        self.transport.play()

    def record(self) -> None:
        """
        Start recording on the armed track.

        Raises:
            UserInputRejected: If no single track is armed (nothing changes)
            EngineNotReady: If the engine was never initialized
        """
        self.host.require_ready()
        armed = [t.id for t in self.tracks if t.is_armed]
        if len(armed) == 1 and not self.transport.is_recording:
            if self.selected_track_id != armed[0]:
                self.select_track(armed[0])
        self.transport.record(armed)
        self.host.start_input(self.recorder)

    def stop(self) -> None:
        result = self.transport.stop(self.host.output_latency)
        self.host.stop_input()
        if result is not None:
            self.commit_recording(result.track_id, result.buffer)

    def commit_recording(self, track_id: int, buffer: Optional[AudioBuffer]) -> None:
        if buffer is None:
            logger.warning("Recording on track %d captured no audio", track_id)
            return
        self.set_buffer(track_id, buffer)
        logger.info("Committed %.2fs recording to track %d", buffer.duration, track_id)

    def seek(self, time: float) -> float:
        return self.transport.seek(time)

    def set_loop(self, start: Optional[float], end: Optional[float]) -> None:
        self.transport.set_loop(start, end)

    def tick(self) -> float:
        return self.transport.tick()

    @property
    def current_time(self) -> float:
        return self.transport.current_time

    def live_level(self, track_id: int) -> float:
        graph = self.transport.graph
        if graph is None:
            return 0.0
        if self.track(track_id).is_master:
            return graph.master.meter.rms
        return graph.level(track_id)

    def live_pitch(self, track_id: int) -> PitchEstimate:
        """Pitch of the most recent window played on a track."""
        graph = self.transport.graph
        meter = graph.meter(track_id) if graph is not None else None
        if meter is None:
            return PitchEstimate(pitch=None, level=0.0, clarity=0.0)
        return self.detector.detect(meter.window(), self.config.sample_rate)

    def dispatch(self, intent: intents.Intent):
        """Apply one front-end intent."""
        if isinstance(intent, intents.SetVolume):
            return self.set_volume(intent.track_id, intent.volume)
        if isinstance(intent, intents.SetPan):
            return self.set_pan(intent.track_id, intent.pan)
        if isinstance(intent, intents.SetMute):
            return self.set_mute(intent.track_id, intent.mute)
        if isinstance(intent, intents.SetSolo):
            return self.set_solo(intent.track_id, intent.solo)
        if isinstance(intent, intents.SetEQ):
            return self.set_eq(intent.track_id, intent.enabled, intent.bands)
        if isinstance(intent, intents.SetReverbSend):
            return self.set_reverb_send(intent.track_id, intent.amount)
        if isinstance(intent, intents.SetPitchShift):
            return self.set_pitch_shift(intent.track_id, intent.semitones)
        if isinstance(intent, intents.FineTuneNote):
            return self.fine_tune(intent.block_id, intent.cents)
        if isinstance(intent, intents.SelectTrack):
            return self.select_track(intent.track_id)
        if isinstance(intent, intents.Arm):
            return self.arm(intent.track_id, intent.armed)
        if isinstance(intent, intents.Play):
            return self.play()
        if isinstance(intent, intents.Record):
            return self.record()
        if isinstance(intent, intents.Stop):
            return self.stop()
        if isinstance(intent, intents.Seek):
            return self.seek(intent.time)
        if isinstance(intent, intents.SetLoop):
            return self.set_loop(intent.start, intent.end)
        raise TypeError(f"Unknown intent: {intent!r}")

    # -- edits -----------------------------------------------------------------

    def edit(self, track_id: int) -> BufferEditor:
        """Open a destructive edit draft on a track's source buffer."""
        source = self._buffers.get(track_id)
        if source is None:
            raise UserInputRejected(f"Track {track_id} has no audio to edit")
        return BufferEditor(source, on_confirm=lambda b: self._confirm_edit(track_id, b))

    def _confirm_edit(self, track_id: int, buffer: AudioBuffer) -> None:
        self._stop_for_structure_change()
        self.set_buffer(track_id, buffer)

    # -- import ----------------------------------------------------------------

    def import_files(self, paths: Iterable[Union[str, Path]]) -> List[Track]:
        """Import audio files as tracks; undecodable files are logged and skipped."""
        items = []
        for path in paths:
            path = Path(path)
            items.append((path.name, path.read_bytes()))
        return self.import_bytes(items)

    def import_bytes(self, items: Iterable[Tuple[str, bytes]]) -> List[Track]:
        """
        Import (file name, encoded bytes) pairs.

        Each file fills the first empty non-master track, or a new track with
        volume 0.7 when none is left.

        Returns:
            Tracks that received audio
        """
        self._stop_for_structure_change()
        imported = []
        for name, buffer in self._decode_all(items):
            track = self._place_import(clean_track_name(name, MAX_TRACK_NAME), buffer)
            imported.append(track)
            logger.info("Imported %s into track %d (%.2fs)", name, track.id, buffer.duration)
        return imported

    def _place_import(self, name: str, buffer: AudioBuffer) -> Track:
        track = next((t for t in self.tracks if not t.has_file and not t.is_master), None)
        if track is None:
            track = self.add_track(name=name, volume=0.7)
        else:
            track.name = name
            track.pitch_shift = 0
            track.is_tuning = False
        self.set_buffer(track.id, buffer)
        return track

    # -- export ----------------------------------------------------------------

    def render_mixdown(self) -> AudioBuffer:
        """Render the session offline to one stereo buffer (blocking)."""
        return self.mixdown.render(
            self.tracks,
            self.playback_buffer,
            self.max_duration,
            note_blocks=self.note_blocks,
            selected_track_id=self.selected_track_id,
            engine_ready=self.ready,
        )

    def export_mixdown(self, format: Optional[str] = None) -> bytes:
        """Render and encode the mix; nothing is returned on failure."""
        return self.mixdown.render_to_bytes(
            self.tracks,
            self.playback_buffer,
            self.max_duration,
            format=format or self.config.export_format,
            note_blocks=self.note_blocks,
            selected_track_id=self.selected_track_id,
            engine_ready=self.ready,
        )

    def export_stems(self, format: Optional[str] = None) -> Dict[str, bytes]:
        """Encode every track's playback buffer, keyed ``{id}_{name}.{ext}``."""
        codec = get_codec(format or self.config.export_format)
        stems = {}
        for track in self.tracks:
            buffer = self.playback_buffer(track)
            if buffer is None:
                continue
            stems[track_file_name(track, codec.extension)] = codec.encode(buffer)
        if not stems:
            raise UserInputRejected("Nothing to export: no track has audio")
        return stems

    def manifest(self, title: str, artist: str = "Unknown Artist", genre: str = "") -> ProjectManifest:
        return ProjectManifest(
            title=title,
            artist=artist or "Unknown Artist",
            genre=genre,
            track_state=[t.to_dict() for t in self.tracks],
            key_signature=self.key_signature,
            max_duration=self.max_duration,
            loop_start=self.transport.loop_start,
            loop_end=self.transport.loop_end,
        )

    def save_project(
        self,
        title: str,
        artist: str = "Unknown Artist",
        genre: str = "",
        cover: Optional[Tuple[str, bytes]] = None,
        format: Optional[str] = None,
    ) -> bytes:
        """
        Pack the session into a project archive.

        Source buffers are stored; pitch shifts are re-applied on load.
        """
        if not title.strip():
            raise UserInputRejected("Please enter a title for the project")
        codec = get_codec(format or self.config.export_format)
        audio = {}
        for track in self.tracks:
            source = self._buffers.get(track.id)
            if source is not None:
                audio[track_file_name(track, codec.extension)] = codec.encode(source)
        if not audio:
            raise UserInputRejected("Nothing to save: no track has audio")
        return pack(self.manifest(title, artist, genre), audio, cover)

    def load_project(self, data: bytes) -> ProjectManifest:
        """
        Replace the session with the contents of a project archive.

        Archives without a manifest are imported as plain files. The archive
        is fully read before anything in the session changes.

        Raises:
            DecodeFailure: If the archive or its manifest cannot be read
        """
        archive = unpack(data)
        manifest = archive.manifest
        if manifest is None:
            tracks = initial_tracks()
            decoded = self._decode_all(sorted(archive.audio.items()))
        else:
            try:
                tracks = self._restore_tracks(manifest)
            except (TypeError, ValueError) as e:
                raise DecodeFailure(f"Invalid project manifest: {e}") from e
            decoded = []
            for name, buffer in self._decode_all(sorted(archive.audio.items())):
                track = match_track(name, tracks)
                if track is None or track.is_master:
                    logger.warning("No track for %s in project; skipping", name)
                    continue
                decoded.append((track.id, buffer))

        if self.transport.is_playing:
            self.stop()
        self.tracks = tracks
        self._buffers = {}
        self.processed.clear()
        self.note_blocks = []
        self.selected_track_id = None
        self.lyrics = archive.lyrics
        self.chords = archive.chords
        self.key_signature = archive.key_signature

        if manifest is None:
            self.transport.set_loop(None, None)
            for name, buffer in decoded:
                self._place_import(clean_track_name(name, MAX_TRACK_NAME), buffer)
            self.transport.seek(0.0)
            return ProjectManifest()

        for track_id, buffer in decoded:
            self.set_buffer(track_id, buffer)
        for track in self.tracks:
            source = self._buffers.get(track.id)
            if track.pitch_shift != 0 and source is not None:
                self.pitch_shifter.process(track.id, source, track.pitch_shift)

        loop_start, loop_end = manifest.loop_start, manifest.loop_end
        if loop_start is not None and loop_end is not None and not 0 <= loop_start < loop_end:
            loop_start = loop_end = None
        self.transport.set_loop(loop_start, loop_end)
        self.transport.seek(0.0)
        logger.info("Loaded project %r with %d tracks", manifest.title, len(self.tracks))
        return manifest

    def _decode_all(self, items: Iterable[Tuple[str, bytes]]) -> List[Tuple[str, AudioBuffer]]:
        """Decode (name, bytes) pairs; undecodable files are logged and skipped."""
        decoded = []
        for name, blob in items:
            try:
                decoded.append((name, self.loader.decode(blob, name)))
            except DecodeFailure as e:
                logger.warning("%s; skipping", e)
        return decoded

    def _restore_tracks(self, manifest: ProjectManifest) -> List[Track]:
        tracks = manifest.tracks()
        if not any(t.is_master for t in tracks):
            tracks.insert(0, master_track())
        armed = [t for t in tracks if t.is_armed]
        for extra in armed[1:]:
            extra.is_armed = False
        check_invariants(tracks)
        return tracks

    def save_to_store(self, store: ProjectStore, title: str, **kwargs) -> StoredProject:
        manifest_fields = {k: kwargs[k] for k in ("artist", "genre") if k in kwargs}
        data = self.save_project(title, **kwargs)
        return store.save(data, title, created=self.manifest(title).created, **manifest_fields)

    def load_from_store(self, store: ProjectStore, key: str) -> ProjectManifest:
        return self.load_project(store.load(key))


def open_session(paths: Sequence[Union[str, Path]], config: Optional[StudioConfig] = None) -> Studio:
    """A ready, device-less session with ``paths`` imported (archives or audio files)."""
    studio = Studio(config)
    studio.initialize()
    archives = [Path(p) for p in paths if Path(p).suffix.lower() == ".zip"]
    files = [Path(p) for p in paths if Path(p).suffix.lower() != ".zip"]
    for archive in archives:
        studio.load_project(archive.read_bytes())
    if files:
        studio.import_files(files)
    return studio
