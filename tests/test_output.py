"""Tests for mixdown, codecs, MIDI export and the project store."""

import io

import pytest
import numpy as np
import soundfile as sf

from vocalharmony import Studio, StudioConfig
from vocalharmony.core import (
    AudioBuffer,
    EncodeFailure,
    EngineNotReady,
    NoteBlock,
    UserInputRejected,
)
from vocalharmony.output import MIDIExporter, ProjectStore, get_codec
from vocalharmony.output.mixdown import peak_level

SR = 8000
CENTER = np.cos(np.pi / 4)


@pytest.fixture
def studio():
    studio = Studio(StudioConfig(sample_rate=SR))
    studio.initialize()
    return studio


def add_dc(studio, value, seconds, **mixer):
    track = studio.add_track()
    studio.set_buffer(track.id, AudioBuffer(np.full(int(seconds * SR), value, dtype=np.float32), SR))
    for name, setting in mixer.items():
        setattr(track, name, setting)
    return track


class TestMixdown:
    """Tests for MixdownRenderer through the session."""

    def test_length_matches_longest_track(self, studio):
        add_dc(studio, 0.25, 1.0)
        add_dc(studio, 0.25, 0.5)
        mix = studio.render_mixdown()
        assert mix.channels == 2
        assert mix.frames == int(round(studio.max_duration * SR))
        assert mix.sample_rate == SR

    def test_sums_tracks(self, studio):
        add_dc(studio, 0.25, 1.0)
        add_dc(studio, 0.25, 0.5)
        mix = studio.render_mixdown()
        np.testing.assert_allclose(mix.samples[:, :SR // 2], 0.5 * CENTER, rtol=1e-5)
        np.testing.assert_allclose(mix.samples[:, SR // 2:], 0.25 * CENTER, rtol=1e-5)

    def test_solo_matches_live_semantics(self, studio):
        add_dc(studio, 0.25, 1.0, solo=True)
        add_dc(studio, 0.5, 1.0)
        mix = studio.render_mixdown()
        np.testing.assert_allclose(mix.samples, 0.25 * CENTER, rtol=1e-5)

    def test_muted_solo_track_still_silences_others(self, studio):
        add_dc(studio, 0.25, 1.0, solo=True, mute=True)
        add_dc(studio, 0.5, 1.0)
        live = studio.builder.build(studio.tracks, studio.playback_buffer).render(SR, 512)
        mix = studio.render_mixdown()
        assert peak_level(mix) == pytest.approx(float(np.max(np.abs(live))), abs=1e-6)
        assert peak_level(mix) == 0.0

    def test_muted_tracks_do_not_count(self, studio):
        add_dc(studio, 0.25, 1.0, mute=True)
        with pytest.raises(UserInputRejected):
            studio.render_mixdown()

    def test_empty_session_rejected(self, studio):
        with pytest.raises(UserInputRejected):
            studio.render_mixdown()

    def test_requires_ready_engine(self):
        studio = Studio(StudioConfig(sample_rate=SR))
        add_dc(studio, 0.25, 1.0)
        with pytest.raises(EngineNotReady):
            studio.render_mixdown()

    def test_export_wav(self, studio):
        add_dc(studio, 0.25, 1.0)
        data = studio.export_mixdown("wav")
        audio, sr = sf.read(io.BytesIO(data))
        assert sr == SR
        assert audio.shape == (SR, 2)

    def test_render_to_bytes(self, studio):
        add_dc(studio, 0.25, 0.5)
        data = studio.mixdown.render_to_bytes(
            studio.tracks, studio.playback_buffer, studio.max_duration, format="flac"
        )
        audio, sr = sf.read(io.BytesIO(data))
        assert audio.shape == (SR // 2, 2)
        np.testing.assert_allclose(audio, 0.25 * CENTER, atol=1e-3)

    def test_unknown_format_fails_before_rendering(self, studio):
        add_dc(studio, 0.25, 1.0)
        with pytest.raises(EncodeFailure):
            studio.export_mixdown("aiff")

    def test_export_stems(self, studio):
        first = add_dc(studio, 0.25, 1.0)
        second = add_dc(studio, 0.5, 0.5)
        stems = studio.export_stems("flac")
        assert sorted(stems) == [f"{first.id}_{first.name}.flac", f"{second.id}_{second.name}.flac"]
        audio, sr = sf.read(io.BytesIO(stems[f"{second.id}_{second.name}.flac"]))
        assert len(audio) == SR // 2

    def test_peak_level(self):
        assert peak_level(AudioBuffer(np.array([0.1, -0.6, 0.3]), SR)) == pytest.approx(0.6)


class TestCodecs:
    """Tests for the codec registry."""

    def test_lookup_is_case_insensitive(self):
        assert get_codec("WAV").extension == "wav"

    def test_unknown_codec(self):
        with pytest.raises(EncodeFailure):
            get_codec("aiff")

    def test_encode_clips(self):
        data = get_codec("wav").encode(np.array([[2.0, -2.0, 0.5]]), SR)
        audio, _ = sf.read(io.BytesIO(data))
        np.testing.assert_allclose(audio, [1.0, -1.0, 0.5], atol=1e-4)

    def test_raw_array_needs_sample_rate(self):
        with pytest.raises(ValueError):
            get_codec("wav").encode(np.zeros((1, 10)))


class TestMIDIExporter:
    """Tests for MIDIExporter."""

    @pytest.fixture
    def blocks(self):
        return [
            NoteBlock("block-0", 0.0, 0.5, 57),
            NoteBlock("block-1", 0.6, 1.2, 60, shift_cents=100),
        ]

    def test_blocks_to_notes(self, blocks):
        midi = MIDIExporter().blocks_to_pretty_midi(blocks)
        notes = midi.instruments[0].notes
        assert [n.pitch for n in notes] == [57, 61]
        assert notes[1].start == pytest.approx(0.6)
        assert midi.instruments[0].program == 53

    def test_original_pitch(self, blocks):
        midi = MIDIExporter(apply_tuning=False).blocks_to_pretty_midi(blocks)
        assert [n.pitch for n in midi.instruments[0].notes] == [57, 60]

    def test_export_writes_file(self, blocks, tmp_path):
        path = tmp_path / "out" / "take.mid"
        MIDIExporter().export(blocks, str(path))
        assert path.exists()


class TestProjectStore:
    """Tests for ProjectStore."""

    def test_save_list_load_delete(self, tmp_path):
        store = ProjectStore(tmp_path / "projects")
        entry = store.save(b"archive", "My Song", artist="Me")
        assert [e.key for e in store.list()] == [entry.key]
        assert store.load(entry.key) == b"archive"
        store.delete(entry.key)
        assert store.list() == []
        with pytest.raises(KeyError):
            store.load(entry.key)

    def test_title_required(self, tmp_path):
        with pytest.raises(ValueError):
            ProjectStore(tmp_path).save(b"x", "  ")

    def test_session_round_trip(self, studio, tmp_path):
        add_dc(studio, 0.25, 1.0)
        store = ProjectStore(tmp_path)
        entry = studio.save_to_store(store, "Take One", artist="Me")
        assert entry.artist == "Me"

        other = Studio(StudioConfig(sample_rate=SR))
        manifest = other.load_from_store(store, entry.key)
        assert manifest.title == "Take One"
        assert other.max_duration == pytest.approx(1.0)
