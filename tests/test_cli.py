"""Tests for the command-line interface."""

import pytest
from typer.testing import CliRunner

from vocalharmony.cli import app

from generate_test_audio import generate_sine_wave, generate_note_sequence, to_wav_bytes

runner = CliRunner()


@pytest.fixture
def take(tmp_path):
    path = tmp_path / "take.wav"
    path.write_bytes(to_wav_bytes(generate_note_sequence([220.0, 261.63], [0.5, 0.5])))
    return path


class TestCLI:
    """End-to-end runs of the CLI commands."""

    def test_info(self, take):
        result = runner.invoke(app, ["info", str(take)])
        assert result.exit_code == 0
        assert "Sample rate: 48000 Hz" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["info", str(tmp_path / "nope.wav")])
        assert result.exit_code == 1

    def test_notes_with_midi(self, take, tmp_path):
        midi = tmp_path / "take.mid"
        result = runner.invoke(app, ["notes", str(take), "--midi", str(midi)])
        assert result.exit_code == 0
        assert midi.exists()

    def test_pack_then_mix_and_stems(self, take, tmp_path):
        other = tmp_path / "harmony.wav"
        other.write_bytes(to_wav_bytes(generate_sine_wave(330.0, 0.8)))
        archive = tmp_path / "song.zip"

        result = runner.invoke(
            app, ["pack", str(take), str(other), "-o", str(archive), "--title", "Song"]
        )
        assert result.exit_code == 0
        assert archive.exists()

        mixdown = tmp_path / "mix.flac"
        result = runner.invoke(app, ["mix", str(archive), "-o", str(mixdown)])
        assert result.exit_code == 0
        assert mixdown.exists()

        stems = tmp_path / "stems"
        result = runner.invoke(app, ["stems", str(archive), "-o", str(stems)])
        assert result.exit_code == 0
        assert sorted(p.name for p in stems.iterdir()) == ["1_take.wav", "2_harmony.wav"]

    def test_mix_unknown_format(self, take, tmp_path):
        result = runner.invoke(app, ["mix", str(take), "-o", str(tmp_path / "mix.aiff")])
        assert result.exit_code == 1

    def test_lyrics(self, tmp_path):
        path = tmp_path / "song.lrc"
        path.write_text("[00:01.50] hello\n[00:00.20] intro\n", encoding="utf-8")
        result = runner.invoke(app, ["lyrics", str(path)])
        assert result.exit_code == 0
        assert result.output.index("intro") < result.output.index("hello")
