"""Tests for pitch shifting and destructive buffer edits."""

import pytest
import numpy as np

from vocalharmony import Studio, StudioConfig
from vocalharmony.analysis import PitchDetector
from vocalharmony.core import AudioBuffer, UserInputRejected
from vocalharmony.processing import BufferEditor, PitchShiftProcessor
from vocalharmony.processing.edit import (
    apply_gain,
    pan_automation,
    pan_curve,
    selection_indices,
    silence,
    time_shift,
)

from generate_test_audio import generate_sine_wave, generate_note_sequence

SR = 22050


@pytest.fixture
def processor():
    return PitchShiftProcessor()


@pytest.fixture
def tone():
    """Sustained A3 (220 Hz)."""
    return AudioBuffer(generate_sine_wave(220.0, 1.0, sr=SR), SR)


class TestPitchShift:
    """Tests for PitchShiftProcessor."""

    def test_zero_shift_returns_source_and_clears_cache(self, processor, tone):
        processor.cache.store(1, 3, tone)
        assert processor.process(1, tone, 0) is tone
        assert 1 not in processor.cache

    def test_octave_up_doubles_pitch(self, processor, tone):
        shifted = processor.process(1, tone, 12)
        assert shifted.frames == tone.frames
        assert shifted.sample_rate == SR

        middle = shifted.mono()[SR // 2 - 1024:SR // 2 + 1024]
        estimate = PitchDetector().detect(middle, SR)
        assert estimate.pitch == pytest.approx(440.0, rel=0.03)

    def test_result_is_cached(self, processor, tone):
        first = processor.process(1, tone, 5)
        assert processor.process(1, tone, 5) is first
        assert processor.cache.get(1, 5) is first
        assert processor.cache.get(1, 4) is None

    def test_silence_is_unchanged(self, processor):
        buffer = AudioBuffer(np.zeros(SR), SR)
        shifted = processor.process(1, buffer, 7)
        assert shifted == buffer

    def test_envelope_follows_voicing(self, processor):
        audio = generate_note_sequence([220.0, 0.0], [0.5, 0.5], sr=SR)
        envelope = processor.envelope(AudioBuffer(audio, SR))
        assert len(envelope) == len(audio)
        assert envelope[SR // 4] == pytest.approx(1.0)
        assert envelope[-SR // 8] == pytest.approx(0.0)
        assert np.all((envelope >= -1e-9) & (envelope <= 1.0 + 1e-9))

    def test_out_of_range_rejected(self, processor, tone):
        with pytest.raises(ValueError):
            processor.process(1, tone, 13)


class TestEditOperations:
    """Tests for the edit functions."""

    @pytest.fixture
    def ramp(self):
        return AudioBuffer(np.linspace(0.0, 1.0, 100, dtype=np.float32), 100)

    def test_selection_order_does_not_matter(self):
        assert selection_indices(100, (0.5, 0.2)) == (20, 50)
        with pytest.raises(ValueError):
            selection_indices(100, (-0.1, 0.5))

    def test_gain_only_touches_selection(self, ramp):
        out = apply_gain(ramp, (0.5, 1.0), 2.0)
        np.testing.assert_array_equal(out.samples[:, :50], ramp.samples[:, :50])
        np.testing.assert_allclose(out.samples[:, 50:], ramp.samples[:, 50:] * 2.0)
        assert out.frames == ramp.frames

    def test_gain_factor_range(self, ramp):
        with pytest.raises(ValueError):
            apply_gain(ramp, (0.0, 1.0), 2.5)

    def test_silence(self, ramp):
        out = silence(ramp, (0.0, 0.25))
        assert not out.samples[:, :25].any()
        np.testing.assert_array_equal(out.samples[:, 25:], ramp.samples[:, 25:])

    def test_edits_leave_source_untouched(self, ramp):
        before = ramp.samples.copy()
        silence(ramp, (0.0, 1.0))
        np.testing.assert_array_equal(ramp.samples, before)

    def test_time_shift_round_trip(self):
        buffer = AudioBuffer(generate_sine_wave(220.0, 1.0), 48000)
        later = time_shift(buffer, 100)
        assert later.frames == buffer.frames + 4800
        assert not later.samples[:, :4800].any()
        restored = time_shift(later, -100)
        assert restored == buffer

    def test_time_shift_cannot_remove_everything(self):
        buffer = AudioBuffer(np.ones(100), 1000)
        with pytest.raises(UserInputRejected):
            time_shift(buffer, -100)

    def test_pan_curve_interpolates(self):
        curve = pan_curve([(1.0, 1.0), (0.0, -1.0)], 4)
        np.testing.assert_allclose(curve, [-1.0, -0.5, 0.0, 0.5])

    def test_pan_automation_hard_left(self):
        buffer = AudioBuffer(np.ones(10), 100)
        out = pan_automation(buffer, [(0.0, -1.0)])
        assert out.channels == 2
        np.testing.assert_allclose(out.samples[0], 1.0)
        np.testing.assert_allclose(out.samples[1], 0.0, atol=1e-7)

    def test_pan_automation_center(self):
        out = pan_automation(AudioBuffer(np.ones(10), 100), [(0.0, 0.0)])
        np.testing.assert_allclose(out.samples, np.cos(np.pi / 4), rtol=1e-6)


class TestBufferEditor:
    """Tests for BufferEditor drafts."""

    def test_operations_stack(self):
        buffer = AudioBuffer(np.ones(100), 100)
        editor = BufferEditor(buffer).gain((0.0, 0.5), 0.5).silence((0.9, 1.0))
        assert editor.operations == ["gain", "silence"]
        assert editor.working.samples[0, 10] == 0.5
        assert editor.working.samples[0, 95] == 0.0
        assert editor.original is buffer

    def test_cancel_keeps_original(self):
        seen = []
        buffer = AudioBuffer(np.ones(100), 100)
        editor = BufferEditor(buffer, on_confirm=seen.append)
        editor.silence((0.0, 1.0))
        editor.cancel()
        assert editor.working is buffer
        assert seen == []
        with pytest.raises(RuntimeError):
            editor.confirm()

    def test_session_confirm_replaces_buffer(self):
        studio = Studio(StudioConfig(sample_rate=8000))
        track = studio.add_track()
        studio.set_buffer(track.id, AudioBuffer(np.ones(8000), 8000))
        studio.processed.store(track.id, 2, AudioBuffer(np.zeros(8000), 8000))

        result = studio.edit(track.id).time_shift(500).confirm()
        assert studio.buffer(track.id) is result
        assert studio.track(track.id).duration == 1.5
        assert studio.max_duration == 1.5
        assert track.id not in studio.processed

    def test_session_edit_needs_audio(self):
        studio = Studio(StudioConfig(sample_rate=8000))
        with pytest.raises(UserInputRejected):
            studio.edit(1)
