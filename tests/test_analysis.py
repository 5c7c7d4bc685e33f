"""Tests for pitch detection and note segmentation."""

import pytest
import numpy as np

from vocalharmony.analysis import PitchDetector, NoteSegmenter
from vocalharmony.analysis.pitch import detect_pitch
from vocalharmony.core import AudioBuffer

from generate_test_audio import SR, generate_sine_wave, generate_note_sequence


@pytest.fixture
def detector():
    return PitchDetector()


@pytest.fixture
def segmenter():
    return NoteSegmenter()


class TestPitchDetector:
    """Tests for PitchDetector."""

    def test_silence_is_unvoiced(self, detector):
        estimate = detector.detect(np.zeros(2048), SR)
        assert estimate.pitch is None
        assert not estimate.voiced
        assert estimate.level == pytest.approx(0.0)

    def test_quiet_noise_is_unvoiced(self, detector):
        rng = np.random.default_rng(0)
        estimate = detector.detect(rng.normal(0, 0.001, 2048), SR)
        assert estimate.pitch is None

    @pytest.mark.parametrize("freq", [220.0, 440.0, 880.0])
    def test_sine_within_one_percent(self, detector, freq):
        window = generate_sine_wave(freq, 2048 / SR)
        estimate = detector.detect(window, SR)
        assert estimate.voiced
        assert estimate.pitch == pytest.approx(freq, rel=0.01)
        assert estimate.clarity > 0.75

    def test_level_is_rms(self, detector):
        window = generate_sine_wave(440.0, 2048 / SR, amplitude=0.5)
        estimate = detector.detect(window, SR)
        assert estimate.level == pytest.approx(0.5 / np.sqrt(2), rel=0.02)

    def test_short_window_rejected(self, detector):
        with pytest.raises(ValueError):
            detector.detect(np.zeros(512), SR)

    def test_deterministic(self):
        window = generate_sine_wave(330.0, 2048 / SR)
        assert detect_pitch(window, SR) == detect_pitch(window, SR)

    def test_voicing_mask(self, detector):
        audio = generate_note_sequence([220.0, 0.0], [0.5, 0.5])
        mask = detector.voicing_mask(audio, SR)
        assert len(mask) == int(np.ceil(len(audio) / 2048))
        assert mask[2]
        assert not mask[-3]


class TestNoteSegmenter:
    """Tests for NoteSegmenter."""

    def test_silence_yields_no_blocks(self, segmenter):
        buffer = AudioBuffer(np.zeros(SR), SR)
        assert segmenter.analyze(buffer) == []

    def test_sustained_tone_is_one_block(self, segmenter):
        buffer = AudioBuffer(generate_sine_wave(440.0, 1.0), SR)
        blocks = segmenter.analyze(buffer)
        assert len(blocks) == 1
        block = blocks[0]
        assert block.id == "block-0"
        assert block.original_midi == 69
        assert block.start == 0.0
        assert 0.95 < block.end <= buffer.duration

    def test_phrase_blocks(self, segmenter):
        audio = generate_note_sequence([220.0, 261.63, 0.0, 329.63], [0.6, 0.6, 0.3, 0.8])
        blocks = segmenter.analyze(AudioBuffer(audio, SR))

        assert [b.original_midi for b in blocks if b.duration > 0.3] == [57, 60, 64]
        for block in blocks:
            assert block.duration >= 0.1
        for first, second in zip(blocks, blocks[1:]):
            assert first.end <= second.start
        assert [b.id for b in blocks] == [f"block-{i}" for i in range(len(blocks))]

    def test_short_notes_dropped(self, segmenter):
        audio = generate_note_sequence([440.0, 0.0], [0.08, 0.5])
        assert segmenter.analyze(AudioBuffer(audio, SR)) == []

    def test_segment_is_lazy(self, segmenter):
        buffer = AudioBuffer(generate_sine_wave(440.0, 0.5), SR)
        blocks = segmenter.segment(buffer)
        assert next(blocks).original_midi == 69

    def test_stereo_analysed_as_mono(self, segmenter):
        tone = generate_sine_wave(330.0, 0.5)
        buffer = AudioBuffer(np.stack([tone, tone]), SR)
        blocks = segmenter.analyze(buffer)
        assert [b.original_midi for b in blocks] == [64]
