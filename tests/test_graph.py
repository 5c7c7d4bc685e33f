"""Tests for audio nodes and the signal graph builder."""

import pytest
import numpy as np

from vocalharmony.config import StudioConfig
from vocalharmony.core import AudioBuffer, NoteBlock, Track
from vocalharmony.core.track import master_track
from vocalharmony.engine import SignalGraphBuilder
from vocalharmony.engine.nodes import (
    AudioParam,
    BufferSourceNode,
    EqualizerNode,
    StereoPannerNode,
)
from vocalharmony.processing.eq import magnitude_response
from vocalharmony.core.track import EQSettings

SR = 1000
CENTER = np.cos(np.pi / 4)


def dc_buffer(value: float, seconds: float = 1.0, sr: int = SR) -> AudioBuffer:
    return AudioBuffer(np.full(int(seconds * sr), value, dtype=np.float32), sr)


@pytest.fixture
def builder():
    return SignalGraphBuilder(StudioConfig(sample_rate=SR))


def build(builder, tracks, buffers, **kwargs):
    return builder.build(tracks, lambda t: buffers.get(t.id), sample_rate=SR, **kwargs)


class TestAudioParam:
    """Tests for AudioParam automation."""

    def test_constant(self):
        param = AudioParam(0.5)
        assert not param.automated
        np.testing.assert_allclose(param.values(0.0, 4, SR), 0.5)

    def test_step(self):
        param = AudioParam(0.0)
        param.set_value_at_time(1.0, 0.002)
        np.testing.assert_allclose(param.values(0.0, 4, SR), [0.0, 0.0, 1.0, 1.0])

    def test_linear_ramp(self):
        param = AudioParam(0.0)
        param.set_value_at_time(0.0, 0.0)
        param.linear_ramp_to_value_at_time(1.0, 0.004)
        np.testing.assert_allclose(param.values(0.0, 6, SR), [0.0, 0.25, 0.5, 0.75, 1.0, 1.0])

    def test_linear_ramp_without_prior_event_is_a_step(self):
        param = AudioParam(0.0)
        param.linear_ramp_to_value_at_time(1.0, 0.002)
        np.testing.assert_allclose(param.values(0.0, 4, SR), [0.0, 0.0, 1.0, 1.0])

    def test_ramp_to_approaches_target(self):
        param = AudioParam(0.0)
        param.ramp_to(1.0, 0.0, 0.05)
        values = param.values(0.0, 500, SR)
        assert values[50] == pytest.approx(1 - np.exp(-1), rel=1e-6)
        assert values[-1] == pytest.approx(1.0, abs=1e-4)
        assert np.all(np.diff(values) >= 0)

    def test_blocks_continue_automation(self):
        param = AudioParam(0.0)
        param.set_value_at_time(0.0, 0.0)
        param.linear_ramp_to_value_at_time(1.0, 0.010)
        first = param.values(0.0, 5, SR)
        second = param.values(0.005, 5, SR)
        np.testing.assert_allclose(np.concatenate([first, second]), np.arange(10) / 10)

    def test_cancel_scheduled_values(self):
        param = AudioParam(0.0)
        param.set_value_at_time(1.0, 0.5)
        param.cancel_scheduled_values(0.2)
        assert not param.automated


class TestBufferSourceNode:
    """Tests for BufferSourceNode."""

    def test_plays_from_offset(self):
        buffer = AudioBuffer(np.arange(10, dtype=np.float32), 10)
        source = BufferSourceNode(buffer, 10, offset=0.3)
        np.testing.assert_allclose(source.render(0.0, 4)[0], [3, 4, 5, 6])

    def test_silence_after_end(self):
        buffer = AudioBuffer(np.ones(4, dtype=np.float32), 10)
        source = BufferSourceNode(buffer, 10)
        out = source.render(0.0, 6)[0]
        np.testing.assert_allclose(out, [1, 1, 1, 1, 0, 0])
        assert source.ended

    def test_loop_wraps_without_gap(self):
        buffer = AudioBuffer(np.arange(8, dtype=np.float32), 4)
        source = BufferSourceNode(buffer, 4, loop=(0.5, 1.5))
        out = source.render(0.0, 12)[0]
        np.testing.assert_allclose(out, [0, 1, 2, 3, 4, 5, 2, 3, 4, 5, 2, 3])
        assert not source.ended

    def test_resamples_to_context_rate(self):
        buffer = AudioBuffer(np.arange(10, dtype=np.float32), 5)
        source = BufferSourceNode(buffer, 10)
        np.testing.assert_allclose(source.render(0.0, 5)[0], [0, 0.5, 1.0, 1.5, 2.0])

    def test_detune_octave_doubles_rate(self):
        buffer = AudioBuffer(np.arange(20, dtype=np.float32), 10)
        source = BufferSourceNode(buffer, 10)
        source.detune.value = 1200.0
        np.testing.assert_allclose(source.render(0.0, 4)[0], [0, 2, 4, 6])

    def test_stop(self):
        source = BufferSourceNode(AudioBuffer(np.ones(10), 10), 10)
        source.stop()
        assert not source.render(0.0, 4).any()


class TestPannerAndEQ:
    """Tests for the panner and equalizer nodes."""

    def test_mono_center_is_equal_power(self):
        panner = StereoPannerNode(0.0, SR)
        out = panner.process(np.ones((1, 4), dtype=np.float32), 0.0)
        np.testing.assert_allclose(out, CENTER, rtol=1e-6)

    def test_mono_hard_left(self):
        panner = StereoPannerNode(-1.0, SR)
        out = panner.process(np.ones((1, 4), dtype=np.float32), 0.0)
        np.testing.assert_allclose(out[0], 1.0, rtol=1e-6)
        np.testing.assert_allclose(out[1], 0.0, atol=1e-6)

    def test_stereo_center_passes_through(self):
        panner = StereoPannerNode(0.0, SR)
        x = np.array([[0.2, 0.4], [-0.1, 0.3]], dtype=np.float32)
        np.testing.assert_allclose(panner.process(x, 0.0), x, atol=1e-6)

    def test_disabled_eq_passes_through(self):
        node = EqualizerNode(EQSettings(), 48000, 1)
        x = np.random.default_rng(1).normal(size=(1, 256)).astype(np.float32)
        assert not node.active
        assert node.process(x) is x

    def test_peaking_band_gain_at_center(self):
        eq = EQSettings(enabled=True)
        eq.bands["mid"].gain = 6.0
        response = magnitude_response(eq, np.array([1000.0]), 48000)
        assert response[0] == pytest.approx(6.0, abs=0.05)

    def test_low_shelf_boost_raises_level(self):
        eq = EQSettings(enabled=True)
        eq.bands["low"].gain = 6.0
        node = EqualizerNode(eq, 48000, 1)
        t = np.arange(48000) / 48000
        x = (0.1 * np.sin(2 * np.pi * 20 * t)).astype(np.float32)[np.newaxis, :]
        y = node.process(x)
        assert np.sqrt(np.mean(y[:, 4800:] ** 2)) > 1.5 * np.sqrt(np.mean(x[:, 4800:] ** 2))


class TestSignalGraph:
    """Tests for graphs built by SignalGraphBuilder."""

    def test_requires_master(self, builder):
        with pytest.raises(ValueError):
            build(builder, [Track(id=1, name="A")], {})

    def test_tracks_without_buffers_are_skipped(self, builder):
        tracks = [master_track(), Track(id=1, name="A"), Track(id=2, name="B")]
        graph = build(builder, tracks, {1: dc_buffer(0.5)})
        assert list(graph.chains) == [1]

    def test_single_track_center(self, builder):
        tracks = [master_track(), Track(id=1, name="A", has_file=True)]
        graph = build(builder, tracks, {1: dc_buffer(0.5)})
        out = graph.process(100)
        assert out.shape == (2, 100)
        np.testing.assert_allclose(out, 0.5 * CENTER, rtol=1e-5)

    def test_tracks_sum_on_master(self, builder):
        tracks = [master_track(), Track(id=1, name="A"), Track(id=2, name="B", volume=0.5)]
        graph = build(builder, tracks, {1: dc_buffer(0.25), 2: dc_buffer(0.5)})
        np.testing.assert_allclose(graph.process(50), 0.5 * CENTER, rtol=1e-5)

    def test_solo_and_mute(self, builder):
        tracks = [
            master_track(),
            Track(id=1, name="A", solo=True),
            Track(id=2, name="B"),
            Track(id=3, name="C", mute=True),
        ]
        buffers = {i: dc_buffer(0.2) for i in (1, 2, 3)}
        graph = build(builder, tracks, buffers)
        out = graph.process(100)
        assert graph.level(1) > 0
        assert graph.level(2) == 0.0
        assert graph.level(3) == 0.0
        np.testing.assert_allclose(out, 0.2 * CENTER, rtol=1e-5)

    def test_master_mute_silences_output(self, builder):
        master = master_track()
        master.mute = True
        graph = build(builder, [master, Track(id=1, name="A")], {1: dc_buffer(0.5)})
        assert not graph.process(64).any()

    def test_output_is_clipped(self, builder):
        tracks = [master_track(), Track(id=1, name="A", pan=0.0), Track(id=2, name="B", pan=0.0)]
        graph = build(builder, tracks, {1: dc_buffer(0.9), 2: dc_buffer(0.9)})
        out = graph.process(10)
        np.testing.assert_allclose(out[0], 1.0)

    def test_live_mute_ramps_to_silence(self, builder):
        track = Track(id=1, name="A")
        tracks = [master_track(), track]
        graph = build(builder, tracks, {1: dc_buffer(0.5, seconds=2.0)})
        graph.process(100)
        track.mute = True
        graph.update_all(tracks)
        out = graph.process(900)
        assert abs(out[0, -1]) < 1e-4
        assert out[0, 0] > 0.3

    def test_stop_silences(self, builder):
        graph = build(builder, [master_track(), Track(id=1, name="A")], {1: dc_buffer(0.5)})
        graph.stop()
        assert graph.stopped
        assert not graph.process(10).any()

    def test_render_counts_frames(self, builder):
        graph = build(builder, [master_track(), Track(id=1, name="A")], {1: dc_buffer(0.5)})
        assert graph.render(1000, 256).shape == (2, 1000)
        assert graph.time == 1.0

    def test_fine_tune_schedules_detune(self, builder):
        tracks = [master_track(), Track(id=1, name="A")]
        blocks = [NoteBlock("block-0", 1.0, 2.0, 60, shift_cents=100)]
        graph = build(
            builder, tracks, {1: dc_buffer(0.5, seconds=3.0)},
            note_blocks=blocks, selected_track_id=1,
        )
        detune = graph.chains[1].source.detune
        assert detune.automated
        assert detune.values(0.5, 1, SR)[0] == 0.0
        assert detune.values(1.025, 1, SR)[0] == pytest.approx(50.0)
        assert detune.values(1.5, 1, SR)[0] == pytest.approx(100.0)
        assert detune.values(1.97, 1, SR)[0] == pytest.approx(60.0)

    def test_fine_tune_skips_blocks_before_offset(self, builder):
        tracks = [master_track(), Track(id=1, name="A")]
        blocks = [NoteBlock("block-0", 1.0, 2.0, 60, shift_cents=100)]
        graph = build(
            builder, tracks, {1: dc_buffer(0.5, seconds=3.0)},
            offset=1.5, note_blocks=blocks, selected_track_id=1,
        )
        assert not graph.chains[1].source.detune.automated

    def test_reverb_send_reaches_output(self):
        builder = SignalGraphBuilder(StudioConfig())
        noise = np.random.default_rng(2).normal(0, 0.3, 9600).astype(np.float32)
        track = Track(id=1, name="A", volume=0.0, reverb_send=1.0)
        graph = builder.build([master_track(), track], lambda t: AudioBuffer(noise, 48000))
        out = graph.render(9600, 512)
        assert np.abs(out).max() > 0

    def test_muted_track_sends_nothing(self):
        builder = SignalGraphBuilder(StudioConfig())
        noise = np.random.default_rng(3).normal(0, 0.3, 9600).astype(np.float32)
        track = Track(id=1, name="A", mute=True, reverb_send=1.0)
        graph = builder.build([master_track(), track], lambda t: AudioBuffer(noise, 48000))
        assert not graph.render(9600, 512).any()
