"""Tests for the streaming TSM engine."""

from __future__ import annotations

import numpy as np
import pytest

from tsmkit_core.converters import OLAConverter
from tsmkit_core.methods import ola, wsola
from tsmkit_core.multichannel import FlatBuffer
from tsmkit_core.tsm import TSM, Settings
from tsmkit_core.window import hanning


def _run(tsm: TSM, data: np.ndarray, block_size: int = 300) -> np.ndarray:
    """Push *data* through *tsm* and return everything it outputs."""
    channels, length = data.shape
    block = FlatBuffer(channels, block_size)
    chunks = []

    pos = 0
    while pos < length:
        space = tsm.remaining_input_space()
        n = tsm.put(data[:, pos:pos + space])
        assert n == min(space, length - pos)
        pos += n
        while True:
            m = tsm.receive(block)
            chunks.append(block.planar[:, :m].copy())
            if m < block_size:
                break

    while True:
        m = tsm.flush(block)
        chunks.append(block.planar[:, :m].copy())
        if m < block_size:
            break

    return np.concatenate(chunks, axis=1)


def _settings(**kwargs) -> Settings:
    defaults = dict(
        channels=1,
        analysis_hop=4,
        synthesis_hop=4,
        frame_length=8,
        converter=OLAConverter(),
    )
    defaults.update(kwargs)
    return Settings(**defaults)


class TestSettings:
    def test_analysis_frame_length(self):
        settings = _settings(delta_before=2, delta_after=6)
        assert settings.analysis_frame_length == 16

    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"channels": 0}, "channels"),
            ({"analysis_hop": 0}, "analysis_hop"),
            ({"synthesis_hop": -1}, "synthesis_hop"),
            ({"frame_length": 0}, "frame_length"),
            ({"delta_before": -1}, "non-negative"),
            ({"synthesis_window": np.ones(7)}, "synthesis_window"),
            ({"analysis_window": np.ones(5)}, "analysis_window"),
        ],
    )
    def test_invalid(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            TSM(_settings(**kwargs))

    def test_full_length_analysis_window(self):
        settings = _settings(delta_before=2, delta_after=2, analysis_window=np.ones(12))
        TSM(settings)


class TestStreaming:
    def test_initial_input_space(self):
        tsm = ola(2)
        # Half a frame of left padding is already buffered.
        assert tsm.remaining_input_space() == 128
        assert tsm.channels == 2

    def test_put_consumes_at_most_the_offered_samples(self):
        tsm = ola(1)
        assert tsm.put(np.zeros((1, 50))) == 50
        assert tsm.remaining_input_space() == 78

    def test_put_consumes_at_most_the_free_space(self):
        tsm = ola(1)
        assert tsm.put(np.zeros((1, 300))) == 128

    def test_remaining_space_is_consumed(self, rng):
        tsm = ola(1, speed=1.7, frame_length=64)
        for _ in range(30):
            space = tsm.remaining_input_space()
            assert tsm.put(rng.standard_normal((1, space + 10))) == space
            tsm.receive(FlatBuffer(1, 1000))

    def test_no_output_before_a_full_frame(self):
        tsm = ola(1)
        tsm.put(np.ones((1, 127)))
        assert tsm.receive(FlatBuffer(1, 10)) == 0

    def test_identity_at_speed_one(self, sine_mono):
        out = _run(ola(1, speed=1.0), sine_mono)
        assert out.shape == sine_mono.shape
        np.testing.assert_allclose(out, sine_mono, atol=1e-12)

    def test_identity_stereo(self, sine_stereo):
        out = _run(ola(2, speed=1.0, frame_length=128), sine_stereo, block_size=77)
        np.testing.assert_allclose(out, sine_stereo, atol=1e-12)

    @pytest.mark.parametrize("speed", [0.5, 0.75, 2.0, 4.0])
    def test_output_length_follows_speed(self, sine_mono, speed):
        out = _run(ola(1, speed=speed), sine_mono)
        assert abs(out.shape[1] - 1000 / speed) <= 1

    def test_large_analysis_hop_skips_input(self, sine_stereo):
        tsm = ola(2, speed=4.0)
        assert tsm.settings.analysis_hop == 512
        tsm.put(np.zeros((2, 128)))
        # The analysis hop is larger than the input buffer: the samples
        # between two frames are skipped.
        assert tsm.remaining_input_space() == 512

        tsm.clear()
        out = _run(tsm, sine_stereo)
        assert abs(out.shape[1] - 1000) <= 1
        assert np.all(np.abs(out) <= 0.5 + 1e-9)

    def test_wsola_large_hop_skips_input(self, sine_stereo):
        tsm = wsola(2, speed=8.0, frame_length=64)
        # 32 + 64 + 64 buffered samples, 256-sample analysis hop
        tsm.put(np.zeros((2, tsm.remaining_input_space())))
        assert tsm.remaining_input_space() == 256

        tsm.clear()
        out = _run(tsm, sine_stereo)
        assert abs(out.shape[1] - 500) <= 1

    def test_synthesis_hop_larger_than_frame(self):
        tsm = ola(1, speed=1.0, frame_length=8, synthesis_hop=12)
        out = _run(tsm, np.ones((1, 120)))
        assert abs(out.shape[1] - 120) <= 1
        assert np.all(np.isfinite(out))

    def test_wsola_stereo(self, sine_stereo):
        tsm = wsola(2, speed=1.5, frame_length=256)
        out = _run(tsm, sine_stereo)
        assert abs(out.shape[1] - 4000 / 1.5) <= 1
        assert np.all(np.isfinite(out))
        # The overlap-added frames are normalized back to the input level.
        assert np.max(np.abs(out[:, 200:-200])) == pytest.approx(0.5, abs=0.05)

    def test_wsola_identity_at_speed_one(self, sine_mono):
        out = _run(wsola(1, speed=1.0, frame_length=256), sine_mono)
        assert out.shape == sine_mono.shape
        np.testing.assert_allclose(out, sine_mono, atol=1e-9)

    def test_wsola_silence_stays_silent(self):
        out = _run(wsola(2, speed=1.3, frame_length=128), np.zeros((2, 500)))
        assert abs(out.shape[1] - 500 / 1.3) <= 2
        np.testing.assert_array_equal(out, 0.0)

    def test_tail_waits_for_readable_output(self):
        tsm = ola(1)
        tsm.put(np.ones((1, 128)))
        tsm.put(np.ones((1, 128)))
        # One synthesis hop is readable: no frame can be processed until it
        # is received.
        assert tsm._process_tail() is False
        assert tsm.receive(FlatBuffer(1, 200)) == 128

    def test_flush_without_input(self):
        tsm = ola(1)
        assert tsm.flush(FlatBuffer(1, 10)) == 0
        assert tsm.remaining_input_space() == 128

    def test_short_flush_clears(self, sine_mono):
        tsm = wsola(1, frame_length=128)
        initial = tsm.remaining_input_space()
        _run(tsm, sine_mono)
        assert tsm.remaining_input_space() == initial
        assert tsm.receive(FlatBuffer(1, 10)) == 0

    def test_reuse_after_flush(self, sine_mono):
        tsm = ola(1, speed=0.5)
        first = _run(tsm, sine_mono)
        second = _run(tsm, sine_mono)
        np.testing.assert_allclose(first, second)

    def test_clear_drops_pending_output(self):
        tsm = ola(1)
        tsm.put(np.ones((1, 128)))
        tsm.put(np.ones((1, 128)))
        tsm.clear()
        assert tsm.receive(FlatBuffer(1, 10)) == 0
        assert tsm.remaining_input_space() == 128

    def test_channel_mismatch(self):
        tsm = ola(2)
        with pytest.raises(ValueError, match="same number of channels"):
            tsm.put(np.zeros((1, 10)))


class TestSetSpeed:
    def test_changes_analysis_hop(self):
        tsm = ola(1)
        tsm.set_speed(2.0)
        assert tsm.settings.analysis_hop == 256
        assert tsm.speed == 2.0

    def test_hop_stays_positive(self):
        tsm = ola(1)
        tsm.set_speed(1e-6)
        assert tsm.settings.analysis_hop == 1

    @pytest.mark.parametrize("speed", [0.0, -1.0, float("nan")])
    def test_invalid(self, speed):
        with pytest.raises(ValueError, match="positive"):
            ola(1).set_speed(speed)

    def test_mid_stream(self, sine_mono):
        tsm = ola(1)
        data = np.tile(sine_mono, 4)
        block = FlatBuffer(1, 4000)
        total = tsm.put(data[:, :128])
        tsm.set_speed(2.0)
        pos = total
        while pos < data.shape[1]:
            space = tsm.remaining_input_space()
            n = tsm.put(data[:, pos:pos + space])
            assert n == min(space, data.shape[1] - pos)
            pos += n
            tsm.receive(block)
        assert tsm.settings.analysis_hop == 256

    def test_engines_do_not_share_settings(self):
        settings = _settings(synthesis_window=hanning(8))
        first, second = TSM(settings), TSM(settings)
        first.set_speed(2.0)

        assert first.settings.analysis_hop == 8
        assert second.settings.analysis_hop == 4
        assert settings.analysis_hop == 4

        settings.synthesis_window[:] = 0.0
        np.testing.assert_array_equal(second.settings.synthesis_window, hanning(8))


class TestWindows:
    def test_normalization_with_analysis_window(self, sine_mono):
        window = hanning(64)
        tsm = TSM(Settings(
            channels=1,
            analysis_hop=16,
            synthesis_hop=16,
            frame_length=64,
            converter=OLAConverter(),
            analysis_window=window,
            synthesis_window=window,
        ))
        out = _run(tsm, sine_mono)
        assert out.shape == sine_mono.shape
        np.testing.assert_allclose(out[:, 40:-40], sine_mono[:, 40:-40], atol=1e-9)
