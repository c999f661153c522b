"""Tests for the tsmkit-play command line."""

from __future__ import annotations

from pathlib import Path

import pytest
import soundfile as sf

from tsmkit_play.cli import build_parser, main


@pytest.fixture
def wav_path(tmp_path, sine_stereo, sample_rate):
    path = tmp_path / "speech.wav"
    sf.write(str(path), sine_stereo.T, sample_rate)
    return path


class TestParser:
    def test_build_parser(self):
        assert build_parser().prog == "tsmkit-play"

    def test_required_args(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_defaults(self):
        args = build_parser().parse_args(["in.wav"])
        assert args.input == Path("in.wav")
        assert args.speed == 1.0
        assert args.method == "wsola"
        assert args.frame_length is None
        assert args.synthesis_hop is None
        assert args.tolerance is None
        assert args.output is None
        assert args.verbose is False

    def test_all_args(self):
        args = build_parser().parse_args([
            "in.wav",
            "-s", "0.75",
            "-m", "ola",
            "-l", "512",
            "--synthesis-hop", "128",
            "-t", "64",
            "-o", "out.wav",
            "-v",
        ])
        assert args.speed == 0.75
        assert args.method == "ola"
        assert args.frame_length == 512
        assert args.synthesis_hop == 128
        assert args.tolerance == 64
        assert args.output == Path("out.wav")
        assert args.verbose is True

    def test_unknown_method(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["in.wav", "-m", "phasevocoder"])


class TestMain:
    def test_writes_output(self, wav_path, tmp_path):
        output = tmp_path / "slow.wav"
        main([str(wav_path), "-s", "0.5", "-m", "ola", "-o", str(output)])
        info = sf.info(str(output))
        assert info.channels == 2
        assert abs(info.frames - 8000) <= 1

    def test_missing_input(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main([str(tmp_path / "missing.wav"), "-o", str(tmp_path / "out.wav")])
        assert exc.value.code == 1

    def test_non_positive_speed(self, wav_path, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main([str(wav_path), "-s", "0", "-o", str(tmp_path / "out.wav")])
        assert exc.value.code == 1

    def test_invalid_frame_length(self, wav_path, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main([str(wav_path), "-l", "0", "-o", str(tmp_path / "out.wav")])
        assert exc.value.code == 1

    def test_unreadable_input(self, tmp_path):
        path = tmp_path / "noise.wav"
        path.write_bytes(b"not a wav file")
        with pytest.raises(SystemExit) as exc:
            main([str(path), "-o", str(tmp_path / "out.wav")])
        assert exc.value.code == 1
