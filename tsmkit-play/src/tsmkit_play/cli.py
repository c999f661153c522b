"""``tsmkit-play`` -- Change the speed of an audio file without changing its pitch.

Usage::

    tsmkit-play speech.wav --speed 0.75
    tsmkit-play music.wav -s 1.5 -m ola -o faster.wav
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from tsmkit_core.constants import DEFAULT_METHOD, DEFAULT_SPEED
from tsmkit_core.methods import METHODS

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tsmkit-play",
        description="Change the speed of an audio file without changing its pitch.",
    )
    parser.add_argument("input", type=Path, help="Input audio file (WAV, FLAC, ...).")
    parser.add_argument(
        "-s", "--speed",
        type=float,
        default=DEFAULT_SPEED,
        help=f"Speed ratio, e.g. 0.5 for half speed (default: {DEFAULT_SPEED}).",
    )
    parser.add_argument(
        "-m", "--method",
        default=DEFAULT_METHOD,
        choices=list(METHODS),
        help=f"TSM method (default: {DEFAULT_METHOD}).",
    )
    parser.add_argument(
        "-l", "--frame-length",
        type=int,
        default=None,
        help="Frame length in samples (default: 256 for ola, 1024 for wsola).",
    )
    parser.add_argument(
        "--synthesis-hop",
        type=int,
        default=None,
        help="Synthesis hop in samples (default: half the frame length).",
    )
    parser.add_argument(
        "-t", "--tolerance",
        type=int,
        default=None,
        help="Maximum frame shift for wsola (default: half the frame length).",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Save the stretched audio to this file instead of playing it.",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    input_path: Path = args.input
    if not input_path.exists():
        logger.error("Input file not found: %s", input_path)
        sys.exit(1)
    if args.speed <= 0:
        logger.error("Speed must be positive, got %s", args.speed)
        sys.exit(1)

    options = dict(
        method=args.method,
        speed=args.speed,
        frame_length=args.frame_length,
        synthesis_hop=args.synthesis_hop,
        tolerance=args.tolerance,
    )

    try:
        if args.output is not None:
            from tsmkit_play.audio_io import stretch_file

            written = stretch_file(input_path, args.output, **options)
            logger.info("Wrote %s (%d frames)", args.output, written)
        else:
            _play(input_path, **options)
    except (RuntimeError, ValueError) as e:
        # soundfile.LibsndfileError is a RuntimeError
        logger.error("Unable to process %s: %s", input_path, e)
        sys.exit(1)


def _play(
    input_path: Path,
    method: str,
    speed: float,
    frame_length: int | None,
    synthesis_hop: int | None,
    tolerance: int | None,
) -> None:
    from tsmkit_core.methods import create_tsm
    from tsmkit_play.audio_io import SoundFileSource
    from tsmkit_play.playback import Player
    from tsmkit_play.streamer import TSMStreamer

    with SoundFileSource(input_path) as source:
        tsm = create_tsm(
            method,
            source.channels,
            speed=speed,
            frame_length=frame_length,
            synthesis_hop=synthesis_hop,
            tolerance=tolerance,
        )
        logger.info(
            "Playing %s at %.2fx (%s, %d Hz, %d channels)",
            input_path, speed, method, source.samplerate, source.channels,
        )
        Player(TSMStreamer(tsm, source), source.samplerate).play()


if __name__ == "__main__":
    main()
