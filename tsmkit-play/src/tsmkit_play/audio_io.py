"""Audio file decoding and encoding with ``soundfile``."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import soundfile as sf

from tsmkit_core.constants import DEFAULT_METHOD, DEFAULT_SPEED, STREAM_BLOCK_SIZE
from tsmkit_core.methods import create_tsm
from tsmkit_play.streamer import TSMStreamer

logger = logging.getLogger(__name__)


class SoundFileSource:
    """Pull-based :class:`~tsmkit_play.streamer.Source` reading an audio file.

    Samples are returned as ``float64`` arrays of shape ``(n, channels)``,
    in ``[-1, 1]`` for integer formats.
    """

    def __init__(self, path: str | Path) -> None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")
        self._file = sf.SoundFile(str(path))

    @property
    def samplerate(self) -> int:
        return self._file.samplerate

    @property
    def channels(self) -> int:
        return self._file.channels

    @property
    def frames(self) -> int:
        return self._file.frames

    @property
    def subtype(self) -> str:
        return self._file.subtype

    def read(self, frames: int) -> np.ndarray:
        return self._file.read(frames, dtype="float64", always_2d=True)

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> SoundFileSource:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def stretch_file(
    input_path: str | Path,
    output_path: str | Path,
    method: str = DEFAULT_METHOD,
    speed: float = DEFAULT_SPEED,
    frame_length: int | None = None,
    synthesis_hop: int | None = None,
    tolerance: int | None = None,
    block_size: int = STREAM_BLOCK_SIZE,
) -> int:
    """Change the speed of an audio file and write the result.

    The output keeps the sample rate and channel count of the input; its
    format is deduced from the extension of *output_path*.

    Returns:
        Number of frames written.
    """
    output_path = Path(output_path)

    with SoundFileSource(input_path) as source:
        tsm = create_tsm(
            method,
            source.channels,
            speed=speed,
            frame_length=frame_length,
            synthesis_hop=synthesis_hop,
            tolerance=tolerance,
        )
        streamer = TSMStreamer(tsm, source)

        written = 0
        with sf.SoundFile(
            str(output_path), "w",
            samplerate=source.samplerate,
            channels=source.channels,
        ) as out:
            for block in streamer.blocks(block_size):
                out.write(block)
                written += len(block)

        logger.info(
            "%s: %d frames -> %s: %d frames (method=%s, speed=%.3f)",
            input_path, source.frames, output_path, written, method, speed,
        )
    return written
