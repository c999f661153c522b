"""Pull-based adapter between a sample source and a :class:`~tsmkit_core.tsm.TSM`."""

from __future__ import annotations

import logging
from typing import Iterator, Protocol

import numpy as np

from tsmkit_core.constants import STREAM_BLOCK_SIZE
from tsmkit_core.multichannel import InterleavedBuffer
from tsmkit_core.tsm import TSM

logger = logging.getLogger(__name__)


class Source(Protocol):
    """Pull-based producer of interleaved samples."""

    def read(self, frames: int) -> np.ndarray:
        """Return up to *frames* samples, shape ``(n, channels)``.

        An empty array means the end of the stream.
        """
        ...


class ArraySource:
    """:class:`Source` over an in-memory ``(length, channels)`` array."""

    def __init__(self, data: np.ndarray) -> None:
        data = np.asarray(data, dtype=np.float64)
        if data.ndim == 1:
            data = data[:, np.newaxis]
        self._data = data
        self._pos = 0

    @property
    def channels(self) -> int:
        return self._data.shape[1]

    def read(self, frames: int) -> np.ndarray:
        out = self._data[self._pos:self._pos + frames]
        self._pos += len(out)
        return out


class TSMStreamer:
    """Change the speed of a :class:`Source` on the fly.

    Each call to :meth:`stream` pulls as many input samples as the engine
    needs to fill the output array, and flushes the engine once the source
    is exhausted.

    Parameters
    ----------
    tsm : TSM
        The time-scale modification procedure.
    source : Source
        Input samples, with ``tsm.channels`` channels.
    """

    def __init__(self, tsm: TSM, source: Source) -> None:
        self._tsm = tsm
        self._source = source
        self._exhausted = False
        self._finished = False
        self._empty = np.zeros((0, tsm.channels), dtype=np.float64)

    @property
    def tsm(self) -> TSM:
        return self._tsm

    @property
    def finished(self) -> bool:
        return self._finished

    def stream(self, samples: np.ndarray) -> tuple[int, bool]:
        """Fill the interleaved ``(frames, channels)`` array *samples*.

        Returns
        -------
        tuple[int, bool]
            The number of frames written, and ``False`` once the stream is
            over (the remaining frames of *samples* are left untouched).
        """
        if self._finished:
            return 0, False

        buffer = InterleavedBuffer(samples)
        total = len(buffer)
        length = 0

        while length < total:
            if not self._exhausted:
                self._feed()

            n = self._tsm.receive(buffer.slice(length, total))
            length += n

            if n == 0 and self._exhausted:
                length += self._tsm.flush(buffer.slice(length, total))
                if length < total:
                    logger.debug("Stream finished")
                    self._finished = True
                    return length, False

        return length, True

    def blocks(self, block_size: int = STREAM_BLOCK_SIZE) -> Iterator[np.ndarray]:
        """Yield output blocks of at most *block_size* frames until the end."""
        while True:
            block = np.zeros((block_size, self._tsm.channels), dtype=np.float64)
            n, ok = self.stream(block)
            if n > 0:
                yield block[:n]
            if not ok:
                return

    def _feed(self) -> None:
        space = self._tsm.remaining_input_space()
        if space == 0:
            # Input buffer full: an empty put lets the engine process it.
            self._tsm.put(InterleavedBuffer(self._empty))
            return

        data = self._source.read(space)
        if len(data) == 0:
            self._exhausted = True
            return
        self._tsm.put(InterleavedBuffer(data))
