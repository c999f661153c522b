"""Fixed-capacity multi-channel circular buffer backed by a numpy array."""

from __future__ import annotations

from typing import Iterator

import numpy as np

from tsmkit_core.constants import NORMALIZE_EPSILON
from tsmkit_core.multichannel import Buffer
from tsmkit_core.normalize_buffer import NormalizeBuffer


class CircularBuffer:
    """Circular buffer split into a readable part and a writable part.

    The ``length`` samples starting at the read cursor are *readable*: they
    can be peeked, read and removed but not modified. The remaining
    ``capacity - length`` samples are *writable*: :meth:`write`, :meth:`add`
    and :meth:`divide` operate on them, and :meth:`set_readable` moves them
    to the readable part.

    The engine uses the same class for its input buffer (plain writes) and
    for its output buffer (overlap-add of synthesis frames followed by
    normalization).

    Parameters
    ----------
    channels : int
        Number of channels.
    capacity : int
        Number of samples each channel can hold. Never changes.
    """

    def __init__(self, channels: int, capacity: int) -> None:
        self._capacity: int = capacity
        self._data: np.ndarray = np.zeros((channels, capacity), dtype=np.float64)
        self._read_pos: int = 0
        self._length: int = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def channels(self) -> int:
        return self._data.shape[0]

    def __len__(self) -> int:
        """Return the number of readable samples per channel."""
        return self._length

    def remaining_space(self) -> int:
        """Return the number of samples that can be written per channel."""
        return self._capacity - self._length

    # ------------------------------------------------------------------
    # Writable part
    # ------------------------------------------------------------------

    def write(self, samples: Buffer) -> int:
        """Copy as many of *samples* as fit and mark them readable.

        Returns
        -------
        int
            Number of samples actually written (may be less than
            ``len(samples)`` if the buffer is nearly full).
        """
        self._check_channels(samples)
        n = min(len(samples), self.remaining_space())
        if n == 0:
            return 0

        source = samples.planar
        for start, end, offset in self._spans(self._read_pos + self._length, n):
            self._data[:, start:end] = source[:, offset:offset + end - start]

        self._length += n
        return n

    def add(self, samples: Buffer) -> None:
        """Add *samples* element-wise to the start of the writable part.

        The samples are not marked readable, so further calls to
        :meth:`add` and :meth:`divide` can keep modifying them.

        Raises:
            ValueError: On a channel mismatch or if *samples* does not fit
                in the writable part.
        """
        self._check_channels(samples)
        n = len(samples)
        if n > self.remaining_space():
            raise ValueError(
                f"not enough space remaining in the circular buffer "
                f"({n} > {self.remaining_space()})"
            )
        if n == 0:
            return

        source = samples.planar
        for start, end, offset in self._spans(self._read_pos + self._length, n):
            self._data[:, start:end] += source[:, offset:offset + end - start]

    def divide(self, weights: NormalizeBuffer, n: int) -> None:
        """Divide the first *n* writable samples by the first *n* weights.

        Weights whose magnitude is at most ``NORMALIZE_EPSILON`` are
        treated as 1.

        Raises:
            ValueError: If *n* exceeds the writable part.
        """
        if n > self.remaining_space():
            raise ValueError(
                f"not enough space remaining in the circular buffer "
                f"({n} > {self.remaining_space()})"
            )
        if n <= 0:
            return

        values = weights.values(n)
        values = np.where(np.abs(values) <= NORMALIZE_EPSILON, 1.0, values)
        for start, end, offset in self._spans(self._read_pos + self._length, n):
            self._data[:, start:end] /= values[offset:offset + end - start]

    def set_readable(self, n: int) -> None:
        """Mark the next *n* writable samples as readable.

        Raises:
            ValueError: If there are fewer than *n* writable samples.
        """
        if n > self.remaining_space():
            raise ValueError(
                f"not enough space remaining in the circular buffer "
                f"({n} > {self.remaining_space()})"
            )
        self._length += n

    # ------------------------------------------------------------------
    # Readable part
    # ------------------------------------------------------------------

    def peek(self, samples: Buffer) -> int:
        """Copy up to ``len(samples)`` readable samples without consuming them.

        Returns the number of samples copied per channel.
        """
        self._check_channels(samples)
        n = min(len(samples), self._length)
        if n == 0:
            return 0

        dest = samples.planar
        for start, end, offset in self._spans(self._read_pos, n):
            dest[:, offset:offset + end - start] = self._data[:, start:end]
        return n

    def read(self, samples: Buffer) -> int:
        """Copy and consume up to ``len(samples)`` readable samples."""
        n = self.peek(samples)
        self.remove(n)
        return n

    def remove(self, n: int) -> None:
        """Drop the first *n* readable samples (all of them if *n* is larger).

        Their storage is zeroed, so that later :meth:`add` calls start from
        silence.
        """
        n = max(0, min(n, self._length))
        if n == 0:
            return

        for start, end, _ in self._spans(self._read_pos, n):
            self._data[:, start:end] = 0.0

        self._read_pos = (self._read_pos + n) % self._capacity
        self._length -= n

    def clear(self) -> None:
        """Reset the buffer to empty, zeroing all data."""
        self._data[:] = 0.0
        self._read_pos = 0
        self._length = 0

    # ------------------------------------------------------------------

    def _spans(self, position: int, n: int) -> Iterator[tuple[int, int, int]]:
        """Yield ``(start, end, offset)`` storage ranges covering *n* samples.

        *position* is an absolute (possibly unwrapped) position and *offset*
        is the index of ``start`` relative to it.
        """
        start = position % self._capacity
        end = start + n
        if end <= self._capacity:
            yield start, end, 0
        else:
            first = self._capacity - start
            yield start, self._capacity, 0
            yield 0, n - first, first

    def _check_channels(self, samples: Buffer) -> None:
        if samples.channels != self.channels:
            raise ValueError(
                f"the two buffers should have the same number of channels "
                f"({samples.channels} != {self.channels})"
            )
