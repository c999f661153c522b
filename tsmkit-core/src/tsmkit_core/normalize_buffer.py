"""Mono circular buffer accumulating overlap-add window weights."""

from __future__ import annotations

import numpy as np


class NormalizeBuffer:
    """Circular buffer of accumulated window energy.

    Index ``i`` holds the sum of the window weights that every synthesis
    frame added so far contributed to the ``i``-th not yet finalized output
    sample. The cursor advances in step with the writable part of the
    output :class:`~tsmkit_core.ring_buffer.CircularBuffer`.
    """

    def __init__(self, capacity: int) -> None:
        self._capacity: int = capacity
        self._data: np.ndarray = np.zeros(capacity, dtype=np.float64)
        self._pos: int = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, window: np.ndarray) -> None:
        """Add *window* element-wise starting at the cursor.

        Raises:
            ValueError: If the window is longer than the buffer.
        """
        n = len(window)
        if n > self._capacity:
            raise ValueError(
                f"the window should be smaller than the buffer ({n} > {self._capacity})"
            )
        if n == 0:
            return

        start = self._pos
        end = start + n
        if end <= self._capacity:
            self._data[start:end] += window
        else:
            first = self._capacity - start
            self._data[start:] += window[:first]
            self._data[: n - first] += window[first:]

    def get(self, i: int) -> float:
        """Return the accumulated weight at offset *i* from the cursor."""
        if not 0 <= i < self._capacity:
            raise IndexError(f"index {i} out of range [0, {self._capacity})")
        return float(self._data[(self._pos + i) % self._capacity])

    def values(self, n: int) -> np.ndarray:
        """Return a copy of the first *n* weights from the cursor."""
        if not 0 <= n <= self._capacity:
            raise IndexError(f"cannot read {n} values from a buffer of capacity {self._capacity}")
        start = self._pos
        end = start + n
        if end <= self._capacity:
            return self._data[start:end].copy()
        first = self._capacity - start
        return np.concatenate([self._data[start:], self._data[: n - first]])

    def remove(self, n: int) -> None:
        """Zero the first *n* weights and move the cursor past them."""
        if self._capacity == 0 or n <= 0:
            return
        count = min(n, self._capacity)

        start = self._pos
        end = start + count
        if end <= self._capacity:
            self._data[start:end] = 0.0
        else:
            self._data[start:] = 0.0
            self._data[: end - self._capacity] = 0.0
        self._pos = (self._pos + n) % self._capacity

    def clear(self) -> None:
        self._data[:] = 0.0
        self._pos = 0
