"""Window functions used to taper analysis and synthesis frames."""

from __future__ import annotations

import numpy as np


def hanning(n: int) -> np.ndarray:
    """Return a periodic Hann window of *n* samples.

    The value at index 0 is the minimum of the curve, so frames overlapped by
    ``n // 2`` sum to a constant envelope (unlike :func:`numpy.hanning`,
    which is symmetric).
    """
    if n <= 0:
        return np.zeros(0)
    k = np.arange(n)
    return 0.5 * (1.0 - np.cos(2.0 * np.pi * k / n))


def product(window1: np.ndarray | None, window2: np.ndarray | None) -> np.ndarray | None:
    """Return the element-wise product of two windows.

    ``None`` stands for "no window": if one of the windows is ``None`` the
    other one is returned unchanged, and ``None`` is returned if both are.

    Raises:
        ValueError: If both windows are given with different lengths.
    """
    if window1 is None:
        return window2
    if window2 is None:
        return window1

    if len(window1) != len(window2):
        raise ValueError(
            f"the two windows should have the same length ({len(window1)} != {len(window2)})"
        )
    return np.asarray(window1, dtype=np.float64) * np.asarray(window2, dtype=np.float64)


def apply_window(data: np.ndarray, window: np.ndarray) -> None:
    """Multiply each row of a ``[channels, n]`` array by *window*, in place."""
    if data.shape[-1] != len(window):
        raise ValueError(
            f"the buffer and the window should have the same length "
            f"({data.shape[-1]} != {len(window)})"
        )
    data *= window
