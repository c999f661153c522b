"""Multi-channel sample containers.

Every buffer exposes its samples as a ``[channels, length]`` numpy view
(:attr:`Buffer.planar`), whatever its storage layout, so the engine can copy
blocks of samples in and out without caring how the caller stores them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from tsmkit_core.window import apply_window


class Buffer(ABC):
    """A sequence of frames across ``channels`` channels.

    Subclasses only have to provide :attr:`planar` and :meth:`slice`.
    """

    @property
    @abstractmethod
    def planar(self) -> np.ndarray:
        """``[channels, length]`` view sharing storage with the buffer."""

    @abstractmethod
    def slice(self, start: int, stop: int) -> Buffer:
        """Return a view of the samples in ``[start, stop)`` of every channel."""

    @property
    def channels(self) -> int:
        return self.planar.shape[0]

    def __len__(self) -> int:
        return self.planar.shape[1]

    def sample(self, channel: int, index: int) -> float:
        """Return the *index*-th sample of the *channel*-th channel."""
        self._check_index(channel, index)
        return float(self.planar[channel, index])

    def set_sample(self, channel: int, index: int, value: float) -> None:
        self._check_index(channel, index)
        self.planar[channel, index] = value

    def _check_index(self, channel: int, index: int) -> None:
        if not 0 <= channel < self.channels:
            raise IndexError(f"channel {channel} out of range [0, {self.channels})")
        if not 0 <= index < len(self):
            raise IndexError(f"sample index {index} out of range [0, {len(self)})")

    def _check_slice(self, start: int, stop: int) -> None:
        if start < 0 or stop > len(self) or start > stop:
            raise IndexError(f"invalid slice [{start}, {stop}) of a buffer of length {len(self)}")


class FlatBuffer(Buffer):
    """Fixed-length buffer storing one contiguous row per channel.

    This is the format used internally for analysis and synthesis frames,
    and the default transport format of the engine.

    Parameters
    ----------
    channels : int
        Number of channels.
    length : int
        Number of samples per channel. All samples start at zero.
    """

    def __init__(self, channels: int, length: int) -> None:
        self._data: np.ndarray = np.zeros((channels, length), dtype=np.float64)

    @classmethod
    def from_array(cls, data: np.ndarray) -> FlatBuffer:
        """Wrap a ``[channels, length]`` array (or a 1-D mono array) without copying."""
        data = np.asarray(data)
        if data.ndim == 1:
            data = data[np.newaxis, :]
        if data.ndim != 2:
            raise ValueError(f"Expected a 1-D or 2-D array, got shape {data.shape}")
        buffer = cls.__new__(cls)
        buffer._data = data
        return buffer

    @property
    def planar(self) -> np.ndarray:
        return self._data

    def slice(self, start: int, stop: int) -> FlatBuffer:
        self._check_slice(start, stop)
        return FlatBuffer.from_array(self._data[:, start:stop])

    def channel(self, channel: int) -> np.ndarray:
        """Return the samples of one channel (a view)."""
        if not 0 <= channel < self.channels:
            raise IndexError(f"channel {channel} out of range [0, {self.channels})")
        return self._data[channel]

    def set_channel(self, channel: int, values: np.ndarray) -> None:
        """Replace the samples of one channel."""
        if not 0 <= channel < self.channels:
            raise IndexError(f"channel {channel} out of range [0, {self.channels})")
        if len(values) != len(self):
            raise ValueError(
                f"channel length mismatch ({len(values)} != {len(self)})"
            )
        self._data[channel] = values

    def apply_window(self, window: np.ndarray) -> None:
        """Multiply every channel by *window* element-wise, in place.

        Raises:
            ValueError: If the window and the buffer lengths differ.
        """
        apply_window(self._data, window)

    def __repr__(self) -> str:
        return f"FlatBuffer(channels={self.channels}, length={len(self)})"


class InterleavedBuffer(Buffer):
    """Buffer over a frame-major ``[length, channels]`` array.

    This is the layout of the arrays returned by ``soundfile`` and passed to
    ``sounddevice`` callbacks (e.g. stereo pairs). The array is used in
    place: writes through the buffer land in the caller's array.
    """

    def __init__(self, data: np.ndarray) -> None:
        data = np.asarray(data)
        if data.ndim == 1:
            data = data[:, np.newaxis]
        if data.ndim != 2:
            raise ValueError(f"Expected a 1-D or 2-D array, got shape {data.shape}")
        self._data: np.ndarray = data

    @property
    def planar(self) -> np.ndarray:
        return self._data.T

    @property
    def interleaved(self) -> np.ndarray:
        return self._data

    def slice(self, start: int, stop: int) -> InterleavedBuffer:
        self._check_slice(start, stop)
        return InterleavedBuffer(self._data[start:stop])

    def __repr__(self) -> str:
        return f"InterleavedBuffer(channels={self.channels}, length={len(self)})"


def as_buffer(samples: Buffer | np.ndarray) -> Buffer:
    """Return *samples* as a :class:`Buffer`, wrapping planar arrays."""
    if isinstance(samples, Buffer):
        return samples
    return FlatBuffer.from_array(samples)
