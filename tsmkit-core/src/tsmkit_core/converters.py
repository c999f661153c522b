"""Frame converters: turn an analysis frame into a synthesis frame.

Two strategies plug into :class:`~tsmkit_core.tsm.TSM`:

- :class:`OLAConverter` -- plain overlap-add, the frame is used as is.
  Works well on percussive material.
- :class:`WSOLAConverter` -- waveform-similarity overlap-add. The analysis
  frame is extended by ``tolerance`` samples on each side, and the
  synthesis frame is the part of it that best continues the previous
  synthesis frame, which removes most of the phasing artifacts of OLA on
  quasi-periodic signals.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from tsmkit_core.multichannel import FlatBuffer


class Converter(ABC):
    """Conversion of analysis frames into synthesis frames."""

    #: Samples needed before the nominal analysis frame.
    delta_before: int = 0
    #: Samples needed after the nominal analysis frame.
    delta_after: int = 0

    @abstractmethod
    def convert(self, analysis_frame: FlatBuffer) -> FlatBuffer:
        """Return the synthesis frame for *analysis_frame*.

        The returned buffer has ``delta_before + delta_after`` fewer
        samples than the analysis frame. It may be the analysis frame
        itself, and is only valid until the next call.
        """

    def clear(self) -> None:
        """Reset the converter before processing another signal."""


class OLAConverter(Converter):
    """Identity conversion used by the OLA (overlap-add) procedure."""

    def convert(self, analysis_frame: FlatBuffer) -> FlatBuffer:
        return analysis_frame


def cross_correlation(buffer1: np.ndarray, buffer2: np.ndarray, offset: int) -> float:
    """Return ``sum(buffer1[i] * buffer2[offset + i])``."""
    n = len(buffer1)
    return float(np.dot(buffer1, buffer2[offset:offset + n]))


def maximize_cross_correlation(
    reference: np.ndarray,
    candidate: np.ndarray,
    tolerance: int,
) -> int:
    """Return the offset in ``[0, 2 * tolerance)`` best aligning *candidate* with *reference*.

    The offset with the strictly largest cross-correlation wins, so ties go
    to the lowest offset. Offset 0 is always evaluated. If the best value is
    exactly zero (e.g. silence on either side), ``tolerance`` is returned
    instead, which keeps the frame at its unshifted position.
    """
    n = len(reference)
    n_offsets = max(1, 2 * tolerance)
    values = np.correlate(candidate[: n_offsets + n - 1], reference, mode="valid")

    best = int(np.argmax(values))
    if values[best] == 0:
        return tolerance
    return best


class WSOLAConverter(Converter):
    """Conversion for the WSOLA (waveform similarity-based overlap-add) procedure.

    Parameters
    ----------
    channels : int
        Number of channels.
    frame_length : int
        Length of the synthesis frames.
    synthesis_hop : int
        Distance between two consecutive synthesis frames.
    tolerance : int
        Maximum shift, in samples, applied to an analysis frame.
    """

    def __init__(
        self,
        channels: int,
        frame_length: int,
        synthesis_hop: int,
        tolerance: int,
    ) -> None:
        if tolerance < 0:
            raise ValueError(f"tolerance must be non-negative, got {tolerance}")
        self._frame_length = frame_length
        self._synthesis_hop = synthesis_hop
        self._tolerance = tolerance

        self.delta_before = tolerance
        self.delta_after = tolerance + synthesis_hop

        # What the next synthesis frame would be if the signal was played
        # at its normal speed.
        self._natural_progression = FlatBuffer(channels, frame_length)
        self._synthesis_frame = FlatBuffer(channels, frame_length)

    @property
    def tolerance(self) -> int:
        return self._tolerance

    def convert(self, analysis_frame: FlatBuffer) -> FlatBuffer:
        frame = analysis_frame.planar
        natural = self._natural_progression.planar
        synthesis = self._synthesis_frame.planar

        for k in range(frame.shape[0]):
            delta = maximize_cross_correlation(natural[k], frame[k], self._tolerance)

            synthesis[k] = frame[k, delta:delta + self._frame_length]

            delta += self._synthesis_hop
            natural[k] = frame[k, delta:delta + self._frame_length]

        return self._synthesis_frame

    def clear(self) -> None:
        self._natural_progression.planar[:] = 0.0
