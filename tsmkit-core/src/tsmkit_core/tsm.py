"""Analysis-synthesis time-scale modification engine.

The input signal is cut into overlapping *analysis frames* of
``frame_length`` samples, ``analysis_hop`` samples apart::

              <--------frame_length--------><-analysis_hop->
    Frame 1:  [~~~~~~~~~~~~~~~~~~~~~~~~~~~~]
    Frame 2:                 [~~~~~~~~~~~~~~~~~~~~~~~~~~~~]

Each one is turned into a *synthesis frame* by a
:class:`~tsmkit_core.converters.Converter`, and the synthesis frames are
overlap-added ``synthesis_hop`` samples apart. The speed of the signal is
multiplied by ``analysis_hop / synthesis_hop`` while its pitch is kept.
Optional analysis and synthesis windows smooth the frames; the amplitude
change they cause is undone by dividing each output sample by the sum of
the window weights it received.

The engine is streaming: samples are pushed with :meth:`TSM.put`, the
result is pulled with :meth:`TSM.receive`, and :meth:`TSM.flush` drains it
at the end of the stream. Memory use is bounded by three fixed circular
buffers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import numpy as np

from tsmkit_core.converters import Converter
from tsmkit_core.multichannel import Buffer, FlatBuffer, as_buffer
from tsmkit_core.normalize_buffer import NormalizeBuffer
from tsmkit_core.ring_buffer import CircularBuffer
from tsmkit_core.window import product

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Parameters of a :class:`TSM`.

    ``delta_before`` and ``delta_after`` are the extra samples before and
    after the nominal analysis frame that the converter needs to look at
    (non-zero for WSOLA only). The analysis frame handed to the converter
    is ``delta_before + frame_length + delta_after`` samples long.
    """

    channels: int
    analysis_hop: int
    synthesis_hop: int
    frame_length: int
    converter: Converter
    analysis_window: np.ndarray | None = None
    synthesis_window: np.ndarray | None = None
    delta_before: int = 0
    delta_after: int = 0

    @property
    def analysis_frame_length(self) -> int:
        return self.delta_before + self.frame_length + self.delta_after

    def validate(self) -> None:
        if self.channels <= 0:
            raise ValueError(f"channels must be positive, got {self.channels}")
        for name in ("analysis_hop", "synthesis_hop", "frame_length"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.delta_before < 0 or self.delta_after < 0:
            raise ValueError(
                f"delta_before and delta_after must be non-negative, "
                f"got {self.delta_before} and {self.delta_after}"
            )
        if self.analysis_window is not None and len(self.analysis_window) not in (
            self.frame_length,
            self.analysis_frame_length,
        ):
            raise ValueError(
                f"analysis_window has length {len(self.analysis_window)}, expected "
                f"{self.frame_length} or {self.analysis_frame_length}"
            )
        if self.synthesis_window is not None and len(self.synthesis_window) != self.frame_length:
            raise ValueError(
                f"synthesis_window has length {len(self.synthesis_window)}, "
                f"expected {self.frame_length}"
            )


def _copy_window(window: np.ndarray | None) -> np.ndarray | None:
    return None if window is None else np.array(window, dtype=np.float64)


class TSM:
    """Streaming time-scale modification procedure.

    Parameters
    ----------
    settings : Settings
        Engine configuration. Only ``analysis_hop`` changes afterwards
        (see :meth:`set_speed`).

    Raises
    ------
    ValueError
        If the settings are inconsistent (non-positive sizes, window
        length mismatch).
    """

    def __init__(self, settings: Settings) -> None:
        settings.validate()
        # Private copy: set_speed must not leak into the caller's settings.
        self._s = replace(
            settings,
            analysis_window=_copy_window(settings.analysis_window),
            synthesis_window=_copy_window(settings.synthesis_window),
        )
        settings = self._s

        # A window over the extended analysis frame only weighs the output
        # through its nominal part.
        analysis_window = settings.analysis_window
        if analysis_window is not None and len(analysis_window) != settings.frame_length:
            start = settings.delta_before
            analysis_window = np.asarray(analysis_window)[start:start + settings.frame_length]
        self._normalize_window = product(analysis_window, settings.synthesis_window)

        # The output holds one synthesis frame, or one synthesis hop when
        # the hop is larger (the gap between frames is silence).
        out_length = max(settings.frame_length, settings.synthesis_hop)

        self._in_buffer = CircularBuffer(settings.channels, settings.analysis_frame_length)
        self._analysis_frame = FlatBuffer(settings.channels, settings.analysis_frame_length)
        self._out_buffer = CircularBuffer(settings.channels, out_length)
        self._normalize_buffer = NormalizeBuffer(out_length)
        self._silence = FlatBuffer(settings.channels, settings.analysis_frame_length)

        # Input samples to drop before the next analysis frame, when the
        # analysis hop is larger than the input buffer.
        self._skip_input_samples = 0
        # Output samples to drop after a clear (half-frame left padding).
        self._skip_output_samples = 0

        # End-of-stream bookkeeping, in samples since the last clear.
        self._frames = 0
        self._input_length = 0
        self._output_length = 0
        self._frame_center = 0
        self._frame_output = 0
        self._last_frame: tuple[int, int, int] | None = None
        self._output_end: int | None = None

        self.clear()
        logger.debug(
            "TSM created: channels=%d frame_length=%d analysis_hop=%d synthesis_hop=%d "
            "converter=%s",
            settings.channels,
            settings.frame_length,
            settings.analysis_hop,
            settings.synthesis_hop,
            type(settings.converter).__name__,
        )

    @property
    def settings(self) -> Settings:
        return self._s

    @property
    def channels(self) -> int:
        return self._s.channels

    @property
    def speed(self) -> float:
        return self._s.analysis_hop / self._s.synthesis_hop

    # ------------------------------------------------------------------
    # Streaming interface
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Reset the engine so it can process another, independent signal.

        Called automatically by :meth:`flush` at the end of a stream.
        """
        self._in_buffer.clear()
        self._out_buffer.clear()
        self._normalize_buffer.clear()

        # Left pad the input with half a frame of zeros and drop that half
        # frame from the output: the output then starts at the middle of
        # the first frame, where the window peaks.
        self._in_buffer.set_readable(self._s.delta_before + self._s.frame_length // 2)
        self._skip_output_samples = self._s.frame_length // 2
        self._skip_input_samples = 0

        self._frames = 0
        self._input_length = 0
        self._output_length = 0
        self._frame_center = 0
        self._frame_output = 0
        self._last_frame = None
        self._output_end = None

        self._s.converter.clear()

    def put(self, samples: Buffer | np.ndarray) -> int:
        """Read samples from *samples* and process them when possible.

        Returns the number of samples (per channel) that were consumed. The
        caller should offer the remaining ones again later; offering
        :meth:`remaining_input_space` samples guarantees that all are
        consumed.
        """
        n = self._absorb(as_buffer(samples))
        self._input_length += n
        return n

    def receive(self, samples: Buffer | np.ndarray) -> int:
        """Write processed samples to *samples*.

        Returns the number of samples written per channel. A value lower
        than ``len(samples)`` means no more output is ready: call
        :meth:`put` with more input, or :meth:`flush` at the end of the
        stream.
        """
        return self._read_output(as_buffer(samples))

    def flush(self, samples: Buffer | np.ndarray) -> int:
        """Write the last output samples, assuming no more input will come.

        The input still buffered is processed by padding it with silence.
        Returns the number of samples written per channel; a value lower
        than ``len(samples)`` means the stream is over, and the engine has
        been cleared.
        """
        buffer = as_buffer(samples)
        expected = len(buffer)

        n = self._read_output(buffer)
        while n < expected and self._process_tail():
            n += self._read_output(buffer.slice(n, expected))

        if n < expected:
            logger.debug(
                "End of stream: %d input samples, %d output samples",
                self._input_length,
                self._output_length,
            )
            self.clear()
        return n

    def remaining_input_space(self) -> int:
        """Return how many samples :meth:`put` is guaranteed to consume."""
        return self._skip_input_samples + self._in_buffer.remaining_space()

    def set_speed(self, speed: float) -> None:
        """Change the speed ratio, from the next analysis frame on.

        Raises:
            ValueError: If *speed* is not positive.
        """
        if not speed > 0:
            raise ValueError(f"speed must be positive, got {speed}")
        self._s.analysis_hop = max(1, int(round(self._s.synthesis_hop * speed)))

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _absorb(self, samples: Buffer) -> int:
        """Skip and buffer input samples, and process a frame if possible."""
        length = len(samples)
        skipped = min(self._skip_input_samples, length)
        self._skip_input_samples -= skipped
        n = skipped + self._in_buffer.write(samples.slice(skipped, length))

        if (
            self._in_buffer.remaining_space() == 0
            and self._out_buffer.remaining_space() >= self._out_buffer.capacity
        ):
            # The input buffer holds a whole analysis frame and the output
            # buffer has room for the result.
            removed = self._process_frame()

            if self._skip_output_samples > 0:
                dropped = min(self._skip_output_samples, len(self._out_buffer))
                self._out_buffer.remove(dropped)
                self._skip_output_samples -= dropped

            # The input buffer also holds the deltas, so only the samples
            # actually removed count towards the hop.
            self._skip_input_samples = self._s.analysis_hop - removed

        return n

    def _process_frame(self) -> int:
        """Turn the next analysis frame into output samples.

        Returns the number of input samples removed from the input buffer.
        """
        s = self._s

        # Peek the whole frame (deltas included), but only discard one
        # analysis hop: the deltas overlap the next frame.
        self._in_buffer.peek(self._analysis_frame)
        removed = min(s.analysis_hop, len(self._in_buffer))
        self._in_buffer.remove(removed)

        if s.analysis_window is not None:
            if len(s.analysis_window) == s.analysis_frame_length:
                self._analysis_frame.apply_window(s.analysis_window)
            else:
                self._analysis_frame.slice(
                    s.delta_before, s.delta_before + s.frame_length
                ).apply_window(s.analysis_window)

        synthesis_frame = s.converter.convert(self._analysis_frame)

        if s.synthesis_window is not None:
            synthesis_frame.apply_window(s.synthesis_window)

        # Overlap-add, and keep track of how much window weight each output
        # sample received so it can be normalized.
        self._out_buffer.add(synthesis_frame)
        if self._normalize_window is not None:
            self._normalize_buffer.add(self._normalize_window)

        # The first synthesis_hop samples will not receive any more frames.
        self._out_buffer.divide(self._normalize_buffer, s.synthesis_hop)
        self._normalize_buffer.remove(s.synthesis_hop)
        self._out_buffer.set_readable(s.synthesis_hop)

        self._last_frame = (self._frame_center, self._frame_output, s.analysis_hop)
        self._frame_center += s.analysis_hop
        self._frame_output += s.synthesis_hop
        self._frames += 1
        return removed

    def _read_output(self, buffer: Buffer) -> int:
        limit = len(buffer)
        if self._output_end is not None:
            limit = max(0, min(limit, self._output_end - self._output_length))
        n = self._out_buffer.read(buffer.slice(0, limit))
        self._output_length += n
        return n

    def _process_tail(self) -> bool:
        """Push silence through the engine to finalize the end of the stream.

        Returns ``False`` once every output sample corresponding to the
        absorbed input has been made readable.
        """
        if len(self._out_buffer) > 0:
            # Readable output must be drained before another frame fits.
            return False
        self._locate_output_end()
        ready = self._frame_output - self._s.frame_length // 2
        if self._output_end is not None and ready >= self._output_end:
            return False

        frames = self._frames
        while self._frames == frames:
            n = min(len(self._silence), self.remaining_input_space())
            self._absorb(self._silence.slice(0, n))
        self._locate_output_end()
        return True

    def _locate_output_end(self) -> None:
        """Map the end of the input to a position in the output.

        The last input sample falls between the centers of two consecutive
        analysis frames; it is mapped linearly between the centers of the
        corresponding synthesis frames.
        """
        if self._output_end is not None or self._frame_center <= self._input_length:
            return
        center, position, hop = self._last_frame
        self._output_end = position + int(
            round((self._input_length - center) * self._s.synthesis_hop / hop)
        )
