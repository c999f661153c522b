"""Real-time playback of a :class:`~tsmkit_play.streamer.TSMStreamer` with ``sounddevice``."""

from __future__ import annotations

import logging
import threading
import time

import numpy as np

from tsmkit_core.constants import PLAYBACK_LATENCY_SEC, STREAM_BLOCK_SIZE
from tsmkit_play.streamer import TSMStreamer

logger = logging.getLogger(__name__)


class Player:
    """Play a streamer on the default (or given) output device.

    The engine runs inside the ``sounddevice`` callback, one block at a
    time; the calling thread only waits for the end of the stream.

    Parameters
    ----------
    streamer : TSMStreamer
        Source of stretched samples.
    samplerate : int
        Sample rate of the stream.
    blocksize : int
        Number of frames per callback.
    device : int or str or None
        Output device index or name. *None* for the system default.
    """

    def __init__(
        self,
        streamer: TSMStreamer,
        samplerate: int,
        blocksize: int = STREAM_BLOCK_SIZE,
        device: int | str | None = None,
    ) -> None:
        self._streamer = streamer
        self._samplerate = samplerate
        self._blocksize = blocksize
        self._device = device
        self._stream: object | None = None
        self._done = threading.Event()
        self.underruns: int = 0

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start_stream(self) -> None:
        """Open and start the output stream."""
        import sounddevice as sd

        self._done.clear()
        self._stream = sd.OutputStream(
            samplerate=self._samplerate,
            blocksize=self._blocksize,
            device=self._device,
            channels=self._streamer.tsm.channels,
            dtype="float32",
            latency=PLAYBACK_LATENCY_SEC,
            callback=self._audio_callback,
        )
        self._stream.start()

    def stop_stream(self) -> None:
        """Stop and close the output stream."""
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

    def play(self) -> None:
        """Play the whole stream, blocking until it is over."""
        self.start_stream()
        try:
            self._done.wait()
            # Let the device play the last blocks.
            time.sleep(PLAYBACK_LATENCY_SEC * 2)
        finally:
            self.stop_stream()
        if self.underruns:
            logger.warning("%d output underruns during playback", self.underruns)

    def _audio_callback(
        self,
        outdata: np.ndarray,
        frames: int,
        time_info: object,
        status: object,
    ) -> None:
        """Output callback for ``sounddevice.OutputStream``.

        Parameters
        ----------
        outdata : np.ndarray
            Output buffer to fill, shape ``(frames, channels)``.
        frames : int
            Number of frames in this callback.
        time_info : object
            Timing information from PortAudio.
        status : object
            Stream status flags.
        """
        if getattr(status, "output_underflow", False):
            self.underruns += 1
            logger.debug("Output underrun")

        if self._done.is_set():
            outdata[:] = 0.0
            return

        block = np.zeros((frames, outdata.shape[1]), dtype=np.float64)
        n, ok = self._streamer.stream(block)
        outdata[:] = block
        if not ok:
            logger.debug("End of playback after a %d-frame block", n)
            self._done.set()
