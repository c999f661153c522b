"""tsmkit-play: file, streaming and playback front end for tsmkit-core."""

from tsmkit_play.streamer import ArraySource, TSMStreamer

__all__ = [
    "ArraySource",
    "TSMStreamer",
]
