"""tsmkit-core: streaming time-scale modification (OLA / WSOLA)."""

from tsmkit_core.converters import Converter, OLAConverter, WSOLAConverter
from tsmkit_core.methods import METHODS, create_tsm, ola, wsola
from tsmkit_core.multichannel import Buffer, FlatBuffer, InterleavedBuffer
from tsmkit_core.normalize_buffer import NormalizeBuffer
from tsmkit_core.ring_buffer import CircularBuffer
from tsmkit_core.tsm import TSM, Settings
from tsmkit_core.window import hanning, product

__all__ = [
    "METHODS",
    "TSM",
    "Buffer",
    "CircularBuffer",
    "Converter",
    "FlatBuffer",
    "InterleavedBuffer",
    "NormalizeBuffer",
    "OLAConverter",
    "Settings",
    "WSOLAConverter",
    "create_tsm",
    "hanning",
    "ola",
    "product",
    "wsola",
]
