"""tsmkit shared constants loaded from constants.yaml."""

from pathlib import Path

import yaml

_YAML_PATH = Path(__file__).resolve().with_name("constants.yaml")

with open(_YAML_PATH, encoding="utf-8") as f:
    _cfg = yaml.safe_load(f)

# --- Methods ---
DEFAULT_METHOD: str = _cfg["default_method"]
DEFAULT_SPEED: float = _cfg["default_speed"]
OLA_FRAME_LENGTH: int = _cfg["ola_frame_length"]
WSOLA_FRAME_LENGTH: int = _cfg["wsola_frame_length"]

# --- Overlap-add normalization ---
NORMALIZE_EPSILON: float = _cfg["normalize_epsilon"]

# --- Streaming front end ---
STREAM_BLOCK_SIZE: int = _cfg["stream_block_size"]
PLAYBACK_LATENCY_SEC: float = _cfg["playback_latency_sec"]
