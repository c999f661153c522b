"""Shared test fixtures: synthetic signals."""

from __future__ import annotations

import numpy as np
import pytest

SAMPLE_RATE = 8000


@pytest.fixture
def sample_rate() -> int:
    return SAMPLE_RATE


@pytest.fixture
def sine_mono() -> np.ndarray:
    """1000 samples of a unit-amplitude 200 Hz sine at 8 kHz, shape [1, 1000]."""
    t = np.arange(1000) / SAMPLE_RATE
    return np.sin(2 * np.pi * 200.0 * t)[np.newaxis, :]


@pytest.fixture
def sine_stereo() -> np.ndarray:
    """4000 samples of two sines (220 Hz / 330 Hz), shape [2, 4000]."""
    t = np.arange(4000) / SAMPLE_RATE
    return np.stack([
        0.5 * np.sin(2 * np.pi * 220.0 * t),
        0.5 * np.sin(2 * np.pi * 330.0 * t),
    ])


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
