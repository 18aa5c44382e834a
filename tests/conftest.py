"""Shared fixtures: synthetic image pairs and a headless matplotlib backend."""

from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest


def make_step_pair(size: int = 64, amplitude: int = 5, seed: int = 0):
    """Left half 100, right half 200, plus uniform integer noise in [-amplitude, amplitude]."""
    original = np.full((size, size), 100, dtype=np.uint8)
    original[:, size // 2:] = 200
    rng = np.random.default_rng(seed)
    noise = rng.integers(-amplitude, amplitude, size=original.shape, endpoint=True)
    noisy = np.clip(original.astype(np.int64) + noise, 0, 255).astype(np.uint8)
    return original, noisy


def make_flat_pair(size: int = 64, level: int = 128, amplitude: int = 10, seed: int = 1):
    """Constant image with uniform integer noise."""
    original = np.full((size, size), level, dtype=np.uint8)
    rng = np.random.default_rng(seed)
    noise = rng.integers(-amplitude, amplitude, size=original.shape, endpoint=True)
    noisy = np.clip(original.astype(np.int64) + noise, 0, 255).astype(np.uint8)
    return original, noisy


@pytest.fixture
def constant_pair():
    """4x4 pair: original all 100, noisy all 110."""
    return np.full((4, 4), 100, dtype=np.uint8), np.full((4, 4), 110, dtype=np.uint8)


@pytest.fixture
def step_pair():
    return make_step_pair()


@pytest.fixture
def flat_pair():
    return make_flat_pair()


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    import matplotlib.pyplot as plt
    plt.close("all")
