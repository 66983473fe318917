"""
Shared pytest fixtures: small synthetic target grids.
"""

import numpy as np
import pytest


# -----------------------------------------------------------------------------
# Target grids
# -----------------------------------------------------------------------------
@pytest.fixture
def uniform_grid() -> np.ndarray:
    """41 columns x 37 rows of mid gray."""
    return np.full((37, 41), 128, dtype=np.uint8)


@pytest.fixture
def step_target() -> np.ndarray:
    """100x100 hard step: columns 0-49 = 10 (black half), 50-99 = 200 (white half)."""
    grid = np.full((100, 100), 200, dtype=np.uint8)
    grid[:, :50] = 10
    return grid


@pytest.fixture
def column_ramp() -> np.ndarray:
    """100x100 ramp, each column's intensity equals its index (0..99)."""
    return np.tile(np.arange(100, dtype=np.uint8), (100, 1))


@pytest.fixture
def noisy_target(step_target) -> np.ndarray:
    """Step target with Gaussian sensor noise (sigma 8), fixed seed."""
    rng = np.random.default_rng(7)
    noisy = step_target.astype(np.float64) + rng.normal(0.0, 8.0, step_target.shape)
    return np.clip(np.rint(noisy), 0, 255).astype(np.uint8)


@pytest.fixture
def two_level_tile() -> np.ndarray:
    """One 32x32 CLAHE tile, left half 100, right half 150."""
    tile = np.full((32, 32), 100, dtype=np.uint8)
    tile[:, 16:] = 150
    return tile
