"""Test configuration and fixtures."""

import numpy as np
import pytest

from tests.fixtures.synthetic_data import create_synthetic_raw


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def synthetic_raw():
    """16 channel, 250 Hz, 30 s recording with standard 10-20 positions."""
    return create_synthetic_raw(
        n_channels=16, sfreq=250, duration=30, montage="standard_1020"
    )
