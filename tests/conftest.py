"""
Pytest configuration file for hrtfsh tests.
"""

import pytest
import numpy as np

from hrtfsh.codec.config import InterpolatorConfig
from hrtfsh.codec.sampling import fibonacci_grid
from hrtfsh.codec.spectral import forward, frequency_vector
from hrtfsh.codec.synthetic import synthetic_hrirs


SAMPLE_RATE = 48000
N_FFT = 128


@pytest.fixture
def test_config():
    """Return a test configuration without zero-padding."""
    return InterpolatorConfig(n_fft=None, sample_rate=SAMPLE_RATE)


@pytest.fixture(scope="session")
def dense_grid():
    """A dense, nearly uniform grid (enough directions for order 10)."""
    return fibonacci_grid(400)


@pytest.fixture(scope="session")
def synthetic_hrir_set(dense_grid):
    """Synthetic spherical-head HRIRs on the dense grid."""
    return synthetic_hrirs(dense_grid, sample_rate=SAMPLE_RATE, n_fft=N_FFT, onset=0.5e-3)


@pytest.fixture(scope="session")
def synthetic_hrtf_set(synthetic_hrir_set):
    """One-sided transfer functions of the synthetic HRIRs."""
    return forward(synthetic_hrir_set)


@pytest.fixture(scope="session")
def frequencies(synthetic_hrtf_set):
    """Bin frequencies of the synthetic transfer functions."""
    return frequency_vector(N_FFT, SAMPLE_RATE)


@pytest.fixture
def random_hrtf():
    """Random complex transfer functions factory (n_bins, n_directions, 2)."""
    def make(n_bins, n_directions, seed=0):
        rng = np.random.default_rng(seed)
        return (rng.standard_normal((n_bins, n_directions, 2))
                + 1j * rng.standard_normal((n_bins, n_directions, 2)))
    return make
