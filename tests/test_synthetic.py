"""
Unit tests for the synthetic spherical-head HRTF generator.
"""

import numpy as np

from hrtfsh.codec.synthetic import synthetic_hrirs, woodworth_delay, head_shadow
from hrtfsh.codec.metrics import interaural_level_difference
from hrtfsh.codec.sampling import DirectionGrid, fibonacci_grid


class TestSyntheticHRIRs:
    """Tests for the synthetic impulse responses."""
    
    def test_shape_and_finite(self):
        h = synthetic_hrirs(fibonacci_grid(10), n_fft=64)
        assert h.shape == (64, 10, 2)
        assert np.isrealobj(h)
        assert np.isfinite(h).all()
    
    def test_lateral_source_is_louder_at_near_ear(self):
        grid = DirectionGrid.from_degrees([90.0, -90.0], [0.0, 0.0])
        ild = interaural_level_difference(synthetic_hrirs(grid, n_fft=256))
        assert ild[0] > 1.0
        assert ild[1] < -1.0
    
    def test_frontal_source_is_symmetric(self):
        grid = DirectionGrid.from_degrees([0.0], [0.0])
        h = synthetic_hrirs(grid, n_fft=128)
        np.testing.assert_allclose(h[:, 0, 0], h[:, 0, 1], atol=1e-12)


class TestModelComponents:
    """Tests for the delay and head-shadow models."""
    
    def test_woodworth_delay(self):
        grid = DirectionGrid.from_degrees([90.0, 0.0], [0.0, 0.0])
        delay = woodworth_delay(grid, 0.0875, 343.0)
        # near ear leads by r/c, far ear lags by r·(π/2)/c
        np.testing.assert_allclose(delay[0], [-0.0875 / 343.0, 0.0875 * np.pi / 2 / 343.0])
        np.testing.assert_allclose(delay[1], [0.0, 0.0], atol=1e-15)
    
    def test_head_shadow_at_dc(self):
        shadow = head_shadow(np.array([0.0, 10000.0]), fibonacci_grid(8))
        np.testing.assert_allclose(shadow[0], 1.0)
        assert np.all(np.abs(shadow[1]) > 0)
