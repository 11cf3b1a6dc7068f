"""
Unit tests for the evaluation metrics.
"""

import pytest
import numpy as np

from hrtfsh.codec.metrics import (
    magnitude_db, magnitude_error, interaural_phase_delay, phase_delay_error,
    interaural_level_difference, interaural_time_difference, sh_energy_per_order, band_mean
)
from hrtfsh.codec.synthetic import synthetic_hrirs
from hrtfsh.codec.utils import DirectionGrid
from hrtfsh.codec.exceptions import ValidationError


class TestMagnitude:
    """Tests for magnitude metrics."""
    
    def test_magnitude_db(self):
        np.testing.assert_allclose(magnitude_db(np.array([1.0, 10.0, 0.1j])), [0.0, 20.0, -20.0])
        np.testing.assert_allclose(magnitude_db(np.array([0.0])), -240.0)
    
    def test_identical_sets_have_zero_error(self, random_hrtf):
        H = random_hrtf(9, 12)
        np.testing.assert_allclose(magnitude_error(H, H), 0.0)
    
    def test_known_error(self, random_hrtf):
        H = random_hrtf(9, 12)
        err = magnitude_error(H, 2 * H)
        assert err.shape == (9, 2)
        np.testing.assert_allclose(err, 20 * np.log10(2))
    
    def test_weighted_error(self, random_hrtf):
        H = random_hrtf(3, 2)
        test = H.copy()
        test[:, 1] *= 10.0
        np.testing.assert_allclose(magnitude_error(H, test, weights=[3.0, 1.0]), 5.0)
    
    def test_shape_mismatch(self, random_hrtf):
        with pytest.raises(ValidationError):
            magnitude_error(random_hrtf(9, 12), random_hrtf(9, 11))


class TestInterauralCues:
    """Tests for inter-aural phase delay, time and level difference."""
    
    def _delayed(self, tau_left, tau_right):
        f = np.linspace(0, 24000, 65)
        omega = 2 * np.pi * f
        H = np.stack([np.exp(-1j * omega * tau_left), np.exp(-1j * omega * tau_right)], axis=-1)
        return H[:, None, :], f
    
    def test_phase_delay_of_pure_delays(self):
        H, f = self._delayed(1e-4, 3e-4)
        pd = interaural_phase_delay(H, f)
        assert pd.shape == (65, 1)
        assert np.isnan(pd[0, 0])
        np.testing.assert_allclose(pd[1:, 0], -200.0, atol=1e-6)
    
    def test_phase_delay_error(self):
        H, f = self._delayed(1e-4, 3e-4)
        H_test, _ = self._delayed(1e-4, 2e-4)
        err = phase_delay_error(H, H_test, f)
        assert np.isnan(err[0])
        np.testing.assert_allclose(err[1:], 100.0, atol=1e-6)
    
    def test_interaural_level_difference(self):
        h = np.zeros((16, 2, 2))
        h[0, :, 0] = 2.0
        h[0, :, 1] = 1.0
        h[0, 1, 1] = 4.0
        np.testing.assert_allclose(interaural_level_difference(h),
                                   [20 * np.log10(2), -20 * np.log10(2)])
    
    def test_time_difference_of_delayed_impulses(self):
        h = np.zeros((512, 2, 2))
        h[250, 0, 0] = 1.0
        h[254, 0, 1] = 1.0
        h[260, 1, 0] = 0.5
        h[250, 1, 1] = 1.0
        itd = interaural_time_difference(h, 48000)
        assert itd.shape == (2,)
        assert itd[0] == pytest.approx(-4 / 48000 * 1e6, abs=1e-6)
        assert itd[1] == pytest.approx(10 / 48000 * 1e6, abs=1e-6)
    
    def test_time_difference_of_lateral_sources(self):
        grid = DirectionGrid(np.radians([90.0, -90.0, 0.0]), np.zeros(3))
        h = synthetic_hrirs(grid, sample_rate=48000, n_fft=512)
        itd = interaural_time_difference(h, 48000)
        
        one_sample = 1e6 / 48000
        assert 300.0 < -itd[0] < 1200.0
        assert itd[1] == pytest.approx(-itd[0], abs=one_sample)
        assert itd[2] == 0.0
    
    def test_time_difference_invalid(self):
        with pytest.raises(ValidationError):
            interaural_time_difference(np.zeros((64, 3)), 48000)
        with pytest.raises(ValidationError):
            interaural_time_difference(np.zeros((64, 3, 2)), 48000, cutoff=24000.0)


class TestCoefficientEnergy:
    """Tests for the SH energy distribution and band averaging."""
    
    def test_energy_per_order(self):
        C = np.zeros((9, 4, 2), dtype=complex)
        C[1:4] = 1.0  # degree 1, three coefficients
        energy = sh_energy_per_order(C)
        assert energy.shape == (4, 3, 2)
        np.testing.assert_allclose(energy[:, 1], 10 * np.log10(3))
        np.testing.assert_allclose(energy[:, 0], -120.0)
    
    def test_incomplete_order(self):
        with pytest.raises(ValidationError):
            sh_energy_per_order(np.zeros((5, 2, 2)))
    
    def test_band_mean(self):
        f = np.array([0.0, 1000.0, 2000.0, 3000.0])
        values = np.array([np.nan, 1.0, 3.0, 100.0])
        assert band_mean(values, f, 0.0, 3000.0) == 2.0
        assert band_mean(values, f, 3000.0) == 100.0
        with pytest.raises(ValidationError):
            band_mean(values, f, 5000.0)
