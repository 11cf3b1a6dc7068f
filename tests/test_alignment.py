"""
Unit tests for the ear-alignment phase model.
"""

import math
import pytest
import numpy as np

from hrtfsh.codec.alignment import (
    ear_cosines, path_length_difference, ear_alignment_phase, remove_phase, restore_phase,
    magls_cutoff, detect_onsets, remove_itd_by_onset
)
from hrtfsh.codec.sampling import DirectionGrid, fibonacci_grid
from hrtfsh.codec.exceptions import ValidationError, InvalidOrderError


class TestEarGeometry:
    """Tests for the rigid-sphere ear geometry."""
    
    def test_ear_cosines(self):
        grid = DirectionGrid.from_degrees([90.0, -90.0, 0.0, 90.0], [0.0, 0.0, 0.0, 90.0])
        cosines = ear_cosines(grid)
        np.testing.assert_allclose(cosines[0], [1.0, -1.0], atol=1e-12)
        np.testing.assert_allclose(cosines[1], [-1.0, 1.0], atol=1e-12)
        np.testing.assert_allclose(cosines[2], [0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(cosines[3], [0.0, 0.0], atol=1e-12)
    
    def test_path_length_is_antisymmetric(self):
        d = path_length_difference(fibonacci_grid(50), 0.09)
        np.testing.assert_allclose(d[:, 0], -d[:, 1])
        assert np.all(np.abs(d) <= 0.09 + 1e-12)


class TestAlignmentPhase:
    """Tests for the ear-alignment phase term."""
    
    def test_shape_and_dc(self):
        grid = fibonacci_grid(20)
        f = np.linspace(0, 24000, 33)
        phase = ear_alignment_phase(f, grid, 0.0875, 343.0)
        assert phase.shape == (33, 20, 2)
        np.testing.assert_array_equal(phase[0], 0.0)
    
    def test_closed_form_value(self):
        """A source on the left ear axis: the left ear leads by r/c."""
        grid = DirectionGrid.from_degrees([90.0], [0.0])
        phase = ear_alignment_phase(np.array([1000.0]), grid, 0.1, 340.0)
        expected = -2 * math.pi * 1000.0 * 0.1 / 340.0
        np.testing.assert_allclose(phase[0, 0], [expected, -expected])
    
    def test_frontal_source_has_no_phase(self):
        grid = DirectionGrid.from_degrees([0.0, 180.0], [0.0, 0.0])
        phase = ear_alignment_phase(np.linspace(0, 20000, 5), grid, 0.0875, 343.0)
        np.testing.assert_allclose(phase, 0.0, atol=1e-10)
    
    def test_deterministic(self):
        grid = fibonacci_grid(30)
        f = np.linspace(0, 24000, 17)
        np.testing.assert_array_equal(ear_alignment_phase(f, grid, 0.0875, 343.0),
                                      ear_alignment_phase(f, grid, 0.0875, 343.0))
    
    def test_remove_then_restore(self, random_hrtf):
        grid = fibonacci_grid(12)
        H = random_hrtf(9, 12)
        phase = ear_alignment_phase(np.linspace(0, 24000, 9), grid, 0.0875, 343.0)
        np.testing.assert_allclose(restore_phase(remove_phase(H, phase), phase), H, atol=1e-12)
        np.testing.assert_allclose(np.abs(remove_phase(H, phase)), np.abs(H))
    
    def test_invalid_geometry(self):
        with pytest.raises(ValidationError):
            ear_alignment_phase(np.array([100.0]), fibonacci_grid(4), 0.0, 343.0)


class TestCutoff:
    """Tests for the MagLS cutoff frequency."""
    
    def test_floor_applies_at_low_order(self):
        assert magls_cutoff(3, 0.0875, 343.0) == 3000.0
        assert magls_cutoff(0, 0.0875, 343.0) == 3000.0
    
    def test_aliasing_frequency_above_floor(self):
        expected = 10 * 343.0 / (2 * math.pi * 0.0875)
        assert abs(magls_cutoff(10, 0.0875, 343.0) - expected) < 1e-9
        assert expected > 6000.0
    
    def test_custom_floor(self):
        raw = 3 * 343.0 / (2 * math.pi * 0.0875)
        assert abs(magls_cutoff(3, 0.0875, 343.0, min_cutoff=0.0) - raw) < 1e-9
        assert magls_cutoff(3, 0.0875, 343.0, min_cutoff=10000.0) == 10000.0
    
    def test_invalid_order(self):
        with pytest.raises(InvalidOrderError):
            magls_cutoff(-1, 0.0875, 343.0)


class TestOnsetAlignment:
    """Tests for onset detection and time-domain ITD removal."""
    
    def _impulses(self, delays):
        h = np.zeros((64, len(delays), 2))
        for i, (left, right) in enumerate(delays):
            h[left, i, 0] = 1.0
            h[right, i, 1] = 1.0
        return h
    
    def test_detect_onsets(self):
        h = self._impulses([(10, 14), (20, 20)])
        onsets = detect_onsets(h, upsampling=1)
        np.testing.assert_array_equal(onsets, [[10, 14], [20, 20]])
    
    def test_remove_itd_by_onset(self):
        h = self._impulses([(10, 14), (30, 22)])
        aligned = remove_itd_by_onset(h, safety=2)
        peaks = np.argmax(np.abs(aligned), axis=0)
        # every response now peaks at the same sample, a few samples after 0
        assert np.all(peaks == peaks[0, 0])
        assert 2 <= peaks[0, 0] < 10
        assert aligned.shape == h.shape
