"""
Unit tests for the spherical harmonic decoder.
"""

import pytest
import numpy as np

from hrtfsh.codec.decoders import decode, decode_coefficients, evaluate
from hrtfsh.codec.encoders import encode
from hrtfsh.codec.sampling import fibonacci_grid, basis_matrix
from hrtfsh.codec.utils import EncodingStrategy
from hrtfsh.codec.exceptions import InvalidOrderError, ValidationError, DecodingError


@pytest.fixture
def encoded(random_hrtf):
    """A grid, its transfer functions and their order-4 TA encoding."""
    grid = fibonacci_grid(40)
    H = random_hrtf(17, 40)
    return grid, H, encode(H, grid, 4, EncodingStrategy.TA)


class TestDecode:
    """Tests for decoding coefficient sets."""
    
    def test_output_shape(self, encoded):
        grid, H, coeffs = encoded
        targets = fibonacci_grid(7)
        assert decode(coeffs, targets).shape == (17, 7, 2)
    
    def test_evaluate(self):
        grid = fibonacci_grid(9)
        Y = basis_matrix(grid, 1)
        C = np.zeros((4, 3, 2), dtype=complex)
        C[0] = 2.0
        np.testing.assert_allclose(evaluate(Y, C), 2.0 * Y[0, 0])
    
    def test_lower_order_matches_truncated_set(self, encoded):
        grid, H, coeffs = encoded
        np.testing.assert_allclose(decode(coeffs, grid, order=2), decode(coeffs.truncate(2), grid))
    
    def test_higher_order_raises(self, encoded):
        grid, H, coeffs = encoded
        with pytest.raises(InvalidOrderError):
            decode(coeffs, grid, order=5)
        with pytest.raises(InvalidOrderError):
            coeffs.truncate(5)
    
    def test_phase_restored_for_aligned_sets(self, encoded):
        """Skipping the phase restoration changes the phase but not the magnitude."""
        grid, H, coeffs = encoded
        restored = decode(coeffs, grid)
        aligned = decode(coeffs, grid, phase_aligned=False)
        np.testing.assert_allclose(np.abs(restored), np.abs(aligned))
        assert not np.allclose(restored, aligned)
    
    def test_geometry_defaults_come_from_set(self, encoded):
        grid, H, coeffs = encoded
        np.testing.assert_array_equal(decode(coeffs, grid),
                                      decode(coeffs, grid, head_radius=coeffs.head_radius,
                                             speed_of_sound=coeffs.speed_of_sound))
        # a different head radius only changes the restored phase
        mismatched = decode(coeffs, grid, head_radius=2 * coeffs.head_radius)
        assert not np.allclose(mismatched, decode(coeffs, grid))
    
    def test_truncated_set_ignores_geometry(self, random_hrtf):
        grid = fibonacci_grid(30)
        coeffs = encode(random_hrtf(9, 30), grid, 3, EncodingStrategy.TRUNCATED)
        np.testing.assert_array_equal(decode(coeffs, grid), decode(coeffs, grid, head_radius=0.2))
    
    def test_decode_raw_coefficients(self, encoded):
        grid, H, coeffs = encoded
        raw = decode_coefficients(coeffs.coefficients, grid, 4, True, coeffs.sample_rate,
                                  coeffs.head_radius, coeffs.speed_of_sound)
        np.testing.assert_allclose(raw, decode(coeffs, grid))
    
    def test_decode_raw_invalid(self, encoded):
        grid, H, coeffs = encoded
        with pytest.raises(InvalidOrderError):
            decode_coefficients(coeffs.coefficients[:9], grid, 4, False, 48000, 0.0875, 343.0)
        with pytest.raises(ValidationError):
            decode_coefficients(coeffs.coefficients[:, :, 0], grid, 2, False, 48000, 0.0875, 343.0)
        
        corrupt = np.array(coeffs.coefficients)
        corrupt[0, 0, 0] = np.nan
        with pytest.raises(DecodingError):
            decode_coefficients(corrupt, grid, 4, False, 48000, 0.0875, 343.0)
    
    def test_decode_raw_odd_fft_length(self, random_hrtf):
        grid = fibonacci_grid(40)
        coeffs = encode(random_hrtf(17, 40), grid, 4, EncodingStrategy.TA, n_fft=33)
        raw = decode_coefficients(coeffs.coefficients, grid, 4, True, coeffs.sample_rate,
                                  coeffs.head_radius, coeffs.speed_of_sound, n_fft=33)
        np.testing.assert_allclose(raw, decode(coeffs, grid))
        
        even = decode_coefficients(coeffs.coefficients, grid, 4, True, coeffs.sample_rate,
                                   coeffs.head_radius, coeffs.speed_of_sound)
        assert not np.allclose(even, raw)
        with pytest.raises(ValidationError):
            decode_coefficients(coeffs.coefficients, grid, 4, True, coeffs.sample_rate,
                                coeffs.head_radius, coeffs.speed_of_sound, n_fft=40)
    
    def test_interpolation_between_directions(self, dense_grid, synthetic_hrtf_set):
        """Decoding at held-out directions stays close to the truth at low frequency."""
        train = np.arange(len(dense_grid)) % 4 != 0
        held_out = dense_grid.subset(np.flatnonzero(~train))
        coeffs = encode(synthetic_hrtf_set[:, train], dense_grid.subset(np.flatnonzero(train)),
                        5, EncodingStrategy.BIMAGLS)
        decoded = decode(coeffs, held_out)
        
        low = coeffs.frequencies < 1500.0
        reference = synthetic_hrtf_set[low][:, ~train]
        error = np.abs(decoded[low] - reference) / np.abs(reference)
        assert error.mean() < 0.1
