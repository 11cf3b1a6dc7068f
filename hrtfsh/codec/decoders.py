"""
Spherical Harmonic Decoding Module

This module reconstructs head-related transfer functions at arbitrary
directions from a spherical harmonic coefficient set, reintroducing the
ear-alignment phase for coefficient sets encoded with TA or BiMagLS.

Decoding at the encoding directions reproduces the original transfer
functions up to the SH truncation error and, in MagLS bins, the magnitude
least-squares residual. That residual is what the evaluation metrics measure.

Precondition: a phase-aligned set must be decoded with the head radius and
speed of sound used to encode it. The defaults are taken from the set itself;
overriding them with different values silently produces wrong phase.
"""

import logging
import numpy as np
from typing import Optional

from .alignment import ear_alignment_phase, restore_phase
from .exceptions import InvalidOrderError, ValidationError, DecodingError
from .math_utils import SHNormalization, n_sh, validate_order
from .sampling import basis_matrix
from .spectral import frequency_vector
from .utils import DirectionGrid, SHCoefficientSet, TransferFunctionSet, N_EARS

# Set up logging
logger = logging.getLogger(__name__)


def evaluate(basis: np.ndarray, coefficients: np.ndarray) -> TransferFunctionSet:
    """
    Evaluate SH coefficients on a basis for every bin and ear.
    
    Args:
        basis: Basis matrix of shape (n_directions, n_sh)
        coefficients: Coefficients of shape (n_sh, n_bins, 2)
    
    Returns:
        Transfer functions of shape (n_bins, n_directions, 2)
    """
    return np.einsum('ds,ske->kde', basis, coefficients)


def decode_coefficients(coefficients: np.ndarray, target_grid: DirectionGrid, order: int,
                        phase_aligned: bool, sample_rate: float,
                        head_radius: float, speed_of_sound: float,
                        normalization: SHNormalization = SHNormalization.ORTHONORMAL,
                        basis: Optional[np.ndarray] = None,
                        n_fft: Optional[int] = None) -> TransferFunctionSet:
    """
    Decode a raw coefficient array at the target directions.
    
    Args:
        coefficients: Array of shape (n_sh_stored, n_bins, 2), n_sh_stored >= (order+1)²
        target_grid: Directions to reconstruct
        order: Order to decode at; higher-degree coefficients are ignored
        phase_aligned: Whether the ear-alignment phase was removed at encode time
        sample_rate: Sample rate in Hz
        head_radius: Head radius used at encode time (m)
        speed_of_sound: Speed of sound used at encode time (m/s)
        normalization: SH normalization used at encode time
        basis: Precomputed basis matrix for (target_grid, order, normalization)
        n_fft: Transform length of the spectra (default: 2·(n_bins - 1))
    
    Returns:
        Complex transfer functions of shape (n_bins, n_targets, 2)
    """
    order = validate_order(order)
    C = np.asarray(coefficients)
    if C.ndim != 3 or C.shape[2] != N_EARS:
        raise ValidationError(f"Coefficients must have shape (n_sh, n_bins, 2), got {C.shape}")
    if C.shape[0] < n_sh(order):
        raise InvalidOrderError(f"Cannot decode order {order} from {C.shape[0]} coefficients")
    if not np.isfinite(C).all():
        raise DecodingError("Coefficients contain NaN/inf")
    
    if basis is None:
        basis = basis_matrix(target_grid, order, normalization)
    H = evaluate(basis, C[:n_sh(order)])
    
    if phase_aligned:
        if n_fft is None:
            n_fft = 2 * (C.shape[1] - 1)
        if n_fft // 2 + 1 != C.shape[1]:
            raise ValidationError(f"FFT length {n_fft} does not match {C.shape[1]} bins")
        frequencies = frequency_vector(n_fft, sample_rate)
        H = restore_phase(H, ear_alignment_phase(frequencies, target_grid, head_radius, speed_of_sound))
    
    return H


def decode(coefficients: SHCoefficientSet, target_grid: DirectionGrid,
           order: Optional[int] = None,
           phase_aligned: Optional[bool] = None,
           head_radius: Optional[float] = None,
           speed_of_sound: Optional[float] = None,
           normalization: SHNormalization = SHNormalization.ORTHONORMAL,
           basis: Optional[np.ndarray] = None) -> TransferFunctionSet:
    """
    Reconstruct transfer functions at the target directions.
    
    Every optional argument defaults to the value recorded in the coefficient
    set. ``order`` may be lower than the stored order to decode a truncated
    representation; a higher order raises InvalidOrderError.
    
    Args:
        coefficients: Coefficient set produced by the encoder
        target_grid: Directions to reconstruct
        order: Decoding order (default: stored order)
        phase_aligned: Reintroduce the ear-alignment phase (default: strategy is TA/BiMagLS)
        head_radius: Head radius in meters (default: stored)
        speed_of_sound: Speed of sound in m/s (default: stored)
        normalization: SH normalization used at encode time
        basis: Precomputed basis matrix for (target_grid, order, normalization)
    
    Returns:
        Complex transfer functions of shape (n_bins, n_targets, 2)
    """
    if order is None:
        order = coefficients.order
    order = validate_order(order)
    if order > coefficients.order:
        raise InvalidOrderError(f"Cannot decode order {order} from an order {coefficients.order} set")
    if phase_aligned is None:
        phase_aligned = coefficients.phase_aligned
    if head_radius is None:
        head_radius = coefficients.head_radius
    if speed_of_sound is None:
        speed_of_sound = coefficients.speed_of_sound
    
    logger.debug("Decoding %s order %d set at %d directions", coefficients.strategy.value,
                 order, len(target_grid))
    return decode_coefficients(coefficients.coefficients, target_grid, order, phase_aligned,
                               coefficients.sample_rate, head_radius, speed_of_sound,
                               normalization, basis, coefficients.n_fft)
