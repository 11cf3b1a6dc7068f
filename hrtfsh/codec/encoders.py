"""
Spherical Harmonic Encoding Module

This module fits spherical harmonic coefficients to a set of head-related
transfer functions using one of four strategies:

    - TRUNCATED: ordinary least-squares fit of every frequency bin
    - TA: the ear-alignment phase is removed before the ordinary fit
    - MAGLS: ordinary fit below the cutoff frequency; above it, every bin is
      solved by magnitude least squares, taking its phase from the solution of
      the previous bin
    - BIMAGLS: TA phase removal followed by MAGLS

The magnitude least-squares recursion is a fold over the frequency bins in
increasing order: the solution of bin k seeds bin k+1. All other work is
independent per bin and is vectorized over bins and ears.

References:
    Schörkhuber, C., Zaunschirm, M., Höldrich, R. "Binaural Rendering of
    Ambisonic Signals via Magnitude Least Squares." DAGA 2018.
    Engel, I., Goodman, D. F. M., Picinali, L. "Assessing HRTF preprocessing
    methods for Ambisonics rendering through perceptual models." Acta
    Acustica 6, 4 (2022).
"""

import logging
import itertools
from typing import NamedTuple, Optional, Union

import numpy as np
from scipy import linalg

from .alignment import ear_alignment_phase, remove_phase, magls_cutoff
from .config import DEFAULT_HEAD_RADIUS, SPEED_OF_SOUND, DEFAULT_MIN_CUTOFF, DEFAULT_SAMPLE_RATE
from .exceptions import ValidationError, EncodingError
from .math_utils import SHNormalization, pseudo_inverse, n_sh, validate_order
from .sampling import basis_matrix
from .spectral import frequency_vector
from .utils import DirectionGrid, EncodingStrategy, SHCoefficientSet, TransferFunctionSet, N_EARS

# Set up logging
logger = logging.getLogger(__name__)


class MagLSSystem(NamedTuple):
    """Read-only linear algebra shared by every bin of a MagLS fold."""
    basis: np.ndarray  # (n_directions, n_sh)
    pinv: np.ndarray  # (n_sh, n_directions), weighted pseudo-inverse
    gram: np.ndarray  # Y^T W Y
    weighted_basis_t: np.ndarray  # Y^T W
    regularization: float  # lambda, 0 disables smoothing


def make_magls_system(basis: np.ndarray, pinv: np.ndarray, smoothing_k: float = 0.0,
                      weights: Optional[np.ndarray] = None) -> MagLSSystem:
    """
    Precompute the matrices used by the per-bin MagLS solve.
    
    The smoothing term penalizes the change of the coefficient vector between
    adjacent bins, λ·||c_k - c_{k-1}||², with λ = k · trace(YᵀWY) / n_sh so
    that ``smoothing_k`` is independent of grid size and normalization.
    """
    w = np.ones(basis.shape[0]) if weights is None else np.asarray(weights, dtype=np.float64)
    weighted_basis_t = (basis * w[:, None]).T
    gram = weighted_basis_t @ basis
    regularization = float(smoothing_k) * np.trace(gram) / basis.shape[1]
    return MagLSSystem(basis, pinv, gram, weighted_basis_t, regularization)


def ordinary_fit(pinv: np.ndarray, transfer_functions: TransferFunctionSet) -> np.ndarray:
    """
    Least-squares SH coefficients of every bin and ear.
    
    Args:
        pinv: Pseudo-inverse of the basis, shape (n_sh, n_directions)
        transfer_functions: Shape (n_bins, n_directions, 2)
    
    Returns:
        Coefficients of shape (n_sh, n_bins, 2)
    """
    return np.einsum('sd,kde->ske', pinv, transfer_functions)


def solve_magls_bin(system: MagLSSystem, target_magnitude: np.ndarray,
                    previous: np.ndarray) -> np.ndarray:
    """
    Magnitude least-squares solution of a single bin.
    
    The phase of the target is taken from the reconstruction of the previous
    bin's coefficients, which linearizes the magnitude-only problem into an
    ordinary least-squares fit.
    
    Args:
        system: Precomputed matrices
        target_magnitude: |H| of the bin, shape (n_directions, 2)
        previous: Coefficients of the previous bin, shape (n_sh, 2)
    
    Returns:
        Coefficients of shape (n_sh, 2)
    """
    predicted_phase = np.angle(system.basis @ previous)
    target = target_magnitude * np.exp(1j * predicted_phase)
    
    if system.regularization == 0.0:
        return system.pinv @ target
    
    lhs = system.gram + system.regularization * np.eye(system.gram.shape[0])
    rhs = system.weighted_basis_t @ target + system.regularization * previous
    return linalg.solve(lhs, rhs, assume_a='pos')


def _magls_step(system: MagLSSystem, previous: np.ndarray, indexed_bin) -> np.ndarray:
    """One step of the MagLS fold, falling back to least squares on failure."""
    k, spectrum = indexed_bin
    try:
        solution = solve_magls_bin(system, np.abs(spectrum), previous)
    except np.linalg.LinAlgError as e:
        logger.warning("MagLS solve failed at bin %d (%s); using least-squares fit", k, e)
        return system.pinv @ spectrum
    
    if not np.isfinite(solution).all():
        logger.warning("MagLS solve did not converge at bin %d; using least-squares fit", k)
        return system.pinv @ spectrum
    return solution


def magls_fold(spectra: np.ndarray, seed: np.ndarray, system: MagLSSystem,
               first_bin: int = 0) -> np.ndarray:
    """
    Run the magnitude least-squares recursion over consecutive bins.
    
    Args:
        spectra: Complex transfer functions of the bins to solve, in increasing
            frequency order, shape (n_bins, n_directions, 2)
        seed: Coefficients of the bin preceding ``spectra[0]``, shape (n_sh, 2)
        system: Precomputed matrices
        first_bin: Absolute index of ``spectra[0]``, for diagnostics
    
    Returns:
        Coefficients of shape (n_sh, n_bins, 2)
    """
    indexed_bins = zip(itertools.count(first_bin), spectra)
    solutions = itertools.accumulate(indexed_bins,
                                     lambda previous, indexed: _magls_step(system, previous, indexed),
                                     initial=seed)
    next(solutions)  # skip the seed
    return np.stack(list(solutions), axis=1)


def _validate_transfer_functions(transfer_functions, grid: DirectionGrid) -> np.ndarray:
    H = np.asarray(transfer_functions)
    if H.ndim != 3 or H.shape[2] != N_EARS:
        raise ValidationError(f"Transfer functions must have shape (n_bins, n_directions, 2), got {H.shape}")
    if H.shape[1] != len(grid):
        raise ValidationError(f"Transfer functions have {H.shape[1]} directions, grid has {len(grid)}")
    if not np.isfinite(H).all():
        raise ValidationError("Transfer functions contain NaN/inf")
    return H.astype(np.complex128)


def default_min_cutoff(strategy: Union[EncodingStrategy, str]) -> float:
    """
    Cutoff floor applied when none is given.
    
    Only BiMagLS is floored at DEFAULT_MIN_CUTOFF; the other strategies use
    the aliasing frequency N·c / (2πr) as it is.
    """
    if EncodingStrategy.from_name(strategy) is EncodingStrategy.BIMAGLS:
        return DEFAULT_MIN_CUTOFF
    return 0.0


def encode(transfer_functions: TransferFunctionSet, grid: DirectionGrid, order: int,
           strategy: Union[EncodingStrategy, str] = EncodingStrategy.TRUNCATED,
           sample_rate: float = DEFAULT_SAMPLE_RATE,
           head_radius: float = DEFAULT_HEAD_RADIUS,
           speed_of_sound: float = SPEED_OF_SOUND,
           smoothing_k: float = 0.0,
           min_cutoff: Optional[float] = None,
           weights: Optional[np.ndarray] = None,
           n_fft: Optional[int] = None,
           normalization: SHNormalization = SHNormalization.ORTHONORMAL,
           basis: Optional[np.ndarray] = None,
           pinv: Optional[np.ndarray] = None) -> SHCoefficientSet:
    """
    Encode transfer functions into spherical harmonic coefficients.
    
    Args:
        transfer_functions: One-sided spectra, shape (n_bins, n_directions, 2)
        grid: Directions of the transfer functions
        order: Spatial order N
        strategy: TRUNCATED, TA, MAGLS or BIMAGLS (enum or name)
        sample_rate: Sample rate in Hz
        head_radius: Head radius for the ear-alignment phase and cutoff (m)
        speed_of_sound: Speed of sound (m/s)
        smoothing_k: MagLS smoothing across adjacent bins (0 disables)
        min_cutoff: Lower bound of the MagLS cutoff frequency in Hz (default:
            3 kHz for BIMAGLS, none for the other strategies)
        weights: Optional per-direction least-squares weights
        n_fft: FFT length of the spectra (default: 2·(n_bins-1))
        normalization: SH normalization convention
        basis: Precomputed basis matrix for (grid, order, normalization)
        pinv: Precomputed pseudo-inverse of ``basis`` (with ``weights``)
    
    Returns:
        SHCoefficientSet of shape ((N+1)², n_bins, 2); the input is not modified
    
    Raises:
        InvalidOrderError: If order is not a non-negative integer
        ValidationError: If the transfer functions or parameters are malformed
        EncodingError: If the fit produces non-finite coefficients
    """
    order = validate_order(order)
    try:
        strategy = EncodingStrategy.from_name(strategy)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    if smoothing_k < 0:
        raise ValidationError("Smoothing parameter k must be non-negative")
    
    if min_cutoff is None:
        min_cutoff = default_min_cutoff(strategy)
    
    H = _validate_transfer_functions(transfer_functions, grid)
    n_bins = H.shape[0]
    if n_fft is None:
        n_fft = 2 * (n_bins - 1)
    if n_fft // 2 + 1 != n_bins:
        raise ValidationError(f"FFT length {n_fft} does not match {n_bins} bins")
    
    frequencies = frequency_vector(n_fft, sample_rate)
    cutoff = magls_cutoff(order, head_radius, speed_of_sound, min_cutoff)
    
    if strategy.phase_aligned:
        H = remove_phase(H, ear_alignment_phase(frequencies, grid, head_radius, speed_of_sound))
    
    if basis is None:
        basis = basis_matrix(grid, order, normalization)
    if pinv is None:
        pinv = pseudo_inverse(basis, weights)
    if basis.shape != (len(grid), n_sh(order)):
        raise ValidationError(f"Basis of shape {basis.shape} does not match grid and order {order}")
    
    logger.info("Encoding %d directions at order %d with %s (cutoff %.0f Hz)",
                len(grid), order, strategy.value, cutoff)
    
    coefficients = ordinary_fit(pinv, H)
    
    if strategy.uses_magls:
        above = np.flatnonzero(frequencies >= cutoff)
        first_bin = max(int(above[0]), 1) if above.size else n_bins
        if first_bin < n_bins:
            logger.debug("MagLS over bins %d..%d", first_bin, n_bins - 1)
            system = make_magls_system(basis, pinv, smoothing_k, weights)
            coefficients[:, first_bin:] = magls_fold(H[first_bin:], coefficients[:, first_bin - 1],
                                                     system, first_bin)
        else:
            logger.debug("Cutoff %.0f Hz is above Nyquist; no MagLS bins", cutoff)
    
    if not np.isfinite(coefficients).all():
        raise EncodingError(f"Order {order} {strategy.value} fit produced non-finite coefficients")
    
    return SHCoefficientSet(coefficients, order, strategy, sample_rate, n_fft, cutoff,
                            head_radius, speed_of_sound, smoothing_k)


def encode_magnitude(transfer_functions: TransferFunctionSet, grid: DirectionGrid, order: int,
                     normalization: SHNormalization = SHNormalization.ORTHONORMAL,
                     weights: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Least-squares SH fit of the magnitude spectra only.
    
    Used as a reference for how much spatial order the magnitude alone
    requires, without any phase.
    
    Returns:
        Real coefficients of shape ((N+1)², n_bins, 2)
    """
    order = validate_order(order)
    H = _validate_transfer_functions(transfer_functions, grid)
    pinv = pseudo_inverse(basis_matrix(grid, order, normalization), weights)
    return np.einsum('sd,kde->ske', pinv, np.abs(H))
