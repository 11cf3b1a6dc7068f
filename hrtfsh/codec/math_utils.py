"""
Core Mathematical Functions for Spherical Harmonics

This module provides the fundamental mathematical operations required for
spherical harmonic HRTF representation: Legendre functions, real spherical
harmonics, basis matrix construction and the least-squares pseudo-inverse
shared by the encoder and decoder.

Spherical harmonics are ordered by ACN (Ambisonic Channel Number): ascending
degree n, then mode m from -n to +n, index = n² + n + m. The same ordering is
used for every basis matrix and coefficient set in the package.

See Also:
    - vector_ops: For the JIT-compiled Legendre recursion
    - sampling: For direction grids and cached basis matrices
"""

import numpy as np
import math
import functools
import numbers
from typing import Union, Optional
from enum import Enum, auto

from .exceptions import MathError, InvalidOrderError
from .vector_ops import legendre_table

# Cache size for factorial memoization
_FACTORIAL_CACHE_SIZE = 200


class SHNormalization(Enum):
    """
    Defines the normalization convention for real spherical harmonics.
    
    Attributes:
        ORTHONORMAL: Orthonormal on the unit sphere (integral of Y² is 1).
            Used for HRTF fitting so that coefficient energy equals the
            spatial energy of the transfer function.
        N3D: Fully normalized ambisonic convention (mean of Y² is 1)
            N3D = ORTHONORMAL * sqrt(4π)
        SN3D: Schmidt semi-normalized
            SN3D = N3D / sqrt(2n+1)
    """
    ORTHONORMAL = auto()
    N3D = auto()
    SN3D = auto()


def n_sh(order: int) -> int:
    """Number of spherical harmonic coefficients up to ``order``, (order+1)²."""
    return (order + 1) ** 2


def acn_index(n: int, m: int) -> int:
    """ACN index of degree ``n`` and mode ``m``."""
    if abs(m) > n:
        raise MathError.DomainError(f"Mode m must satisfy -n <= m <= n, got n={n}, m={m}")
    return n * n + n + m


def validate_order(order) -> int:
    """
    Check that ``order`` is a usable spatial order.
    
    Raises:
        InvalidOrderError: If order is not a non-negative integer
    """
    if isinstance(order, bool) or not isinstance(order, numbers.Integral):
        raise InvalidOrderError(f"Order must be an integer, got {order!r}")
    if order < 0:
        raise InvalidOrderError(f"Order must be non-negative, got {order}")
    return int(order)


@functools.lru_cache(maxsize=_FACTORIAL_CACHE_SIZE)
def factorial(n: int) -> int:
    """
    Compute factorial, optimized with caching for repeated calls.
    
    Args:
        n: Non-negative integer
        
    Returns:
        n! (n factorial)
        
    Raises:
        MathError.DomainError: If n is negative
    
    Examples:
        >>> factorial(5)
        120
    """
    if n < 0:
        raise MathError.DomainError("Factorial not defined for negative numbers")
    if n <= 1:
        return 1
    return n * factorial(n - 1)


def associated_legendre(l: int, m: int, x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Compute the associated Legendre function P_l^m(x), Condon-Shortley phase included.
    
    Negative modes follow P_l^{-m} = (-1)^m (l-m)!/(l+m)! P_l^m.
    
    Args:
        l: Degree (l >= 0)
        m: Mode; zero is returned when |m| > l
        x: Value or array where -1 <= x <= 1
        
    Returns:
        The associated Legendre function value(s)
    
    Raises:
        MathError.DomainError: If l < 0 or x is outside [-1, 1]
    
    Examples:
        >>> associated_legendre(2, 0, 0.5)
        -0.125
    """
    if l < 0:
        raise MathError.DomainError(f"Degree l must be non-negative, got {l}")
    
    is_array = isinstance(x, np.ndarray)
    x_array = np.atleast_1d(np.asarray(x, dtype=np.float64)).ravel()
    
    m_abs = abs(m)
    if m_abs > l:
        return np.zeros_like(x) if is_array else 0.0
    
    if np.any(np.abs(x_array) > 1.0 + 1e-10):
        raise MathError.DomainError("Input x must be in range [-1, 1]")
    
    values = legendre_table(l, np.clip(x_array, -1.0, 1.0))[l, m_abs]
    if m < 0:
        log_ratio = math.lgamma(l - m_abs + 1) - math.lgamma(l + m_abs + 1)
        values = values * (-1) ** m_abs * math.exp(log_ratio)
    
    if is_array:
        return values.reshape(np.shape(x))
    return float(values[0])


def _normalization_factors(order: int, normalization: SHNormalization) -> np.ndarray:
    """Normalization N_l^m for 0 <= m <= l <= order, shape (order+1, order+1)."""
    norms = np.zeros((order + 1, order + 1))
    for l in range(order + 1):
        for m in range(l + 1):
            log_ratio = math.lgamma(l - m + 1) - math.lgamma(l + m + 1)
            norm = math.sqrt((2 * l + 1) / (4 * math.pi) * math.exp(log_ratio))
            if m > 0:
                norm *= math.sqrt(2)
            if normalization == SHNormalization.N3D:
                norm *= math.sqrt(4 * math.pi)
            elif normalization == SHNormalization.SN3D:
                norm *= math.sqrt(4 * math.pi / (2 * l + 1))
            elif normalization != SHNormalization.ORTHONORMAL:
                raise ValueError(f"Unsupported normalization: {normalization}")
            norms[l, m] = norm
    return norms


def spherical_harmonic_matrix(order: int, azimuth: np.ndarray, colatitude: np.ndarray,
                              normalization: SHNormalization = SHNormalization.ORTHONORMAL) -> np.ndarray:
    """
    Compute a matrix of real spherical harmonics for a set of directions.
    
    Args:
        order: Maximum degree of spherical harmonics to compute
        azimuth: Array of azimuth angles in radians
        colatitude: Array of polar angles in radians [0, π]
        normalization: Normalization convention to use
        
    Returns:
        Matrix of shape (len(azimuth), (order+1)²) where each row contains
        all spherical harmonic values for a specific direction, ordered by ACN.
    
    Raises:
        InvalidOrderError: If order is not a non-negative integer
        MathError.PrecisionError: If the recursion overflows
    """
    order = validate_order(order)
    azimuth = np.asarray(azimuth, dtype=np.float64).ravel()
    colatitude = np.asarray(colatitude, dtype=np.float64).ravel()
    
    plm = legendre_table(order, np.cos(colatitude))
    norms = _normalization_factors(order, normalization)
    
    Y = np.zeros((azimuth.size, n_sh(order)))
    for l in range(order + 1):
        Y[:, acn_index(l, 0)] = norms[l, 0] * plm[l, 0]
        for m in range(1, l + 1):
            scaled = norms[l, m] * plm[l, m]
            Y[:, acn_index(l, m)] = scaled * np.cos(m * azimuth)
            Y[:, acn_index(l, -m)] = scaled * np.sin(m * azimuth)
    
    if not np.isfinite(Y).all():
        raise MathError.PrecisionError(f"Numerical overflow in spherical harmonics of order {order}")
    
    return Y


def real_spherical_harmonic(l: int, m: int, azimuth: float, colatitude: float,
                            normalization: SHNormalization = SHNormalization.ORTHONORMAL) -> float:
    """
    Compute the real-valued spherical harmonic Y_l^m for a single direction.
    
    Args:
        l: Degree of the spherical harmonic (l >= 0)
        m: Mode of the spherical harmonic (-l <= m <= l)
        azimuth: Azimuth angle in radians
        colatitude: Polar angle in radians [0, π]
        normalization: Normalization convention to use
        
    Returns:
        The value of the real spherical harmonic
    """
    if l < 0:
        raise ValueError("Degree l must be non-negative")
    if abs(m) > l:
        raise ValueError("Mode m must satisfy -l <= m <= l")
    
    row = spherical_harmonic_matrix(l, np.array([azimuth]), np.array([colatitude]), normalization)
    return float(row[0, acn_index(l, m)])


def pseudo_inverse(matrix: np.ndarray, weights: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Moore-Penrose pseudo-inverse of a basis matrix, optionally weighted.
    
    For a basis Y of shape (n_directions, n_coefficients) the result P has
    shape (n_coefficients, n_directions) and ``P @ x`` is the least-squares
    fit of the directional data x. When the basis is rank deficient (more
    coefficients than directions) the minimum-norm solution is returned.
    
    Args:
        matrix: Basis matrix
        weights: Optional non-negative per-direction weights W; the fit then
            minimizes the W-weighted squared error
    
    Returns:
        Pseudo-inverse matrix (read-only)
    """
    Y = np.asarray(matrix, dtype=np.float64)
    if weights is None:
        P = np.linalg.pinv(Y)
    else:
        sqrt_w = np.sqrt(np.asarray(weights, dtype=np.float64))
        if sqrt_w.shape != (Y.shape[0],):
            raise ValueError("Weights must have one entry per basis row")
        P = np.linalg.pinv(sqrt_w[:, None] * Y) * sqrt_w[None, :]
    P.setflags(write=False)
    return P
