"""
Spherical Sampling Geometry Module

Direction grids on the sphere and the real spherical harmonic basis matrices
evaluated on them. A basis matrix depends only on the (grid, order,
normalization) triple; it is returned read-only so that it and its
pseudo-inverse can be shared between any number of encode/decode calls.
"""

import math
import logging
import numpy as np
from typing import Optional

from .math_utils import SHNormalization, spherical_harmonic_matrix, pseudo_inverse, n_sh, validate_order
from .utils import DirectionGrid, SHBasisMatrix

# Set up logging
logger = logging.getLogger(__name__)

__all__ = [
    'DirectionGrid', 'basis_matrix', 'pseudo_inverse', 'fibonacci_grid', 'gaussian_grid',
    'lateral_angle', 'horizontal_plane_indices', 'median_plane_indices', 'nearest_subset',
]


def basis_matrix(grid: DirectionGrid, order: int,
                 normalization: SHNormalization = SHNormalization.ORTHONORMAL) -> SHBasisMatrix:
    """
    Evaluate real spherical harmonics up to ``order`` at every grid direction.
    
    Args:
        grid: Direction grid
        order: Spatial order N
        normalization: Normalization convention
    
    Returns:
        Read-only matrix of shape (len(grid), (N+1)²), ACN column order
    """
    order = validate_order(order)
    if n_sh(order) > len(grid):
        logger.debug("Order %d needs %d coefficients but the grid has %d directions; "
                     "fits will be rank deficient", order, n_sh(order), len(grid))
    Y = spherical_harmonic_matrix(order, grid.azimuth, grid.colatitude, normalization)
    Y.setflags(write=False)
    return Y


def fibonacci_grid(n_points: int) -> DirectionGrid:
    """
    Generate a nearly uniform Fibonacci grid on the sphere.
    
    Args:
        n_points: Number of directions
    
    Returns:
        Grid with equal integration weights summing to 4π
    """
    if n_points < 1:
        raise ValueError("A Fibonacci grid needs at least one point")
    indices = np.arange(0, n_points, dtype=float) + 0.5
    colatitude = np.arccos(1 - 2 * indices / n_points)
    azimuth = np.pi * (1 + 5**0.5) * indices
    azimuth = np.angle(np.exp(1j * azimuth))  # wrap to (-π, π]
    weights = np.full(n_points, 4 * math.pi / n_points)
    return DirectionGrid(azimuth, math.pi / 2 - colatitude, weights)


def gaussian_grid(order: int) -> DirectionGrid:
    """
    Gauss-Legendre quadrature grid for spherical harmonics up to ``order``.
    
    The grid has (order+1) colatitudes at the Gauss-Legendre nodes and
    2(order+1) equally spaced azimuths per ring. Its weights integrate products
    of spherical harmonics up to ``order`` exactly and sum to 4π.
    """
    order = validate_order(order)
    nodes, node_weights = np.polynomial.legendre.leggauss(order + 1)
    n_azimuths = 2 * (order + 1)
    azimuths = 2 * np.pi * np.arange(n_azimuths) / n_azimuths
    
    colatitude = np.repeat(np.arccos(nodes), n_azimuths)
    azimuth = np.tile(azimuths, order + 1)
    weights = np.repeat(node_weights, n_azimuths) * (2 * np.pi / n_azimuths)
    return DirectionGrid(np.angle(np.exp(1j * azimuth)), math.pi / 2 - colatitude, weights)


def lateral_angle(grid: DirectionGrid) -> np.ndarray:
    """Lateral angle in radians (interaural-polar coordinates), +π/2 = left."""
    return np.arcsin(np.clip(np.cos(grid.elevation) * np.sin(grid.azimuth), -1.0, 1.0))


def horizontal_plane_indices(grid: DirectionGrid, tolerance: float = math.radians(1.0)) -> np.ndarray:
    """Indices of the directions within ``tolerance`` of the horizontal plane."""
    return np.flatnonzero(np.abs(grid.elevation) < tolerance)


def median_plane_indices(grid: DirectionGrid, tolerance: float = math.radians(1.0)) -> np.ndarray:
    """Indices of the directions within ``tolerance`` of the median plane."""
    return np.flatnonzero(np.abs(lateral_angle(grid)) < tolerance)


def nearest_subset(grid: DirectionGrid, targets: DirectionGrid,
                   unique: bool = True) -> np.ndarray:
    """
    Indices of the grid directions nearest to each target direction.
    
    Args:
        grid: Grid to select from
        targets: Requested directions
        unique: Drop repeated indices (keeping first occurrence order)
    
    Returns:
        Integer index array into ``grid``
    """
    cosines = targets.to_cartesian() @ grid.to_cartesian().T
    indices = np.argmax(cosines, axis=1)
    if unique:
        _, first = np.unique(indices, return_index=True)
        indices = indices[np.sort(first)]
    return indices
