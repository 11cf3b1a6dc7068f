"""
Vectorized Numerical Kernels Module

This module provides JIT-compiled kernels for the inner loops of the
spherical harmonic basis construction, where evaluating the associated
Legendre recursion direction by direction in Python would dominate the
encode time at high orders.
"""

import numpy as np
import numba


@numba.njit
def legendre_table(order: int, x: np.ndarray) -> np.ndarray:
    """
    Unnormalized associated Legendre functions P_l^m(x) for 0 <= m <= l <= order.
    
    The Condon-Shortley phase is included. Values are computed with the
    standard three-term recursion in degree, seeded by the closed form of
    P_m^m and P_{m+1}^m.
    
    Args:
        order: Maximum degree
        x: Arguments in [-1, 1], shape (n_points,)
    
    Returns:
        Table of shape (order + 1, order + 1, n_points) indexed [l, m, point];
        entries with m > l are zero
    """
    n_points = x.shape[0]
    table = np.zeros((order + 1, order + 1, n_points))
    
    for i in range(n_points):
        xi = x[i]
        somx2 = np.sqrt(max(0.0, (1.0 - xi) * (1.0 + xi)))
        pmm = 1.0
        fact = 1.0
        for m in range(order + 1):
            if m > 0:
                pmm *= -fact * somx2
                fact += 2.0
            table[m, m, i] = pmm
            if m == order:
                break
            
            # P_{m+1}^m, then upward in degree
            p_prev = pmm
            p_curr = xi * (2.0 * m + 1.0) * pmm
            table[m + 1, m, i] = p_curr
            for l in range(m + 2, order + 1):
                p_next = (xi * (2.0 * l - 1.0) * p_curr - (l + m - 1.0) * p_prev) / (l - m)
                table[l, m, i] = p_next
                p_prev = p_curr
                p_curr = p_next
    
    return table
