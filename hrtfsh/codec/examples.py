"""
Example Usage and Demonstrations

This module contains example functions demonstrating the usage of the
HRTF spherical harmonic codec on a synthetic spherical-head HRTF set.
"""

import logging
import numpy as np
from typing import Dict, Iterable, Tuple

from .config import InterpolatorConfig, EncoderConfig, DEFAULT_MIN_CUTOFF
from .core import HRTFInterpolator
from .metrics import magnitude_error, phase_delay_error, band_mean
from .sampling import fibonacci_grid, horizontal_plane_indices
from .spectral import forward, frequency_vector
from .synthetic import synthetic_hrirs
from .utils import EncodingStrategy, DirectionGrid


def compare_strategies(orders: Iterable[int] = (1, 3, 5, 10),
                       strategies: Iterable[EncodingStrategy] = tuple(EncodingStrategy),
                       n_directions: int = 600,
                       sample_rate: int = 48000,
                       n_fft: int = 256) -> Dict[Tuple[EncodingStrategy, int], Tuple[float, float]]:
    """
    Encode a synthetic HRTF set with every strategy and order and measure the
    reconstruction error at the encoding directions.
    
    Returns:
        Dictionary keyed by (strategy, order) holding the mean magnitude error
        above the MagLS cutoff floor (dB) and the mean inter-aural phase delay
        error below it (µs)
    """
    grid = fibonacci_grid(n_directions)
    h = synthetic_hrirs(grid, sample_rate=sample_rate, n_fft=n_fft)
    H = forward(h)
    frequencies = frequency_vector(n_fft, sample_rate)
    
    interpolator = HRTFInterpolator(InterpolatorConfig(n_fft=None, sample_rate=sample_rate))
    results = {}
    
    for order in orders:
        for strategy in strategies:
            coefficients = interpolator.encode(H, grid, order, strategy)
            H_interp = interpolator.decode(coefficients, grid)
            
            mag_err = band_mean(magnitude_error(H, H_interp, grid.weights), frequencies,
                                f_low=DEFAULT_MIN_CUTOFF)
            pd_err = band_mean(phase_delay_error(H, H_interp, frequencies), frequencies,
                               f_high=DEFAULT_MIN_CUTOFF)
            results[(strategy, order)] = (float(np.mean(mag_err)), float(pd_err))
    
    return results


def demonstrate_horizontal_interpolation(order: int = 5) -> np.ndarray:
    """
    Interpolate a synthetic HRTF set from a sparse grid to the horizontal plane.
    
    Returns:
        Impulse responses of shape (n_fft, 72, 2) at 5° azimuth steps
    """
    sparse = fibonacci_grid(2 * (order + 1) ** 2)
    h = synthetic_hrirs(sparse)
    
    targets = DirectionGrid.from_degrees(np.arange(0, 360, 5), np.zeros(72))
    config = InterpolatorConfig(encoder=EncoderConfig(strategy=EncodingStrategy.BIMAGLS, order=order),
                                n_fft=None)
    interpolator = HRTFInterpolator(config)
    h_interp = interpolator.interpolate(h, sparse, targets)
    
    on_plane = horizontal_plane_indices(targets)
    print(f"Interpolated {len(on_plane)} horizontal-plane HRIRs at order {order}")
    return h_interp


def main():
    """Run the strategy comparison and print a summary table."""
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')
    
    results = compare_strategies()
    print(f"{'strategy':>10} {'order':>6} {'mag err > fc (dB)':>18} {'ITD err < fc (us)':>18}")
    for (strategy, order), (mag_err, pd_err) in sorted(results.items(), key=lambda kv: (kv[0][1], kv[0][0].value)):
        print(f"{strategy.value:>10} {order:>6d} {mag_err:>18.2f} {pd_err:>18.1f}")
    
    demonstrate_horizontal_interpolation()


if __name__ == "__main__":
    main()
