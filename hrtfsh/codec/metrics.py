"""
Numerical Evaluation Metrics Module

Error measures between a reference HRTF set and its spherical harmonic
reconstruction: magnitude error, inter-aural phase delay, inter-aural time and
level differences and the energy distribution of SH coefficients across orders.

Perceptual models (localization, externalization, speech reception) are not
part of this package.
"""

import numpy as np
from scipy import signal
from typing import Optional

from .exceptions import ValidationError
from .math_utils import acn_index
from .utils import LEFT, RIGHT


def magnitude_db(transfer_functions: np.ndarray, floor: float = 1e-12) -> np.ndarray:
    """Magnitude in dB, 20·log10(|H|), with |H| floored at ``floor``."""
    return 20 * np.log10(np.maximum(np.abs(transfer_functions), floor))


def _direction_mean(values: np.ndarray, weights: Optional[np.ndarray]) -> np.ndarray:
    """Mean over the direction axis (axis 1), optionally weighted."""
    if weights is None:
        return np.nanmean(values, axis=1)
    w = np.asarray(weights, dtype=np.float64)
    if w.shape != (values.shape[1],):
        raise ValidationError("Weights must have one entry per direction")
    return np.tensordot(values, w / w.sum(), axes=([1], [0]))


def magnitude_error(reference: np.ndarray, test: np.ndarray,
                    weights: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Mean absolute magnitude difference across directions.
    
    Args:
        reference: Transfer functions, shape (n_bins, n_directions, 2)
        test: Transfer functions of the same shape
        weights: Optional per-direction weights (e.g. quadrature weights)
    
    Returns:
        Error in dB, shape (n_bins, 2)
    """
    if np.shape(reference) != np.shape(test):
        raise ValidationError(f"Shape mismatch: {np.shape(reference)} vs {np.shape(test)}")
    return _direction_mean(np.abs(magnitude_db(test) - magnitude_db(reference)), weights)


def interaural_phase_delay(transfer_functions: np.ndarray, frequencies: np.ndarray) -> np.ndarray:
    """
    Inter-aural phase delay in microseconds.
    
    Computed as (-unwrap(∠H_left) + unwrap(∠H_right)) / (2πf), positive when
    the right ear leads. The DC bin is undefined and returned as NaN.
    
    Args:
        transfer_functions: Shape (n_bins, n_directions, 2)
        frequencies: Bin frequencies in Hz, shape (n_bins,)
    
    Returns:
        Array of shape (n_bins, n_directions)
    """
    H = np.asarray(transfer_functions)
    f = np.asarray(frequencies, dtype=np.float64)
    phase_left = np.unwrap(np.angle(H[:, :, LEFT]), axis=0)
    phase_right = np.unwrap(np.angle(H[:, :, RIGHT]), axis=0)
    
    with np.errstate(divide='ignore', invalid='ignore'):
        delay = (-phase_left + phase_right) / (2 * np.pi * f[:, None]) * 1e6
    delay[f == 0] = np.nan
    return delay


def phase_delay_error(reference: np.ndarray, test: np.ndarray, frequencies: np.ndarray,
                      weights: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Mean absolute inter-aural phase delay difference across directions.
    
    Returns:
        Error in microseconds, shape (n_bins,); NaN at DC
    """
    pd_ref = interaural_phase_delay(reference, frequencies)
    pd_test = interaural_phase_delay(test, frequencies)
    error = np.abs(pd_test - pd_ref)
    if weights is None:
        with np.errstate(invalid='ignore'):
            return np.mean(error, axis=1)
    return _direction_mean(error, weights)


def interaural_level_difference(impulse_responses: np.ndarray) -> np.ndarray:
    """
    Broadband inter-aural level difference in dB (left over right).
    
    Args:
        impulse_responses: Shape (n_samples, n_directions, 2)
    
    Returns:
        Array of shape (n_directions,)
    """
    energy = np.sum(np.asarray(impulse_responses) ** 2, axis=0)
    energy = np.maximum(energy, 1e-24)
    return 10 * np.log10(energy[:, LEFT] / energy[:, RIGHT])


def interaural_time_difference(impulse_responses: np.ndarray, sample_rate: float,
                               cutoff: float = 3000.0, filter_order: int = 10) -> np.ndarray:
    """
    Broadband inter-aural time difference in microseconds.
    
    Both ears are low-pass filtered below ``cutoff`` with a zero-phase
    Butterworth filter. The ITD is the lag of the maximum of the inter-aural
    cross-correlation of the Hilbert envelopes, positive when the right ear
    leads (same sign as ``interaural_phase_delay``). The resolution is one
    sample.
    
    Args:
        impulse_responses: Shape (n_samples, n_directions, 2)
        sample_rate: Sample rate in Hz
        cutoff: Low-pass cutoff in Hz
        filter_order: Butterworth filter order
    
    Returns:
        Array of shape (n_directions,)
    """
    h = np.asarray(impulse_responses, dtype=np.float64)
    if h.ndim != 3 or h.shape[2] != 2:
        raise ValidationError(f"Impulse responses must have shape (n_samples, n_directions, 2), got {h.shape}")
    if not 0 < cutoff < sample_rate / 2:
        raise ValidationError(f"Cutoff {cutoff} Hz must lie between 0 and Nyquist ({sample_rate / 2} Hz)")
    
    sos = signal.butter(filter_order, cutoff, btype='low', fs=sample_rate, output='sos')
    envelope = np.abs(signal.hilbert(signal.sosfiltfilt(sos, h, axis=0), axis=0))
    
    n_samples = h.shape[0]
    lags = signal.correlation_lags(n_samples, n_samples, mode='full')
    itd = np.empty(h.shape[1])
    for d in range(h.shape[1]):
        xcorr = signal.correlate(envelope[:, d, LEFT], envelope[:, d, RIGHT], mode='full')
        itd[d] = lags[np.argmax(xcorr)]
    return itd / sample_rate * 1e6


def sh_energy_per_order(coefficients: np.ndarray, floor: float = 1e-12) -> np.ndarray:
    """
    Energy of the SH coefficients of each degree, in dB.
    
    Args:
        coefficients: Shape ((N+1)², n_bins, ...)
    
    Returns:
        Array of shape (n_bins, N+1, ...)
    """
    C = np.asarray(coefficients)
    order = int(round(np.sqrt(C.shape[0]))) - 1
    if (order + 1) ** 2 != C.shape[0]:
        raise ValidationError(f"{C.shape[0]} coefficients do not form a complete order")
    
    energy = np.stack([np.sum(np.abs(C[acn_index(n, -n):acn_index(n, n) + 1]) ** 2, axis=0)
                       for n in range(order + 1)], axis=1)
    return 10 * np.log10(np.maximum(energy, floor))


def band_mean(values: np.ndarray, frequencies: np.ndarray,
              f_low: float = 0.0, f_high: float = np.inf) -> np.ndarray:
    """Mean of ``values`` over the bins with f_low <= f < f_high (axis 0), ignoring NaN."""
    f = np.asarray(frequencies)
    mask = (f >= f_low) & (f < f_high)
    if not mask.any():
        raise ValidationError(f"No bins between {f_low} and {f_high} Hz")
    return np.nanmean(np.asarray(values)[mask], axis=0)
