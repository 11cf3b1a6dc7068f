"""
Spectral Transform Module

Forward and inverse transforms between head-related impulse responses and
one-sided transfer functions. Only the non-redundant half of the spectrum of
a real signal is materialized (bins 0..n_fft//2, DC to Nyquist).
"""

import numpy as np
from scipy import fft as sp_fft
from typing import Optional

from .exceptions import ValidationError


def forward(impulse_responses: np.ndarray, n_fft: Optional[int] = None, axis: int = 0) -> np.ndarray:
    """
    Transform impulse responses to one-sided transfer functions.
    
    Args:
        impulse_responses: Real signals, time along ``axis``
        n_fft: Zero-padded transform length (default: input length)
        axis: Time axis
        
    Returns:
        Complex spectrum with n_fft//2 + 1 bins along ``axis``
    """
    x = np.asarray(impulse_responses, dtype=np.float64)
    if n_fft is None:
        n_fft = x.shape[axis]
    if n_fft < x.shape[axis]:
        raise ValidationError(f"FFT length {n_fft} is shorter than the signal ({x.shape[axis]} samples)")
    return sp_fft.rfft(x, n=n_fft, axis=axis)


def inverse(transfer_functions: np.ndarray, n_fft: int, axis: int = 0) -> np.ndarray:
    """
    Reconstruct real impulse responses from one-sided transfer functions.
    
    The discarded half of the spectrum is assumed Hermitian-symmetric, so the
    imaginary parts of the DC and Nyquist bins are ignored.
    
    Args:
        transfer_functions: One-sided complex spectrum, frequency along ``axis``
        n_fft: Length of the time signal to reconstruct
        axis: Frequency axis
        
    Returns:
        Real signals of length n_fft along ``axis``
    """
    spectrum = np.asarray(transfer_functions)
    if spectrum.shape[axis] != n_fft // 2 + 1:
        raise ValidationError(f"Spectrum has {spectrum.shape[axis]} bins, "
                              f"expected {n_fft // 2 + 1} for n_fft={n_fft}")
    return sp_fft.irfft(spectrum, n=n_fft, axis=axis)


def frequency_vector(n_fft: int, sample_rate: float) -> np.ndarray:
    """
    Frequencies in Hz of the n_fft//2 + 1 bins of a one-sided spectrum.
    
    For odd ``n_fft`` the last bin lies below Nyquist.
    """
    if n_fft < 1:
        raise ValidationError(f"FFT length must be positive, got {n_fft}")
    return sp_fft.rfftfreq(n_fft, d=1.0 / sample_rate)


def zero_pad(impulse_responses: np.ndarray, n_samples: int) -> np.ndarray:
    """
    Zero-pad impulse responses along the time axis (axis 0).
    
    Args:
        impulse_responses: Array of shape (n_taps, ...)
        n_samples: Target length
        
    Returns:
        New array of shape (n_samples, ...)
    """
    h = np.asarray(impulse_responses, dtype=np.float64)
    if n_samples < h.shape[0]:
        raise ValidationError(f"Cannot zero-pad {h.shape[0]} samples to {n_samples}")
    padded = np.zeros((n_samples,) + h.shape[1:])
    padded[:h.shape[0]] = h
    return padded
