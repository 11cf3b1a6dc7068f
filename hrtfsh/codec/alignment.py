"""
Ear-Alignment Phase Model Module

Analytic inter-aural phase of a rigid-sphere head, used by the time-aligned
(TA) and BiMagLS strategies to remove the dominant inter-aural delay before
spherical harmonic fitting and to reintroduce it after decoding.

For a far-field source in direction Ω and an ear at radius r on the
inter-aural axis, the ear is reached earlier than the head centre by
r·cos(Θ)/c, where Θ is the angle between Ω and the ear axis. The
corresponding phase term is

    phase(f, Ω, ear) = -2πf · r·cos(Θ) / c

and the aligned spectrum is H · exp(+i·phase).

References:
    Ben-Hur, Z., Alon, D. L., Mehra, R., Rafaely, B. "Efficient
    Representation and Sparse Sampling of Head-Related Transfer Functions
    Using Phase-Correction Based on Ear Alignment." IEEE/ACM TASLP 27(12),
    2019.
"""

import math
import logging
import numpy as np
from scipy import signal

from .exceptions import ValidationError
from .math_utils import validate_order
from .utils import DirectionGrid, EarAlignmentPhase, LEFT, RIGHT, N_EARS

# Set up logging
logger = logging.getLogger(__name__)


def ear_cosines(grid: DirectionGrid) -> np.ndarray:
    """
    Cosine of the angle between each direction and each ear axis.
    
    The left ear sits at azimuth +π/2 and the right ear at -π/2, both on the
    horizontal plane.
    
    Returns:
        Array of shape (n_directions, 2)
    """
    lateral = np.cos(grid.elevation) * np.sin(grid.azimuth)
    cosines = np.empty((len(grid), N_EARS))
    cosines[:, LEFT] = lateral
    cosines[:, RIGHT] = -lateral
    return cosines


def path_length_difference(grid: DirectionGrid, head_radius: float) -> np.ndarray:
    """Far-field path saved by each ear relative to the head centre (m), shape (n_directions, 2)."""
    return head_radius * ear_cosines(grid)


def ear_alignment_phase(frequencies: np.ndarray, grid: DirectionGrid,
                        head_radius: float, speed_of_sound: float) -> EarAlignmentPhase:
    """
    Inter-aural phase term of a rigid-sphere head.
    
    Args:
        frequencies: Bin frequencies in Hz, shape (n_bins,)
        grid: Direction grid
        head_radius: Head radius in meters
        speed_of_sound: Speed of sound in m/s
    
    Returns:
        Real array of shape (n_bins, n_directions, 2)
    """
    if head_radius <= 0 or speed_of_sound <= 0:
        raise ValidationError("Head radius and speed of sound must be positive")
    omega = 2 * np.pi * np.asarray(frequencies, dtype=np.float64).ravel()
    distance = path_length_difference(grid, head_radius)
    return -(omega[:, None, None] * distance[None, :, :]) / speed_of_sound


def remove_phase(transfer_functions: np.ndarray, phase: EarAlignmentPhase) -> np.ndarray:
    """Remove the ear-alignment phase: H · exp(+i·phase)."""
    return transfer_functions * np.exp(1j * phase)


def restore_phase(transfer_functions: np.ndarray, phase: EarAlignmentPhase) -> np.ndarray:
    """Reintroduce the ear-alignment phase: H · exp(-i·phase)."""
    return transfer_functions * np.exp(-1j * phase)


def magls_cutoff(order: int, head_radius: float, speed_of_sound: float,
                 min_cutoff: float = 3000.0) -> float:
    """
    Frequency above which MagLS replaces the ordinary least-squares fit.
    
    The spatial aliasing limit of order N on a sphere of radius r is reached
    at kr = N, i.e. f = N·c / (2πr). The result is never below ``min_cutoff``.
    
    Args:
        order: Spatial order N
        head_radius: Head radius in meters
        speed_of_sound: Speed of sound in m/s
        min_cutoff: Lower bound in Hz
    
    Returns:
        Cutoff frequency in Hz
    """
    order = validate_order(order)
    aliasing_frequency = order * speed_of_sound / (2 * math.pi * head_radius)
    return max(aliasing_frequency, float(min_cutoff))


def detect_onsets(impulse_responses: np.ndarray, threshold_db: float = -20.0,
                  upsampling: int = 10) -> np.ndarray:
    """
    Onset of each impulse response by threshold detection.
    
    The responses are upsampled, and the onset is the first sample whose
    magnitude reaches ``threshold_db`` relative to the peak.
    
    Args:
        impulse_responses: Array of shape (n_samples, n_directions, 2)
        threshold_db: Detection threshold relative to the peak (dB)
        upsampling: Upsampling factor for sub-sample resolution
    
    Returns:
        Onsets in (fractional) samples, shape (n_directions, 2)
    """
    h = np.asarray(impulse_responses, dtype=np.float64)
    if upsampling > 1:
        h = signal.resample_poly(h, upsampling, 1, axis=0)
    envelope = np.abs(h)
    peak = envelope.max(axis=0, keepdims=True)
    above = envelope >= peak * 10 ** (threshold_db / 20)
    onsets = np.argmax(above, axis=0).astype(np.float64)
    return onsets / max(upsampling, 1)


def remove_itd_by_onset(impulse_responses: np.ndarray, safety: int = 5) -> np.ndarray:
    """
    Time-align impulse responses by discarding everything before their onset.
    
    Each response is zeroed up to ``safety`` samples before its onset and
    circularly shifted so that this point becomes sample 0. This is the
    time-domain counterpart of the ear-alignment phase, kept as a comparison
    baseline.
    
    Args:
        impulse_responses: Array of shape (n_samples, n_directions, 2)
        safety: Samples kept before the detected onset
    
    Returns:
        New array of the same shape
    """
    h = np.array(impulse_responses, dtype=np.float64)
    onsets = detect_onsets(h)
    shifts = np.maximum(np.round(onsets).astype(int) - safety, 0)
    
    aligned = np.empty_like(h)
    for i in range(h.shape[1]):
        for j in range(h.shape[2]):
            hij = h[:, i, j].copy()
            hij[:shifts[i, j]] = 0.0
            aligned[:, i, j] = np.roll(hij, -shifts[i, j])
    logger.debug("Removed onset delays (max shift %d samples)", int(shifts.max()))
    return aligned
