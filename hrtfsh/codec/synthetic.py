"""
Synthetic HRTF Module

Generates head-related impulse responses of a spherical head so that the
encoder, decoder and metrics can be exercised without measured data. The
model combines:

    - Woodworth's frequency-independent inter-aural delay,
    - the single-pole head-shadow filter of Brown and Duda,
    - an elevation-dependent pinna echo that adds direction-dependent notches.

It is a coarse stand-in for measured HRTFs: the inter-aural phase is
realistic enough to show the benefit of ear alignment and the spectral detail
is rich enough that low spatial orders alias above a few kHz.

References:
    Brown, C. P., Duda, R. O. "A Structural Model for Binaural Sound
    Synthesis." IEEE Trans. Speech Audio Process. 6(5), 1998.
"""

import math
import logging
import numpy as np

from .alignment import ear_cosines
from .config import DEFAULT_HEAD_RADIUS, SPEED_OF_SOUND, DEFAULT_SAMPLE_RATE
from .spectral import frequency_vector, inverse
from .utils import DirectionGrid, ImpulseResponseSet

# Set up logging
logger = logging.getLogger(__name__)

# Flag for whether we've warned about synthetic HRTF use
_synthetic_hrtf_warning_shown = False

# Head-shadow parameters (Brown & Duda)
_ALPHA_MIN = 0.1
_THETA_MIN = math.radians(150.0)

# Pinna echo
_PINNA_GAIN = 0.35
_PINNA_DELAY = 1.0e-4  # s, at elevation 0


def woodworth_delay(grid: DirectionGrid, head_radius: float = DEFAULT_HEAD_RADIUS,
                    speed_of_sound: float = SPEED_OF_SOUND) -> np.ndarray:
    """
    Arrival time at each ear relative to the head centre (s), shape (n_directions, 2).
    
    Visible ears lead by r·cos(θ)/c; shadowed ears lag by r·(θ - π/2)/c, where θ
    is the angle between the source and the ear axis.
    """
    theta = np.arccos(np.clip(ear_cosines(grid), -1.0, 1.0))
    visible = -head_radius * np.cos(theta) / speed_of_sound
    shadowed = head_radius * (theta - math.pi / 2) / speed_of_sound
    return np.where(theta < math.pi / 2, visible, shadowed)


def head_shadow(frequencies: np.ndarray, grid: DirectionGrid,
                head_radius: float = DEFAULT_HEAD_RADIUS,
                speed_of_sound: float = SPEED_OF_SOUND) -> np.ndarray:
    """Single-pole head-shadow response, shape (n_bins, n_directions, 2)."""
    theta = np.arccos(np.clip(ear_cosines(grid), -1.0, 1.0))
    alpha = (1 + _ALPHA_MIN / 2) + (1 - _ALPHA_MIN / 2) * np.cos(theta / _THETA_MIN * math.pi)
    omega_ratio = (2 * np.pi * np.asarray(frequencies))[:, None, None] * head_radius / (2 * speed_of_sound)
    return (1 + 1j * alpha[None] * omega_ratio) / (1 + 1j * omega_ratio)


def synthetic_hrirs(grid: DirectionGrid, sample_rate: int = DEFAULT_SAMPLE_RATE, n_fft: int = 256,
                    head_radius: float = DEFAULT_HEAD_RADIUS,
                    speed_of_sound: float = SPEED_OF_SOUND,
                    onset: float = 1.0e-3) -> ImpulseResponseSet:
    """
    Generate spherical-head impulse responses for every grid direction.
    
    Args:
        grid: Directions to synthesize
        sample_rate: Sample rate in Hz
        n_fft: Impulse response length in samples
        head_radius: Head radius in meters
        speed_of_sound: Speed of sound in m/s
        onset: Common delay added to every response (s), keeps them causal
    
    Returns:
        Real impulse responses of shape (n_fft, n_directions, 2)
    """
    global _synthetic_hrtf_warning_shown
    
    if not _synthetic_hrtf_warning_shown:
        logger.warning("Using synthetic spherical-head HRTFs. Results only approximate "
                       "the behaviour of measured HRTFs.")
        _synthetic_hrtf_warning_shown = True
    
    frequencies = frequency_vector(n_fft, sample_rate)
    omega = 2 * np.pi * frequencies[:, None, None]
    
    delay = onset + woodworth_delay(grid, head_radius, speed_of_sound)
    pinna_delay = _PINNA_DELAY * (1.5 + np.sin(grid.elevation) + 0.5 * np.cos(grid.azimuth))
    
    H = head_shadow(frequencies, grid, head_radius, speed_of_sound)
    H = H * (1 + _PINNA_GAIN * np.exp(-1j * omega * pinna_delay[None, :, None]))
    H = H * np.exp(-1j * omega * delay[None])
    
    return inverse(H, n_fft, axis=0)
