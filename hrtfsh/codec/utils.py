"""
General Utility Functions and Definitions

This module contains type definitions, enumerations and the data classes
shared across the hrtfsh codebase: the direction grid that describes a
spatial sampling of the sphere and the spherical harmonic coefficient set
produced by the encoder.

Array layout conventions used throughout the package:
    - Impulse responses: (n_samples, n_directions, 2), real
    - Transfer functions: (n_bins, n_directions, 2), complex
    - SH coefficients: ((order+1)², n_bins, 2), complex
Ear channel 0 is the left ear, channel 1 the right ear.

See Also:
    - config: For centralized configuration management
    - math_utils: For mathematical utility functions
"""

import hashlib
import math
import numpy as np
from enum import Enum
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from .exceptions import ValidationError, InvalidOrderError
from .math_utils import n_sh
from .spectral import inverse, frequency_vector

# Type aliases for improved readability
ImpulseResponseSet = np.ndarray  # Shape: (n_samples, n_directions, 2)
TransferFunctionSet = np.ndarray  # Shape: (n_bins, n_directions, 2)
SHBasisMatrix = np.ndarray  # Shape: (n_directions, (order+1)²)
EarAlignmentPhase = np.ndarray  # Shape: (n_bins, n_directions, 2)

LEFT = 0
RIGHT = 1
N_EARS = 2


class EncodingStrategy(Enum):
    """
    Spherical harmonic encoding strategies.
    
    Attributes:
        TRUNCATED: Ordinary band-limited least-squares fit
        TA: Time-aligned fit, the inter-aural phase is removed before fitting
        MAGLS: Magnitude least squares above the cutoff frequency
        BIMAGLS: Time alignment combined with magnitude least squares
    """
    TRUNCATED = 'trunc'
    TA = 'TA'
    MAGLS = 'MagLS'
    BIMAGLS = 'BiMagLS'
    
    @property
    def phase_aligned(self) -> bool:
        """Whether the ear-alignment phase is removed at encode time."""
        return self in (EncodingStrategy.TA, EncodingStrategy.BIMAGLS)
    
    @property
    def uses_magls(self) -> bool:
        """Whether bins above the cutoff are solved by magnitude least squares."""
        return self in (EncodingStrategy.MAGLS, EncodingStrategy.BIMAGLS)
    
    @classmethod
    def from_name(cls, name: Union[str, 'EncodingStrategy']) -> 'EncodingStrategy':
        """Resolve a strategy from its enum name or label, case-insensitively."""
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower()
        for strategy in cls:
            if key in (strategy.name.lower(), strategy.value.lower()):
                return strategy
        if key == 'truncated':
            return cls.TRUNCATED
        raise ValueError(f"Unknown encoding strategy: {name!r}. "
                         f"Use one of: {[s.value for s in cls]}")


@dataclass(frozen=True, eq=False)
class DirectionGrid:
    """
    Ordered set of directions sampling the sphere.
    
    Attributes:
        azimuth: Azimuth angles in radians (0 = front, π/2 = left)
        elevation: Elevation angles in radians (0 = horizon, π/2 = up)
        weights: Optional per-direction integration weights
    
    The arrays are copied on construction and made read-only, so a grid can
    be shared freely between encode and decode calls.
    """
    azimuth: np.ndarray
    elevation: np.ndarray
    weights: Optional[np.ndarray] = None
    
    def __post_init__(self):
        azimuth = np.array(self.azimuth, dtype=np.float64).ravel()
        elevation = np.array(self.elevation, dtype=np.float64).ravel()
        
        if azimuth.shape != elevation.shape:
            raise ValidationError(f"Azimuth and elevation must have the same length, "
                                  f"got {azimuth.size} and {elevation.size}")
        if azimuth.size == 0:
            raise ValidationError("Direction grid must contain at least one direction")
        if not (np.isfinite(azimuth).all() and np.isfinite(elevation).all()):
            raise ValidationError("Direction grid contains NaN/inf")
        if np.any(np.abs(elevation) > math.pi / 2 + 1e-9):
            raise ValidationError("Elevation must lie in [-π/2, π/2]")
        elevation = np.clip(elevation, -math.pi / 2, math.pi / 2)
        
        weights = None
        if self.weights is not None:
            weights = np.array(self.weights, dtype=np.float64).ravel()
            if weights.shape != azimuth.shape:
                raise ValidationError("Weights must have one entry per direction")
            if np.any(weights < 0) or not np.isfinite(weights).all():
                raise ValidationError("Weights must be finite and non-negative")
            weights.setflags(write=False)
        
        azimuth.setflags(write=False)
        elevation.setflags(write=False)
        object.__setattr__(self, 'azimuth', azimuth)
        object.__setattr__(self, 'elevation', elevation)
        object.__setattr__(self, 'weights', weights)
    
    def __len__(self) -> int:
        return self.azimuth.size
    
    @property
    def colatitude(self) -> np.ndarray:
        """Polar angle measured from the zenith, in radians [0, π]."""
        return math.pi / 2 - self.elevation
    
    def subset(self, indices: Union[Sequence[int], np.ndarray]) -> 'DirectionGrid':
        """Return a new grid containing the selected directions."""
        idx = np.asarray(indices)
        weights = None if self.weights is None else self.weights[idx]
        return DirectionGrid(self.azimuth[idx], self.elevation[idx], weights)
    
    def to_cartesian(self) -> np.ndarray:
        """Unit vectors of shape (n_directions, 3)."""
        cos_el = np.cos(self.elevation)
        return np.stack([cos_el * np.cos(self.azimuth),
                         cos_el * np.sin(self.azimuth),
                         np.sin(self.elevation)], axis=1)
    
    def fingerprint(self) -> str:
        """Content hash identifying the grid, used as a cache key."""
        digest = hashlib.sha1()
        digest.update(self.azimuth.tobytes())
        digest.update(self.elevation.tobytes())
        if self.weights is not None:
            digest.update(self.weights.tobytes())
        return digest.hexdigest()
    
    @classmethod
    def from_degrees(cls, azimuth_deg, elevation_deg, weights=None) -> 'DirectionGrid':
        """Create a grid from angles in degrees."""
        return cls(np.deg2rad(azimuth_deg), np.deg2rad(elevation_deg), weights)
    
    @classmethod
    def from_cartesian(cls, xyz: np.ndarray, weights=None) -> 'DirectionGrid':
        """Create a grid from Cartesian vectors of shape (n_directions, 3)."""
        xyz = np.asarray(xyz, dtype=np.float64)
        if xyz.ndim != 2 or xyz.shape[1] != 3:
            raise ValidationError("xyz must have shape (M, 3)")
        radius = np.linalg.norm(xyz, axis=1)
        if np.any(radius < 1e-12):
            raise ValidationError("Cannot derive a direction from a zero vector")
        azimuth = np.arctan2(xyz[:, 1], xyz[:, 0])
        elevation = np.arcsin(np.clip(xyz[:, 2] / radius, -1.0, 1.0))
        return cls(azimuth, elevation, weights)


@dataclass(frozen=True, eq=False)
class SHCoefficientSet:
    """
    Compact spherical harmonic representation of an HRTF set.
    
    Attributes:
        coefficients: Complex array of shape ((order+1)², n_bins, 2)
        order: Spatial order N
        strategy: Encoding strategy that produced the coefficients
        sample_rate: Sample rate in Hz
        n_fft: FFT length of the underlying impulse responses
        cutoff_frequency: MagLS cutoff in Hz (informational for TRUNCATED/TA)
        head_radius: Head radius used for the ear-alignment phase (m)
        speed_of_sound: Speed of sound used for the ear-alignment phase (m/s)
        smoothing_k: MagLS smoothing parameter
    """
    coefficients: np.ndarray
    order: int
    strategy: EncodingStrategy
    sample_rate: float
    n_fft: int
    cutoff_frequency: float
    head_radius: float
    speed_of_sound: float
    smoothing_k: float = 0.0
    
    def __post_init__(self):
        coefficients = np.array(self.coefficients, dtype=np.complex128)
        if coefficients.ndim != 3 or coefficients.shape[2] != N_EARS:
            raise ValidationError(f"Coefficients must have shape (n_sh, n_bins, 2), got {coefficients.shape}")
        if coefficients.shape[0] != n_sh(self.order):
            raise ValidationError(f"Order {self.order} needs {n_sh(self.order)} coefficients, "
                                  f"got {coefficients.shape[0]}")
        if coefficients.shape[1] != self.n_fft // 2 + 1:
            raise ValidationError(f"FFT length {self.n_fft} implies {self.n_fft // 2 + 1} bins, "
                                  f"got {coefficients.shape[1]}")
        coefficients.setflags(write=False)
        object.__setattr__(self, 'coefficients', coefficients)
        object.__setattr__(self, 'strategy', EncodingStrategy.from_name(self.strategy))
    
    @property
    def n_coefficients(self) -> int:
        return self.coefficients.shape[0]
    
    @property
    def n_bins(self) -> int:
        return self.coefficients.shape[1]
    
    @property
    def phase_aligned(self) -> bool:
        return self.strategy.phase_aligned
    
    @property
    def frequencies(self) -> np.ndarray:
        """Frequency of each bin in Hz."""
        return frequency_vector(self.n_fft, self.sample_rate)
    
    def truncate(self, order: int) -> 'SHCoefficientSet':
        """Return the set restricted to degrees up to ``order``."""
        if order > self.order:
            raise InvalidOrderError(f"Cannot truncate order {self.order} coefficients to order {order}")
        return SHCoefficientSet(self.coefficients[:n_sh(order)], order, self.strategy,
                                self.sample_rate, self.n_fft, self.cutoff_frequency,
                                self.head_radius, self.speed_of_sound, self.smoothing_k)
    
    def to_time_domain(self) -> np.ndarray:
        """SH coefficient impulse responses of shape ((order+1)², n_fft, 2)."""
        return inverse(self.coefficients, self.n_fft, axis=1)
