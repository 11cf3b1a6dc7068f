"""
Configuration Management Module

This module provides centralized configuration management for the HRTF
spherical harmonic codec, including physical constants, default settings,
and configuration utilities.
"""

from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
import json
import math

from .exceptions import ConfigurationError
from .math_utils import SHNormalization
from .utils import EncodingStrategy


# =====================================================================================
# Constants
# =====================================================================================

# Physics constants
SPEED_OF_SOUND = 343.0  # m/s at room temperature
DEFAULT_HEAD_RADIUS = 0.0875  # m, rigid-sphere head model

# BiMagLS cutoff floor
DEFAULT_MIN_CUTOFF = 3000.0  # Hz

# Default sample rate
DEFAULT_SAMPLE_RATE = 48000  # Hz

# HRIRs are zero-padded to this length to increase frequency resolution
DEFAULT_FFT_LENGTH = 2048  # samples

# Spatial orders
DEFAULT_TEST_ORDERS = [1, 3, 5, 10, 20, 30, 40]
DEFAULT_ORDER = 3

# File format settings
COEFFICIENT_FILE_MAGIC = b'HSHC'
COEFFICIENT_FILE_VERSION = 1
COEFFICIENT_FILE_EXTENSION = '.shc'


# =====================================================================================
# Configuration Classes
# =====================================================================================

@dataclass
class GeometryConfig:
    """Rigid-sphere head geometry shared by encoder and decoder"""
    
    head_radius: float = DEFAULT_HEAD_RADIUS
    speed_of_sound: float = SPEED_OF_SOUND
    
    def __post_init__(self):
        """Validate configuration after initialization"""
        if not math.isfinite(self.head_radius) or self.head_radius <= 0:
            raise ConfigurationError(f"Head radius must be positive, got {self.head_radius}")
        
        if not math.isfinite(self.speed_of_sound) or self.speed_of_sound <= 0:
            raise ConfigurationError(f"Speed of sound must be positive, got {self.speed_of_sound}")


@dataclass
class EncoderConfig:
    """Configuration for spherical harmonic encoding"""
    
    strategy: EncodingStrategy = EncodingStrategy.BIMAGLS
    order: int = DEFAULT_ORDER
    
    # MagLS settings (min_cutoff None = floor chosen by strategy)
    smoothing_k: float = 0.0
    min_cutoff: Optional[float] = None
    
    normalization: SHNormalization = SHNormalization.ORTHONORMAL
    
    def __post_init__(self):
        """Validate configuration after initialization"""
        if isinstance(self.strategy, str):
            try:
                self.strategy = EncodingStrategy.from_name(self.strategy)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        
        if isinstance(self.normalization, str):
            try:
                self.normalization = SHNormalization[self.normalization.upper()]
            except KeyError:
                raise ConfigurationError(f"Unknown normalization: {self.normalization}")
        
        if isinstance(self.order, bool) or not isinstance(self.order, int) or self.order < 0:
            raise ConfigurationError(f"Order must be a non-negative integer, got {self.order!r}")
        
        if self.smoothing_k < 0:
            raise ConfigurationError("Smoothing parameter k must be non-negative")
        
        if self.min_cutoff is not None and self.min_cutoff < 0:
            raise ConfigurationError("Minimum MagLS cutoff must be non-negative")


@dataclass
class InterpolatorConfig:
    """Complete configuration for the HRTF interpolator"""
    
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)
    
    # Zero-padding length applied to impulse responses (None = keep length)
    n_fft: Optional[int] = DEFAULT_FFT_LENGTH
    sample_rate: int = DEFAULT_SAMPLE_RATE
    
    # Directory of the coefficient cache (None disables caching)
    cache_dir: Optional[str] = None
    
    def __post_init__(self):
        """Validate configuration after initialization"""
        if self.n_fft is not None and self.n_fft < 2:
            raise ConfigurationError("FFT length must be at least 2 samples")
        
        if not math.isfinite(self.sample_rate) or self.sample_rate <= 0:
            raise ConfigurationError(f"Sample rate must be positive, got {self.sample_rate}")
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization"""
        return {
            'geometry': {
                'head_radius': self.geometry.head_radius,
                'speed_of_sound': self.geometry.speed_of_sound
            },
            'encoder': {
                'strategy': self.encoder.strategy.name,
                'order': self.encoder.order,
                'smoothing_k': self.encoder.smoothing_k,
                'min_cutoff': self.encoder.min_cutoff,
                'normalization': self.encoder.normalization.name
            },
            'n_fft': self.n_fft,
            'sample_rate': self.sample_rate,
            'cache_dir': self.cache_dir
        }
    
    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'InterpolatorConfig':
        """Create configuration from dictionary"""
        geometry_config = GeometryConfig(**config_dict.get('geometry', {}))
        encoder_config = EncoderConfig(**config_dict.get('encoder', {}))
        
        return cls(
            geometry=geometry_config,
            encoder=encoder_config,
            n_fft=config_dict.get('n_fft', DEFAULT_FFT_LENGTH),
            sample_rate=config_dict.get('sample_rate', DEFAULT_SAMPLE_RATE),
            cache_dir=config_dict.get('cache_dir')
        )
    
    def save(self, file_path: str) -> None:
        """Save configuration to file"""
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
    
    @classmethod
    def load(cls, file_path: str) -> 'InterpolatorConfig':
        """Load configuration from file"""
        with open(file_path, 'r') as f:
            return cls.from_dict(json.load(f))


def order_sweep(max_order: int = DEFAULT_TEST_ORDERS[-1]) -> List[int]:
    """Return the default order sweep, truncated at ``max_order``."""
    return [n for n in DEFAULT_TEST_ORDERS if n <= max_order]
