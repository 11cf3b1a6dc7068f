"""
HRTF Spherical Harmonic Codec Package

Encodes dense head-related transfer function sets into a compact spherical
harmonic representation (truncated, time-aligned, MagLS or BiMagLS) and
reconstructs them at arbitrary directions.
"""

from .core import HRTFInterpolator
from .config import InterpolatorConfig, EncoderConfig, GeometryConfig
from .spectral import forward, inverse
from .encoders import encode
from .decoders import decode
from .alignment import ear_alignment_phase, magls_cutoff
from .sampling import basis_matrix, pseudo_inverse, fibonacci_grid, gaussian_grid
from .utils import DirectionGrid, EncodingStrategy, SHCoefficientSet

__version__ = '0.1.0'
