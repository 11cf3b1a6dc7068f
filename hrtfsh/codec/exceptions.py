"""
Custom Exceptions Module

This module defines the exception hierarchy for the HRTF spherical harmonic
codec, providing specific error types for malformed inputs and file handling.

Conditions that are not raised as errors:
    - Rank deficiency (more SH coefficients than directions) is not an error;
      the pseudo-inverse returns the minimum-norm fit.
    - Geometry mismatch (decoding a phase-aligned set with a different head
      radius or speed of sound) cannot be detected and is a caller
      precondition.
"""


class HRTFSHError(Exception):
    """Base exception class for all hrtfsh errors."""
    pass


class ConfigurationError(HRTFSHError):
    """Error in codec configuration."""
    pass


class ValidationError(HRTFSHError, ValueError):
    """Error during parameter validation."""
    pass


class InvalidOrderError(ValidationError):
    """Negative, boolean or non-integer spatial order."""
    pass


class EncodingError(HRTFSHError):
    """Error during spherical harmonic encoding."""
    pass


class DecodingError(HRTFSHError):
    """Error during spherical harmonic decoding."""
    pass


class FileFormatError(HRTFSHError):
    """Error in coefficient file format handling."""
    pass


class CacheError(HRTFSHError):
    """Error reading or writing the coefficient cache."""
    pass


class MathError(HRTFSHError):
    """Error in mathematical calculations."""
    
    class PrecisionError(HRTFSHError):
        """Error due to numerical precision issues."""
        pass
    
    class DomainError(HRTFSHError):
        """Error due to input values outside the valid domain."""
        pass
