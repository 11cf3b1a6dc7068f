"""Spherical harmonic representation and interpolation of HRTFs."""
