"""
Core Interpolator Module

This module contains the HRTFInterpolator class that ties together the
spectral transform, the encoder and the decoder, and keeps the read-only
basis matrices and pseudo-inverses that encode and decode calls share.
"""

import logging
import threading
import numpy as np
from typing import Dict, Iterable, Optional, Tuple, Union

from .cache import CoefficientCache, cache_key, data_fingerprint
from .config import InterpolatorConfig
from .decoders import decode
from .encoders import encode
from .math_utils import pseudo_inverse, validate_order
from .sampling import basis_matrix
from .spectral import forward, inverse, zero_pad
from .utils import DirectionGrid, EncodingStrategy, SHCoefficientSet, ImpulseResponseSet, TransferFunctionSet

# Set up logging
logger = logging.getLogger(__name__)


class HRTFInterpolator:
    """
    Spherical harmonic HRTF encoder/decoder with shared basis matrices.
    
    Basis matrices and pseudo-inverses are computed once per (grid, order)
    pair and reused; they are read-only, so an interpolator can serve
    concurrent calls.
    
    Args:
        config: Interpolator configuration (default: InterpolatorConfig())
        cache: Optional coefficient cache; created from ``config.cache_dir`` if omitted
    """
    
    def __init__(self, config: Optional[InterpolatorConfig] = None,
                 cache: Optional[CoefficientCache] = None):
        self.config = config if config is not None else InterpolatorConfig()
        if cache is None and self.config.cache_dir:
            cache = CoefficientCache(self.config.cache_dir)
        self.cache = cache
        
        self._bases: Dict[Tuple[str, int], np.ndarray] = {}
        self._pinvs: Dict[Tuple[str, int, Optional[str]], np.ndarray] = {}
        self._lock = threading.Lock()
    
    # ---------------------------------------------------------------------------------
    # Shared linear algebra
    # ---------------------------------------------------------------------------------
    
    def basis(self, grid: DirectionGrid, order: int) -> np.ndarray:
        """Read-only basis matrix of ``grid`` at ``order``."""
        key = (grid.fingerprint(), validate_order(order))
        with self._lock:
            if key not in self._bases:
                self._bases[key] = basis_matrix(grid, order, self.config.encoder.normalization)
            return self._bases[key]
    
    def pinv(self, grid: DirectionGrid, order: int, weights: Optional[np.ndarray] = None) -> np.ndarray:
        """Read-only (optionally weighted) pseudo-inverse of the basis of ``grid``."""
        weights_key = None
        if weights is not None:
            weights = np.asarray(weights, dtype=np.float64)
            weights_key = data_fingerprint(weights)
        Y = self.basis(grid, order)
        key = (grid.fingerprint(), order, weights_key)
        with self._lock:
            if key not in self._pinvs:
                self._pinvs[key] = pseudo_inverse(Y, weights)
            return self._pinvs[key]
    
    def clear(self) -> None:
        """Drop all cached basis matrices and pseudo-inverses."""
        with self._lock:
            self._bases.clear()
            self._pinvs.clear()
    
    # ---------------------------------------------------------------------------------
    # Frequency-domain interface
    # ---------------------------------------------------------------------------------
    
    def encode(self, transfer_functions: TransferFunctionSet, grid: DirectionGrid,
               order: Optional[int] = None,
               strategy: Union[EncodingStrategy, str, None] = None,
               sample_rate: Optional[float] = None,
               n_fft: Optional[int] = None,
               weights: Optional[np.ndarray] = None) -> SHCoefficientSet:
        """
        Encode transfer functions; unspecified parameters come from the configuration.
        
        Returns:
            SHCoefficientSet, loaded from the cache when an identical encoding exists
        """
        enc = self.config.encoder
        geo = self.config.geometry
        order = validate_order(enc.order if order is None else order)
        strategy = EncodingStrategy.from_name(enc.strategy if strategy is None else strategy)
        sample_rate = self.config.sample_rate if sample_rate is None else sample_rate
        
        def run() -> SHCoefficientSet:
            return encode(transfer_functions, grid, order, strategy,
                          sample_rate=sample_rate,
                          head_radius=geo.head_radius,
                          speed_of_sound=geo.speed_of_sound,
                          smoothing_k=enc.smoothing_k,
                          min_cutoff=enc.min_cutoff,
                          weights=weights,
                          n_fft=n_fft,
                          normalization=enc.normalization,
                          basis=self.basis(grid, order),
                          pinv=self.pinv(grid, order, weights))
        
        if self.cache is None:
            return run()
        
        key = cache_key(strategy, order, grid, np.asarray(transfer_functions),
                        head_radius=geo.head_radius, speed_of_sound=geo.speed_of_sound,
                        smoothing_k=enc.smoothing_k, min_cutoff=enc.min_cutoff,
                        sample_rate=sample_rate, n_fft=n_fft, normalization=enc.normalization,
                        weights=None if weights is None else data_fingerprint(np.asarray(weights, dtype=np.float64)))
        return self.cache.get_or_encode(key, run)
    
    def decode(self, coefficients: SHCoefficientSet, target_grid: DirectionGrid,
               order: Optional[int] = None) -> TransferFunctionSet:
        """Decode at ``target_grid`` with the geometry stored in ``coefficients``."""
        order = coefficients.order if order is None else validate_order(order)
        basis = self.basis(target_grid, order) if order <= coefficients.order else None
        return decode(coefficients, target_grid, order,
                      normalization=self.config.encoder.normalization, basis=basis)
    
    # ---------------------------------------------------------------------------------
    # Time-domain interface
    # ---------------------------------------------------------------------------------
    
    def _prepare(self, impulse_responses: ImpulseResponseSet) -> np.ndarray:
        h = np.asarray(impulse_responses, dtype=np.float64)
        if self.config.n_fft is not None and self.config.n_fft != h.shape[0]:
            h = zero_pad(h, self.config.n_fft)
        return h
    
    def to_sh(self, impulse_responses: ImpulseResponseSet, grid: DirectionGrid,
              order: Optional[int] = None,
              strategy: Union[EncodingStrategy, str, None] = None,
              sample_rate: Optional[float] = None) -> SHCoefficientSet:
        """
        Encode head-related impulse responses.
        
        The responses are zero-padded to ``config.n_fft`` (when set) to
        increase the frequency resolution before the transform.
        
        Args:
            impulse_responses: Real array of shape (n_samples, n_directions, 2)
            grid: Measurement directions
            order: Spatial order (default: config)
            strategy: Encoding strategy (default: config)
            sample_rate: Sample rate in Hz (default: config)
        """
        h = self._prepare(impulse_responses)
        return self.encode(forward(h, axis=0), grid, order, strategy, sample_rate, n_fft=h.shape[0])
    
    def from_sh(self, coefficients: SHCoefficientSet, target_grid: DirectionGrid,
                order: Optional[int] = None) -> ImpulseResponseSet:
        """
        Reconstruct impulse responses at ``target_grid``.
        
        Returns:
            Real array of shape (n_fft, n_targets, 2)
        """
        H = self.decode(coefficients, target_grid, order)
        return inverse(H, coefficients.n_fft, axis=0)
    
    def interpolate(self, impulse_responses: ImpulseResponseSet, grid: DirectionGrid,
                    target_grid: DirectionGrid,
                    order: Optional[int] = None,
                    strategy: Union[EncodingStrategy, str, None] = None,
                    sample_rate: Optional[float] = None) -> ImpulseResponseSet:
        """Encode at ``grid`` and reconstruct impulse responses at ``target_grid``."""
        coefficients = self.to_sh(impulse_responses, grid, order, strategy, sample_rate)
        return self.from_sh(coefficients, target_grid)
    
    def order_sweep(self, impulse_responses: ImpulseResponseSet, grid: DirectionGrid,
                    orders: Iterable[int],
                    strategies: Iterable[Union[EncodingStrategy, str]],
                    sample_rate: Optional[float] = None) -> Dict[Tuple[EncodingStrategy, int], SHCoefficientSet]:
        """
        Encode every (strategy, order) combination.
        
        Returns:
            Dictionary keyed by (strategy, order)
        """
        strategies = [EncodingStrategy.from_name(s) for s in strategies]
        results = {}
        for order in orders:
            logger.info("Processing order %d...", order)
            for strategy in strategies:
                results[(strategy, order)] = self.to_sh(impulse_responses, grid, order, strategy, sample_rate)
        return results
