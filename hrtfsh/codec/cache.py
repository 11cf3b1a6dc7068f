"""
Coefficient Cache Module

A content-addressed on-disk store of encoded coefficient sets. Each entry is
keyed by everything that determines the encoder output (strategy, order,
geometry, MagLS parameters, sample rate and fingerprints of the grid and the
input data), so an order sweep can be re-run without re-encoding.

The cache wraps the pure encoder; it never changes what ``encode`` returns.
"""

import hashlib
import json
import logging
import os
from typing import Any, Callable, Dict

import numpy as np

from .config import COEFFICIENT_FILE_EXTENSION
from .exceptions import CacheError, FileFormatError
from .io import save_coefficients, load_coefficients
from .utils import DirectionGrid, EncodingStrategy, SHCoefficientSet

# Set up logging
logger = logging.getLogger(__name__)


def data_fingerprint(array: np.ndarray) -> str:
    """Content hash of an array, including its shape and dtype."""
    a = np.ascontiguousarray(array)
    digest = hashlib.sha1()
    digest.update(str(a.shape).encode('utf-8'))
    digest.update(str(a.dtype).encode('utf-8'))
    digest.update(a.tobytes())
    return digest.hexdigest()


def cache_key(strategy, order: int, grid: DirectionGrid, data: np.ndarray, **parameters: Any) -> Dict[str, Any]:
    """
    Build the key fields of a cache entry.
    
    Args:
        strategy: Encoding strategy (enum or name)
        order: Spatial order
        grid: Encoding grid
        data: Input transfer functions or impulse responses
        **parameters: Remaining scalar encoder parameters (head radius, speed of
            sound, smoothing k, cutoff floor, sample rate, ...)
    
    Returns:
        JSON-serializable dictionary
    """
    key = {
        'strategy': EncodingStrategy.from_name(strategy).value,
        'order': int(order),
        'grid': grid.fingerprint(),
        'data': data_fingerprint(data),
    }
    for name, value in parameters.items():
        key[name] = value.name if hasattr(value, 'name') else value
    return key


class CoefficientCache:
    """Directory of coefficient files addressed by a hash of their key fields"""
    
    def __init__(self, directory: str):
        """
        Args:
            directory: Cache directory, created if missing
        """
        self.directory = directory
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot create cache directory {directory}: {e}") from e
    
    def path_for(self, key: Dict[str, Any]) -> str:
        """File path of the entry for ``key``."""
        digest = hashlib.sha1(json.dumps(key, sort_keys=True).encode('utf-8')).hexdigest()
        name = f"ord{key.get('order', 0):02d}_{key.get('strategy', 'sh')}_{digest[:16]}"
        return os.path.join(self.directory, name + COEFFICIENT_FILE_EXTENSION)
    
    def __contains__(self, key: Dict[str, Any]) -> bool:
        return os.path.isfile(self.path_for(key))
    
    def get(self, key: Dict[str, Any]) -> SHCoefficientSet:
        """
        Load the entry for ``key``.
        
        Raises:
            CacheError: If the entry is missing or unreadable
        """
        path = self.path_for(key)
        try:
            return load_coefficients(path)
        except (OSError, FileFormatError) as e:
            raise CacheError(f"Cannot read cache entry {path}: {e}") from e
    
    def put(self, key: Dict[str, Any], coefficients: SHCoefficientSet) -> str:
        """Store ``coefficients`` under ``key`` and return the file path."""
        path = self.path_for(key)
        try:
            save_coefficients(path, coefficients)
        except OSError as e:
            raise CacheError(f"Cannot write cache entry {path}: {e}") from e
        return path
    
    def get_or_encode(self, key: Dict[str, Any], encode_fn: Callable[[], SHCoefficientSet]) -> SHCoefficientSet:
        """
        Return the cached entry for ``key``, encoding and storing it if missing.
        
        An entry that exists but cannot be parsed is treated as a miss and
        overwritten with a fresh encoding.
        
        Args:
            key: Key fields, see ``cache_key``
            encode_fn: Zero-argument callable producing the coefficient set
        """
        path = self.path_for(key)
        if os.path.isfile(path):
            logger.info("Found %s. Loading...", path)
            try:
                return load_coefficients(path)
            except FileFormatError as e:
                logger.warning("Discarding unreadable cache entry %s: %s", path, e)
        
        logger.info("Generating coefficients for order %s (%s)...", key.get('order'), key.get('strategy'))
        coefficients = encode_fn()
        logger.info("Saving %s...", path)
        self.put(key, coefficients)
        return coefficients
    
    def clear(self) -> int:
        """Delete every coefficient file in the cache; returns the number removed."""
        removed = 0
        for name in os.listdir(self.directory):
            if name.endswith(COEFFICIENT_FILE_EXTENSION):
                os.remove(os.path.join(self.directory, name))
                removed += 1
        return removed
