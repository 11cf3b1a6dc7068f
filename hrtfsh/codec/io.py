"""
Coefficient File Format Module

This module reads and writes spherical harmonic coefficient sets in the
binary ``.shc`` format:

    magic         4 bytes, b'HSHC'
    header        struct '<HHIIHIId': version, order, n_coefficients, n_bins,
                  n_ears, n_fft, metadata_length, sample_rate
    metadata      UTF-8 JSON (strategy, cutoff, geometry, smoothing)
    data          complex128 little-endian, C order, shape (n_coefficients, n_bins, n_ears)
"""

import json
import os
import struct
import tempfile
import numpy as np
from typing import Dict, Any

from .config import COEFFICIENT_FILE_MAGIC, COEFFICIENT_FILE_VERSION
from .exceptions import FileFormatError
from .utils import SHCoefficientSet

_HEADER_FORMAT = '<HHIIHIId'
_HEADER_SIZE = struct.calcsize(_HEADER_FORMAT)
_DATA_DTYPE = np.dtype('<c16')


class CoefficientFileWriter:
    """Class for writing coefficient sets to ``.shc`` files"""
    
    def __init__(self, coefficients: SHCoefficientSet):
        """
        Initialize a new coefficient file writer.
        
        Args:
            coefficients: Coefficient set to store
        """
        self.coefficients = coefficients
    
    def metadata(self) -> Dict[str, Any]:
        """Metadata block stored alongside the coefficient array."""
        c = self.coefficients
        return {
            'strategy': c.strategy.value,
            'cutoff_frequency': c.cutoff_frequency,
            'head_radius': c.head_radius,
            'speed_of_sound': c.speed_of_sound,
            'smoothing_k': c.smoothing_k
        }
    
    def write_file(self, filename: str) -> None:
        """
        Write the coefficient set to a file.
        
        The data is written to a temporary file in the same directory which
        then replaces ``filename``, so an interrupted write never leaves a
        partial file under the final name.
        
        Args:
            filename: Output filename
        """
        c = self.coefficients
        metadata = json.dumps(self.metadata()).encode('utf-8')
        n_coefficients, n_bins, n_ears = c.coefficients.shape
        
        directory = os.path.dirname(os.path.abspath(filename))
        fd, temp_path = tempfile.mkstemp(dir=directory, prefix='.' + os.path.basename(filename), suffix='.tmp')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(COEFFICIENT_FILE_MAGIC)
                f.write(struct.pack(_HEADER_FORMAT,
                                    COEFFICIENT_FILE_VERSION,
                                    c.order,
                                    n_coefficients,
                                    n_bins,
                                    n_ears,
                                    c.n_fft,
                                    len(metadata),
                                    float(c.sample_rate)))
                f.write(metadata)
                f.write(np.ascontiguousarray(c.coefficients, dtype=_DATA_DTYPE).tobytes())
            os.replace(temp_path, filename)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise


class CoefficientFileReader:
    """Class for reading ``.shc`` coefficient files"""
    
    def __init__(self, filename: str):
        """
        Initialize a coefficient file reader and parse the header.
        
        Args:
            filename: Path to the ``.shc`` file
        
        Raises:
            FileFormatError: If the file is not a valid coefficient file
        """
        self.filename = filename
        
        with open(filename, 'rb') as f:
            magic = f.read(len(COEFFICIENT_FILE_MAGIC))
            if magic != COEFFICIENT_FILE_MAGIC:
                raise FileFormatError(f"Not a valid coefficient file: {filename}")
            
            header_data = f.read(_HEADER_SIZE)
            if len(header_data) != _HEADER_SIZE:
                raise FileFormatError(f"Truncated header in {filename}")
            (version, order, n_coefficients, n_bins, n_ears,
             n_fft, metadata_length, sample_rate) = struct.unpack(_HEADER_FORMAT, header_data)
            
            if version != COEFFICIENT_FILE_VERSION:
                raise FileFormatError(f"Unsupported coefficient file version {version}")
            
            try:
                metadata = json.loads(f.read(metadata_length).decode('utf-8'))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise FileFormatError(f"Corrupt metadata in {filename}: {e}") from e
            
            self.data_offset = f.tell()
        
        self.file_info = {
            'version': version,
            'order': order,
            'n_coefficients': n_coefficients,
            'n_bins': n_bins,
            'n_ears': n_ears,
            'n_fft': n_fft,
            'sample_rate': sample_rate,
            'metadata': metadata
        }
    
    def get_file_info(self) -> Dict[str, Any]:
        """
        Get information about the coefficient file.
        
        Returns:
            Dictionary with header fields and metadata
        """
        return self.file_info
    
    def read(self) -> SHCoefficientSet:
        """
        Read the coefficient set.
        
        Returns:
            SHCoefficientSet with the stored coefficients and metadata
        """
        info = self.file_info
        shape = (info['n_coefficients'], info['n_bins'], info['n_ears'])
        n_bytes = int(np.prod(shape)) * _DATA_DTYPE.itemsize
        
        with open(self.filename, 'rb') as f:
            f.seek(self.data_offset)
            raw_data = f.read(n_bytes)
        if len(raw_data) != n_bytes:
            raise FileFormatError(f"Truncated coefficient data in {self.filename}")
        
        data = np.frombuffer(raw_data, dtype=_DATA_DTYPE).reshape(shape)
        metadata = info['metadata']
        try:
            return SHCoefficientSet(data, info['order'], metadata['strategy'], info['sample_rate'],
                                    info['n_fft'], metadata['cutoff_frequency'], metadata['head_radius'],
                                    metadata['speed_of_sound'], metadata.get('smoothing_k', 0.0))
        except (KeyError, ValueError) as e:
            raise FileFormatError(f"Inconsistent coefficient file {self.filename}: {e}") from e


def save_coefficients(filename: str, coefficients: SHCoefficientSet) -> None:
    """Write ``coefficients`` to ``filename``, creating parent directories."""
    directory = os.path.dirname(os.path.abspath(filename))
    os.makedirs(directory, exist_ok=True)
    CoefficientFileWriter(coefficients).write_file(filename)


def load_coefficients(filename: str) -> SHCoefficientSet:
    """Read a coefficient set from ``filename``."""
    return CoefficientFileReader(filename).read()
