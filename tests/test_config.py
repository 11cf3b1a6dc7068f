"""
Unit tests for configuration management.
"""

import pytest

from hrtfsh.codec.config import (
    InterpolatorConfig, EncoderConfig, GeometryConfig, order_sweep,
    DEFAULT_FFT_LENGTH, DEFAULT_MIN_CUTOFF, DEFAULT_TEST_ORDERS
)
from hrtfsh.codec.math_utils import SHNormalization
from hrtfsh.codec.utils import EncodingStrategy
from hrtfsh.codec.exceptions import ConfigurationError


class TestDefaults:
    """Tests for default configuration values."""
    
    def test_defaults(self):
        config = InterpolatorConfig()
        assert config.geometry.head_radius == 0.0875
        assert config.geometry.speed_of_sound == 343.0
        assert config.encoder.strategy is EncodingStrategy.BIMAGLS
        assert config.encoder.min_cutoff is None
        assert DEFAULT_MIN_CUTOFF == 3000.0
        assert config.encoder.smoothing_k == 0.0
        assert config.n_fft == DEFAULT_FFT_LENGTH
        assert config.cache_dir is None
    
    def test_order_sweep(self):
        assert order_sweep() == DEFAULT_TEST_ORDERS
        assert order_sweep(10) == [1, 3, 5, 10]


class TestValidation:
    """Tests for configuration validation."""
    
    @pytest.mark.parametrize("kwargs", [{'head_radius': 0.0}, {'head_radius': -0.1},
                                        {'speed_of_sound': 0.0}, {'head_radius': float('nan')}])
    def test_invalid_geometry(self, kwargs):
        with pytest.raises(ConfigurationError):
            GeometryConfig(**kwargs)
    
    @pytest.mark.parametrize("kwargs", [{'strategy': 'unknown'}, {'order': -1}, {'order': 2.0},
                                        {'order': True}, {'smoothing_k': -0.5},
                                        {'min_cutoff': -1.0}, {'normalization': 'fuma'}])
    def test_invalid_encoder(self, kwargs):
        with pytest.raises(ConfigurationError):
            EncoderConfig(**kwargs)
    
    def test_string_fields_are_parsed(self):
        config = EncoderConfig(strategy='TA', normalization='sn3d')
        assert config.strategy is EncodingStrategy.TA
        assert config.normalization is SHNormalization.SN3D
    
    @pytest.mark.parametrize("sample_rate", [22050, 44100, 96000, 192000])
    def test_any_positive_sample_rate(self, sample_rate):
        assert InterpolatorConfig(sample_rate=sample_rate).sample_rate == sample_rate
    
    def test_invalid_interpolator(self):
        with pytest.raises(ConfigurationError):
            InterpolatorConfig(sample_rate=0)
        with pytest.raises(ConfigurationError):
            InterpolatorConfig(sample_rate=float('inf'))
        with pytest.raises(ConfigurationError):
            InterpolatorConfig(n_fft=1)


class TestSerialization:
    """Tests for dictionary and file round trips."""
    
    def test_dict_round_trip(self):
        config = InterpolatorConfig(
            geometry=GeometryConfig(head_radius=0.09),
            encoder=EncoderConfig(strategy='MagLS', order=5, smoothing_k=0.2),
            n_fft=None, sample_rate=44100, cache_dir='/tmp/cache')
        restored = InterpolatorConfig.from_dict(config.to_dict())
        assert restored.to_dict() == config.to_dict()
        assert restored.encoder.strategy is EncodingStrategy.MAGLS
        assert restored.n_fft is None
    
    def test_file_round_trip(self, tmp_path):
        config = InterpolatorConfig(encoder=EncoderConfig(order=7))
        path = str(tmp_path / 'config.json')
        config.save(path)
        assert InterpolatorConfig.load(path).encoder.order == 7
