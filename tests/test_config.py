"""
Unit tests for configuration loading and validation.

Tests defaults, overrides and strict rejection of bad client configs.
"""

import os
import tempfile
from decimal import Decimal

import pytest
import yaml

from metered_llm.config.loader import (
    ClientConfig,
    RequestDefaults,
    load_client_config,
    load_config_or_default,
)
from metered_llm.core.pricing import PRICING_TABLE


class TestConfigDefaults:
    """Test built-in defaults."""

    def test_default_client_config(self):
        """Defaults match the documented client behavior."""
        config = ClientConfig()
        assert config.defaults.model == "gpt-4o-mini"
        assert config.defaults.max_tokens == 200
        assert config.defaults.temperature == 0.8
        assert config.defaults.function_call == "auto"
        assert config.defaults.use_cache is True
        assert config.defaults.max_retries == 3
        assert config.defaults.retry_delay_ms == 1000
        assert config.max_requests_per_minute == 50
        assert config.timeout_seconds == 30.0
        assert config.cache_ttl_seconds == 1800
        assert config.cache_max_entries == 100
        assert config.pricing is PRICING_TABLE

    def test_invalid_request_defaults(self):
        """Request defaults are validated."""
        with pytest.raises(ValueError, match="max_tokens"):
            RequestDefaults(max_tokens=0)
        with pytest.raises(ValueError, match="temperature"):
            RequestDefaults(temperature=3.0)
        with pytest.raises(ValueError, match="max_retries"):
            RequestDefaults(max_retries=0)

    def test_invalid_limits(self):
        """Limits must be positive."""
        with pytest.raises(ValueError, match="max_requests_per_minute"):
            ClientConfig(max_requests_per_minute=0)
        with pytest.raises(ValueError, match="timeout_seconds"):
            ClientConfig(timeout_seconds=0)

    def test_no_path_returns_defaults(self):
        """Without a path the built-in config is used."""
        assert load_config_or_default(None) == ClientConfig()


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_full_config_loads_correctly(self):
        """Every section overrides its defaults."""
        config_data = {
            "defaults": {
                "model": "gpt-3.5-turbo",
                "max_tokens": 500,
                "temperature": 0.9,
                "function_call": "none",
                "use_cache": False,
                "max_retries": 5,
                "retry_delay_ms": 250
            },
            "limits": {
                "max_requests_per_minute": 20,
                "timeout_seconds": 10
            },
            "cache": {
                "ttl_seconds": 600,
                "max_entries": 10
            },
            "pricing": {
                "default_model": "gpt-3.5-turbo",
                "models": {
                    "gpt-3.5-turbo": {"input_per_million": 0.5, "output_per_million": 1.5}
                }
            }
        }

        config = load_client_config(self._write_config(config_data))

        assert config.defaults == RequestDefaults(
            model="gpt-3.5-turbo",
            max_tokens=500,
            temperature=0.9,
            function_call="none",
            use_cache=False,
            max_retries=5,
            retry_delay_ms=250
        )
        assert config.max_requests_per_minute == 20
        assert config.timeout_seconds == 10.0
        assert config.cache_ttl_seconds == 600.0
        assert config.cache_max_entries == 10
        assert config.pricing.default_model == "gpt-3.5-turbo"
        assert config.pricing.models == ["gpt-3.5-turbo"]
        assert config.pricing.prices["gpt-3.5-turbo"].input_per_million == Decimal("0.5")

    def test_partial_config_keeps_defaults(self):
        """Omitted sections and keys keep their defaults."""
        config = load_client_config(self._write_config({"limits": {"max_requests_per_minute": 10}}))

        assert config.max_requests_per_minute == 10
        assert config.defaults == RequestDefaults()
        assert config.pricing is PRICING_TABLE

    def test_empty_file_gives_defaults(self):
        """An empty file is the same as no overrides."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()
        assert load_client_config(config_path) == ClientConfig()

    def test_default_model_only_keeps_builtin_prices(self):
        """Changing only the default model reuses the built-in prices."""
        config = load_client_config(self._write_config({"pricing": {"default_model": "gpt-3.5-turbo"}}))
        assert config.pricing.default_model == "gpt-3.5-turbo"
        assert set(config.pricing.models) == {"gpt-4o-mini", "gpt-3.5-turbo"}

    def test_missing_file_raises(self):
        """A missing file is reported."""
        with pytest.raises(FileNotFoundError, match="not found"):
            load_client_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_invalid_yaml_raises(self):
        """Malformed YAML is reported as a YAML error."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("limits: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_client_config(config_path)

    def test_unknown_top_level_key(self):
        """Unknown sections are rejected."""
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_client_config(self._write_config({"budget": {"daily": 1}}))

    def test_unknown_section_key(self):
        """Typos inside a section are rejected."""
        with pytest.raises(ValueError, match="Unknown limits keys"):
            load_client_config(self._write_config({"limits": {"max_request_per_minute": 10}}))

    def test_section_must_be_mapping(self):
        """Sections must be dictionaries."""
        with pytest.raises(ValueError, match="'cache' must be a dictionary"):
            load_client_config(self._write_config({"cache": [1, 2]}))

    def test_top_level_must_be_mapping(self):
        """A list document is rejected."""
        with pytest.raises(ValueError, match="mapping"):
            load_client_config(self._write_config([1, 2]))

    def test_integer_fields_reject_other_types(self):
        """Integer settings must be integers, not strings or booleans."""
        with pytest.raises(ValueError, match="max_entries"):
            load_client_config(self._write_config({"cache": {"max_entries": "100"}}))
        with pytest.raises(ValueError, match="max_retries"):
            load_client_config(self._write_config({"defaults": {"max_retries": True}}))

    def test_use_cache_must_be_boolean(self):
        """use_cache only accepts true or false."""
        with pytest.raises(ValueError, match="use_cache"):
            load_client_config(self._write_config({"defaults": {"use_cache": "yes please"}}))

    def test_out_of_range_values_rejected(self):
        """Dataclass validation applies to loaded values."""
        with pytest.raises(ValueError, match="max_requests_per_minute"):
            load_client_config(self._write_config({"limits": {"max_requests_per_minute": 0}}))
        with pytest.raises(ValueError, match="temperature"):
            load_client_config(self._write_config({"defaults": {"temperature": 5}}))

    def test_pricing_default_must_be_priced(self):
        """The fallback model must appear in the configured prices."""
        config_data = {
            "pricing": {
                "default_model": "gpt-4o-mini",
                "models": {"local": {"input_per_million": 1, "output_per_million": 2}}
            }
        }
        with pytest.raises(ValueError, match="default_model"):
            load_client_config(self._write_config(config_data))

    def test_model_price_missing_key(self):
        """Both prices are required for each model."""
        config_data = {
            "pricing": {
                "default_model": "local",
                "models": {"local": {"input_per_million": 1}}
            }
        }
        with pytest.raises(ValueError, match="output_per_million"):
            load_client_config(self._write_config(config_data))

    def test_model_price_unknown_key(self):
        """Unknown price keys are rejected."""
        config_data = {
            "pricing": {
                "default_model": "local",
                "models": {"local": {"input_per_million": 1, "output_per_million": 2, "per_1k": 3}}
            }
        }
        with pytest.raises(ValueError, match="Unknown keys in pricing.models.local"):
            load_client_config(self._write_config(config_data))

    def test_model_price_not_a_number(self):
        """Non-numeric prices are rejected."""
        config_data = {
            "pricing": {
                "default_model": "local",
                "models": {"local": {"input_per_million": "cheap", "output_per_million": 2}}
            }
        }
        with pytest.raises(ValueError, match="must be numbers"):
            load_client_config(self._write_config(config_data))
