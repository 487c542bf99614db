"""
Configuration management and loading.

Builds client settings from built-in defaults, optionally overridden by a
strictly validated YAML file.
"""

from dataclasses import dataclass, field
from decimal import InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..core.cache import DEFAULT_MAX_ENTRIES, DEFAULT_TTL_SECONDS
from ..core.pricing import PRICING_TABLE, ModelPricing, PricingTable, to_decimal
from ..core.rate_limiter import DEFAULT_MAX_PER_MINUTE

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class RequestDefaults:
    """Per-call settings used when a call does not override them."""
    model: str = "gpt-4o-mini"
    max_tokens: int = 200
    temperature: float = 0.8
    function_call: str = "auto"
    use_cache: bool = True
    max_retries: int = 3
    retry_delay_ms: int = 1000

    def __post_init__(self):
        """Validate request defaults."""
        if not self.model or not self.model.strip():
            raise ValueError("model cannot be empty")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if not 0 <= self.temperature <= 2:
            raise ValueError("temperature must be between 0 and 2")
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must be >= 0")


@dataclass(frozen=True)
class ClientConfig:
    """Process-wide client settings."""
    defaults: RequestDefaults = field(default_factory=RequestDefaults)
    max_requests_per_minute: int = DEFAULT_MAX_PER_MINUTE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    cache_max_entries: int = DEFAULT_MAX_ENTRIES
    pricing: PricingTable = PRICING_TABLE

    def __post_init__(self):
        """Validate limits and cache bounds."""
        if self.max_requests_per_minute <= 0:
            raise ValueError("max_requests_per_minute must be > 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.cache_ttl_seconds <= 0:
            raise ValueError("cache ttl_seconds must be > 0")
        if self.cache_max_entries <= 0:
            raise ValueError("cache max_entries must be > 0")


_SECTION_KEYS = {
    'defaults': {'model', 'max_tokens', 'temperature', 'function_call',
                 'use_cache', 'max_retries', 'retry_delay_ms'},
    'limits': {'max_requests_per_minute', 'timeout_seconds'},
    'cache': {'ttl_seconds', 'max_entries'},
    'pricing': {'default_model', 'models'},
}


def load_client_config(path: Union[str, Path]) -> ClientConfig:
    """Load and validate client configuration from a YAML file.

    Every section is optional; omitted values keep their defaults.
    Unknown keys are rejected so typos cannot silently change limits.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated ClientConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Client config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return ClientConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration file must contain a mapping")

    unknown_keys = set(raw_config.keys()) - set(_SECTION_KEYS)
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    sections = {name: _section(raw_config, name) for name in _SECTION_KEYS}

    defaults = _parse_defaults(sections['defaults'])
    limits = sections['limits']
    cache = sections['cache']

    kwargs: Dict[str, Any] = {'defaults': defaults}
    if 'max_requests_per_minute' in limits:
        kwargs['max_requests_per_minute'] = _as_int(limits['max_requests_per_minute'], 'limits.max_requests_per_minute')
    if 'timeout_seconds' in limits:
        kwargs['timeout_seconds'] = _as_float(limits['timeout_seconds'], 'limits.timeout_seconds')
    if 'ttl_seconds' in cache:
        kwargs['cache_ttl_seconds'] = _as_float(cache['ttl_seconds'], 'cache.ttl_seconds')
    if 'max_entries' in cache:
        kwargs['cache_max_entries'] = _as_int(cache['max_entries'], 'cache.max_entries')
    if sections['pricing']:
        kwargs['pricing'] = _parse_pricing(sections['pricing'])

    return ClientConfig(**kwargs)


def _section(raw_config: Dict, name: str) -> Dict:
    """Return a validated top-level section, empty if absent."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - _SECTION_KEYS[name]
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return data


def _parse_defaults(data: Dict) -> RequestDefaults:
    """Parse the per-call defaults section."""
    kwargs: Dict[str, Any] = {}
    if 'model' in data:
        kwargs['model'] = _as_str(data['model'], 'defaults.model')
    if 'function_call' in data:
        kwargs['function_call'] = _as_str(data['function_call'], 'defaults.function_call')
    if 'max_tokens' in data:
        kwargs['max_tokens'] = _as_int(data['max_tokens'], 'defaults.max_tokens')
    if 'max_retries' in data:
        kwargs['max_retries'] = _as_int(data['max_retries'], 'defaults.max_retries')
    if 'retry_delay_ms' in data:
        kwargs['retry_delay_ms'] = _as_int(data['retry_delay_ms'], 'defaults.retry_delay_ms')
    if 'temperature' in data:
        kwargs['temperature'] = _as_float(data['temperature'], 'defaults.temperature')
    if 'use_cache' in data:
        if not isinstance(data['use_cache'], bool):
            raise ValueError("'defaults.use_cache' must be true or false")
        kwargs['use_cache'] = data['use_cache']
    return RequestDefaults(**kwargs)


def _parse_pricing(data: Dict) -> PricingTable:
    """Parse the pricing section into a PricingTable.

    Configured models replace the built-in table entirely.
    """
    models_data = data.get('models')
    if models_data is None:
        prices = dict(PRICING_TABLE.prices)
    else:
        if not isinstance(models_data, dict) or not models_data:
            raise ValueError("'pricing.models' must be a non-empty dictionary")
        prices = {
            str(name): _parse_model_pricing(entry, f"pricing.models.{name}")
            for name, entry in models_data.items()
        }

    default_model = data.get('default_model', PRICING_TABLE.default_model)
    default_model = _as_str(default_model, 'pricing.default_model')

    return PricingTable(prices=prices, default_model=default_model)


def _parse_model_pricing(data: Any, path: str) -> ModelPricing:
    """Parse one model's price entry."""
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")

    allowed_keys = {'input_per_million', 'output_per_million'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    for key in allowed_keys:
        if key not in data:
            raise ValueError(f"Missing required '{key}' in {path}")
        if isinstance(data[key], bool) or not isinstance(data[key], (int, float, str)):
            raise ValueError(f"'{key}' in {path} must be a number")

    try:
        return ModelPricing(
            input_per_million=to_decimal(data['input_per_million']),
            output_per_million=to_decimal(data['output_per_million'])
        )
    except InvalidOperation:
        raise ValueError(f"Prices in {path} must be numbers")


def _as_int(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{path}' must be an integer")
    return value


def _as_float(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    return float(value)


def _as_str(value: Any, path: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{path}' must be a non-empty string")
    return value


def load_config_or_default(path: Optional[Union[str, Path]] = None) -> ClientConfig:
    """Load the given file, or return built-in defaults when no path is set."""
    if path is None:
        return ClientConfig()
    return load_client_config(path)
