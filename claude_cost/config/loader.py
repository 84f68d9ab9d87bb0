"""
Configuration management and loading.

Handles application settings, the config file environment variable and
pricing overrides.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional

import yaml

from claude_cost.core.pricing import PRICING_TABLE, ModelPricing, PricingTable
from claude_cost.storage.corpus import DEFAULT_PROJECTS_DIR
from claude_cost.storage.stats_cache import DEFAULT_TTL_SECONDS

CONFIG_ENV_VAR = "CLAUDE_COST_CONFIG"
DEFAULT_REFRESH_INTERVAL_SECONDS = 5.0

PRICE_KEYS = ("input", "output", "cache_write", "cache_read")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration.

    ``refresh_interval_seconds`` is the re-query period of a live display.
    The one-shot CLI never polls, so here it only bounds the cache TTL,
    which must stay shorter than it.
    """
    projects_dir: str = str(DEFAULT_PROJECTS_DIR)
    cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS
    pricing_overrides: Dict[str, ModelPricing] = field(default_factory=dict)

    def __post_init__(self):
        """Validate timing values."""
        if self.cache_ttl_seconds <= 0:
            raise ValueError("cache_ttl_seconds must be > 0")
        if self.refresh_interval_seconds <= 0:
            raise ValueError("refresh_interval_seconds must be > 0")
        if self.cache_ttl_seconds >= self.refresh_interval_seconds:
            raise ValueError("cache_ttl_seconds must be shorter than refresh_interval_seconds")

    def pricing_table(self) -> PricingTable:
        """Built-in pricing table with configured overrides applied."""
        if not self.pricing_overrides:
            return PRICING_TABLE
        return PRICING_TABLE.with_overrides(self.pricing_overrides)


def load_config(path: str) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Every key is optional, but unknown keys and invalid values are rejected
    so a typo never silently falls back to a default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return AppConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'projects_dir', 'cache_ttl_seconds', 'refresh_interval_seconds', 'pricing'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    kwargs = {}

    if 'projects_dir' in raw_config:
        projects_dir = raw_config['projects_dir']
        if not isinstance(projects_dir, str) or not projects_dir.strip():
            raise ValueError("'projects_dir' must be a non-empty string")
        kwargs['projects_dir'] = str(Path(projects_dir).expanduser())

    for key in ('cache_ttl_seconds', 'refresh_interval_seconds'):
        if key in raw_config:
            kwargs[key] = _positive_number(raw_config[key], key)

    pricing_data = raw_config.get('pricing', {}) or {}
    if not isinstance(pricing_data, dict):
        raise ValueError("'pricing' must be a dictionary")

    overrides = {}
    for model, model_data in pricing_data.items():
        if not isinstance(model_data, dict):
            raise ValueError(f"Pricing for '{model}' must be a dictionary")
        overrides[str(model)] = _parse_model_pricing(model_data, f"pricing.{model}")
    kwargs['pricing_overrides'] = overrides

    return AppConfig(**kwargs)


def resolve_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from an explicit path, the environment or defaults.

    Args:
        path: Explicit config file path; takes precedence

    Returns:
        AppConfig
    """
    if path:
        return load_config(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return load_config(env_path)
    return AppConfig()


def _positive_number(value, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"'{path}' must be a number > 0")
    return float(value)


def _parse_model_pricing(data: Dict, path: str) -> ModelPricing:
    """Parse and validate one model's price quadruple.

    Args:
        data: Pricing data with input, output, cache_write and cache_read
        path: Path for error messages

    Returns:
        Validated ModelPricing

    Raises:
        ValueError: If pricing is invalid
    """
    unknown_keys = set(data.keys()) - set(PRICE_KEYS)
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    prices = {}
    for key in PRICE_KEYS:
        if key not in data:
            raise ValueError(f"Missing required '{key}' in {path}")
        prices[key] = Decimal(str(_positive_number(data[key], f"{path}.{key}")))

    return ModelPricing(**prices)
