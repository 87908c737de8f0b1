"""
Configuration management utility for the price analytics pipeline.

This module provides centralized configuration management with YAML file support,
environment variable overrides, and validation. Every pipeline constant (cleaning
thresholds, indicator windows, split ratio, forecast horizon, signal rules) lives
here so a run is fully described by its configuration and its input series.

Key features:
- YAML configuration file support
- Environment variable overrides (PRICE_ANALYTICS_<SECTION>__<KEY>=value)
- Configuration validation
- Hierarchical configuration access with dot notation
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

TIE_BREAKS = ('hold', 'buy', 'sell')
SOURCES = ('auto', 'alpha_vantage', 'stooq', 'csv')

# Marks a key with no default, as opposed to one that defaults to None
_UNSET = object()


class ConfigManager:
    """Centralized configuration management."""

    def __init__(self, config_path: Optional[str] = None, env_prefix: str = "PRICE_ANALYTICS_"):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file
            env_prefix: Prefix for environment variables
        """
        self.config_path = Path(config_path) if config_path else Path("config/default.yaml")
        self.env_prefix = env_prefix
        self.config = {}

        self.load_config()

        logger.debug(f"ConfigManager initialized with config: {self.config_path}")

    def load_config(self) -> None:
        """Load configuration from file and environment variables."""
        self.config = self._get_default_config()

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    yaml_config = yaml.safe_load(f)
                    if yaml_config:
                        self.config = self._merge_configs(self.config, yaml_config)
                logger.info(f"Loaded configuration from {self.config_path}")
            except yaml.YAMLError as e:
                logger.error(f"Failed to parse configuration file {self.config_path}: {e}")
                logger.info("Using default configuration")

        self._load_env_overrides()
        self._validate_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values.

        Returns:
            Dictionary with default configuration
        """
        return {
            'data': {
                'symbols': ['GOOGL'],
                'source': 'auto',
                'csv_path': None,
                'raw_dir': 'data/raw',
            },
            'ingestion': {
                'timeout_seconds': 30.0,
                'alpha_vantage': {
                    'api_key': None,
                    'base_url': 'https://www.alphavantage.co/query',
                    'outputsize': 'full',
                },
                'stooq': {
                    'base_url': 'https://stooq.com/q/d/l/',
                    'market_suffix': 'us',
                },
            },
            'cleaning': {
                'z_threshold': 3.5,
                'window_half_width': 2,
                'mad_floor': 1.0,
            },
            'indicators': {
                'sma_periods': [10, 20, 50],
                'rsi_period': 14,
                'bollinger_window': 20,
                'bollinger_std': 2.0,
                'validate_lookahead': True,
            },
            'modeling': {
                'train_ratio': 0.8,
            },
            'forecast': {
                'horizon': 30,
            },
            'signal': {
                'rsi_oversold': 35.0,
                'rsi_overbought': 65.0,
                'base_confidence': 50,
                'confidence_step': 20,
                'max_confidence': 90,
                'risk_multiplier': 0.5,
                'min_risk_pct': 1.0,
                'max_risk_pct': 3.0,
                'reward_ratio': 2.0,
                'tie_break': 'hold',
                'fast_sma_period': 20,
                'slow_sma_period': 50,
            },
            'reporting': {
                'export_rows': 100,
                'price_decimals': 2,
                'r2_decimals': 4,
            },
            'logging': {
                'level': 'INFO',
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                'file': 'logs/price_analytics.log',
                'console': True,
            },
            'system': {
                'n_jobs': 4,
            },
        }

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries.

        Args:
            base: Base configuration dictionary
            override: Override configuration dictionary

        Returns:
            Merged configuration dictionary
        """
        merged = base.copy()

        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_configs(merged[key], value)
            else:
                merged[key] = value

        return merged

    def _load_env_overrides(self) -> None:
        """Load configuration overrides from environment variables.

        Sections are separated by a double underscore so that keys containing
        single underscores survive: PRICE_ANALYTICS_SIGNAL__TIE_BREAK=sell.
        Each value takes the type of the setting it overrides.
        """
        env_overrides = {}

        for env_var, env_value in os.environ.items():
            if not env_var.startswith(self.env_prefix):
                continue

            config_key = env_var[len(self.env_prefix):].lower()
            keys = [k for k in config_key.split('__') if k]
            if not keys:
                continue

            current = env_overrides
            for key in keys[:-1]:
                current = current.setdefault(key, {})

            try:
                current[keys[-1]] = self._coerce_env_value(env_value, self.get('.'.join(keys), _UNSET))
            except ValueError as e:
                raise ValueError(f"Configuration validation failed:\n- {env_var}={env_value!r}: {e}") from e

        if env_overrides:
            self.config = self._merge_configs(self.config, env_overrides)
            logger.info("Applied environment variable overrides")

    @staticmethod
    def _coerce_env_value(env_value: str, existing: Any = _UNSET) -> Any:
        """Convert an environment string to the type of the value it replaces.

        Lists are comma-separated, so a single item still gives a list. String
        settings and settings that default to None keep the raw text. Keys
        with no default are guessed as bool, list, int, float or str.
        """
        if isinstance(existing, bool):
            return env_value.strip().lower() in ('true', '1', 'yes')
        if isinstance(existing, list):
            items = [part.strip() for part in env_value.split(',') if part.strip()]
            if existing and all(isinstance(item, int) for item in existing):
                return [int(item) for item in items]
            return items
        if isinstance(existing, int):
            return int(env_value)
        if isinstance(existing, float):
            return float(env_value)
        if existing is None or isinstance(existing, str):
            return env_value

        lowered = env_value.lower()
        if lowered in ('true', 'false'):
            return lowered == 'true'
        if ',' in env_value:
            return [part.strip() for part in env_value.split(',') if part.strip()]
        try:
            return int(env_value)
        except ValueError:
            pass
        try:
            return float(env_value)
        except ValueError:
            return env_value

    def _validate_config(self) -> None:
        """Validate configuration parameters."""
        validation_errors = []

        data_config = self.config.get('data', {})
        if not data_config.get('symbols'):
            validation_errors.append("No symbols specified in data.symbols")
        if data_config.get('source') not in SOURCES:
            validation_errors.append(f"data.source must be one of {list(SOURCES)}")

        train_ratio = self.get('modeling.train_ratio', 0.8)
        if not 0 < train_ratio < 1:
            validation_errors.append("modeling.train_ratio must be between 0 and 1")

        if self.get('forecast.horizon', 30) < 1:
            validation_errors.append("forecast.horizon must be at least 1")

        signal_config = self.config.get('signal', {})
        if signal_config.get('rsi_oversold', 35) >= signal_config.get('rsi_overbought', 65):
            validation_errors.append("signal.rsi_oversold must be below signal.rsi_overbought")
        if signal_config.get('min_risk_pct', 1) > signal_config.get('max_risk_pct', 3):
            validation_errors.append("signal.min_risk_pct must not exceed signal.max_risk_pct")
        if signal_config.get('tie_break') not in TIE_BREAKS:
            validation_errors.append(f"signal.tie_break must be one of {list(TIE_BREAKS)}")

        sma_periods = self.get('indicators.sma_periods', [10, 20, 50]) or []
        fast_period = signal_config.get('fast_sma_period', 20)
        slow_period = signal_config.get('slow_sma_period', 50)
        for name, period in (('fast_sma_period', fast_period), ('slow_sma_period', slow_period)):
            if period not in sma_periods:
                validation_errors.append(f"signal.{name} ({period}) must be listed in indicators.sma_periods")
        if fast_period >= slow_period:
            validation_errors.append("signal.fast_sma_period must be below signal.slow_sma_period")

        if self.get('cleaning.z_threshold', 3.5) <= 0:
            validation_errors.append("cleaning.z_threshold must be positive")

        if validation_errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"- {error}" for error in validation_errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

        logger.debug("Configuration validation passed")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key (supports dot notation, e.g., 'signal.tie_break')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self.config

        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            config = config.setdefault(k, {})

        config[keys[-1]] = value
        logger.debug(f"Set configuration {key} = {value}")

    def update(self, updates: Dict[str, Any]) -> None:
        """Update configuration with dictionary of values and re-validate.

        Args:
            updates: Dictionary of configuration updates
        """
        self.config = self._merge_configs(self.config, updates)
        self._validate_config()

    def save_config(self, output_path: Optional[str] = None) -> None:
        """Save current configuration to YAML file.

        Args:
            output_path: Optional output path (defaults to original config path)
        """
        output_path = Path(output_path) if output_path else self.config_path
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            yaml.dump(self.config, f, default_flow_style=False, indent=2, sort_keys=True)
        logger.info(f"Configuration saved to {output_path}")

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire configuration section.

        Args:
            section: Section name

        Returns:
            Configuration section dictionary
        """
        return self.config.get(section, {})

    def list_keys(self, section: Optional[str] = None) -> List[str]:
        """List all configuration keys in a section, or the top-level sections."""
        if section:
            return list(self.get_section(section).keys())
        return list(self.config.keys())

    def dump(self, section: Optional[str] = None) -> str:
        """Render the configuration (or one section) as YAML text."""
        config_to_dump = {section: self.get_section(section)} if section else self.config
        return yaml.dump(config_to_dump, default_flow_style=False, indent=2, sort_keys=True)

    def get_log_level(self) -> str:
        """Get logging level.

        Returns:
            Logging level string
        """
        return self.get('logging.level', 'INFO').upper()

    def __repr__(self) -> str:
        """String representation of ConfigManager."""
        return f"ConfigManager(config_path='{self.config_path}', sections={list(self.config.keys())})"

    def __getitem__(self, key: str) -> Any:
        """Dictionary-style access to configuration."""
        return self.get(key)

    def __contains__(self, key: str) -> bool:
        """Check if configuration key exists."""
        return self.get(key) is not None


def load_config(config_path: Optional[str] = None) -> ConfigManager:
    """Convenience function to load configuration.

    Args:
        config_path: Optional path to configuration file

    Returns:
        ConfigManager instance
    """
    return ConfigManager(config_path=config_path)


def resolve_config(config: Any) -> Dict[str, Any]:
    """Return the plain configuration dict behind a dict or ConfigManager.

    Stage classes accept either form; a missing section falls back to the
    defaults of that stage.
    """
    if config is None:
        return {}
    if isinstance(config, ConfigManager):
        return config.config
    return config
