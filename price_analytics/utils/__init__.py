"""
Utilities package for the price analytics pipeline.

Key features:
- Centralized configuration with environment variable overrides
- Structured logging with component-specific loggers
- Stage timing for pipeline runs

Main components:
- ConfigManager: Centralized configuration management
- LoggingManager: Logging setup and utilities
- PerformanceLogger: Stage timing
"""

from price_analytics.utils.config import ConfigManager, load_config
from price_analytics.utils.logging import LoggingManager, PerformanceLogger, setup_logging

__all__ = [
    # Configuration
    "ConfigManager",
    "load_config",

    # Logging
    "LoggingManager",
    "PerformanceLogger",
    "setup_logging",
]
