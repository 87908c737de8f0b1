"""
Logging utility module for the price analytics pipeline.

This module provides centralized logging configuration for the pipeline. It sets
up a console handler and a rotating file handler with a shared formatter, applies
per-component levels, and quiets chatty third-party HTTP loggers.

Key features:
- Centralized logging configuration
- File and console logging with rotation
- Component-specific log levels
- Stage timing utilities
"""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

COMPONENT_ROOT = 'price_analytics'


class AnalyticsFormatter(logging.Formatter):
    """Formatter that tags records with the pipeline component they came from."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with component context."""
        name = record.name
        if name.startswith(f'{COMPONENT_ROOT}.'):
            record.component = name.split('.')[1]
        else:
            record.component = getattr(record, 'component', '')

        return super().format(record)


class LoggingManager:
    """Manages logging configuration for the pipeline."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize logging manager.

        Args:
            config: Logging configuration dictionary
        """
        self.config = {**self._get_default_config(), **(config or {})}
        self._setup_logging()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default logging configuration."""
        return {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'file': 'logs/price_analytics.log',
            'console': True,
            'max_bytes': 10 * 1024 * 1024,  # 10MB
            'backup_count': 5,
            'components': {},
        }

    def _setup_logging(self) -> None:
        """Setup logging configuration."""
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, self.config['level'].upper()))
        root_logger.handlers.clear()

        formatter = AnalyticsFormatter(
            fmt=self.config['format'],
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        if self.config.get('file'):
            log_file = Path(self.config['file'])
            log_file.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                filename=log_file,
                maxBytes=self.config.get('max_bytes', 10 * 1024 * 1024),
                backupCount=self.config.get('backup_count', 5),
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        if self.config.get('console', True):
            # stderr keeps stdout free for tables and exported data
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        for component, level in (self.config.get('components') or {}).items():
            self.set_level(level, component)

    def set_level(self, level: str, component: Optional[str] = None) -> None:
        """Set logging level.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            component: Optional component name, e.g. 'data' or 'signals'
        """
        level_obj = getattr(logging, level.upper())

        if component:
            logging.getLogger(f'{COMPONENT_ROOT}.{component}').setLevel(level_obj)
        else:
            logging.getLogger().setLevel(level_obj)

    def get_logger(self, name: str) -> logging.Logger:
        """Get logger instance.

        Args:
            name: Logger name

        Returns:
            Logger instance
        """
        return logging.getLogger(name)


class PerformanceLogger:
    """Times named pipeline stages and logs their durations."""

    def __init__(self, logger: logging.Logger):
        """Initialize performance logger.

        Args:
            logger: Logger instance to use
        """
        self.logger = logger
        self.start_times = {}
        self.durations = {}

    def start_timer(self, operation: str) -> None:
        """Start timing an operation.

        Args:
            operation: Operation name
        """
        self.start_times[operation] = datetime.now()
        self.logger.debug(f"Started {operation}")

    def end_timer(self, operation: str, log_level: str = 'DEBUG') -> float:
        """End timing an operation and log duration.

        Args:
            operation: Operation name
            log_level: Log level for duration message

        Returns:
            Duration in seconds
        """
        if operation not in self.start_times:
            self.logger.warning(f"No start time found for operation: {operation}")
            return 0.0

        start_time = self.start_times.pop(operation)
        duration = (datetime.now() - start_time).total_seconds()
        self.durations[operation] = duration

        log_func = getattr(self.logger, log_level.lower())
        log_func(f"Completed {operation} in {duration:.3f} seconds")

        return duration


def setup_logging(config: Optional[Dict[str, Any]] = None) -> LoggingManager:
    """Setup logging for the pipeline.

    Args:
        config: Optional logging configuration

    Returns:
        LoggingManager instance
    """
    manager = LoggingManager(config)
    configure_third_party_logging()
    return manager


def configure_third_party_logging() -> None:
    """Quiet third-party library logging."""
    for name in ('httpx', 'httpcore', 'urllib3'):
        logging.getLogger(name).setLevel(logging.WARNING)
