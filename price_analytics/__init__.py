"""
Price Analytics

A deterministic analytics pipeline for daily OHLCV price series.

This package provides:
- Data ingestion from Alpha Vantage with Stooq fallback, and local CSV files
- Data cleaning with deduplication, forward-fill and MAD outlier correction
- Technical indicators (SMA, RSI, Bollinger Bands) with no lookahead
- Closed-form linear and quadratic trend models with train/test metrics
- Fixed-horizon forecasts and rule-based BUY/SELL/HOLD signals

Example:
    >>> from price_analytics.cli import app
    >>> # Run the full analysis via CLI

    >>> from price_analytics.pipeline import AnalyticsPipeline
    >>> result = AnalyticsPipeline().run("GOOGL")
"""

__version__ = "1.0.0"
__author__ = "Price Analytics Team"

# Core components
from price_analytics.data.cleaning import DataCleaner
from price_analytics.data.ingest import DataIngestor
from price_analytics.features.engineer import FeatureEngineer
from price_analytics.modeling.models import ModelTrainer
from price_analytics.pipeline import AnalyticsPipeline, PipelineResult
from price_analytics.signals.engine import SignalEngine
from price_analytics.utils.config import ConfigManager

__all__ = [
    "DataCleaner",
    "DataIngestor",
    "FeatureEngineer",
    "ModelTrainer",
    "SignalEngine",
    "AnalyticsPipeline",
    "PipelineResult",
    "ConfigManager",
]
