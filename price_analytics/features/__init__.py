"""
Features package for the price analytics pipeline.

This package handles indicator and statistics operations including:
- Technical indicator computation (SMA, RSI, Bollinger Bands)
- No-lookahead validation
- Descriptive series statistics

Main components:
- FeatureEngineer: Computes technical indicators with no lookahead bias
- summarize_series: Record counts, price range and return statistics
"""

from price_analytics.features.engineer import FeatureEngineer
from price_analytics.features.summary import SeriesSummary, summarize_series

__all__ = [
    "FeatureEngineer",
    "SeriesSummary",
    "summarize_series",
]
