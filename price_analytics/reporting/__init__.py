"""
Reporting package for the price analytics pipeline.

This package handles result output including:
- CSV export of the latest indicator rows
- CSV export of forecast points
- Display rounding of prices, levels and metrics
"""

from price_analytics.reporting.export import (
    export_forecast_csv,
    export_indicators_csv,
    round_for_display,
)

__all__ = [
    "export_indicators_csv",
    "export_forecast_csv",
    "round_for_display",
]
