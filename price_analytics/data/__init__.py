"""
Data package for the price analytics pipeline.

This package handles all data-related operations including:
- Daily bar ingestion from Alpha Vantage, Stooq and CSV sources
- Column and type standardisation of raw OHLCV frames
- Deduplication, forward-fill and outlier correction

Main components:
- DataIngestor: Fetches bars with provider fallback
- DataCleaner: Cleans a raw series and reports every correction
"""

from price_analytics.data.cleaning import CleaningReport, DataCleaner
from price_analytics.data.ingest import DataIngestor

__all__ = [
    "CleaningReport",
    "DataCleaner",
    "DataIngestor",
]
