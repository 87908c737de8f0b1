"""
Descriptive statistics for a cleaned price series.

Summarises the series shown alongside the models: record counts before and
after cleaning, close price range, average volume, and simple daily return
statistics (mean return, root-mean-square volatility and their ratio).
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeriesSummary:
    """Descriptive statistics of one cleaned series.

    Returns are simple daily returns expressed as fractions, not percentages.
    """

    total_records: int
    clean_records: int
    avg_close: float
    max_close: float
    min_close: float
    avg_volume: int
    avg_return: float
    volatility: float
    sharpe_ratio: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def summarize_series(raw: pd.DataFrame, cleaned: pd.DataFrame) -> SeriesSummary:
    """Compute summary statistics of a cleaned series.

    Args:
        raw: Series as ingested (only its length is used)
        cleaned: Series after cleaning, with at least one non-null close

    Returns:
        SeriesSummary for the cleaned series
    """
    closes = cleaned['close'].astype(float)
    volumes = cleaned['volume'].astype(float)

    returns = closes.pct_change().dropna()
    if returns.empty:
        avg_return = 0.0
        volatility = 0.0
    else:
        avg_return = float(returns.mean())
        volatility = float(np.sqrt((returns ** 2).mean()))

    summary = SeriesSummary(
        total_records=len(raw),
        clean_records=len(cleaned),
        avg_close=float(closes.mean()),
        max_close=float(closes.max()),
        min_close=float(closes.min()),
        avg_volume=int(volumes.mean()) if volumes.notna().any() else 0,
        avg_return=avg_return,
        volatility=volatility,
        sharpe_ratio=avg_return / (volatility or 1.0),
    )

    logger.debug(f"Series summary: {summary.to_dict()}")
    return summary
