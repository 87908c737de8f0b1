"""
CSV exports and display rounding for pipeline results.

Exports are thin projections of the indicator frame and forecast; values are
written unrounded and undefined indicators are left blank. Rounding is applied
only for display: prices, levels and error metrics to 2 decimals, R-squared to 4.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import numpy as np
import pandas as pd

from price_analytics.modeling.forecast import ForecastPoint, forecast_frame

logger = logging.getLogger(__name__)

PRICE_DECIMALS = 2
R2_DECIMALS = 4

FORECAST_EXPORT_COLUMNS = {
    'step': 'Step',
    'index': 'Index',
    'linear': 'Linear',
    'quadratic': 'Quadratic',
    'ensemble': 'Ensemble',
}


def _write_csv(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    df.to_csv(path, index=False, na_rep='')
    logger.info(f"Saved CSV with {len(df)} rows to {path}")
    return path


def export_indicators_csv(frame: pd.DataFrame, path: Union[str, Path], rows: int = 100,
                          rsi_column: str = 'rsi_14',
                          volatility_column: str = 'rolling_std_20') -> Path:
    """Write the last rows of an indicator frame as CSV.

    Args:
        frame: Indicator frame from FeatureEngineer.compute_all_features
        path: Output file path
        rows: Number of trailing rows to export
        rsi_column: Frame column exported as RSI
        volatility_column: Frame column exported as Volatility

    Returns:
        Path of the written file
    """
    columns = {
        'date': 'Date',
        'close': 'Close',
        'sma_10': 'SMA10',
        'sma_20': 'SMA20',
        rsi_column: 'RSI',
        volatility_column: 'Volatility',
    }

    missing = [col for col in columns if col not in frame.columns]
    if missing:
        raise KeyError(f"Indicator frame lacks export columns {missing}")

    export = frame.tail(rows)[list(columns)].rename(columns=columns).copy()
    export['Date'] = pd.to_datetime(export['Date']).dt.strftime('%Y-%m-%d')

    return _write_csv(export, path)


def export_forecast_csv(points: List[ForecastPoint], path: Union[str, Path]) -> Path:
    """Write forecast points as CSV, one row per step."""
    export = forecast_frame(points).rename(columns=FORECAST_EXPORT_COLUMNS)
    return _write_csv(export, path)


def _round_value(key: str, value: Any, price_decimals: int, r2_decimals: int) -> Any:
    if isinstance(value, dict):
        return {k: _round_value(k, v, price_decimals, r2_decimals) for k, v in value.items()}
    if isinstance(value, (float, np.floating)):
        return round(float(value), r2_decimals if key == 'r2' else price_decimals)
    return value


def round_for_display(data: Union[pd.DataFrame, Dict[str, Any]],
                      price_decimals: int = PRICE_DECIMALS,
                      r2_decimals: int = R2_DECIMALS) -> Union[pd.DataFrame, Dict[str, Any]]:
    """Round results for display without touching the originals.

    Columns or keys named ``r2`` keep r2_decimals; every other float is rounded
    to price_decimals. Nested dicts are rounded recursively; None stays None.

    Args:
        data: Metrics/forecast frame or a result dict such as TradeSignal.to_dict()
        price_decimals: Decimals for prices, levels and error metrics
        r2_decimals: Decimals for R-squared

    Returns:
        Rounded copy of the same type
    """
    if isinstance(data, pd.DataFrame):
        rounded = data.copy()
        for col in rounded.columns:
            if col == 'r2':
                rounded[col] = pd.to_numeric(rounded[col], errors='coerce').round(r2_decimals)
            elif rounded[col].dtype.kind == 'f':
                rounded[col] = rounded[col].round(price_decimals)
        return rounded

    return {key: _round_value(key, value, price_decimals, r2_decimals) for key, value in data.items()}
