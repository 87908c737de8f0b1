"""
Indicator engineering module for cleaned daily price series.

This module computes technical indicators from a cleaned OHLCV series with
strict no-lookahead enforcement. Every value at row i uses only closes at or
before row i, and stays undefined (NaN) until its window has enough history.

Indicators:
- Simple moving averages (SMA 10/20/50)
- Relative Strength Index (RSI 14) from simple average gains/losses
- Bollinger Bands (20, 2 sigma) with the rolling population std exposed as volatility
"""

import logging
import warnings
from typing import Dict, List, Union

import numpy as np
import pandas as pd
from ta.trend import SMAIndicator
from ta.volatility import BollingerBands

from price_analytics.utils.config import ConfigManager, resolve_config

warnings.filterwarnings('ignore', category=RuntimeWarning, module='ta')

logger = logging.getLogger(__name__)

RSI_NEUTRAL_RS = 100.0


class FeatureEngineer:
    """Technical indicator engineering with no lookahead bias."""

    def __init__(self, config: Union[Dict, ConfigManager, None] = None):
        """Initialize feature engineer.

        Args:
            config: Configuration dict or ConfigManager instance
        """
        self.config = resolve_config(config)
        self.indicators_config = self.config.get('indicators', {})

        self.sma_periods = self.indicators_config.get('sma_periods', [10, 20, 50])
        self.rsi_period = self.indicators_config.get('rsi_period', 14)
        self.bollinger_window = self.indicators_config.get('bollinger_window', 20)
        self.bollinger_std = self.indicators_config.get('bollinger_std', 2.0)
        self.check_lookahead = self.indicators_config.get('validate_lookahead', True)

        logger.debug("FeatureEngineer initialized")

    @property
    def rsi_column(self) -> str:
        return f'rsi_{self.rsi_period}'

    @property
    def volatility_column(self) -> str:
        return f'rolling_std_{self.bollinger_window}'

    @property
    def band_basis_column(self) -> str:
        return f'sma_{self.bollinger_window}'

    def compute_moving_averages(self, df: pd.DataFrame) -> pd.DataFrame:
        """Compute simple moving averages of the close.

        SMA(n) at row i is the mean of closes [i-n+1, i], defined for i >= n-1.

        Args:
            df: DataFrame with a close column

        Returns:
            DataFrame with sma_<n> columns added
        """
        data = df.copy()

        for period in self.sma_periods:
            data[f'sma_{period}'] = SMAIndicator(close=data['close'], window=period).sma_indicator()

        logger.debug(f"Computed SMA indicators for periods {self.sma_periods}")
        return data

    def compute_rsi(self, df: pd.DataFrame) -> pd.DataFrame:
        """Compute RSI from simple averages of the last n close-to-close changes.

        Each window is summed on its own rather than with a running total, so an
        all-gain window has an average loss of exactly zero and maps to RS = 100.

        Args:
            df: DataFrame with a close column

        Returns:
            DataFrame with the rsi_<n> column added
        """
        data = df.copy()
        period = self.rsi_period
        closes = data['close'].to_numpy(dtype=float)
        rsi = np.full(closes.size, np.nan)

        if closes.size > period:
            changes = np.diff(closes)
            windows = np.lib.stride_tricks.sliding_window_view(changes, period)
            avg_gain = np.where(windows > 0, windows, 0.0).sum(axis=1) / period
            avg_loss = np.where(windows < 0, -windows, 0.0).sum(axis=1) / period

            with np.errstate(divide='ignore', invalid='ignore'):
                rs = np.where(avg_loss == 0, RSI_NEUTRAL_RS, avg_gain / avg_loss)
            # window k covers changes k..k+period-1, i.e. it ends at row k+period
            rsi[period:] = 100.0 - 100.0 / (1.0 + rs)

        data[self.rsi_column] = rsi

        logger.debug(f"Computed RSI({period})")
        return data

    def compute_volatility_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        """Compute Bollinger Bands and rolling population standard deviation.

        Args:
            df: DataFrame with close and the band basis SMA column

        Returns:
            DataFrame with bollinger_upper, bollinger_lower and rolling_std_<n> added
        """
        data = df.copy()
        window = self.bollinger_window

        bands = BollingerBands(close=data['close'], window=window, window_dev=self.bollinger_std)
        data['bollinger_upper'] = bands.bollinger_hband()
        data['bollinger_lower'] = bands.bollinger_lband()
        data[self.volatility_column] = (
            data['close'].rolling(window=window, min_periods=window).std(ddof=0)
        )

        # Bands exist only where their basis SMA does
        if self.band_basis_column in data.columns:
            undefined = data[self.band_basis_column].isna()
            data.loc[undefined, ['bollinger_upper', 'bollinger_lower', self.volatility_column]] = np.nan

        logger.debug(f"Computed Bollinger Bands({window}, {self.bollinger_std})")
        return data

    def indicator_columns(self) -> List[str]:
        """Names of every column this engineer adds."""
        return ([f'sma_{period}' for period in self.sma_periods]
                + [self.rsi_column, 'bollinger_upper', 'bollinger_lower', self.volatility_column])

    def _get_min_periods_for_feature(self, feature_name: str) -> int:
        """Get the minimum number of rows before a feature may be defined.

        Args:
            feature_name: Name of the feature

        Returns:
            Minimum number of rows required
        """
        if feature_name.startswith('sma_'):
            return int(feature_name.split('_')[1])
        if feature_name.startswith('rsi_'):
            return self.rsi_period + 1
        if feature_name.startswith(('bollinger_', 'rolling_std_')):
            return self.bollinger_window
        return 1

    def validate_no_lookahead(self, df: pd.DataFrame) -> bool:
        """Validate that no indicator is defined before its window is full.

        Args:
            df: DataFrame with indicator columns

        Returns:
            True if no lookahead detected

        Raises:
            ValueError: If an indicator appears earlier than its history allows
        """
        for col in self.indicator_columns():
            if col not in df.columns:
                continue

            defined = df[col].notna().to_numpy()
            if not defined.any():
                continue

            first_valid_pos = int(np.argmax(defined))
            min_required = self._get_min_periods_for_feature(col)

            if first_valid_pos < min_required - 1:
                error_msg = (f"Potential lookahead bias in {col}: first valid value at position "
                             f"{first_valid_pos}, but requires {min_required} rows")
                logger.error(error_msg)
                raise ValueError(error_msg)

        logger.debug("No lookahead bias detected in indicators")
        return True

    def compute_all_features(self, df: pd.DataFrame) -> pd.DataFrame:
        """Compute every indicator for a cleaned series.

        One output row per input row; order and all input columns are kept.

        Args:
            df: Cleaned OHLCV DataFrame

        Returns:
            DataFrame with indicator columns added
        """
        data = df.copy().reset_index(drop=True)

        if data.empty:
            for col in self.indicator_columns():
                data[col] = pd.Series(dtype=float)
            return data

        data = self.compute_moving_averages(data)
        data = self.compute_rsi(data)
        data = self.compute_volatility_indicators(data)

        if self.check_lookahead:
            self.validate_no_lookahead(data)

        logger.info(f"Computed {len(self.indicator_columns())} indicators over {len(data)} rows")
        return data
