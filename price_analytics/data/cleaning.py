"""
Data cleaning module for raw OHLCV series.

Cleaning runs three phases in a fixed order, each on the previous phase's output:

1. Deduplication on the date column (first occurrence wins, order preserved)
2. Forward-fill of null close and volume values from the preceding row
3. Robust outlier correction of close prices using the median absolute
   deviation (MAD) and a modified z-score

Every correction is counted in a CleaningReport so data-quality issues stay
visible downstream. The input frame is never modified.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, Tuple, Union

import numpy as np
import pandas as pd

from price_analytics.data.ingest import OHLCV_COLUMNS
from price_analytics.exceptions import InputShapeError
from price_analytics.utils.config import ConfigManager, resolve_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleaningReport:
    """Counts of corrections applied by one cleaning run."""

    nulls_filled: int = 0
    duplicates_removed: int = 0
    outliers_corrected: int = 0

    @property
    def total(self) -> int:
        return self.nulls_filled + self.duplicates_removed + self.outliers_corrected

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def median(values: np.ndarray) -> float:
    """Median of the non-null values; 0.0 for an empty collection.

    Even-length collections use the mean of the two middle values.
    """
    values = np.asarray(values, dtype=float)
    values = values[~np.isnan(values)]
    if values.size == 0:
        return 0.0
    return float(np.median(values))


class DataCleaner:
    """Deduplicates, imputes and de-spikes a raw OHLCV series."""

    def __init__(self, config: Union[Dict, ConfigManager, None] = None):
        """Initialize data cleaner.

        Args:
            config: Configuration dict or ConfigManager instance
        """
        self.config = resolve_config(config)
        self.cleaning_config = self.config.get('cleaning', {})

        self.z_threshold = self.cleaning_config.get('z_threshold', 3.5)
        self.window_half_width = self.cleaning_config.get('window_half_width', 2)
        self.mad_floor = self.cleaning_config.get('mad_floor', 1.0)

    def remove_duplicates(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
        """Drop every repeat of an already-seen date.

        Args:
            df: Raw OHLCV frame in chronological order

        Returns:
            Tuple of (deduplicated frame, number of rows removed)
        """
        duplicated = df['date'].duplicated(keep='first')
        removed = int(duplicated.sum())

        if removed:
            logger.info(f"Removing {removed} duplicate rows")

        return df.loc[~duplicated].reset_index(drop=True), removed

    def forward_fill(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
        """Fill null close/volume values from the previous row.

        A null in the first row has no predecessor and is left as is, and so
        is every null in an unbroken run starting at the first row. Only values
        that actually changed are counted.

        Args:
            df: Deduplicated OHLCV frame

        Returns:
            Tuple of (filled frame, number of values filled)
        """
        data = df.copy()
        filled = 0

        for col in ['close', 'volume']:
            missing = data[col].isna()
            # ffill copies the nearest earlier value, which is the previous
            # row's value after that row has itself been filled
            data[col] = data[col].ffill()
            filled += int((missing & data[col].notna()).sum())

        if filled:
            logger.info(f"Forward-filled {filled} missing values")

        return data, filled

    def correct_outliers(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
        """Replace close prices whose modified z-score exceeds the threshold.

        The median and MAD are computed once from the uncorrected closes; a
        flagged close is replaced by the median of the uncorrected closes in a
        window centred on it and clipped at the series boundaries.

        Args:
            df: Filled OHLCV frame

        Returns:
            Tuple of (corrected frame, number of closes replaced)
        """
        data = df.copy()
        closes = data['close'].to_numpy(dtype=float)

        if closes.size == 0:
            return data, 0

        center = median(closes)
        mad = median(np.abs(closes - center))
        if mad == 0:
            mad = self.mad_floor

        with np.errstate(invalid='ignore'):
            scores = np.abs(closes - center) / mad
            flagged = np.flatnonzero(scores > self.z_threshold)

        corrected = closes.copy()
        for idx in flagged:
            start = max(0, idx - self.window_half_width)
            stop = min(closes.size, idx + self.window_half_width + 1)
            corrected[idx] = median(closes[start:stop])
            logger.debug(f"Outlier at row {idx}: close {closes[idx]:.4f} -> {corrected[idx]:.4f} "
                         f"(score {scores[idx]:.2f})")

        if flagged.size:
            logger.info(f"Corrected {flagged.size} outlier closes (median={center:.4f}, MAD={mad:.4f})")

        data['close'] = corrected
        return data, int(flagged.size)

    def clean(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, CleaningReport]:
        """Run deduplication, forward-fill and outlier correction in order.

        Args:
            df: Raw OHLCV frame (date, open, high, low, close, volume)

        Returns:
            Tuple of (cleaned frame, CleaningReport)

        Raises:
            InputShapeError: If a required OHLCV column is missing
        """
        missing = [col for col in OHLCV_COLUMNS if col not in df.columns]
        if missing:
            raise InputShapeError(f"OHLCV data missing required columns: {missing}")

        if df.empty:
            logger.warning("Cleaning an empty series")
            return df.copy().reset_index(drop=True), CleaningReport()

        data, duplicates = self.remove_duplicates(df)
        data, nulls = self.forward_fill(data)
        data, outliers = self.correct_outliers(data)

        report = CleaningReport(
            nulls_filled=nulls,
            duplicates_removed=duplicates,
            outliers_corrected=outliers,
        )
        logger.info(f"Cleaned {len(df)} -> {len(data)} rows: {report.to_dict()}")

        return data, report
