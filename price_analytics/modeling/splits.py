"""
Chronological train/test splitting for the regression models.

The split never shuffles: the first floor(ratio * N) rows of the cleaned series
form the train partition and the remainder the test partition. The regression
feature is each row's 0-based position in the full series, so test indices
continue from where the train partition stops.

Key features:
- Single ordered holdout split with a configurable ratio
- Scikit-learn compatible splitter interface
- Split validation against temporal overlap
"""

import logging
import math
from dataclasses import dataclass
from typing import Generator, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import BaseCrossValidator

from price_analytics.exceptions import InputShapeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeriesSplit:
    """Train and test partitions of one close series, keyed by position."""

    train_index: np.ndarray
    train_close: np.ndarray
    test_index: np.ndarray
    test_close: np.ndarray

    @property
    def n_train(self) -> int:
        return int(self.train_index.size)

    @property
    def n_test(self) -> int:
        return int(self.test_index.size)

    @property
    def last_index(self) -> int:
        """Position of the last observed row, or -1 for an empty split."""
        return self.n_train + self.n_test - 1


class ChronologicalSplitter(BaseCrossValidator):
    """Ordered holdout splitter with a scikit-learn compatible interface."""

    def __init__(self, train_ratio: float = 0.8):
        """Initialize chronological splitter.

        Args:
            train_ratio: Fraction of rows assigned to the train partition
        """
        if not 0 < train_ratio < 1:
            raise ValueError(f"train_ratio must be in (0, 1), got {train_ratio}")

        self.train_ratio = train_ratio

    def train_size(self, n_samples: int) -> int:
        """Number of train rows for a series of n_samples rows."""
        return int(math.floor(self.train_ratio * n_samples))

    def split(self, X, y=None, groups=None) -> Generator[Tuple[np.ndarray, np.ndarray], None, None]:
        """Yield the single (train_indices, test_indices) pair.

        Args:
            X: Features or series; only its length is used
            y: Target (optional)
            groups: Group labels (optional)

        Yields:
            Tuple of (train_indices, test_indices)
        """
        n_samples = len(X)
        cut = self.train_size(n_samples)

        yield np.arange(0, cut), np.arange(cut, n_samples)

    def get_n_splits(self, X=None, y=None, groups=None) -> int:
        return 1

    def split_series(self, close: pd.Series) -> SeriesSplit:
        """Split a close series into positional train and test partitions.

        Args:
            close: Cleaned close prices in chronological order

        Returns:
            SeriesSplit with float closes and integer positions

        Raises:
            InputShapeError: If the series still contains null closes
        """
        values = np.asarray(close, dtype=float)
        if np.isnan(values).any():
            raise InputShapeError("close series contains null values; clean the series first")

        train_idx, test_idx = next(self.split(values))

        logger.debug(f"Chronological split: train={train_idx.size}, test={test_idx.size}")

        return SeriesSplit(
            train_index=train_idx,
            train_close=values[train_idx],
            test_index=test_idx,
            test_close=values[test_idx],
        )


def validate_chronological_split(split: SeriesSplit) -> bool:
    """Check that the test partition starts right after the train partition.

    Args:
        split: Split to validate

    Returns:
        True if the partitions are contiguous and non-overlapping

    Raises:
        ValueError: If positions overlap, leave a gap or are not increasing
    """
    positions = np.concatenate([split.train_index, split.test_index])

    if positions.size and not np.array_equal(positions, np.arange(positions.size)):
        error_msg = "Split positions must be 0..N-1 with test continuing after train"
        logger.error(error_msg)
        raise ValueError(error_msg)

    return True
