"""
Closed-form regression models for daily close prices.

This module fits the two trend models used by the pipeline and evaluates them
at arbitrary integer positions. Models are plain frozen records; the free
function ``predict`` dispatches on the model type, so in-sample, out-of-sample
and future positions all go through the same code path.

Key features:
- Ordinary least squares line from closed-form power sums
- Degree-2 fit from the 3x3 normal equations on a centred, scaled index
- Minimum-norm recovery for singular quadratic systems
- Ensemble prediction as the unweighted mean of both models
"""

import logging
from dataclasses import dataclass
from functools import singledispatch
from typing import Dict, Union

import numpy as np
import pandas as pd
from scipy import linalg

from price_analytics.exceptions import DegenerateFitError, InputShapeError
from price_analytics.modeling.splits import ChronologicalSplitter, SeriesSplit
from price_analytics.utils.config import ConfigManager, resolve_config

logger = logging.getLogger(__name__)

ArrayLike = Union[int, float, np.ndarray, list]


@dataclass(frozen=True)
class LinearModel:
    """y = slope * x + intercept"""

    slope: float
    intercept: float
    n_samples: int = 0
    degenerate: bool = False


@dataclass(frozen=True)
class QuadraticModel:
    """y = a * x**2 + b * x + c"""

    a: float
    b: float
    c: float
    n_samples: int = 0
    degenerate: bool = False


def _as_output(values: np.ndarray, index: ArrayLike):
    if np.ndim(index) == 0:
        return float(values)
    return values


@singledispatch
def predict(model, index: ArrayLike):
    """Evaluate a fitted model at one position or an array of positions.

    Args:
        model: LinearModel or QuadraticModel
        index: Integer position(s) in the cleaned series, possibly beyond its end

    Returns:
        Float for a scalar index, otherwise a float ndarray of the same shape
    """
    raise TypeError(f"Unsupported model type: {type(model).__name__}")


@predict.register
def _(model: LinearModel, index: ArrayLike):
    x = np.asarray(index, dtype=float)
    return _as_output(model.slope * x + model.intercept, index)


@predict.register
def _(model: QuadraticModel, index: ArrayLike):
    x = np.asarray(index, dtype=float)
    return _as_output(model.a * x * x + model.b * x + model.c, index)


def predict_ensemble(linear: LinearModel, quadratic: QuadraticModel, index: ArrayLike):
    """Unweighted mean of the linear and quadratic predictions."""
    x = np.asarray(index, dtype=float)
    values = (predict(linear, x) + predict(quadratic, x)) / 2.0
    return _as_output(values, index)


def fit_linear(index: np.ndarray, close: np.ndarray) -> LinearModel:
    """Fit an ordinary least squares line.

    A zero denominator (a single point) is replaced by 1 and the returned
    model is flagged as degenerate.

    Args:
        index: Integer positions
        close: Close prices at those positions

    Returns:
        Fitted LinearModel

    Raises:
        InputShapeError: If there are no points or the lengths differ
    """
    x = np.asarray(index, dtype=float)
    y = np.asarray(close, dtype=float)
    n = x.size

    if n == 0 or n != y.size:
        raise InputShapeError(f"cannot fit a line to {n} positions and {y.size} closes")

    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_xx = (x * x).sum()

    denominator = n * sum_xx - sum_x * sum_x
    degenerate = denominator == 0
    if degenerate:
        logger.warning(f"Degenerate linear fit on {n} point(s): zero denominator replaced by 1")
        denominator = 1.0

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    return LinearModel(slope=float(slope), intercept=float(intercept),
                       n_samples=n, degenerate=bool(degenerate))


def _normal_equations(u: np.ndarray, y: np.ndarray):
    """Build the 3x3 normal-equation system of a degree-2 fit in u."""
    u2 = u * u
    s1, s2, s3, s4 = u.sum(), u2.sum(), (u2 * u).sum(), (u2 * u2).sum()

    matrix = np.array([
        [s4, s3, s2],
        [s3, s2, s1],
        [s2, s1, float(u.size)],
    ])
    rhs = np.array([(u2 * y).sum(), (u * y).sum(), y.sum()])
    return matrix, rhs


def solve_normal_equations(matrix: np.ndarray, rhs: np.ndarray, n_distinct: int) -> np.ndarray:
    """Solve the quadratic normal equations exactly.

    Raises:
        DegenerateFitError: If the system is singular
    """
    if n_distinct < 3:
        raise DegenerateFitError(f"quadratic fit needs 3 distinct positions, got {n_distinct}")

    try:
        return linalg.solve(matrix, rhs)
    except linalg.LinAlgError as e:
        raise DegenerateFitError(f"singular normal equations: {e}") from e


def fit_quadratic(index: np.ndarray, close: np.ndarray) -> QuadraticModel:
    """Fit a degree-2 polynomial by least squares.

    The index is centred and scaled before building the normal equations,
    which keeps the power sums well conditioned on long series. Coefficients
    are mapped back to the raw index. A singular system is recovered with the
    minimum-norm least-squares solution and the model flagged as degenerate.

    Args:
        index: Integer positions
        close: Close prices at those positions

    Returns:
        Fitted QuadraticModel

    Raises:
        InputShapeError: If there are no points or the lengths differ
    """
    x = np.asarray(index, dtype=float)
    y = np.asarray(close, dtype=float)
    n = x.size

    if n == 0 or n != y.size:
        raise InputShapeError(f"cannot fit a quadratic to {n} positions and {y.size} closes")

    center = x.mean()
    scale = x.std() or 1.0
    u = (x - center) / scale

    matrix, rhs = _normal_equations(u, y)
    degenerate = False
    try:
        coef_a, coef_b, coef_c = solve_normal_equations(matrix, rhs, np.unique(x).size)
    except DegenerateFitError as e:
        logger.warning(f"Degenerate quadratic fit on {n} point(s), using minimum-norm solution: {e}")
        coef_a, coef_b, coef_c = np.linalg.lstsq(matrix, rhs, rcond=None)[0]
        degenerate = True

    # y = A*u^2 + B*u + C with u = (x - m) / s
    a = coef_a / scale ** 2
    b = coef_b / scale - 2.0 * coef_a * center / scale ** 2
    c = coef_a * center ** 2 / scale ** 2 - coef_b * center / scale + coef_c

    return QuadraticModel(a=float(a), b=float(b), c=float(c),
                          n_samples=n, degenerate=degenerate)


@dataclass(frozen=True)
class TrainedModels:
    """Both fitted models plus the split they were trained on."""

    linear: LinearModel
    quadratic: QuadraticModel
    split: SeriesSplit

    @property
    def last_index(self) -> int:
        return self.split.last_index

    def as_dict(self) -> Dict[str, Union[LinearModel, QuadraticModel]]:
        return {'linear': self.linear, 'quadratic': self.quadratic}


class ModelTrainer:
    """Fits the linear and quadratic trend models on a chronological split."""

    def __init__(self, config: Union[Dict, ConfigManager, None] = None):
        """Initialize model trainer.

        Args:
            config: Configuration dict or ConfigManager instance
        """
        self.config = resolve_config(config)
        self.modeling_config = self.config.get('modeling', {})

        self.train_ratio = self.modeling_config.get('train_ratio', 0.8)
        self.splitter = ChronologicalSplitter(train_ratio=self.train_ratio)

        logger.debug(f"ModelTrainer initialized (train_ratio={self.train_ratio})")

    def train(self, series: Union[pd.DataFrame, pd.Series]) -> TrainedModels:
        """Split a cleaned series and fit both models on the train partition.

        Args:
            series: Cleaned frame with a close column, or the close series itself

        Returns:
            TrainedModels with both fits and the split

        Raises:
            InputShapeError: If the train partition is empty
        """
        close = series['close'] if isinstance(series, pd.DataFrame) else series
        split = self.splitter.split_series(close)

        if split.n_train == 0:
            raise InputShapeError(
                f"train partition is empty for a series of {len(close)} row(s)"
            )

        linear = fit_linear(split.train_index, split.train_close)
        quadratic = fit_quadratic(split.train_index, split.train_close)

        logger.info(f"Trained models on {split.n_train} rows (test={split.n_test}): "
                    f"linear slope={linear.slope:.4f}, quadratic a={quadratic.a:.6f}")

        return TrainedModels(linear=linear, quadratic=quadratic, split=split)
