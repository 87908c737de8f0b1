"""
Fixed-horizon extrapolation of the fitted trend models.
"""

import logging
from dataclasses import asdict, dataclass
from typing import List

import pandas as pd

from price_analytics.modeling.models import LinearModel, QuadraticModel, predict

logger = logging.getLogger(__name__)

DEFAULT_HORIZON = 30


@dataclass(frozen=True)
class ForecastPoint:
    """Predictions ``step`` rows past the last observed position."""

    step: int
    index: int
    linear: float
    quadratic: float
    ensemble: float


def forecast(linear: LinearModel, quadratic: QuadraticModel,
             last_index: int, horizon: int = DEFAULT_HORIZON) -> List[ForecastPoint]:
    """Evaluate both models at positions last_index + 1 .. last_index + horizon.

    Args:
        linear: Fitted linear model
        quadratic: Fitted quadratic model
        last_index: Position of the last observed row
        horizon: Number of steps to extrapolate

    Returns:
        One ForecastPoint per step, in order

    Raises:
        ValueError: If horizon is less than 1
    """
    if horizon < 1:
        raise ValueError(f"horizon must be at least 1, got {horizon}")

    points = []
    for step in range(1, horizon + 1):
        index = last_index + step
        linear_value = predict(linear, index)
        quadratic_value = predict(quadratic, index)
        points.append(ForecastPoint(
            step=step,
            index=index,
            linear=linear_value,
            quadratic=quadratic_value,
            ensemble=(linear_value + quadratic_value) / 2.0,
        ))

    logger.debug(f"Forecast {horizon} steps from position {last_index}")
    return points


def forecast_frame(points: List[ForecastPoint]) -> pd.DataFrame:
    """Forecast points as a DataFrame with one row per step."""
    return pd.DataFrame([asdict(point) for point in points],
                        columns=['step', 'index', 'linear', 'quadratic', 'ensemble'])
