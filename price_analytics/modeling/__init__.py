"""
Modeling package for the price analytics pipeline.

This package fits closed-form trend models on a chronological split, scores
them and extrapolates them beyond the observed series.

Key features:
- Ordered 80/20 train/test split on series position
- Linear and quadratic least-squares fits
- MSE, RMSE, R-squared and MAE per model and partition
- Fixed-horizon forecasts with an ensemble mean

Main components:
- ModelTrainer: Splits a series and fits both models
- ModelEvaluator: Scores linear, quadratic and ensemble predictions
- forecast: Extrapolates both models
"""

from price_analytics.modeling.forecast import ForecastPoint, forecast
from price_analytics.modeling.metrics import EvaluationMetrics, ModelEvaluator, evaluate
from price_analytics.modeling.models import (
    LinearModel,
    ModelTrainer,
    QuadraticModel,
    TrainedModels,
    predict,
)
from price_analytics.modeling.splits import ChronologicalSplitter

__all__ = [
    "ChronologicalSplitter",
    "LinearModel",
    "QuadraticModel",
    "TrainedModels",
    "ModelTrainer",
    "predict",
    "EvaluationMetrics",
    "ModelEvaluator",
    "evaluate",
    "ForecastPoint",
    "forecast",
]
