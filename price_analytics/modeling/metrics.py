"""
Regression accuracy metrics for the trend models.

This module scores predictions against actual closes and applies the scoring
to every model/partition pair of a training run.

Key features:
- MSE, RMSE, MAE and R-squared for equal-length sequences
- Explicit "undefined" R-squared for constant actual series
- Linear, quadratic and ensemble scores on both train and test partitions
- Tidy metrics table for display and export
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error

from price_analytics.exceptions import InputShapeError
from price_analytics.modeling.models import TrainedModels, predict, predict_ensemble
from price_analytics.modeling.splits import SeriesSplit

logger = logging.getLogger(__name__)

MODEL_NAMES = ('linear', 'quadratic', 'ensemble')
SPLIT_NAMES = ('train', 'test')
METRIC_COLUMNS = ['model', 'split', 'mse', 'rmse', 'r2', 'mae', 'n_samples']


@dataclass(frozen=True)
class EvaluationMetrics:
    """Accuracy of one prediction sequence.

    ``r2`` is None when the actual values have zero variance.
    """

    mse: float
    rmse: float
    r2: Optional[float]
    mae: float
    n_samples: int

    @property
    def r2_defined(self) -> bool:
        return self.r2 is not None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return asdict(self)


def evaluate(actual, predicted) -> EvaluationMetrics:
    """Score predictions against actual values.

    Args:
        actual: Observed values
        predicted: Predicted values, same length as actual

    Returns:
        EvaluationMetrics for the pair

    Raises:
        InputShapeError: If the inputs are empty, differ in length or contain NaN
    """
    y_true = np.asarray(actual, dtype=float).ravel()
    y_pred = np.asarray(predicted, dtype=float).ravel()

    if y_true.size == 0:
        raise InputShapeError("cannot evaluate an empty sequence")
    if y_true.size != y_pred.size:
        raise InputShapeError(f"length mismatch: {y_true.size} actual vs {y_pred.size} predicted")
    if np.isnan(y_true).any() or np.isnan(y_pred).any():
        raise InputShapeError("cannot evaluate sequences containing NaN")

    mse = float(mean_squared_error(y_true, y_pred))
    mae = float(mean_absolute_error(y_true, y_pred))

    ss_res = float(np.sum((y_true - y_pred) ** 2))
    ss_tot = float(np.sum((y_true - y_true.mean()) ** 2))
    if ss_tot == 0:
        logger.warning(f"R-squared undefined: actual values are constant over {y_true.size} sample(s)")
        r2 = None
    else:
        r2 = 1.0 - ss_res / ss_tot

    return EvaluationMetrics(mse=mse, rmse=float(np.sqrt(mse)), r2=r2,
                             mae=mae, n_samples=int(y_true.size))


class ModelEvaluator:
    """Scores every model on every partition of a training run."""

    def _predictions(self, models: TrainedModels, index: np.ndarray) -> Dict[str, np.ndarray]:
        return {
            'linear': predict(models.linear, index),
            'quadratic': predict(models.quadratic, index),
            'ensemble': predict_ensemble(models.linear, models.quadratic, index),
        }

    def evaluate_models(self, models: TrainedModels,
                        split: Optional[SeriesSplit] = None) -> Dict[str, Dict[str, Optional[EvaluationMetrics]]]:
        """Evaluate linear, quadratic and ensemble predictions on train and test.

        Args:
            models: Fitted models
            split: Partitions to score on; defaults to the split the models were trained on

        Returns:
            Nested dict ``{model: {split: EvaluationMetrics}}``; an empty
            partition maps to None
        """
        split = split or models.split
        partitions = {
            'train': (split.train_index, split.train_close),
            'test': (split.test_index, split.test_close),
        }

        evaluations = {name: {} for name in MODEL_NAMES}
        for split_name, (index, actual) in partitions.items():
            if index.size == 0:
                logger.warning(f"{split_name} partition is empty; skipping evaluation")
                for name in MODEL_NAMES:
                    evaluations[name][split_name] = None
                continue

            for name, predicted in self._predictions(models, index).items():
                evaluations[name][split_name] = evaluate(actual, predicted)

        for name in MODEL_NAMES:
            test_metrics = evaluations[name]['test']
            if test_metrics is not None:
                logger.info(f"{name} test metrics: RMSE={test_metrics.rmse:.4f}, "
                            f"MAE={test_metrics.mae:.4f}, R2={test_metrics.r2}")

        return evaluations


def metrics_frame(evaluations: Dict[str, Dict[str, Optional[EvaluationMetrics]]]) -> pd.DataFrame:
    """Flatten nested evaluations into one row per model and split.

    Args:
        evaluations: Output of ModelEvaluator.evaluate_models

    Returns:
        DataFrame with columns model, split, mse, rmse, r2, mae, n_samples
    """
    rows: List[Dict] = []

    for model_name, by_split in evaluations.items():
        for split_name, metrics in by_split.items():
            if metrics is None:
                continue
            rows.append({'model': model_name, 'split': split_name, **metrics.to_dict()})

    return pd.DataFrame(rows, columns=METRIC_COLUMNS)
