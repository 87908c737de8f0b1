"""
Tests for CSV exports and display rounding.
"""

import numpy as np
import pandas as pd

from price_analytics.modeling.forecast import forecast
from price_analytics.modeling.models import LinearModel, QuadraticModel
from price_analytics.reporting.export import (
    export_forecast_csv,
    export_indicators_csv,
    round_for_display,
)


def create_indicator_frame(n_days=120):
    """Create an indicator-shaped frame with undefined early values."""
    closes = 100 + np.arange(n_days) * 0.5
    frame = pd.DataFrame({
        'date': pd.date_range('2023-01-01', periods=n_days, freq='D'),
        'close': closes,
        'sma_10': closes - 1,
        'sma_20': closes - 2,
        'rsi_14': np.full(n_days, 55.5),
        'rolling_std_20': np.full(n_days, 1.25),
    })
    frame.loc[:18, ['sma_20', 'rolling_std_20']] = np.nan
    return frame


class TestIndicatorExport:
    """Test the indicator CSV projection."""

    def test_last_rows_with_expected_header(self, tmp_path):
        path = export_indicators_csv(create_indicator_frame(120), tmp_path / 'out' / 'indicators.csv')

        lines = path.read_text().splitlines()
        assert lines[0] == 'Date,Close,SMA10,SMA20,RSI,Volatility'
        assert len(lines) == 101
        assert lines[1].startswith('2023-01-21,')

    def test_undefined_values_are_blank(self, tmp_path):
        path = export_indicators_csv(create_indicator_frame(30), tmp_path / 'indicators.csv')

        first_row = path.read_text().splitlines()[1]
        assert first_row == '2023-01-01,100.0,99.0,,55.5,'

    def test_custom_row_count(self, tmp_path):
        path = export_indicators_csv(create_indicator_frame(50), tmp_path / 'indicators.csv', rows=5)

        exported = pd.read_csv(path)
        assert len(exported) == 5
        assert exported['Close'].iloc[-1] == 100 + 49 * 0.5


class TestForecastExport:
    """Test the forecast CSV projection."""

    def test_one_row_per_step(self, tmp_path):
        points = forecast(LinearModel(1.0, 0.0), QuadraticModel(0.0, 1.0, 2.0), last_index=9, horizon=4)

        exported = pd.read_csv(export_forecast_csv(points, tmp_path / 'forecast.csv'))

        assert exported.columns.tolist() == ['Step', 'Index', 'Linear', 'Quadratic', 'Ensemble']
        assert exported['Index'].tolist() == [10, 11, 12, 13]
        assert exported['Ensemble'].tolist() == [11.0, 12.0, 13.0, 14.0]


class TestDisplayRounding:
    """Test the display rounding contract."""

    def test_frame_rounding(self):
        metrics = pd.DataFrame({
            'model': ['linear', 'linear'],
            'split': ['train', 'test'],
            'mse': [1.23456, 2.34567],
            'r2': [0.987654, None],
            'n_samples': [80, 20],
        })

        rounded = round_for_display(metrics)

        assert rounded['mse'].tolist() == [1.23, 2.35]
        assert rounded['r2'].iloc[0] == 0.9877
        assert pd.isna(rounded['r2'].iloc[1])
        assert rounded['n_samples'].tolist() == [80, 20]
        assert metrics['mse'].iloc[0] == 1.23456

    def test_nested_dict_rounding(self):
        data = {'stop_price': 98.7654, 'r2': 0.123456, 'confidence': 70,
                'rationale': {'rsi_current': 28.123}, 'note': None}

        rounded = round_for_display(data)

        assert rounded == {'stop_price': 98.77, 'r2': 0.1235, 'confidence': 70,
                           'rationale': {'rsi_current': 28.12}, 'note': None}
