"""
End-to-end tests for the analytics pipeline.

Ingestion is replaced by a mock or a local CSV, so no test touches the network.
"""

from unittest.mock import Mock

import numpy as np
import pandas as pd
import pytest

from price_analytics.exceptions import IngestionUnavailable, InputShapeError, InsufficientHistoryError
from price_analytics.pipeline import AnalyticsPipeline, PipelineResult
from price_analytics.signals.engine import SignalAction


def create_raw_frame(n_days=120):
    """Create a raw OHLCV frame with a trend and a gentle cycle."""
    x = np.arange(n_days)
    closes = 100 + 0.3 * x + 2 * np.sin(x / 5)
    return pd.DataFrame({
        'Date': pd.date_range('2023-01-02', periods=n_days, freq='B').strftime('%Y-%m-%d'),
        'Open': closes - 0.5,
        'High': closes + 1.0,
        'Low': closes - 1.0,
        'Close': closes,
        'Volume': np.full(n_days, 1_000_000),
    })


class TestRunFrame:
    """Test a full run on an in-memory frame."""

    def setup_method(self):
        """Setup test environment."""
        self.pipeline = AnalyticsPipeline({}, ingestor=Mock())

    def test_complete_result(self):
        result = self.pipeline.run_frame(create_raw_frame(120), symbol='TEST')

        assert isinstance(result, PipelineResult)
        assert result.raw_records == 120
        assert len(result.frame) == 120
        assert result.cleaning_report.total == 0
        assert len(result.metrics) == 6
        assert len(result.forecast) == 30
        assert result.forecast[0].index == 120
        assert result.models.split.n_train == 96
        assert isinstance(result.signal.action, SignalAction)
        assert set(result.durations) == {'cleaning', 'indicators', 'modeling', 'signal'}

    def test_summary_counts(self):
        raw = pd.concat([create_raw_frame(80), create_raw_frame(80).iloc[[-1]]], ignore_index=True)

        result = self.pipeline.run_frame(raw)

        assert result.summary.total_records == 81
        assert result.summary.clean_records == 80
        assert result.cleaning_report.duplicates_removed == 1

    def test_configured_horizon(self):
        pipeline = AnalyticsPipeline({'forecast': {'horizon': 5}}, ingestor=Mock())

        result = pipeline.run_frame(create_raw_frame(60))

        assert [point.step for point in result.forecast] == [1, 2, 3, 4, 5]

    def test_empty_frame(self):
        with pytest.raises(InputShapeError):
            self.pipeline.run_frame(create_raw_frame(0))

    def test_leading_null_close(self):
        raw = create_raw_frame(80)
        raw.loc[0, 'Close'] = np.nan

        with pytest.raises(InputShapeError, match="null"):
            self.pipeline.run_frame(raw)

    def test_short_series_has_insufficient_history(self):
        with pytest.raises(InsufficientHistoryError):
            self.pipeline.run_frame(create_raw_frame(30))

    def test_input_not_modified(self):
        raw = create_raw_frame(60)
        original = raw.copy()

        self.pipeline.run_frame(raw)

        pd.testing.assert_frame_equal(raw, original)


class TestRun:
    """Test runs that go through ingestion."""

    def test_uses_ingestor_source(self):
        ingestor = Mock()
        ingestor.fetch.return_value = (create_raw_frame(100), 'stooq')

        result = AnalyticsPipeline({}, ingestor=ingestor).run('GOOGL')

        ingestor.fetch.assert_called_once_with('GOOGL', source='auto')
        assert result.symbol == 'GOOGL'
        assert result.source == 'stooq'
        assert 'ingestion' in result.durations

    def test_local_csv_source(self, tmp_path):
        csv_path = tmp_path / 'prices.csv'
        create_raw_frame(90).to_csv(csv_path, index=False)
        config = {'data': {'source': 'csv', 'csv_path': str(csv_path)}}

        result = AnalyticsPipeline(config).run('LOCAL')

        assert result.source == 'csv'
        assert len(result.frame) == 90

    def test_batch_keeps_order_and_failures(self):
        def fetch(symbol, source=None):
            if symbol == 'BAD':
                raise IngestionUnavailable(symbol, [('stooq', 'HTTP 404')])
            return create_raw_frame(70), 'alpha_vantage'

        ingestor = Mock()
        ingestor.fetch.side_effect = fetch
        pipeline = AnalyticsPipeline({'system': {'n_jobs': 2}}, ingestor=ingestor)

        results = pipeline.run_batch(['AAA', 'BAD', 'CCC'], show_progress=False)

        assert list(results) == ['AAA', 'BAD', 'CCC']
        assert isinstance(results['AAA'], PipelineResult)
        assert isinstance(results['BAD'], IngestionUnavailable)
        assert results['CCC'].symbol == 'CCC'

    def test_batch_results_match_single_runs(self):
        ingestor = Mock()
        ingestor.fetch.return_value = (create_raw_frame(70), 'stooq')
        pipeline = AnalyticsPipeline({}, ingestor=ingestor)

        single = pipeline.run('AAA')
        batch = pipeline.run_batch(['AAA'], show_progress=False)['AAA']

        assert batch.signal == single.signal
        pd.testing.assert_frame_equal(batch.metrics, single.metrics)
