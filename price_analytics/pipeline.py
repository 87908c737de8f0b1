"""
End-to-end analytics pipeline for one or more symbols.

A run ingests a raw daily series, cleans it, derives indicators, fits and
scores the trend models, extrapolates them and derives a trade signal. Each
stage consumes the previous stage's output and returns new objects; a run
either returns a complete PipelineResult or raises a single typed error.

Independent symbols can be analysed concurrently with run_batch; runs share
no mutable state.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pandas as pd
from tqdm import tqdm

from price_analytics.data.cleaning import CleaningReport, DataCleaner
from price_analytics.data.ingest import DataIngestor, standardize_ohlcv
from price_analytics.exceptions import AnalyticsError, InputShapeError
from price_analytics.features.engineer import FeatureEngineer
from price_analytics.features.summary import SeriesSummary, summarize_series
from price_analytics.modeling.forecast import ForecastPoint, forecast
from price_analytics.modeling.metrics import EvaluationMetrics, ModelEvaluator, metrics_frame
from price_analytics.modeling.models import ModelTrainer, TrainedModels
from price_analytics.signals.engine import SignalEngine, TradeSignal
from price_analytics.utils.config import ConfigManager, resolve_config
from price_analytics.utils.logging import PerformanceLogger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Every output of one completed run."""

    symbol: str
    source: str
    raw_records: int
    frame: pd.DataFrame
    cleaning_report: CleaningReport
    summary: SeriesSummary
    models: TrainedModels
    evaluations: Dict[str, Dict[str, Optional[EvaluationMetrics]]]
    metrics: pd.DataFrame
    forecast: List[ForecastPoint]
    signal: TradeSignal
    durations: Dict[str, float] = field(default_factory=dict)


class AnalyticsPipeline:
    """Runs ingestion through signal generation for a symbol or a raw frame."""

    def __init__(self, config: Union[Dict, ConfigManager, None] = None,
                 ingestor: Optional[DataIngestor] = None):
        """Initialize pipeline.

        Args:
            config: Configuration dict or ConfigManager instance
            ingestor: Optional DataIngestor (one is built from config otherwise)
        """
        self.config = resolve_config(config)

        self.ingestor = ingestor or DataIngestor(self.config)
        self.cleaner = DataCleaner(self.config)
        self.engineer = FeatureEngineer(self.config)
        self.trainer = ModelTrainer(self.config)
        self.evaluator = ModelEvaluator()
        self.signal_engine = SignalEngine(self.config)

        self.data_config = self.config.get('data', {})
        self.horizon = self.config.get('forecast', {}).get('horizon', 30)
        self.n_jobs = self.config.get('system', {}).get('n_jobs', 4)

    def ingest(self, symbol: str, source: Optional[str] = None) -> Tuple[pd.DataFrame, str]:
        """Load the raw series for a symbol from the configured source.

        Args:
            symbol: Ticker symbol
            source: Overrides data.source ('auto', 'alpha_vantage', 'stooq' or 'csv')

        Returns:
            Tuple of (raw OHLCV frame, source name)
        """
        source = source or self.data_config.get('source', 'auto')

        if source == DataIngestor.CSV:
            csv_path = self.data_config.get('csv_path')
            path = Path(csv_path) if csv_path else self.ingestor.raw_dir / f"{symbol.upper()}.csv"
            return self.ingestor.load_csv_data(path), DataIngestor.CSV

        return self.ingestor.fetch(symbol, source=source)

    def run(self, symbol: str, source: Optional[str] = None) -> PipelineResult:
        """Ingest and analyse one symbol.

        Args:
            symbol: Ticker symbol
            source: Optional source override

        Returns:
            Complete PipelineResult

        Raises:
            IngestionUnavailable: If no source could supply data
            InputShapeError: If the raw series is empty or malformed
            InsufficientHistoryError: If the series is too short for a signal
        """
        perf = PerformanceLogger(logger)
        perf.start_timer('ingestion')
        raw, used_source = self.ingest(symbol, source)
        perf.end_timer('ingestion')

        return self.run_frame(raw, symbol=symbol, source=used_source, perf=perf)

    def run_frame(self, raw: pd.DataFrame, symbol: str = 'CUSTOM', source: str = 'frame',
                  perf: Optional[PerformanceLogger] = None) -> PipelineResult:
        """Analyse an already-loaded raw OHLCV frame.

        Args:
            raw: Raw OHLCV frame in chronological order
            symbol: Label for the series
            source: Label for where the frame came from
            perf: Stage timer to continue (a new one is created otherwise)

        Returns:
            Complete PipelineResult
        """
        perf = perf or PerformanceLogger(logger)

        if raw.empty:
            raise InputShapeError(f"raw series for {symbol} is empty")

        perf.start_timer('cleaning')
        standardized = standardize_ohlcv(raw)
        cleaned, report = self.cleaner.clean(standardized)
        perf.end_timer('cleaning')

        if cleaned['close'].isna().any():
            raise InputShapeError(
                f"{symbol}: close is still null after cleaning (the series starts with a null close)"
            )

        perf.start_timer('indicators')
        frame = self.engineer.compute_all_features(cleaned)
        summary = summarize_series(standardized, cleaned)
        perf.end_timer('indicators')

        perf.start_timer('modeling')
        models = self.trainer.train(frame)
        evaluations = self.evaluator.evaluate_models(models)
        points = forecast(models.linear, models.quadratic, models.last_index, self.horizon)
        perf.end_timer('modeling')

        perf.start_timer('signal')
        signal = self.signal_engine.generate(frame)
        perf.end_timer('signal')

        logger.info(f"{symbol}: analysed {len(frame)} rows from {source}, "
                    f"signal {signal.action.value} ({signal.confidence})")

        return PipelineResult(
            symbol=symbol,
            source=source,
            raw_records=len(raw),
            frame=frame,
            cleaning_report=report,
            summary=summary,
            models=models,
            evaluations=evaluations,
            metrics=metrics_frame(evaluations),
            forecast=points,
            signal=signal,
            durations=dict(perf.durations),
        )

    def run_batch(self, symbols: List[str], source: Optional[str] = None,
                  show_progress: bool = True) -> Dict[str, Union[PipelineResult, AnalyticsError]]:
        """Analyse several symbols concurrently.

        Failures are returned in place of results so one bad symbol does not
        abort the batch.

        Args:
            symbols: Ticker symbols
            source: Optional source override for every symbol
            show_progress: Whether to show a progress bar

        Returns:
            Dict mapping each symbol to its PipelineResult or its typed failure
        """
        results: Dict[str, Union[PipelineResult, AnalyticsError]] = {}
        max_workers = max(1, min(self.n_jobs, len(symbols) or 1))

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self.run, symbol, source): symbol for symbol in symbols}

            with tqdm(total=len(futures), desc="Analysing symbols", disable=not show_progress) as pbar:
                for future in as_completed(futures):
                    symbol = futures[future]
                    try:
                        results[symbol] = future.result()
                    except AnalyticsError as e:
                        logger.error(f"Analysis failed for {symbol}: {e}")
                        results[symbol] = e
                    pbar.update(1)

        succeeded = sum(isinstance(r, PipelineResult) for r in results.values())
        logger.info(f"Batch complete: {succeeded}/{len(symbols)} symbols analysed")

        # Keep the caller's symbol order
        return {symbol: results[symbol] for symbol in symbols}
