"""
Command-line interface for the price analytics pipeline.

This module provides the CLI using Typer, with Rich tables for results.

Key features:
- Fetching raw daily bars with provider fallback
- Full analysis of one or more symbols, or of a local CSV file
- Optional CSV export of indicators and forecasts
- Configuration file support with environment overrides
- Consistent error handling and logging
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from price_analytics.data.ingest import DataIngestor
from price_analytics.exceptions import IngestionUnavailable
from price_analytics.modeling.forecast import forecast_frame
from price_analytics.pipeline import AnalyticsPipeline, PipelineResult
from price_analytics.reporting.export import (
    export_forecast_csv,
    export_indicators_csv,
    round_for_display,
)
from price_analytics.utils.config import ConfigManager
from price_analytics.utils.logging import setup_logging

# Initialize Typer app
app = typer.Typer(
    name="price-analytics",
    help="Price Analytics - cleaning, indicators, trend models and trade signals for daily bars",
    add_completion=False
)

# Initialize Rich console
console = Console()

RATIO_STATISTICS = ('avg_return', 'volatility', 'sharpe_ratio')

# Global variables
config_manager = None
logger = None


def setup_globals(config_path: Optional[str] = None, verbose: bool = False):
    """Setup global configuration and logging."""
    global config_manager, logger

    try:
        config_manager = ConfigManager(config_path=config_path)

        log_level = 'DEBUG' if verbose else config_manager.get_log_level()
        logging_config = dict(config_manager.get_section('logging'))
        logging_config['level'] = log_level

        logging_manager = setup_logging(logging_config)
        logger = logging_manager.get_logger(__name__)

        logger.info("CLI initialized successfully")

    except Exception as e:
        console.print(f"[red]Failed to initialize CLI: {e}[/red]")
        raise typer.Exit(1)


def handle_error(operation: str, error: Exception):
    """Handle and log errors consistently."""
    error_msg = f"Failed to {operation}: {error}"
    if logger:
        logger.error(error_msg, exc_info=True)
    console.print(f"[red]{error_msg}[/red]")

    if isinstance(error, IngestionUnavailable):
        for source, reason in error.attempts:
            console.print(f"  [yellow]{source}[/yellow]: {reason}")

    raise typer.Exit(1)


def _parse_symbols(symbols: Optional[str]) -> List[str]:
    if not symbols:
        symbols = config_manager.get('data.symbols', [])
    if isinstance(symbols, str):
        symbols = symbols.split(',')
    return [s.strip().upper() for s in symbols if s.strip()]


def _display_decimals() -> dict:
    return {
        'price_decimals': config_manager.get('reporting.price_decimals', 2),
        'r2_decimals': config_manager.get('reporting.r2_decimals', 4),
    }


def _print_result(result: PipelineResult, forecast_rows: int = 5):
    """Render one pipeline result as Rich tables."""
    console.print(f"\n[bold]{result.symbol}[/bold] ({result.source}, {result.raw_records:,} raw rows)")

    report_table = Table(title="Cleaning Report")
    report_table.add_column("Correction", style="cyan")
    report_table.add_column("Count", style="green")
    for name, count in result.cleaning_report.to_dict().items():
        report_table.add_row(name.replace('_', ' ').title(), f"{count:,}")
    console.print(report_table)

    summary_table = Table(title="Series Summary")
    summary_table.add_column("Statistic", style="cyan")
    summary_table.add_column("Value", style="green")
    for name, value in result.summary.to_dict().items():
        if isinstance(value, int):
            text = f"{value:,}"
        elif name in RATIO_STATISTICS:
            text = f"{value:.4f}"
        else:
            text = f"{value:,.2f}"
        summary_table.add_row(name.replace('_', ' ').title(), text)
    console.print(summary_table)

    metrics = round_for_display(result.metrics, **_display_decimals())
    metrics_table = Table(title="Model Accuracy")
    for col in ['Model', 'Split', 'MSE', 'RMSE', 'R2', 'MAE']:
        metrics_table.add_column(col, style="cyan" if col in ('Model', 'Split') else "green")
    for row in metrics.itertuples(index=False):
        r2 = "undefined" if row.r2 is None or row.r2 != row.r2 else f"{row.r2:.4f}"
        metrics_table.add_row(row.model, row.split, f"{row.mse:.2f}", f"{row.rmse:.2f}", r2, f"{row.mae:.2f}")
    console.print(metrics_table)

    head = round_for_display(forecast_frame(result.forecast).head(forecast_rows), **_display_decimals())
    forecast_table = Table(title=f"Forecast (first {len(head)} of {len(result.forecast)} steps)")
    for col in ['Step', 'Linear', 'Quadratic', 'Ensemble']:
        forecast_table.add_column(col, style="green")
    for row in head.itertuples(index=False):
        forecast_table.add_row(str(row.step), f"{row.linear:.2f}", f"{row.quadratic:.2f}", f"{row.ensemble:.2f}")
    console.print(forecast_table)

    signal = result.signal
    colour = {'BUY': 'green', 'SELL': 'red'}.get(signal.action.value, 'yellow')
    rprint(f"\n[bold]Signal:[/bold] [{colour}]{signal.action.value}[/{colour}] "
           f"(confidence {signal.confidence}%)")
    rprint(f"Price {signal.reference_price:.2f} | Stop {signal.stop_price:.2f} "
           f"({signal.risk_pct:.2f}%) | Target {signal.target_price:.2f} ({signal.target_pct:.2f}%)")
    rationale = signal.rationale
    rprint(f"RSI {rationale.rsi_current:.2f} | Fast SMA {rationale.sma_fast_current:.2f} | "
           f"Slow SMA {rationale.sma_slow_current:.2f} | Volatility {rationale.volatility:.2f}")
    if rationale.conflict:
        rprint("[yellow]Bullish and bearish rules both fired; action set by tie-break[/yellow]")


def _export_result(pipeline: AnalyticsPipeline, result: PipelineResult, output_dir: Path):
    rows = config_manager.get('reporting.export_rows', 100)
    indicators_path = export_indicators_csv(
        result.frame,
        output_dir / f"{result.symbol}_indicators.csv",
        rows=rows,
        rsi_column=pipeline.engineer.rsi_column,
        volatility_column=pipeline.engineer.volatility_column,
    )
    forecast_path = export_forecast_csv(result.forecast, output_dir / f"{result.symbol}_forecast.csv")
    console.print(f"[green]✓[/green] Exported {indicators_path} and {forecast_path}")


@app.command()
def fetch(
    symbols: Optional[str] = typer.Option(
        None,
        "--symbols",
        "-s",
        help="Comma-separated list of symbols (e.g., 'GOOGL,AAPL')"
    ),
    source: Optional[str] = typer.Option(
        None,
        "--source",
        help="Data source ('auto', 'alpha_vantage' or 'stooq')"
    ),
    output_dir: Optional[str] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Directory for the raw CSV files (defaults to data.raw_dir)"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    )
):
    """Fetch raw daily bars and store them as CSV."""
    setup_globals(config, verbose)

    try:
        ingestor = DataIngestor(config_manager)

        table = Table(title="Data Ingestion Results")
        table.add_column("Symbol", style="cyan")
        table.add_column("Source", style="cyan")
        table.add_column("Rows", style="green")
        table.add_column("Date Range", style="green")
        table.add_column("File", style="green")

        for symbol in _parse_symbols(symbols):
            with console.status(f"[bold green]Fetching {symbol}..."):
                data, used_source = ingestor.fetch(symbol, source=source)
                path = ingestor.store_csv(data, symbol, output_dir)

            date_range = f"{data['date'].min():%Y-%m-%d} to {data['date'].max():%Y-%m-%d}"
            table.add_row(symbol, used_source, f"{len(data):,}", date_range, str(path))

        console.print("[green]✓[/green] Data fetch completed successfully")
        console.print(table)

    except Exception as e:
        handle_error("fetch data", e)


@app.command()
def analyze(
    symbols: Optional[str] = typer.Option(
        None,
        "--symbols",
        "-s",
        help="Comma-separated list of symbols (defaults to data.symbols)"
    ),
    csv: Optional[str] = typer.Option(
        None,
        "--csv",
        help="Analyse a local Date,Open,High,Low,Close,Volume CSV instead of fetching"
    ),
    source: Optional[str] = typer.Option(
        None,
        "--source",
        help="Data source ('auto', 'alpha_vantage', 'stooq' or 'csv')"
    ),
    export: Optional[str] = typer.Option(
        None,
        "--export",
        "-e",
        help="Directory to write indicator and forecast CSVs to"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    )
):
    """Run the full analysis and print cleaning, accuracy, forecast and signal."""
    setup_globals(config, verbose)

    try:
        pipeline = AnalyticsPipeline(config_manager)
        export_dir = Path(export) if export else None

        if csv:
            csv_path = Path(csv)
            with console.status(f"[bold green]Analysing {csv_path.name}..."):
                raw = pipeline.ingestor.load_csv_data(csv_path)
                results = {csv_path.stem.upper(): pipeline.run_frame(raw, symbol=csv_path.stem.upper(),
                                                                     source=DataIngestor.CSV)}
        else:
            symbol_list = _parse_symbols(symbols)
            if len(symbol_list) == 1:
                with console.status(f"[bold green]Analysing {symbol_list[0]}..."):
                    results = {symbol_list[0]: pipeline.run(symbol_list[0], source=source)}
            else:
                results = pipeline.run_batch(symbol_list, source=source)

        failures = 0
        for symbol, result in results.items():
            if not isinstance(result, PipelineResult):
                failures += 1
                console.print(f"[red]✗ {symbol}: {result}[/red]")
                continue

            _print_result(result)
            if export_dir:
                _export_result(pipeline, result, export_dir)

        if failures:
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except Exception as e:
        handle_error("analyze", e)


@app.command()
def config_info(
    section: Optional[str] = typer.Option(
        None,
        "--section",
        "-s",
        help="Show specific configuration section"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file"
    )
):
    """Display configuration information."""
    try:
        config_manager = ConfigManager(config_path=config)

        if section:
            if config_manager.get_section(section):
                console.print(f"[bold]Configuration - {section.title()}:[/bold]")
                console.print(config_manager.dump(section))
            else:
                console.print(f"[red]Section '{section}' not found[/red]")
                console.print(f"Available sections: {', '.join(config_manager.list_keys())}")
                raise typer.Exit(1)
        else:
            console.print("[bold]Configuration Overview:[/bold]")
            console.print(config_manager.dump())

    except typer.Exit:
        raise
    except Exception as e:
        handle_error("display configuration", e)


if __name__ == "__main__":
    app()
