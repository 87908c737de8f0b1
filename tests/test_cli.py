"""
Tests for the command-line interface.
"""

import numpy as np
import pandas as pd
import yaml
from typer.testing import CliRunner

from price_analytics import cli
from price_analytics.cli import app
from price_analytics.utils.config import ConfigManager

runner = CliRunner()


def write_price_csv(path, n_days=80):
    """Write a Date,Open,High,Low,Close,Volume file."""
    closes = 50 + 0.2 * np.arange(n_days)
    pd.DataFrame({
        'Date': pd.date_range('2024-01-01', periods=n_days, freq='D').strftime('%Y-%m-%d'),
        'Open': closes,
        'High': closes + 1,
        'Low': closes - 1,
        'Close': closes,
        'Volume': np.full(n_days, 5000),
    }).to_csv(path, index=False)
    return path


def write_quiet_config(directory):
    """Write a config that logs to a file only."""
    path = directory / 'config.yaml'
    path.write_text(yaml.dump({'logging': {'file': str(directory / 'run.log'), 'console': False}}))
    return path


class TestConfigInfo:
    """Test configuration display."""

    def test_section(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, ['config-info', '--section', 'signal'])

        assert result.exit_code == 0
        assert 'tie_break: hold' in result.output

    def test_unknown_section(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, ['config-info', '--section', 'nonexistent'])

        assert result.exit_code == 1
        assert 'not found' in result.output


class TestSymbolParsing:
    """Test symbol lists from options and configuration."""

    def test_single_symbol_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv('PRICE_ANALYTICS_DATA__SYMBOLS', 'googl')
        monkeypatch.setattr(cli, 'config_manager', ConfigManager())

        assert cli._parse_symbols(None) == ['GOOGL']

    def test_bare_string_in_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = ConfigManager()
        config.set('data.symbols', 'msft, aapl')
        monkeypatch.setattr(cli, 'config_manager', config)

        assert cli._parse_symbols(None) == ['MSFT', 'AAPL']
        assert cli._parse_symbols('googl,') == ['GOOGL']


class TestAnalyze:
    """Test the analyze command on local data."""

    def test_csv_with_export(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config_path = write_quiet_config(tmp_path)
        csv_path = write_price_csv(tmp_path / 'demo.csv')

        result = runner.invoke(app, ['analyze', '--csv', str(csv_path), '--export', str(tmp_path / 'out'),
                                     '--config', str(config_path)])

        assert result.exit_code == 0, result.output
        assert 'Signal' in result.output
        assert (tmp_path / 'out' / 'DEMO_indicators.csv').exists()
        forecast = pd.read_csv(tmp_path / 'out' / 'DEMO_forecast.csv')
        assert len(forecast) == 30

    def test_short_csv_fails(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config_path = write_quiet_config(tmp_path)
        csv_path = write_price_csv(tmp_path / 'short.csv', n_days=20)

        result = runner.invoke(app, ['analyze', '--csv', str(csv_path), '--config', str(config_path)])

        assert result.exit_code == 1
        assert 'Failed to analyze' in result.output
