"""
Data ingestion module for fetching daily OHLCV bars.

This module provides a unified interface for fetching OHLCV data from:
- Alpha Vantage (TIME_SERIES_DAILY_ADJUSTED JSON, needs an API key)
- Stooq (daily CSV download, no key)
- Local CSV files in the same Date,Open,High,Low,Close,Volume layout

The primary source is tried first; any failure (missing key, HTTP error,
throttling note, malformed payload) falls through to the fallback source. When
every source fails the caller gets a single IngestionUnavailable listing each
attempt and its reason.
"""

import io
import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import httpx
import pandas as pd

from price_analytics.exceptions import (
    IngestionUnavailable,
    InputShapeError,
    MalformedResponseError,
    MissingCredentialError,
    RateLimitedError,
    SourceError,
)
from price_analytics.utils.config import ConfigManager, resolve_config

logger = logging.getLogger(__name__)

OHLCV_COLUMNS = ['date', 'open', 'high', 'low', 'close', 'volume']
CSV_HEADER_PATTERN = re.compile(r'^\s*date,open,high,low,close,volume', re.IGNORECASE)
ALPHA_SERIES_KEY = 'Time Series (Daily)'
ALPHA_FIELDS = {
    '1. open': 'open',
    '2. high': 'high',
    '3. low': 'low',
    '5. adjusted close': 'close',
    '6. volume': 'volume',
}
STOOQ_MARKETS = ('us', 'uk', 'de', 'jp', 'hk', 'hu', 'pl')


def derive_stooq_ticker(symbol: str, market_suffix: str = 'us') -> str:
    """Map a plain ticker to Stooq's lower-case, market-suffixed form.

    Args:
        symbol: Ticker such as 'GOOGL' or 'BRK.B'
        market_suffix: Market code appended when the ticker has none

    Returns:
        Stooq ticker, e.g. 'googl.us' or 'brk-b.us'
    """
    ticker = symbol.strip().lower()
    head, _, tail = ticker.rpartition('.')
    if head and tail in STOOQ_MARKETS:
        return ticker
    return f"{ticker.replace('.', '-')}.{market_suffix}"


def standardize_ohlcv(data: pd.DataFrame) -> pd.DataFrame:
    """Coerce a raw frame to the pipeline's OHLCV column types.

    Dates are normalised to calendar days, prices to float and volume to a
    nullable integer. Row order is preserved; sorting is left to the caller.

    Args:
        data: Frame with at least the OHLCV columns (any case)

    Returns:
        New DataFrame with exactly the OHLCV columns

    Raises:
        InputShapeError: If a required column is missing or a date is unparseable
    """
    frame = data.copy()
    frame.columns = [str(col).strip().lower().replace(' ', '_') for col in frame.columns]

    missing = [col for col in OHLCV_COLUMNS if col not in frame.columns]
    if missing:
        raise InputShapeError(f"OHLCV data missing required columns: {missing}")

    frame = frame[OHLCV_COLUMNS].reset_index(drop=True)

    try:
        frame['date'] = pd.to_datetime(frame['date']).dt.normalize()
    except (ValueError, TypeError) as e:
        raise InputShapeError(f"Unparseable date column: {e}") from e

    for col in ['open', 'high', 'low', 'close']:
        frame[col] = pd.to_numeric(frame[col], errors='coerce').astype(float)

    volume = pd.to_numeric(frame['volume'], errors='coerce')
    if (volume < 0).any():
        raise InputShapeError("Volume must be non-negative")
    frame['volume'] = volume.round().astype('Int64')

    return frame


class DataIngestor:
    """Fetches daily OHLCV bars with provider fallback."""

    ALPHA_VANTAGE = 'alpha_vantage'
    STOOQ = 'stooq'
    CSV = 'csv'

    def __init__(self, config: Union[Dict, ConfigManager, None] = None,
                 client: Optional[httpx.Client] = None):
        """Initialize data ingestor.

        Args:
            config: Configuration dict or ConfigManager instance
            client: Optional shared httpx client (a short-lived one is opened per request otherwise)
        """
        self.config = resolve_config(config)
        self.client = client

        self.data_config = self.config.get('data', {})
        self.ingestion_config = self.config.get('ingestion', {})
        self.alpha_config = self.ingestion_config.get('alpha_vantage', {})
        self.stooq_config = self.ingestion_config.get('stooq', {})

        self.source = self.data_config.get('source', 'auto')
        self.timeout = self.ingestion_config.get('timeout_seconds', 30.0)
        self.raw_dir = Path(self.data_config.get('raw_dir', 'data/raw'))

        logger.debug(f"DataIngestor initialized with source: {self.source}")

    @property
    def alpha_vantage_key(self) -> Optional[str]:
        """API key from config, falling back to ALPHA_VANTAGE_API_KEY."""
        return self.alpha_config.get('api_key') or os.environ.get('ALPHA_VANTAGE_API_KEY')

    def _get(self, source: str, url: str, params: Dict[str, str]) -> httpx.Response:
        """Issue a GET and translate transport failures into SourceError."""
        client = self.client or httpx.Client(timeout=self.timeout, follow_redirects=True)
        try:
            response = client.get(url, params=params)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            raise SourceError(source, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SourceError(source, f"request failed: {e}") from e
        finally:
            if self.client is None:
                client.close()

    def fetch_alpha_vantage(self, symbol: str) -> pd.DataFrame:
        """Fetch adjusted daily bars from Alpha Vantage.

        Args:
            symbol: Ticker symbol

        Returns:
            DataFrame with OHLCV data, ascending by date; close is the adjusted close

        Raises:
            MissingCredentialError: If no API key is configured
            RateLimitedError: If the payload carries a throttling note
            MalformedResponseError: If the time-series key is absent or not a mapping of bars
            SourceError: On HTTP or API errors
        """
        api_key = self.alpha_vantage_key
        if not api_key:
            raise MissingCredentialError(self.ALPHA_VANTAGE)

        params = {
            'function': 'TIME_SERIES_DAILY_ADJUSTED',
            'symbol': symbol,
            'outputsize': self.alpha_config.get('outputsize', 'full'),
            'datatype': 'json',
            'apikey': api_key,
        }
        response = self._get(
            self.ALPHA_VANTAGE,
            self.alpha_config.get('base_url', 'https://www.alphavantage.co/query'),
            params,
        )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(self.ALPHA_VANTAGE, "response is not JSON") from e

        return self.parse_alpha_vantage(payload)

    def parse_alpha_vantage(self, payload: Dict) -> pd.DataFrame:
        """Parse an Alpha Vantage daily-adjusted JSON payload.

        Args:
            payload: Decoded JSON response

        Returns:
            DataFrame with OHLCV data, ascending by date
        """
        if not isinstance(payload, dict):
            raise MalformedResponseError(self.ALPHA_VANTAGE, "payload is not an object")
        if payload.get('Error Message'):
            raise SourceError(self.ALPHA_VANTAGE, payload['Error Message'])
        for note_key in ('Note', 'Information'):
            if payload.get(note_key):
                raise RateLimitedError(self.ALPHA_VANTAGE, payload[note_key])

        series = payload.get(ALPHA_SERIES_KEY)
        if not series:
            raise MalformedResponseError(self.ALPHA_VANTAGE, f"missing '{ALPHA_SERIES_KEY}'")
        if not isinstance(series, dict) or not all(isinstance(bar, dict) for bar in series.values()):
            raise MalformedResponseError(self.ALPHA_VANTAGE, f"'{ALPHA_SERIES_KEY}' is not a mapping of bars")

        try:
            data = pd.DataFrame.from_dict(series, orient='index')
        except (ValueError, TypeError) as e:
            raise MalformedResponseError(self.ALPHA_VANTAGE, f"unreadable bars: {e}") from e

        missing = [field for field in ALPHA_FIELDS if field not in data.columns]
        if missing:
            raise MalformedResponseError(self.ALPHA_VANTAGE, f"bars missing fields {missing}")

        data = data[list(ALPHA_FIELDS)].rename(columns=ALPHA_FIELDS)
        data.index.name = 'date'
        data = data.reset_index()

        data = standardize_ohlcv(data)
        data = data.sort_values('date', kind='stable').reset_index(drop=True)

        logger.debug(f"Parsed {len(data)} Alpha Vantage bars")
        return data

    def fetch_stooq(self, symbol: str) -> pd.DataFrame:
        """Fetch daily bars from the Stooq CSV endpoint.

        Args:
            symbol: Ticker symbol (mapped with derive_stooq_ticker)

        Returns:
            DataFrame with OHLCV data, ascending by date
        """
        ticker = derive_stooq_ticker(symbol, self.stooq_config.get('market_suffix', 'us'))
        response = self._get(
            self.STOOQ,
            self.stooq_config.get('base_url', 'https://stooq.com/q/d/l/'),
            {'s': ticker, 'i': 'd'},
        )
        return self.parse_ohlcv_csv(response.text, source=self.STOOQ)

    def parse_ohlcv_csv(self, text: str, source: str = CSV) -> pd.DataFrame:
        """Parse Date,Open,High,Low,Close,Volume CSV text.

        Rows whose close is not numeric are dropped.

        Args:
            text: CSV document including its header line
            source: Source name used in error messages

        Returns:
            DataFrame with OHLCV data, ascending by date

        Raises:
            MalformedResponseError: If the header does not match
        """
        text = text.strip()
        header = text.splitlines()[0] if text else ''
        if not CSV_HEADER_PATTERN.match(header):
            raise MalformedResponseError(source, f"unexpected CSV header: {header[:60]!r}")

        try:
            data = pd.read_csv(io.StringIO(text))
        except pd.errors.ParserError as e:
            raise MalformedResponseError(source, f"unreadable CSV: {e}") from e
        data.columns = [col.strip().lower() for col in data.columns]
        data['close'] = pd.to_numeric(data['close'], errors='coerce')

        dropped = int(data['close'].isna().sum())
        if dropped:
            logger.warning(f"{source}: dropping {dropped} rows with non-numeric close")
        data = data.dropna(subset=['close'])

        data = standardize_ohlcv(data)
        data = data.sort_values('date', kind='stable').reset_index(drop=True)

        logger.debug(f"Parsed {len(data)} {source} bars")
        return data

    def load_csv_data(self, csv_path: Union[str, Path]) -> pd.DataFrame:
        """Load OHLCV data from a local CSV file.

        Args:
            csv_path: Path to a Date,Open,High,Low,Close,Volume CSV

        Returns:
            DataFrame with OHLCV data

        Raises:
            FileNotFoundError: If the file does not exist
        """
        csv_path = Path(csv_path)
        if not csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {csv_path}")

        data = self.parse_ohlcv_csv(csv_path.read_text(encoding='utf-8'), source=self.CSV)
        logger.info(f"Loaded {len(data)} rows from {csv_path}")
        return data

    def _source_chain(self, source: str) -> List[str]:
        if source == 'auto':
            return [self.ALPHA_VANTAGE, self.STOOQ]
        if source in (self.ALPHA_VANTAGE, self.STOOQ):
            return [source]
        raise ValueError(f"Unsupported data source: {source}")

    def fetch(self, symbol: str, source: Optional[str] = None) -> Tuple[pd.DataFrame, str]:
        """Fetch bars for one symbol, falling back between providers.

        Args:
            symbol: Ticker symbol
            source: 'auto', 'alpha_vantage' or 'stooq' (defaults to data.source)

        Returns:
            Tuple of (OHLCV DataFrame ascending by date, name of the source used)

        Raises:
            IngestionUnavailable: If every attempted source failed
        """
        source = source or self.source
        fetchers = {
            self.ALPHA_VANTAGE: self.fetch_alpha_vantage,
            self.STOOQ: self.fetch_stooq,
        }
        attempts = []

        for name in self._source_chain(source):
            try:
                data = fetchers[name](symbol)
            except (SourceError, InputShapeError) as e:
                reason = getattr(e, 'reason', str(e))
                attempts.append((name, reason))
                logger.warning(f"Source {name} failed for {symbol}: {reason}")
                continue

            if data.empty:
                attempts.append((name, "no rows returned"))
                logger.warning(f"Source {name} returned no rows for {symbol}")
                continue

            if attempts:
                logger.info(f"Fell back to {name} for {symbol} after {len(attempts)} failed source(s)")
            logger.info(f"Fetched {len(data)} bars for {symbol} from {name}")
            return data, name

        raise IngestionUnavailable(symbol, attempts)

    def store_csv(self, data: pd.DataFrame, symbol: str,
                  output_dir: Optional[Union[str, Path]] = None) -> Path:
        """Write bars to <output_dir>/<SYMBOL>.csv in the loader's layout.

        Args:
            data: OHLCV DataFrame
            symbol: Ticker used for the file name
            output_dir: Target directory (defaults to data.raw_dir)

        Returns:
            Path of the written file
        """
        output_dir = Path(output_dir) if output_dir else self.raw_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / f"{symbol.upper()}.csv"

        export = data[OHLCV_COLUMNS].copy()
        export['date'] = pd.to_datetime(export['date']).dt.strftime('%Y-%m-%d')
        export.columns = [col.title() for col in export.columns]
        export.to_csv(output_path, index=False)

        logger.info(f"Stored {len(export)} bars for {symbol} in {output_path}")
        return output_path
