"""
Tests for daily bar ingestion and provider fallback.

HTTP providers are exercised through an injected httpx client backed by
httpx.MockTransport, so no test touches the network.
"""

import json

import httpx
import pandas as pd
import pytest

from price_analytics.data.ingest import DataIngestor, derive_stooq_ticker, standardize_ohlcv
from price_analytics.exceptions import (
    IngestionUnavailable,
    InputShapeError,
    MalformedResponseError,
    MissingCredentialError,
    RateLimitedError,
    SourceError,
)

ALPHA_PAYLOAD = {
    'Meta Data': {'2. Symbol': 'GOOGL'},
    'Time Series (Daily)': {
        '2024-01-03': {
            '1. open': '140.0', '2. high': '141.5', '3. low': '139.0', '4. close': '140.5',
            '5. adjusted close': '140.25', '6. volume': '2100000',
        },
        '2024-01-02': {
            '1. open': '139.0', '2. high': '140.5', '3. low': '138.0', '4. close': '139.5',
            '5. adjusted close': '139.25', '6. volume': '2000000',
        },
    },
}

STOOQ_CSV = """Date,Open,High,Low,Close,Volume
2024-01-02,139.0,140.5,138.0,139.5,2000000
2024-01-03,140.0,141.5,139.0,140.5,2100000
2024-01-04,141.0,142.0,140.0,N/D,2200000
"""


def make_ingestor(handler, api_key='demo-key'):
    """Create an ingestor whose HTTP calls are answered by handler."""
    config = {
        'data': {'source': 'auto'},
        'ingestion': {'alpha_vantage': {'api_key': api_key}},
    }
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return DataIngestor(config, client=client)


class TestTickerDerivation:
    """Test Stooq ticker mapping."""

    @pytest.mark.parametrize('symbol,expected', [
        ('GOOGL', 'googl.us'),
        ('brk.b', 'brk-b.us'),
        ('VOD.UK', 'vod.uk'),
    ])
    def test_derive_stooq_ticker(self, symbol, expected):
        assert derive_stooq_ticker(symbol) == expected


class TestAlphaVantage:
    """Test the primary provider."""

    def test_parses_adjusted_close_in_ascending_order(self):
        ingestor = make_ingestor(lambda request: httpx.Response(200, json=ALPHA_PAYLOAD))

        data = ingestor.fetch_alpha_vantage('GOOGL')

        assert data['date'].tolist() == [pd.Timestamp('2024-01-02'), pd.Timestamp('2024-01-03')]
        assert data['close'].tolist() == [139.25, 140.25]
        assert data['volume'].tolist() == [2000000, 2100000]

    def test_request_parameters(self):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(200, json=ALPHA_PAYLOAD)

        make_ingestor(handler).fetch_alpha_vantage('GOOGL')

        assert seen['function'] == 'TIME_SERIES_DAILY_ADJUSTED'
        assert seen['outputsize'] == 'full'
        assert seen['apikey'] == 'demo-key'

    def test_missing_credential(self, monkeypatch):
        monkeypatch.delenv('ALPHA_VANTAGE_API_KEY', raising=False)
        ingestor = make_ingestor(lambda request: httpx.Response(200, json=ALPHA_PAYLOAD), api_key=None)

        with pytest.raises(MissingCredentialError):
            ingestor.fetch_alpha_vantage('GOOGL')

    def test_credential_from_environment(self, monkeypatch):
        monkeypatch.setenv('ALPHA_VANTAGE_API_KEY', 'env-key')
        ingestor = make_ingestor(lambda request: httpx.Response(200, json=ALPHA_PAYLOAD), api_key=None)

        assert ingestor.alpha_vantage_key == 'env-key'

    def test_rate_limit_note(self):
        payload = {'Note': 'Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute.'}
        ingestor = make_ingestor(lambda request: httpx.Response(200, json=payload))

        with pytest.raises(RateLimitedError):
            ingestor.fetch_alpha_vantage('GOOGL')

    def test_error_message(self):
        payload = {'Error Message': 'Invalid API call.'}
        ingestor = make_ingestor(lambda request: httpx.Response(200, json=payload))

        with pytest.raises(SourceError) as exc_info:
            ingestor.fetch_alpha_vantage('GOOGL')
        assert not isinstance(exc_info.value, RateLimitedError)

    def test_missing_series_key(self):
        ingestor = make_ingestor(lambda request: httpx.Response(200, json={'Meta Data': {}}))

        with pytest.raises(MalformedResponseError):
            ingestor.fetch_alpha_vantage('GOOGL')

    @pytest.mark.parametrize('series', [['oops'], 'oops', {'2024-01-02': 'oops'}])
    def test_series_of_wrong_shape(self, series):
        ingestor = make_ingestor(lambda request: httpx.Response(200, json={'Time Series (Daily)': series}))

        with pytest.raises(MalformedResponseError):
            ingestor.fetch_alpha_vantage('GOOGL')

    def test_http_error_status(self):
        ingestor = make_ingestor(lambda request: httpx.Response(503))

        with pytest.raises(SourceError, match='HTTP 503'):
            ingestor.fetch_alpha_vantage('GOOGL')


class TestStooq:
    """Test the fallback provider and CSV parsing."""

    def test_drops_non_numeric_close(self):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(200, text=STOOQ_CSV)

        data = make_ingestor(handler).fetch_stooq('GOOGL')

        assert seen == {'s': 'googl.us', 'i': 'd'}
        assert len(data) == 2
        assert data['close'].tolist() == [139.5, 140.5]

    def test_header_is_case_insensitive(self):
        ingestor = make_ingestor(lambda request: httpx.Response(200))

        data = ingestor.parse_ohlcv_csv(STOOQ_CSV.replace('Date,Open', 'DATE,OPEN'))

        assert len(data) == 2

    def test_unexpected_header(self):
        ingestor = make_ingestor(lambda request: httpx.Response(200, text='No data'))

        with pytest.raises(MalformedResponseError):
            ingestor.fetch_stooq('GOOGL')


class TestFallback:
    """Test provider fallback and the unavailable condition."""

    def test_falls_back_to_stooq(self):
        def handler(request):
            if 'alphavantage' in request.url.host:
                return httpx.Response(200, json={'Information': 'premium endpoint'})
            return httpx.Response(200, text=STOOQ_CSV)

        data, source = make_ingestor(handler).fetch('GOOGL')

        assert source == DataIngestor.STOOQ
        assert len(data) == 2

    def test_primary_used_when_available(self):
        def handler(request):
            if 'alphavantage' in request.url.host:
                return httpx.Response(200, json=ALPHA_PAYLOAD)
            raise AssertionError("fallback should not be called")

        _, source = make_ingestor(handler).fetch('GOOGL')

        assert source == DataIngestor.ALPHA_VANTAGE

    def test_malformed_series_falls_back(self):
        def handler(request):
            if 'alphavantage' in request.url.host:
                return httpx.Response(200, json={'Time Series (Daily)': ['oops']})
            return httpx.Response(200, text=STOOQ_CSV)

        data, source = make_ingestor(handler).fetch('GOOGL')

        assert source == DataIngestor.STOOQ
        assert data['close'].tolist() == [139.5, 140.5]

    def test_transport_error_falls_back(self):
        def handler(request):
            if 'alphavantage' in request.url.host:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, text=STOOQ_CSV)

        _, source = make_ingestor(handler).fetch('GOOGL')

        assert source == DataIngestor.STOOQ

    def test_both_sources_fail(self, monkeypatch):
        monkeypatch.delenv('ALPHA_VANTAGE_API_KEY', raising=False)
        ingestor = make_ingestor(lambda request: httpx.Response(500), api_key=None)

        with pytest.raises(IngestionUnavailable) as exc_info:
            ingestor.fetch('GOOGL')

        attempts = exc_info.value.attempts
        assert [source for source, _ in attempts] == [DataIngestor.ALPHA_VANTAGE, DataIngestor.STOOQ]
        assert attempts[0][1] == 'no API credential configured'
        assert attempts[1][1] == 'HTTP 500'

    def test_empty_result_counts_as_failure(self):
        header_only = "Date,Open,High,Low,Close,Volume\n"

        def handler(request):
            if 'alphavantage' in request.url.host:
                return httpx.Response(200, content=json.dumps({}).encode())
            return httpx.Response(200, text=header_only)

        with pytest.raises(IngestionUnavailable) as exc_info:
            make_ingestor(handler).fetch('GOOGL')

        assert exc_info.value.attempts[1] == (DataIngestor.STOOQ, 'no rows returned')


class TestLocalFiles:
    """Test CSV loading, storing and standardisation."""

    def test_store_and_load_round_trip(self, tmp_path):
        ingestor = make_ingestor(lambda request: httpx.Response(200, text=STOOQ_CSV))
        data = ingestor.fetch_stooq('GOOGL')

        path = ingestor.store_csv(data, 'googl', tmp_path)
        loaded = ingestor.load_csv_data(path)

        assert path.name == 'GOOGL.csv'
        pd.testing.assert_frame_equal(loaded, data)

    def test_missing_file(self, tmp_path):
        ingestor = make_ingestor(lambda request: httpx.Response(200))

        with pytest.raises(FileNotFoundError):
            ingestor.load_csv_data(tmp_path / 'missing.csv')

    def test_standardize_rejects_missing_columns(self):
        with pytest.raises(InputShapeError):
            standardize_ohlcv(pd.DataFrame({'date': ['2024-01-02'], 'close': [1.0]}))

    def test_standardize_rejects_negative_volume(self):
        frame = pd.DataFrame({
            'Date': ['2024-01-02'], 'Open': [1.0], 'High': [1.0], 'Low': [1.0], 'Close': [1.0], 'Volume': [-5],
        })

        with pytest.raises(InputShapeError):
            standardize_ohlcv(frame)
