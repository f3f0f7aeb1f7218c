"""
Tests for the quote service.

No network: the HTTP session and yfinance are mocked throughout.
"""

import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from portfolio_manager.exceptions import QuoteFetchError
from portfolio_manager.services.quote_service import YAHOO_CHART_URL, QuoteService, build_quote


def chart_payload(symbol, price, previous_close=None, chart_previous_close=None, name=None):
    meta = {'symbol': symbol, 'regularMarketPrice': price}
    if previous_close is not None:
        meta['previousClose'] = previous_close
    if chart_previous_close is not None:
        meta['chartPreviousClose'] = chart_previous_close
    if name:
        meta['shortName'] = name
    return {'chart': {'result': [{'meta': meta}], 'error': None}}


def mock_response(payload=None, error=None):
    response = MagicMock()
    response.json.return_value = payload
    if error is not None:
        response.raise_for_status.side_effect = error
    return response


def session_for(responses):
    """Session whose GET answers by the symbol at the end of the URL."""
    session = MagicMock()

    def get(url, **kwargs):
        outcome = responses[url.rsplit('/', 1)[-1]]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    session.get.side_effect = get
    return session


class TestBuildQuote:
    """Tests for build_quote"""

    def test_change_from_previous_close(self):
        quote = build_quote('AAPL', 190.0, 185.0, 'Apple Inc.')

        assert quote.price == 190.0
        assert quote.change == pytest.approx(5.0)
        assert quote.change_percent == pytest.approx(5.0 / 185.0 * 100)
        assert quote.name == 'Apple Inc.'

    @pytest.mark.parametrize('previous', [None, 0, 'n/a'])
    def test_missing_or_zero_previous_close(self, previous):
        quote = build_quote('AAPL', 190.0, previous)
        assert quote.change == 0.0
        assert quote.change_percent == 0.0

    @pytest.mark.parametrize('price', [None, 0, -3, 'abc', float('nan'), True])
    def test_invalid_price(self, price):
        with pytest.raises(QuoteFetchError):
            build_quote('AAPL', price, 100.0)


class TestGetQuote:
    """Tests for single-symbol fetches from the chart endpoint."""

    def test_success(self):
        session = session_for({'AAPL': mock_response(chart_payload('AAPL', 190.0, 185.0, name='Apple Inc.'))})
        service = QuoteService(session=session, timeout=3)

        quote = service.get_quote('aapl')

        assert quote.symbol == 'AAPL'
        assert quote.price == 190.0
        assert quote.to_dict()['changePercent'] == pytest.approx(2.7027, rel=1e-3)
        url = session.get.call_args[0][0]
        assert url == f"{YAHOO_CHART_URL}AAPL"
        assert session.get.call_args[1]['timeout'] == 3

    def test_chart_previous_close_fallback(self):
        session = session_for({'VOO': mock_response(chart_payload('VOO', 110.0, chart_previous_close=100.0))})

        quote = QuoteService(session=session).get_quote('VOO')

        assert quote.change == pytest.approx(10.0)
        assert quote.change_percent == pytest.approx(10.0)

    def test_network_error_is_absent(self):
        session = session_for({'AAPL': requests.exceptions.ConnectionError('boom')})
        assert QuoteService(session=session).get_quote('AAPL') is None

    def test_http_error_is_absent(self):
        session = session_for({'AAPL': mock_response(error=requests.exceptions.HTTPError('404'))})
        assert QuoteService(session=session).get_quote('AAPL') is None

    def test_timeout_is_absent(self):
        session = session_for({'AAPL': requests.exceptions.Timeout('slow')})
        assert QuoteService(session=session).get_quote('AAPL') is None

    @pytest.mark.parametrize('payload', [
        {'chart': {'result': None, 'error': {'code': 'Not Found'}}},
        {'chart': {'result': []}},
        {},
        chart_payload('AAPL', None, 100.0),
    ])
    def test_malformed_payload_is_absent(self, payload):
        session = session_for({'AAPL': mock_response(payload)})
        assert QuoteService(session=session).get_quote('AAPL') is None

    def test_invalid_json_is_absent(self):
        response = MagicMock()
        response.json.side_effect = ValueError('not json')
        session = session_for({'AAPL': response})
        assert QuoteService(session=session).get_quote('AAPL') is None

    def test_blank_symbol(self):
        session = MagicMock()
        assert QuoteService(session=session).get_quote('  ') is None
        session.get.assert_not_called()


class TestGetQuotes:
    """Tests for the concurrent batch fetch."""

    def test_empty_batch_makes_no_requests(self):
        session = MagicMock()
        service = QuoteService(session=session)

        assert service.get_quotes([]) == {}
        session.get.assert_not_called()

    def test_partial_results(self):
        session = session_for({
            'AAPL': mock_response(chart_payload('AAPL', 190.0, 185.0)),
            'MSFT': mock_response(chart_payload('MSFT', 410.0, 400.0)),
            'BAD': requests.exceptions.ConnectionError('down'),
        })
        quotes = QuoteService(session=session).get_quotes(['AAPL', 'MSFT', 'BAD'])

        assert set(quotes) == {'AAPL', 'MSFT'}
        assert quotes['MSFT'].price == 410.0

    def test_case_duplicates_fetched_once(self):
        session = session_for({'AAPL': mock_response(chart_payload('AAPL', 190.0))})

        quotes = QuoteService(session=session).get_quotes(['aapl', 'AAPL', ' aapl '])

        assert list(quotes) == ['AAPL']
        assert session.get.call_count == 1

    def test_on_settled_counts_every_request(self):
        session = session_for({
            'AAPL': mock_response(chart_payload('AAPL', 190.0)),
            'BAD': requests.exceptions.ConnectionError('down'),
        })
        calls = []

        QuoteService(session=session).get_quotes(['AAPL', 'BAD'], on_settled=lambda done, total: calls.append((done, total)))

        assert sorted(calls) == [(1, 2), (2, 2)]

    def test_failing_progress_callback_does_not_lose_quotes(self):
        session = session_for({
            'AAPL': mock_response(chart_payload('AAPL', 190.0)),
            'MSFT': mock_response(chart_payload('MSFT', 410.0)),
        })
        calls = []

        def on_settled(done, total):
            calls.append(done)
            raise RuntimeError('progress sink closed')

        quotes = QuoteService(session=session).get_quotes(['AAPL', 'MSFT'], on_settled=on_settled)

        assert set(quotes) == {'AAPL', 'MSFT'}
        assert sorted(calls) == [1, 2]

    def test_batch_deadline_drops_slow_requests(self):
        release = threading.Event()
        fast = mock_response(chart_payload('AAPL', 190.0))

        def get(url, **kwargs):
            if url.endswith('SLOW'):
                release.wait(timeout=5)
                return mock_response(chart_payload('SLOW', 1.0))
            return fast

        session = MagicMock()
        session.get.side_effect = get
        service = QuoteService(session=session, batch_timeout=0.2)

        try:
            quotes = service.get_quotes(['AAPL', 'SLOW'])
        finally:
            release.set()

        assert set(quotes) == {'AAPL'}


class TestYfinanceSource:
    """Tests for the yfinance-backed source."""

    @patch('portfolio_manager.services.quote_service.yf.Ticker')
    def test_fast_info(self, mock_ticker):
        fast_info = MagicMock()
        fast_info.last_price = 100.0
        fast_info.previous_close = 95.0
        mock_ticker.return_value.fast_info = fast_info

        quote = QuoteService(source='yfinance').get_quote('msft')

        mock_ticker.assert_called_once_with('MSFT')
        assert quote.price == 100.0
        assert quote.change == pytest.approx(5.0)

    @patch('portfolio_manager.services.quote_service.yf.Ticker')
    def test_failure_is_absent(self, mock_ticker):
        mock_ticker.side_effect = Exception("API Error")
        assert QuoteService(source='yfinance').get_quote('MSFT') is None

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            QuoteService(source='bloomberg')
