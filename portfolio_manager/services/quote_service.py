"""
Market quote fetching.

One request per symbol, all in flight at once, and the batch waits for every
request to settle. Any transport or payload problem for a symbol degrades to
"no quote" for that symbol; nothing is raised past this module.
"""

import logging
import math
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable, Dict, Iterable, Optional
from urllib.parse import quote as url_quote

import requests
import yfinance as yf

from portfolio_manager.exceptions import QuoteFetchError
from portfolio_manager.models import Quote

logger = logging.getLogger(__name__)

YAHOO_CHART_URL = 'https://query1.finance.yahoo.com/v8/finance/chart/'

QUOTE_SOURCES = ('yahoo_chart', 'yfinance')

SettledCallback = Callable[[int, int], None]


def _as_price(value) -> Optional[float]:
    """Return a finite float, or None for missing/non-numeric/NaN values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def build_quote(symbol: str, price, previous_close, name: Optional[str] = None) -> Quote:
    """
    Build a Quote, deriving the day change from the previous close.

    Raises QuoteFetchError when the price is unusable. A missing or zero
    previous close yields a zero change instead of NaN/infinity.
    """
    current = _as_price(price)
    if current is None or current <= 0:
        raise QuoteFetchError(f"Invalid price for {symbol}: {price!r}")

    previous = _as_price(previous_close)
    if not previous:
        return Quote(symbol=symbol, price=current, name=name)

    change = current - previous
    return Quote(
        symbol=symbol,
        price=current,
        change=change,
        change_percent=change / previous * 100,
        name=name,
    )


class QuoteService:
    """
    Quote fetcher backed by either the Yahoo chart endpoint or yfinance.

    Args:
        source: 'yahoo_chart' (plain HTTP) or 'yfinance'
        api_url: Chart endpoint prefix; the upper-cased symbol is appended
        timeout: Per-request timeout in seconds
        batch_timeout: Deadline for a whole ``get_quotes`` fan-out; requests
            still outstanding are treated as absent
        max_workers: Upper bound on concurrent requests
    """

    def __init__(self, source: str = 'yahoo_chart', api_url: str = YAHOO_CHART_URL,
                 timeout: float = 10.0, batch_timeout: Optional[float] = 30.0,
                 max_workers: int = 16, session: Optional[requests.Session] = None):
        if source not in QUOTE_SOURCES:
            raise ValueError(f"Unknown quote source: {source}")
        self.source = source
        self.api_url = api_url
        self.timeout = timeout
        self.batch_timeout = batch_timeout
        self.max_workers = max_workers
        self.session = session or requests.Session()

    # --- Single symbol ---

    def _fetch_chart(self, symbol: str) -> Quote:
        url = f"{self.api_url}{url_quote(symbol)}"
        response = self.session.get(url, timeout=self.timeout, headers={'User-Agent': 'Mozilla/5.0'})
        response.raise_for_status()
        payload = response.json()

        try:
            meta = payload['chart']['result'][0]['meta']
        except (KeyError, IndexError, TypeError) as e:
            raise QuoteFetchError(f"Unexpected chart payload for {symbol}: {e.__class__.__name__}") from e

        previous_close = meta.get('previousClose') or meta.get('chartPreviousClose')
        return build_quote(
            meta.get('symbol') or symbol,
            meta.get('regularMarketPrice'),
            previous_close,
            meta.get('shortName') or meta.get('longName'),
        )

    def _fetch_yfinance(self, symbol: str) -> Quote:
        fast_info = yf.Ticker(symbol).fast_info
        return build_quote(
            symbol,
            getattr(fast_info, 'last_price', None),
            getattr(fast_info, 'previous_close', None),
        )

    def get_quote(self, symbol: str) -> Optional[Quote]:
        """Fetch one quote. Returns None on any failure; never raises."""
        symbol = (symbol or '').strip().upper()
        if not symbol:
            return None

        try:
            if self.source == 'yfinance':
                quote = self._fetch_yfinance(symbol)
            else:
                quote = self._fetch_chart(symbol)
            logger.debug(f"Quote for {symbol}: {quote.price}")
            return quote
        except QuoteFetchError as e:
            logger.warning(f"No usable quote for {symbol}: {e}")
        except (requests.exceptions.RequestException, ConnectionError, TimeoutError) as e:
            logger.warning(f"Network error fetching quote for {symbol}: {e.__class__.__name__}: {e}")
        except ValueError as e:
            logger.warning(f"Malformed quote response for {symbol}: {e}")
        except Exception:
            logger.exception(f"Unexpected error fetching quote for {symbol}")
        return None

    # --- Batch ---

    def get_quotes(self, symbols: Iterable[str],
                   on_settled: Optional[SettledCallback] = None) -> Dict[str, Quote]:
        """
        Fetch quotes for many symbols concurrently.

        Keys are upper-cased symbols; symbols without a quote are left out.
        ``on_settled(done, total)`` is called once per settled request.
        An empty input returns immediately without any request.
        """
        unique = sorted({s.strip().upper() for s in symbols if s and s.strip()})
        if not unique:
            return {}

        total = len(unique)
        quotes: Dict[str, Quote] = {}
        settled = 0
        logger.info(f"Fetching quotes for {total} symbols")

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, total),
                                      thread_name_prefix='quote')
        try:
            pending = {executor.submit(self.get_quote, symbol): symbol for symbol in unique}
            remaining = set(pending)
            deadline = None if self.batch_timeout is None else time.monotonic() + self.batch_timeout

            while remaining:
                timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
                done, remaining = wait(remaining, timeout=timeout, return_when=FIRST_COMPLETED)
                if not done:
                    break
                for future in done:
                    symbol = pending[future]
                    quote = future.result()
                    if quote is not None:
                        quotes[symbol] = quote
                    settled += 1
                    if on_settled is not None:
                        try:
                            on_settled(settled, total)
                        except Exception:
                            logger.exception("Quote progress callback failed")

            for future in remaining:
                logger.warning(f"Quote request for {pending[future]} timed out")
                future.cancel()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(f"Fetched {len(quotes)}/{total} quotes")
        return quotes
