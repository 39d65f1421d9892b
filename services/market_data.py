"""
Market data clients for equity quotes, crypto prices and dollar rates.
Each client talks to one external provider and fails independently.
Retries use tenacity; equity requests are paced by a RateLimiter.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote as url_quote

import requests
from tenacity import Retrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_incrementing

from config import get_settings
from errors import ProviderError, ProvidersExhaustedError, RateLimitedError
from services.common import RateLimiter

logger = logging.getLogger(__name__)


YAHOO_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
    "Origin": "https://finance.yahoo.com",
    "Referer": "https://finance.yahoo.com/",
}

JSON_HEADERS = {"Accept": "application/json"}

RATE_LIMIT_MARKERS = ("Too Many Requests", "Edge: Too Many")

# DolarAPI calls the MEP rate "bolsa"
DOLARAPI_TYPE_ALIASES = {"bolsa": "mep"}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ==================== Equity quotes ====================

@dataclass
class EquityQuote:
    """Latest price for one equity symbol, in the listing currency."""
    ticker: str
    price: float
    currency: str
    name: str


@dataclass
class TickerAttempt:
    """Per-ticker record of a quote fetch, kept for sync observability."""
    ticker: str
    attempts: int = 0
    price: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'ticker': self.ticker,
            'attempts': self.attempts,
            'price': self.price,
            'error': self.error,
        }


def parse_chart_meta(ticker: str, data: Dict) -> Optional[EquityQuote]:
    """
    Extract the price from a chart response.

    Uses regularMarketPrice, then previousClose, then chartPreviousClose.
    Returns None when the response carries no usable price.
    """
    try:
        meta = data["chart"]["result"][0]["meta"]
    except (KeyError, IndexError, TypeError):
        meta = None

    if not meta:
        logger.error(f"[Yahoo] No meta for {ticker}: {str(data)[:300]}")
        return None

    price = None
    for key in ("regularMarketPrice", "previousClose", "chartPreviousClose"):
        if meta.get(key) is not None:
            price = meta[key]
            break

    if not _is_number(price) or price <= 0:
        logger.error(f"[Yahoo] No price for {ticker}, meta: {str(meta)[:300]}")
        return None

    return EquityQuote(
        ticker=ticker,
        price=float(price),
        currency=meta.get("currency") or "ARS",
        name=meta.get("longName") or meta.get("shortName") or ticker,
    )


class YahooQuoteClient:
    """
    Client for the Yahoo chart endpoint, one symbol per request.
    Requests are sequential and paced; rate-limited or failed requests are
    retried a bounded number of times before the ticker is given up.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
        chart_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        error_delay: Optional[float] = None
    ):
        settings = get_settings()
        self.session = session or requests.Session()
        self.sleep = sleep
        self.rate_limiter = rate_limiter or RateLimiter(
            max_calls=1, period=settings.yahoo_request_delay, sleep=sleep
        )
        self.chart_url = chart_url or settings.yahoo_chart_url
        self.timeout = timeout if timeout is not None else settings.yahoo_timeout
        self.max_retries = max_retries if max_retries is not None else settings.yahoo_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.yahoo_backoff_base
        self.error_delay = error_delay if error_delay is not None else settings.yahoo_error_delay
        self._rate_limit_wait = wait_incrementing(start=self.backoff_base, increment=self.backoff_base)

    def _wait(self, retry_state: RetryCallState) -> float:
        """Attempt n after a rate limit waits n * base; other failures wait a fixed delay."""
        error = retry_state.outcome.exception()
        if isinstance(error, RateLimitedError):
            return self._rate_limit_wait(retry_state)
        return self.error_delay

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"[Yahoo] Attempt {retry_state.attempt_number} failed ({error}), "
            f"retrying in {retry_state.next_action.sleep:.1f}s"
        )

    def _request(self, ticker: str, record: TickerAttempt) -> Optional[EquityQuote]:
        """Perform one paced request. Raises ProviderError on retryable failures."""
        self.rate_limiter.acquire()
        record.attempts += 1
        url = self.chart_url.format(ticker=url_quote(ticker, safe=""))
        logger.info(f"[Yahoo] Fetching: {ticker} (attempt {record.attempts})")

        try:
            response = self.session.get(
                url,
                params={"interval": "1d", "range": "1d"},
                headers=YAHOO_HEADERS,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise ProviderError("Yahoo", f"timed out after {self.timeout}s for {ticker}") from e
        except requests.RequestException as e:
            raise ProviderError("Yahoo", f"request failed for {ticker}: {e}") from e

        text = response.text or ""
        if response.status_code == 429 or any(marker in text for marker in RATE_LIMIT_MARKERS):
            raise RateLimitedError("Yahoo", f"rate limited for {ticker}", status_code=429)

        if not response.ok:
            raise ProviderError(
                "Yahoo", f"HTTP {response.status_code} for {ticker}: {text[:200]}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("Yahoo", f"invalid JSON for {ticker}: {text[:200]}") from e

        return parse_chart_meta(ticker, data)

    def fetch_quote_detail(self, ticker: str) -> Tuple[Optional[EquityQuote], TickerAttempt]:
        """
        Fetch one symbol with retries.

        Returns:
            (quote or None, attempt record)
        """
        record = TickerAttempt(ticker=ticker)
        retryer = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait,
            retry=retry_if_exception_type(ProviderError),
            sleep=self.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            quote = retryer(self._request, ticker, record)
        except ProviderError as e:
            logger.error(f"[Yahoo] Giving up on {ticker} after {record.attempts} attempts: {e}")
            record.error = str(e)
            return None, record

        if quote is None:
            record.error = "no price in response"
            return None, record

        logger.info(f"[Yahoo] Success {ticker}: {quote.price} {quote.currency}")
        record.price = quote.price
        return quote, record

    def fetch_quote(self, ticker: str) -> Optional[EquityQuote]:
        """Fetch one symbol; None if no price could be obtained."""
        quote, _ = self.fetch_quote_detail(ticker)
        return quote

    def fetch_quotes(self, tickers: Sequence[str]) -> Tuple[Dict[str, float], List[TickerAttempt]]:
        """
        Fetch several symbols strictly one at a time.

        Returns:
            (symbol -> price for successful symbols only, per-symbol attempt records)
        """
        prices: Dict[str, float] = {}
        attempts: List[TickerAttempt] = []

        for ticker in tickers:
            quote, record = self.fetch_quote_detail(ticker)
            attempts.append(record)
            if quote is not None:
                prices[ticker] = quote.price

        return prices, attempts


# ==================== Crypto prices ====================

class CoinGeckoClient:
    """Client for the CoinGecko simple-price endpoint. All ids go in one request."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        settings = get_settings()
        self.session = session or requests.Session()
        self.url = url or settings.coingecko_url
        self.timeout = timeout if timeout is not None else settings.coingecko_timeout

    def fetch_prices(self, coingecko_ids: Sequence[str]) -> Dict[str, float]:
        """
        Fetch USD prices for provider ids.

        Args:
            coingecko_ids: Provider ids (e.g., "bitcoin", "usd-coin")

        Returns:
            id -> USD price; ids without a price are omitted

        Raises:
            ProviderError: on network failure, non-2xx status or unreadable body
        """
        if not coingecko_ids:
            return {}

        try:
            response = self.session.get(
                self.url,
                params={"ids": ",".join(coingecko_ids), "vs_currencies": "usd"},
                headers=JSON_HEADERS,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProviderError("CoinGecko", str(e)) from e

        if not response.ok:
            raise ProviderError("CoinGecko", str(response.status_code), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("CoinGecko", "invalid JSON") from e

        prices: Dict[str, float] = {}
        for coingecko_id in coingecko_ids:
            entry = data.get(coingecko_id) if isinstance(data, dict) else None
            price = entry.get("usd") if isinstance(entry, dict) else None
            if _is_number(price) and price > 0:
                prices[coingecko_id] = float(price)
            else:
                logger.warning(f"[CoinGecko] No price for {coingecko_id}")

        logger.info(f"[CoinGecko] Got {len(prices)}/{len(coingecko_ids)} prices")
        return prices


# ==================== Dollar rates ====================

@dataclass
class DollarQuote:
    """Buy/sell pair for one USD/ARS rate type."""
    rate_type: str
    buy_price: float
    sell_price: float


class DolarApiClient:
    """Primary rate provider. Response: [{casa, compra, venta}, ...]."""

    provider = "DolarAPI"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        settings = get_settings()
        self.session = session or requests.Session()
        self.url = url or settings.dolarapi_url
        self.timeout = timeout if timeout is not None else settings.fx_timeout

    def _get_json(self):
        try:
            response = self.session.get(self.url, headers=JSON_HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(self.provider, str(e)) from e

        if not response.ok:
            raise ProviderError(self.provider, str(response.status_code), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.provider, "invalid JSON") from e

    def fetch(self) -> List[DollarQuote]:
        data = self._get_json()
        if not isinstance(data, list):
            raise ProviderError(self.provider, "unexpected response shape")

        rates = []
        for entry in data:
            casa = entry.get("casa") if isinstance(entry, dict) else None
            buy, sell = (entry.get("compra"), entry.get("venta")) if casa else (None, None)
            if not casa or not _is_number(buy) or not _is_number(sell):
                logger.debug(f"[DolarAPI] Skipping incomplete entry: {entry}")
                continue
            rates.append(DollarQuote(
                rate_type=DOLARAPI_TYPE_ALIASES.get(casa, casa),
                buy_price=float(buy),
                sell_price=float(sell),
            ))
        return rates


class BluelyticsClient(DolarApiClient):
    """Fallback rate provider. Response: {oficial: {value_buy, value_sell}, blue: {...}}."""

    provider = "Bluelytics"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        super().__init__(session=session, url=url or get_settings().bluelytics_url, timeout=timeout)

    def fetch(self) -> List[DollarQuote]:
        data = self._get_json()
        if not isinstance(data, dict):
            raise ProviderError(self.provider, "unexpected response shape")

        rates = []
        for rate_type in ("oficial", "blue"):
            entry = data.get(rate_type)
            if not isinstance(entry, dict):
                continue
            buy, sell = entry.get("value_buy"), entry.get("value_sell")
            if _is_number(buy) and _is_number(sell):
                rates.append(DollarQuote(rate_type=rate_type, buy_price=float(buy), sell_price=float(sell)))
        return rates


@dataclass
class DollarRatesClient:
    """Fetches dollar rates from the primary provider, falling back on any failure."""
    primary: DolarApiClient = field(default_factory=DolarApiClient)
    fallback: DolarApiClient = field(default_factory=BluelyticsClient)

    def fetch(self) -> List[DollarQuote]:
        """
        Returns:
            Normalized rates, whichever provider supplied them

        Raises:
            ProviderError: when both providers fail
        """
        try:
            return self.primary.fetch()
        except ProviderError as primary_error:
            logger.warning(f"{self.primary.provider} failed, falling back to {self.fallback.provider}: {primary_error}")
            try:
                return self.fallback.fetch()
            except ProviderError as fallback_error:
                raise ProvidersExhaustedError(
                    "Dollar rates", [primary_error, fallback_error]
                ) from fallback_error
