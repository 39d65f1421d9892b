"""
Quote synchronization service.
Runs the dollar-rate, crypto and equity passes for one calendar day and
stores the results, reporting per-source status and per-item errors.
A failing source never blocks the others and sync() itself never raises.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from errors import ProviderError
from models import Asset, CRYPTO_TYPES, EQUITY_TYPES
from models.common import utc_now
from repositories import AssetRepository, DollarRateRepository, QuoteRepository
from services.common import run_best_effort
from services.market_data import CoinGeckoClient, DollarRatesClient, YahooQuoteClient

logger = logging.getLogger(__name__)


# Source key -> label used in pass-level error messages
SOURCE_LABELS = {
    "dolarapi": "Dollar rates",
    "coingecko": "CoinGecko",
    "yahoo": "Yahoo Finance",
}


@dataclass
class SyncReport:
    """Summary of one sync run."""
    updated: int = 0
    errors: List[str] = field(default_factory=list)
    sources: Dict[str, str] = field(
        default_factory=lambda: {source: "pending" for source in SOURCE_LABELS}
    )
    details: List[Dict] = field(default_factory=list)
    synced_at: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            'updated': self.updated,
            'errors': list(self.errors),
            'sources': dict(self.sources),
            'details': list(self.details),
            'syncedAt': self.synced_at.isoformat() if self.synced_at else None,
        }


class QuoteSyncService:
    """
    Keeps the daily Quote and DollarRate stores current.
    Provider clients and the day source are injectable for testing.
    """

    def __init__(
        self,
        yahoo: Optional[YahooQuoteClient] = None,
        coingecko: Optional[CoinGeckoClient] = None,
        dollar_rates: Optional[DollarRatesClient] = None,
        today_provider: Callable[[], date] = date.today
    ):
        self.yahoo = yahoo or YahooQuoteClient()
        self.coingecko = coingecko or CoinGeckoClient()
        self.dollar_rates = dollar_rates or DollarRatesClient()
        self.today_provider = today_provider

    def sync(self, today: Optional[date] = None) -> SyncReport:
        """
        Run all three passes for `today` (default: local calendar date).

        Returns:
            SyncReport; failures are listed in it, never raised
        """
        report = SyncReport()
        try:
            day = today or self.today_provider()
        except Exception as e:
            logger.error(f"Could not determine sync date: {e}")
            day = date.today()

        logger.info(f"Starting quote sync for {day}")

        outcome = run_best_effort({
            "dolarapi": lambda: self._sync_dollar_rates(day, report),
            "coingecko": lambda: self._sync_crypto(day, report),
            "yahoo": lambda: self._sync_equities(day, report),
        })

        for source in outcome.results:
            report.sources[source] = "ok"
        for source, error in outcome.errors.items():
            report.sources[source] = "error"
            report.errors.append(f"{SOURCE_LABELS[source]}: {error}")

        report.synced_at = utc_now()
        logger.info(
            f"Quote sync finished: {report.updated} rows updated, "
            f"{len(report.errors)} errors, sources={report.sources}"
        )
        return report

    def _sync_dollar_rates(self, day: date, report: SyncReport) -> int:
        rates = self.dollar_rates.fetch()
        stored = 0
        for rate in rates:
            DollarRateRepository.upsert(day, rate.rate_type, rate.buy_price, rate.sell_price)
            stored += 1
            report.updated += 1
        logger.info(f"Stored {stored} dollar rates for {day}")
        return stored

    def _store_quote(self, asset: Asset, day: date, price: float, report: SyncReport, source: str) -> bool:
        try:
            QuoteRepository.upsert(asset.id, day, price)
        except SQLAlchemyError as e:
            logger.error(f"Could not store quote for {asset.ticker}: {e}")
            report.errors.append(f"{source}: Could not store price for {asset.ticker}")
            return False
        report.updated += 1
        return True

    def _sync_crypto(self, day: date, report: SyncReport) -> int:
        assets = AssetRepository.get_by_types(CRYPTO_TYPES)

        coingecko_ids = []
        for asset in assets:
            if asset.coingecko_id and asset.coingecko_id not in coingecko_ids:
                coingecko_ids.append(asset.coingecko_id)

        prices = self.coingecko.fetch_prices(coingecko_ids) if coingecko_ids else {}

        stored = 0
        for asset in assets:
            if not asset.coingecko_id:
                report.errors.append(f"CoinGecko: {asset.ticker} has no coingeckoId configured")
                continue
            price = prices.get(asset.coingecko_id)
            if not price:
                report.errors.append(f"CoinGecko: No price for {asset.ticker} ({asset.coingecko_id})")
                continue
            if self._store_quote(asset, day, price, report, "CoinGecko"):
                stored += 1
        return stored

    def _sync_equities(self, day: date, report: SyncReport) -> int:
        assets = AssetRepository.get_by_types(EQUITY_TYPES)
        logger.info(f"[Sync] Found {len(assets)} Yahoo assets to sync")

        yahoo_tickers = []
        for asset in assets:
            if asset.yahoo_ticker and asset.yahoo_ticker not in yahoo_tickers:
                yahoo_tickers.append(asset.yahoo_ticker)

        prices, attempts = self.yahoo.fetch_quotes(yahoo_tickers) if yahoo_tickers else ({}, [])
        attempts_by_ticker = {attempt.ticker: attempt for attempt in attempts}

        stored = 0
        for asset in assets:
            price = prices.get(asset.yahoo_ticker) if asset.yahoo_ticker else None
            attempt = attempts_by_ticker.get(asset.yahoo_ticker)
            report.details.append({
                'ticker': asset.ticker,
                'yahooTicker': asset.yahoo_ticker,
                'price': price,
                'attempts': attempt.attempts if attempt else 0,
                'error': attempt.error if attempt else None,
            })

            if not asset.yahoo_ticker:
                report.errors.append(f"Yahoo: {asset.ticker} has no yahooTicker configured")
            elif not price:
                report.errors.append(f"Yahoo: No price for {asset.ticker} ({asset.yahoo_ticker})")
            elif self._store_quote(asset, day, price, report, "Yahoo"):
                stored += 1
        return stored

    def sync_asset(self, asset: Asset, today: Optional[date] = None) -> Optional[float]:
        """
        Fetch and store today's price for a single asset, e.g. right after it is created.
        Provider failures are logged, not raised.

        Returns:
            Stored price, or None
        """
        day = today or self.today_provider()
        price = None

        try:
            if asset.asset_type in EQUITY_TYPES and asset.yahoo_ticker:
                quote = self.yahoo.fetch_quote(asset.yahoo_ticker)
                price = quote.price if quote else None
            elif asset.asset_type in CRYPTO_TYPES and asset.coingecko_id:
                price = self.coingecko.fetch_prices([asset.coingecko_id]).get(asset.coingecko_id)
        except ProviderError as e:
            logger.error(f"[Asset] Failed to sync price for {asset.ticker}: {e}")
            return None

        if not price:
            return None

        try:
            QuoteRepository.upsert(asset.id, day, price)
        except SQLAlchemyError as e:
            logger.error(f"[Asset] Could not store price for {asset.ticker}: {e}")
            return None

        logger.info(f"[Asset] Synced price for {asset.ticker}: {price}")
        return price
