"""
Services package for Cartera.
Provides core business logic separated from presentation and data layers.
"""

from services.common import (
    default_yahoo_ticker,
    RateLimiter,
    FanOutResult,
    run_best_effort
)
from services.market_data import (
    YahooQuoteClient,
    CoinGeckoClient,
    DolarApiClient,
    BluelyticsClient,
    DollarRatesClient,
    EquityQuote,
    DollarQuote,
    TickerAttempt
)
from services.quote_sync import QuoteSyncService, SyncReport
from services.portfolio import (
    PortfolioService,
    PortfolioSummary,
    Holding,
    Position,
    DollarRates,
    HoldingsAggregator,
    aggregate_positions,
    latest_sell_prices,
    resolve_dollar_rates,
    value_portfolio
)
from services.ledger import (
    AssetService,
    TransactionService,
    AssetCreate,
    AssetUpdate,
    TransactionCreate
)

__all__ = [
    # Common utilities
    'default_yahoo_ticker',
    'RateLimiter',
    'FanOutResult',
    'run_best_effort',
    # Provider clients
    'YahooQuoteClient',
    'CoinGeckoClient',
    'DolarApiClient',
    'BluelyticsClient',
    'DollarRatesClient',
    'EquityQuote',
    'DollarQuote',
    'TickerAttempt',
    # Quote sync
    'QuoteSyncService',
    'SyncReport',
    # Portfolio valuation
    'PortfolioService',
    'PortfolioSummary',
    'Holding',
    'Position',
    'DollarRates',
    'HoldingsAggregator',
    'aggregate_positions',
    'latest_sell_prices',
    'resolve_dollar_rates',
    'value_portfolio',
    # Ledger
    'AssetService',
    'TransactionService',
    'AssetCreate',
    'AssetUpdate',
    'TransactionCreate',
]
