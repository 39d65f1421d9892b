"""
Portfolio service for calculating holdings, returns and net worth.
Holdings are re-derived from the full transaction ledger on every read and
valued in USD and ARS using the latest stored dollar rates.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from config import get_settings
from models import Asset, DollarRate, Transaction
from models.common import utc_now
from repositories import AssetRepository, DollarRateRepository, QuoteRepository, TransactionRepository

logger = logging.getLogger(__name__)


# Net quantities at or below this are float residue of a fully sold position
QUANTITY_EPSILON = 1e-9

DEFAULT_DOLLAR_RATE = 1.0


@dataclass
class Position:
    """Net position in one asset, aggregated from its transactions."""
    asset_id: int
    net_quantity: float
    total_bought: float
    total_cost_of_buys: float

    @property
    def avg_price(self) -> float:
        """Average buy price over the full buy history; 0 when nothing was bought."""
        if self.total_bought > 0:
            return self.total_cost_of_buys / self.total_bought
        return 0.0


@dataclass
class Holding:
    """A valued position, in the asset's home currency plus its USD equivalents."""
    asset_id: int
    ticker: str
    name: str
    asset_type: str
    currency: str
    quantity: float
    avg_price: float
    current_price: float
    current_value: float
    cost_basis: float
    return_pct: float
    return_abs: float
    has_quote: bool = True
    value_usd: float = 0.0
    cost_usd: float = 0.0

    def to_dict(self) -> Dict:
        return {
            'ticker': self.ticker,
            'name': self.name,
            'type': self.asset_type,
            'currency': self.currency,
            'quantity': self.quantity,
            'avgPrice': self.avg_price,
            'currentPrice': self.current_price,
            'currentValue': self.current_value,
            'costBasis': self.cost_basis,
            'valueUsd': self.value_usd,
            'returnPct': self.return_pct,
            'returnAbs': self.return_abs,
        }


@dataclass
class DollarRates:
    """ARS per USD for the three reference rates."""
    oficial: float = DEFAULT_DOLLAR_RATE
    mep: float = DEFAULT_DOLLAR_RATE
    blue: float = DEFAULT_DOLLAR_RATE

    def to_dict(self) -> Dict:
        return {'oficial': self.oficial, 'mep': self.mep, 'blue': self.blue}


@dataclass
class PortfolioSummary:
    """Portfolio totals in USD and ARS with the holdings behind them."""
    total_value_usd: float = 0.0
    total_cost_usd: float = 0.0
    total_return_abs: float = 0.0
    total_return_pct: float = 0.0
    total_value_ars: float = 0.0
    total_cost_ars: float = 0.0
    total_return_abs_ars: float = 0.0
    dollar_rates: DollarRates = field(default_factory=DollarRates)
    holdings: List[Holding] = field(default_factory=list)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def empty(cls) -> "PortfolioSummary":
        """Zero-valued summary for a user without holdings."""
        return cls()

    def to_dict(self) -> Dict:
        return {
            'totalValueUsd': self.total_value_usd,
            'totalCostUsd': self.total_cost_usd,
            'totalReturnAbs': self.total_return_abs,
            'totalReturnPct': self.total_return_pct,
            'totalValueArs': self.total_value_ars,
            'totalCostArs': self.total_cost_ars,
            'totalReturnAbsArs': self.total_return_abs_ars,
            'dollarRates': self.dollar_rates.to_dict(),
            'holdings': [holding.to_dict() for holding in self.holdings],
            'updatedAt': self.updated_at.isoformat(),
        }


# ==================== Holdings aggregation ====================

def aggregate_positions(transactions: Iterable[Transaction]) -> List[Position]:
    """
    Collapse a ledger into net-positive positions, one per asset.

    Sells only reduce quantity. Average cost always comes from every buy ever
    made, regardless of sell timing (no FIFO/LIFO lot matching). Fees are
    not part of cost.

    Args:
        transactions: A user's transactions, any order

    Returns:
        Positions with net quantity > 0, in first-seen asset order
    """
    rows = [
        {
            'asset_id': tx.asset_id,
            'is_buy': tx.transaction_type == 'buy',
            'quantity': float(tx.quantity),
            'unit_price': float(tx.unit_price),
        }
        for tx in transactions
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df['signed_quantity'] = df['quantity'].where(df['is_buy'], -df['quantity'])
    df['bought'] = df['quantity'].where(df['is_buy'], 0.0)
    df['buy_cost'] = (df['quantity'] * df['unit_price']).where(df['is_buy'], 0.0)

    grouped = df.groupby('asset_id', sort=False)[['signed_quantity', 'bought', 'buy_cost']].sum()

    positions = []
    for asset_id, row in grouped.iterrows():
        net_quantity = float(row['signed_quantity'])
        if net_quantity <= QUANTITY_EPSILON:
            continue
        positions.append(Position(
            asset_id=int(asset_id),
            net_quantity=net_quantity,
            total_bought=float(row['bought']),
            total_cost_of_buys=float(row['buy_cost']),
        ))
    return positions


class HoldingsAggregator:
    """Turns positions plus latest quotes into per-asset holdings."""

    @staticmethod
    def build_holding(position: Position, asset: Asset, latest_price: Optional[float]) -> Holding:
        """
        Value one position in its home currency.
        Without a stored quote the average price stands in, so return is 0.
        """
        avg_price = position.avg_price
        has_quote = latest_price is not None
        current_price = float(latest_price) if has_quote else avg_price
        quantity = position.net_quantity

        return_pct = (current_price - avg_price) / avg_price * 100 if avg_price > 0 else 0.0

        return Holding(
            asset_id=asset.id,
            ticker=asset.ticker,
            name=asset.name,
            asset_type=asset.asset_type.value,
            currency=asset.currency,
            quantity=quantity,
            avg_price=avg_price,
            current_price=current_price,
            current_value=quantity * current_price,
            cost_basis=quantity * avg_price,
            return_pct=return_pct,
            return_abs=(current_price - avg_price) * quantity,
            has_quote=has_quote,
        )

    @staticmethod
    def build_holdings(
        positions: Iterable[Position],
        assets: Mapping[int, Asset],
        latest_prices: Mapping[int, float]
    ) -> List[Holding]:
        holdings = []
        for position in positions:
            asset = assets.get(position.asset_id)
            if asset is None:
                logger.warning(f"Skipping position for unknown asset {position.asset_id}")
                continue
            holdings.append(HoldingsAggregator.build_holding(
                position, asset, latest_prices.get(position.asset_id)
            ))
        return holdings


# ==================== Valuation ====================

def latest_sell_prices(rates: Iterable[DollarRate]) -> Dict[str, float]:
    """Newest sell price per rate type, only for types that have a stored row."""
    latest_by_type: Dict[str, float] = {}
    for rate in rates:
        if rate.rate_type not in latest_by_type:
            latest_by_type[rate.rate_type] = float(rate.sell_price)
    return latest_by_type


def resolve_dollar_rates(rates: Iterable[DollarRate]) -> DollarRates:
    """
    Pick the newest sell price of each rate type.

    Args:
        rates: Rate rows ordered newest first

    Returns:
        DollarRates; oficial falls back to mep, and any missing rate is 1.0
    """
    latest_by_type = latest_sell_prices(rates)

    return DollarRates(
        oficial=latest_by_type.get('oficial') or latest_by_type.get('mep') or DEFAULT_DOLLAR_RATE,
        mep=latest_by_type.get('mep') or DEFAULT_DOLLAR_RATE,
        blue=latest_by_type.get('blue') or DEFAULT_DOLLAR_RATE,
    )


def value_portfolio(holdings: List[Holding], dollar_rates: DollarRates) -> PortfolioSummary:
    """
    Convert holdings to USD, sort them and roll up the totals.

    ARS holdings are divided by the oficial rate; USD holdings pass through.
    ARS totals are the USD totals times the oficial rate.
    """
    if not holdings:
        return PortfolioSummary.empty()

    oficial = dollar_rates.oficial
    total_value_usd = 0.0
    total_cost_usd = 0.0

    for holding in holdings:
        if holding.currency == "ARS":
            holding.value_usd = holding.current_value / oficial
            holding.cost_usd = holding.cost_basis / oficial
        else:
            holding.value_usd = holding.current_value
            holding.cost_usd = holding.cost_basis
        total_value_usd += holding.value_usd
        total_cost_usd += holding.cost_usd

    # sorted() is stable, ties keep ledger order
    ordered = sorted(holdings, key=lambda h: h.value_usd, reverse=True)

    total_return_abs = total_value_usd - total_cost_usd
    total_return_pct = total_return_abs / total_cost_usd * 100 if total_cost_usd > 0 else 0.0

    return PortfolioSummary(
        total_value_usd=total_value_usd,
        total_cost_usd=total_cost_usd,
        total_return_abs=total_return_abs,
        total_return_pct=total_return_pct,
        total_value_ars=total_value_usd * oficial,
        total_cost_ars=total_cost_usd * oficial,
        total_return_abs_ars=total_return_abs * oficial,
        dollar_rates=dollar_rates,
        holdings=ordered,
    )


class PortfolioService:
    """
    Service for portfolio valuation of one user's ledger.
    Assets, latest quotes and dollar rates are read concurrently.
    """

    def __init__(self, max_workers: int = 3):
        self.max_workers = max_workers

    def get_latest_dollar_rates(self) -> Dict[str, float]:
        """Stored sell price per rate type, without valuation defaults."""
        return latest_sell_prices(DollarRateRepository.get_latest(get_settings().dollar_rates_lookback))

    def get_summary(self, user_id: str) -> PortfolioSummary:
        """
        Value a user's portfolio.

        Args:
            user_id: Opaque authenticated-user identifier

        Returns:
            PortfolioSummary; an explicit zero summary when nothing is held
        """
        transactions = TransactionRepository.get_by_user(user_id)
        positions = aggregate_positions(transactions)
        if not positions:
            logger.info(f"No holdings for user {user_id}")
            return PortfolioSummary.empty()

        asset_ids = [position.asset_id for position in positions]
        lookback = get_settings().dollar_rates_lookback

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            assets_future = executor.submit(AssetRepository.get_by_ids, asset_ids)
            quotes_future = executor.submit(QuoteRepository.get_latest_for_assets, asset_ids)
            rates_future = executor.submit(DollarRateRepository.get_latest, lookback)

            assets = assets_future.result()
            quotes = quotes_future.result()
            rate_rows = rates_future.result()

        latest_prices = {asset_id: quote.price for asset_id, quote in quotes.items()}
        holdings = HoldingsAggregator.build_holdings(positions, assets, latest_prices)
        summary = value_portfolio(holdings, resolve_dollar_rates(rate_rows))

        logger.info(
            f"Valued {len(summary.holdings)} holdings for user {user_id}: "
            f"{summary.total_value_usd:.2f} USD"
        )
        return summary

    def get_top_holdings(self, user_id: str, limit: int = 5) -> List[Holding]:
        """Get the largest holdings by USD value."""
        return self.get_summary(user_id).holdings[:limit]
