"""
Ledger service: asset catalogue and per-user transaction management.
Input is validated with SQLModel schemas; ownership is checked on every
transaction mutation.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from pydantic import field_validator
from sqlmodel import SQLModel, Field

from errors import NotFoundError
from models import Asset, AssetType, Transaction
from repositories import AssetRepository, QuoteRepository, TransactionRepository
from services.common import default_yahoo_ticker

logger = logging.getLogger(__name__)

CURRENCIES = ("ARS", "USD")
TRANSACTION_TYPES = ("buy", "sell")


# ==================== Schemas ====================

class AssetCreate(SQLModel):
    """Input for a new asset."""
    ticker: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    asset_type: AssetType
    currency: str = "ARS"
    yahoo_ticker: Optional[str] = None
    coingecko_id: Optional[str] = None
    underlying_ticker: Optional[str] = None
    conversion_ratio: Optional[float] = Field(default=None, gt=0)

    @field_validator("ticker")
    @classmethod
    def _upper_ticker(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("currency")
    @classmethod
    def _known_currency(cls, value: str) -> str:
        if value not in CURRENCIES:
            raise ValueError(f"currency must be one of {CURRENCIES}")
        return value


class AssetUpdate(SQLModel):
    """Partial asset update; only fields that are set are applied."""
    ticker: Optional[str] = Field(default=None, min_length=1, max_length=20)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    asset_type: Optional[AssetType] = None
    currency: Optional[str] = None
    yahoo_ticker: Optional[str] = None
    coingecko_id: Optional[str] = None
    underlying_ticker: Optional[str] = None
    conversion_ratio: Optional[float] = Field(default=None, gt=0)

    @field_validator("ticker")
    @classmethod
    def _upper_ticker(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else value

    @field_validator("currency")
    @classmethod
    def _known_currency(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in CURRENCIES:
            raise ValueError(f"currency must be one of {CURRENCIES}")
        return value

    @field_validator("ticker", "name", "asset_type", "currency")
    @classmethod
    def _not_null(cls, value):
        # Runs only for fields the caller set; these columns are NOT NULL
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class TransactionCreate(SQLModel):
    """Input for a new or replaced transaction."""
    asset_id: int
    transaction_date: date
    transaction_type: str
    quantity: float = Field(gt=0)
    unit_price: float = Field(gt=0)
    fee: float = Field(default=0.0, ge=0)
    notes: Optional[str] = None

    @field_validator("transaction_type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value not in TRANSACTION_TYPES:
            raise ValueError(f"transaction_type must be one of {TRANSACTION_TYPES}")
        return value


def apply_type_defaults(values: Dict) -> Dict:
    """Plain stocks are always USD; a CEDEAR's underlying ticker defaults to its own."""
    if values['asset_type'] == AssetType.stock:
        values['currency'] = "USD"
    if values['asset_type'] == AssetType.cedear and not values.get('underlying_ticker'):
        values['underlying_ticker'] = values['ticker']
    return values


@dataclass
class AssetWithQuote:
    """An asset and its most recent stored price."""
    asset: Asset
    latest_price: Optional[float] = None
    quote_date: Optional[date] = None


# ==================== Services ====================

class AssetService:
    """Asset catalogue operations. Assets are shared by all users."""

    def __init__(self, sync_service=None):
        self._sync_service = sync_service

    @property
    def sync_service(self):
        if self._sync_service is None:
            from services.quote_sync import QuoteSyncService
            self._sync_service = QuoteSyncService()
        return self._sync_service

    def list_with_quotes(self) -> List[AssetWithQuote]:
        """All assets ordered by type and ticker, each with its latest price."""
        assets = AssetRepository.get_all()
        quotes = QuoteRepository.get_latest_for_assets([asset.id for asset in assets])
        result = []
        for asset in assets:
            quote = quotes.get(asset.id)
            result.append(AssetWithQuote(
                asset=asset,
                latest_price=quote.price if quote else None,
                quote_date=quote.quote_date if quote else None,
            ))
        return result

    def create(self, data: AssetCreate, sync_price: bool = True) -> AssetWithQuote:
        """
        Create an asset, filling provider defaults, then try to price it.

        Equity provider symbols default from the ticker, CEDEARs default their
        underlying ticker to their own, and plain stocks are always USD.

        Raises:
            ConflictError: if the (ticker, type) pair already exists
        """
        values = data.model_dump()
        values['yahoo_ticker'] = data.yahoo_ticker or default_yahoo_ticker(data.ticker, data.asset_type)
        apply_type_defaults(values)

        asset = AssetRepository.add(Asset(**values))
        logger.info(f"Created asset {asset.ticker} ({asset.asset_type.value})")

        if not sync_price:
            return AssetWithQuote(asset=asset)

        today = self.sync_service.today_provider()
        price = self.sync_service.sync_asset(asset, today)
        return AssetWithQuote(
            asset=asset,
            latest_price=price,
            quote_date=today if price else None,
        )

    def update(self, asset_id: int, data: AssetUpdate) -> Asset:
        """
        Raises:
            NotFoundError: if the asset does not exist
            ConflictError: if the change collides with another (ticker, type)
        """
        current = AssetRepository.get_by_id(asset_id)
        if current is None:
            raise NotFoundError("Asset not found")

        changes = data.model_dump(exclude_unset=True)
        values = {
            'ticker': changes.get('ticker', current.ticker),
            'asset_type': changes.get('asset_type', current.asset_type),
            'currency': changes.get('currency', current.currency),
            'underlying_ticker': changes.get('underlying_ticker', current.underlying_ticker),
        }
        apply_type_defaults(values)

        # A derived provider symbol follows ticker/type changes; an explicit one is kept
        derived = current.yahoo_ticker == default_yahoo_ticker(current.ticker, current.asset_type)
        if 'yahoo_ticker' not in changes and derived:
            values['yahoo_ticker'] = default_yahoo_ticker(values['ticker'], values['asset_type'])

        for column, value in values.items():
            if value != getattr(current, column):
                changes[column] = value

        asset = AssetRepository.update(asset_id, changes)
        if asset is None:
            raise NotFoundError("Asset not found")
        return asset

    def delete(self, asset_id: int) -> None:
        """
        Raises:
            NotFoundError: if the asset does not exist
            ConflictError: if transactions reference it
        """
        if not AssetRepository.delete(asset_id):
            raise NotFoundError("Asset not found")
        logger.info(f"Deleted asset {asset_id}")


class TransactionService:
    """Per-user ledger operations."""

    @staticmethod
    def _get_owned(user_id: str, transaction_id: int) -> Transaction:
        transaction = TransactionRepository.get_by_id(transaction_id)
        if transaction is None or transaction.user_id != user_id:
            raise NotFoundError("Not found")
        return transaction

    @staticmethod
    def _require_asset(asset_id: int) -> None:
        if AssetRepository.get_by_id(asset_id) is None:
            raise NotFoundError(f"Asset {asset_id} not found")

    def list(self, user_id: str) -> List[Transaction]:
        """A user's transactions, newest first."""
        return TransactionRepository.get_by_user(user_id)

    def create(self, user_id: str, data: TransactionCreate) -> Transaction:
        """
        Raises:
            NotFoundError: if the asset does not exist
        """
        self._require_asset(data.asset_id)
        transaction = TransactionRepository.add(Transaction(user_id=user_id, **data.model_dump()))
        logger.info(
            f"User {user_id} recorded {transaction.transaction_type} of "
            f"{transaction.quantity} @ {transaction.unit_price} (asset {transaction.asset_id})"
        )
        return transaction

    def update(self, user_id: str, transaction_id: int, data: TransactionCreate) -> Transaction:
        """
        Replace a transaction's fields.

        Raises:
            NotFoundError: if missing, owned by another user, or the asset does not exist
        """
        self._get_owned(user_id, transaction_id)
        self._require_asset(data.asset_id)
        transaction = TransactionRepository.update(transaction_id, data.model_dump())
        if transaction is None:
            raise NotFoundError("Not found")
        return transaction

    def delete(self, user_id: str, transaction_id: int) -> None:
        """
        Raises:
            NotFoundError: if missing or owned by another user
        """
        self._get_owned(user_id, transaction_id)
        TransactionRepository.delete(transaction_id)
        logger.info(f"User {user_id} deleted transaction {transaction_id}")
