"""
Asset model - a trackable instrument shared by all users.
"""

from enum import Enum
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field, UniqueConstraint

from models.common import utc_now


class AssetType(str, Enum):
    """Instrument families; each maps to one quote provider."""
    cedear = "cedear"
    arg_stock = "arg_stock"
    stock = "stock"
    crypto = "crypto"
    stablecoin = "stablecoin"


EQUITY_TYPES = (AssetType.cedear, AssetType.arg_stock, AssetType.stock)
CRYPTO_TYPES = (AssetType.crypto, AssetType.stablecoin)


class Asset(SQLModel, table=True):
    """Represents an instrument. The same ticker may exist as a CEDEAR and as a stock."""
    __table_args__ = (UniqueConstraint("ticker", "asset_type", name="unique_ticker_type"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    ticker: str = Field(index=True)  # e.g., "AAPL", "GGAL", "BTC"
    name: str
    asset_type: AssetType
    currency: str = Field(default="ARS")  # "ARS" or "USD"
    yahoo_ticker: Optional[str] = Field(default=None)  # e.g., "AAPL.BA"
    coingecko_id: Optional[str] = Field(default=None)  # e.g., "bitcoin"
    underlying_ticker: Optional[str] = Field(default=None)  # CEDEAR only
    conversion_ratio: Optional[float] = Field(default=None)  # CEDEAR only
    created_at: datetime = Field(default_factory=utc_now)
