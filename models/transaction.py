"""
Transaction model - a buy/sell event owned by one user.
"""

from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field

from models.common import utc_now


class Transaction(SQLModel, table=True):
    """Represents a buy/sell transaction for an asset."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    asset_id: int = Field(foreign_key="asset.id", ondelete="RESTRICT", index=True)
    transaction_date: date = Field(index=True)
    transaction_type: str  # "buy" or "sell"
    quantity: float
    unit_price: float  # In the asset's home currency
    fee: float = Field(default=0.0)  # Informational, not part of cost basis
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
