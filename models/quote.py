"""
Quote model - one closing price per asset per calendar day.
"""

from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field, UniqueConstraint

from models.common import utc_now


class Quote(SQLModel, table=True):
    """Daily price snapshot, in the asset's home currency."""
    __table_args__ = (UniqueConstraint("asset_id", "quote_date", name="unique_asset_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    asset_id: int = Field(foreign_key="asset.id", ondelete="CASCADE", index=True)
    quote_date: date = Field(index=True)
    price: float
    created_at: datetime = Field(default_factory=utc_now)
