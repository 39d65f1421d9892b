"""
DollarRate model - USD/ARS buy/sell pair per rate type per day.
"""

from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field, UniqueConstraint

from models.common import utc_now


class DollarRate(SQLModel, table=True):
    """One row per (day, type): "oficial", "mep", "blue", "contadoconliqui", ..."""
    __table_args__ = (UniqueConstraint("rate_date", "rate_type", name="unique_date_type"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    rate_date: date = Field(index=True)
    rate_type: str
    buy_price: float
    sell_price: float
    created_at: datetime = Field(default_factory=utc_now)
