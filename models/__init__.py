"""
Database models for Cartera.
All SQLModel table definitions are centralized here.
"""

from models.asset import Asset, AssetType, EQUITY_TYPES, CRYPTO_TYPES
from models.transaction import Transaction
from models.quote import Quote
from models.dollar_rate import DollarRate

__all__ = [
    'Asset',
    'AssetType',
    'EQUITY_TYPES',
    'CRYPTO_TYPES',
    'Transaction',
    'Quote',
    'DollarRate',
]
