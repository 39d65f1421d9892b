"""
Repositories package for Cartera.
Provides data access layer for all database operations.
"""

from repositories.asset_repository import AssetRepository
from repositories.transaction_repository import TransactionRepository
from repositories.quote_repository import QuoteRepository
from repositories.dollar_rate_repository import DollarRateRepository

__all__ = [
    'AssetRepository',
    'TransactionRepository',
    'QuoteRepository',
    'DollarRateRepository',
]
