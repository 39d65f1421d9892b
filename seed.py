"""
Seed script for Cartera.
Inserts the initial asset catalogue; pairs already present are skipped.
"""

import logging
from dotenv import load_dotenv

from db_engine import init_db
from errors import ConflictError
from models import AssetType
from services.ledger import AssetCreate, AssetService

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# (ticker, name, conversion ratio)
CEDEARS = [
    ("AAPL", "Apple", 10),
    ("GOOGL", "Google", 9),
    ("MSFT", "Microsoft", 5),
    ("MELI", "MercadoLibre", 2),
    ("TSLA", "Tesla", 15),
    ("NVDA", "Nvidia", 5),
    ("AMZN", "Amazon", 12),
    ("META", "Meta", 6),
]

ARG_STOCKS = [
    ("GGAL", "Grupo Financiero Galicia"),
    ("YPFD", "YPF"),
    ("PAMP", "Pampa Energia"),
]

# (ticker, name, coingecko id)
CRYPTO = [
    ("BTC", "Bitcoin", "bitcoin"),
    ("ETH", "Ethereum", "ethereum"),
    ("SOL", "Solana", "solana"),
]

STABLECOINS = [
    ("DAI", "DAI", "dai"),
    ("USDT", "Tether", "tether"),
    ("USDC", "USD Coin", "usd-coin"),
]


def initial_assets():
    """Build the catalogue as AssetCreate inputs."""
    assets = [
        AssetCreate(ticker=ticker, name=name, asset_type=AssetType.cedear,
                    currency="ARS", conversion_ratio=ratio)
        for ticker, name, ratio in CEDEARS
    ]
    assets += [
        AssetCreate(ticker=ticker, name=name, asset_type=AssetType.arg_stock, currency="ARS")
        for ticker, name in ARG_STOCKS
    ]
    assets += [
        AssetCreate(ticker=ticker, name=name, asset_type=AssetType.crypto,
                    currency="USD", coingecko_id=coingecko_id)
        for ticker, name, coingecko_id in CRYPTO
    ]
    assets += [
        AssetCreate(ticker=ticker, name=name, asset_type=AssetType.stablecoin,
                    currency="USD", coingecko_id=coingecko_id)
        for ticker, name, coingecko_id in STABLECOINS
    ]
    return assets


def seed(asset_service: AssetService = None) -> int:
    """
    Insert every catalogue asset that does not exist yet.

    Returns:
        Number of assets created
    """
    asset_service = asset_service or AssetService()
    created = 0
    for data in initial_assets():
        try:
            asset_service.create(data, sync_price=False)
            created += 1
        except ConflictError:
            logger.info(f"{data.ticker} ({data.asset_type.value}) already exists, skipping")
    logger.info(f"Seeded {created} assets")
    return created


if __name__ == "__main__":
    init_db()
    seed()
