from datetime import date

import pytest

from errors import ConflictError
from models import Asset, AssetType, DollarRate, Quote, Transaction
from repositories import AssetRepository, DollarRateRepository, QuoteRepository, TransactionRepository


def test_same_ticker_allowed_across_types(make_asset):
    make_asset("AAPL", AssetType.cedear)
    make_asset("AAPL", AssetType.stock, "USD")

    assert len(AssetRepository.get_all()) == 2


def test_duplicate_ticker_and_type_conflicts(make_asset):
    make_asset("AAPL", AssetType.cedear)

    with pytest.raises(ConflictError):
        AssetRepository.add(Asset(ticker="AAPL", name="Apple", asset_type=AssetType.cedear))


def test_quote_upsert_overwrites_same_day(make_asset):
    asset = make_asset("GGAL", AssetType.arg_stock)

    QuoteRepository.upsert(asset.id, date(2024, 1, 2), 100)
    QuoteRepository.upsert(asset.id, date(2024, 1, 2), 110)
    QuoteRepository.upsert(asset.id, date(2024, 1, 3), 120)

    assert QuoteRepository.count() == 2
    assert QuoteRepository.get_by_date(asset.id, date(2024, 1, 2)).price == 110
    assert QuoteRepository.get_latest(asset.id).price == 120
    assert [q.price for q in QuoteRepository.get_history(asset.id)] == [120, 110]


def test_latest_quotes_for_several_assets(make_asset):
    a = make_asset("A")
    b = make_asset("B")
    c = make_asset("C")
    QuoteRepository.upsert(a.id, date(2024, 1, 2), 1)
    QuoteRepository.upsert(a.id, date(2024, 1, 5), 2)
    QuoteRepository.upsert(b.id, date(2024, 1, 3), 3)

    latest = QuoteRepository.get_latest_for_assets([a.id, b.id, c.id])

    assert {asset_id: quote.price for asset_id, quote in latest.items()} == {a.id: 2, b.id: 3}


def test_dollar_rate_upsert_and_latest(db):
    DollarRateRepository.upsert(date(2024, 1, 2), "oficial", 900, 950)
    DollarRateRepository.upsert(date(2024, 1, 3), "oficial", 910, 960)
    DollarRateRepository.upsert(date(2024, 1, 3), "oficial", 920, 970)

    rows = DollarRateRepository.get_latest(10)

    assert DollarRateRepository.count() == 2
    assert [(r.rate_date, r.sell_price) for r in rows] == [(date(2024, 1, 3), 970), (date(2024, 1, 2), 950)]


def test_delete_asset_with_transactions_is_restricted(make_asset, make_transaction):
    asset = make_asset("GGAL", AssetType.arg_stock)
    make_transaction("u1", asset.id, "buy", 1, 100)

    with pytest.raises(ConflictError):
        AssetRepository.delete(asset.id)

    assert AssetRepository.get_by_id(asset.id) is not None


def test_delete_asset_cascades_quotes(make_asset):
    asset = make_asset("GGAL", AssetType.arg_stock)
    QuoteRepository.upsert(asset.id, date(2024, 1, 2), 100)

    assert AssetRepository.delete(asset.id) is True
    assert QuoteRepository.count() == 0
    assert AssetRepository.delete(asset.id) is False


def test_transactions_by_user_newest_first(make_asset, make_transaction):
    asset = make_asset("X")
    make_transaction("u1", asset.id, "buy", 1, 10, day=date(2024, 1, 1))
    make_transaction("u1", asset.id, "buy", 2, 10, day=date(2024, 2, 1))
    make_transaction("u2", asset.id, "buy", 3, 10)

    assert [t.quantity for t in TransactionRepository.get_by_user("u1")] == [2, 1]


def test_get_by_types(make_asset):
    make_asset("BTC", AssetType.crypto, "USD")
    make_asset("USDC", AssetType.stablecoin, "USD")
    make_asset("GGAL", AssetType.arg_stock)

    tickers = [a.ticker for a in AssetRepository.get_by_types([AssetType.crypto, AssetType.stablecoin])]

    assert tickers == ["BTC", "USDC"]


def test_every_repository_stores_timestamped_rows(make_asset, make_transaction):
    asset = make_asset("GGAL", AssetType.arg_stock)
    transaction = make_transaction("u1", asset.id, "buy", 1, 100)
    QuoteRepository.upsert(asset.id, date(2024, 1, 2), 100)
    DollarRateRepository.upsert(date(2024, 1, 2), "blue", 1100, 1150)

    assert asset.created_at is not None
    assert transaction.created_at is not None
    assert QuoteRepository.get_latest(asset.id).created_at is not None
    assert DollarRateRepository.get_latest(1)[0].created_at is not None


def test_model_timestamps_are_timezone_aware():
    rows = [
        Asset(ticker="X", name="X", asset_type=AssetType.stock, currency="USD"),
        Transaction(user_id="u1", asset_id=1, transaction_date=date(2024, 1, 2),
                    transaction_type="buy", quantity=1, unit_price=1),
        Quote(asset_id=1, quote_date=date(2024, 1, 2), price=1),
        DollarRate(rate_date=date(2024, 1, 2), rate_type="oficial", buy_price=1, sell_price=1),
    ]

    assert all(row.created_at.tzinfo is not None for row in rows)
