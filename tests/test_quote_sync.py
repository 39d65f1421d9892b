from datetime import date

import requests

from conftest import FakeClock, FakeResponse, FakeSession, chart_payload
from models import AssetType
from repositories import DollarRateRepository, QuoteRepository
from services.common import RateLimiter
from services.market_data import (
    BluelyticsClient,
    CoinGeckoClient,
    DolarApiClient,
    DollarRatesClient,
    YahooQuoteClient,
)
from services.quote_sync import QuoteSyncService

TODAY = date(2024, 3, 15)

DOLARAPI = [
    {'casa': 'oficial', 'compra': 950, 'venta': 1000},
    {'casa': 'blue', 'compra': 1180, 'venta': 1200},
]


def build_service(yahoo_responses=(), coingecko_responses=(), dolarapi_responses=(), bluelytics_responses=()):
    clock = FakeClock()
    yahoo = YahooQuoteClient(
        session=FakeSession(*yahoo_responses),
        rate_limiter=RateLimiter(1, 1.0, clock=clock, sleep=clock.sleep),
        sleep=clock.sleep,
        chart_url="https://chart.test/{ticker}",
        timeout=15.0,
        max_retries=2,
        backoff_base=3.0,
        error_delay=1.5,
    )
    coingecko = CoinGeckoClient(session=FakeSession(*coingecko_responses), url="https://cg.test")
    dollar_rates = DollarRatesClient(
        primary=DolarApiClient(session=FakeSession(*dolarapi_responses), url="https://dolar.test"),
        fallback=BluelyticsClient(session=FakeSession(*bluelytics_responses), url="https://blue.test"),
    )
    return QuoteSyncService(yahoo=yahoo, coingecko=coingecko, dollar_rates=dollar_rates,
                            today_provider=lambda: TODAY)


def test_partial_equity_failure_still_reports_ok(make_asset):
    slow = make_asset("SLOW", AssetType.arg_stock, yahoo_ticker="SLOW.BA")
    good = make_asset("GOOD", AssetType.arg_stock, yahoo_ticker="GOOD.BA")
    service = build_service(
        yahoo_responses=[
            FakeResponse(payload=chart_payload(price=250)),
            requests.Timeout("slow"), requests.Timeout("slow"), requests.Timeout("slow"),
        ],
        dolarapi_responses=[FakeResponse(payload=DOLARAPI)],
    )

    report = service.sync()

    assert report.updated >= 1
    assert report.sources == {"dolarapi": "ok", "coingecko": "ok", "yahoo": "ok"}
    assert "Yahoo: No price for SLOW (SLOW.BA)" in report.errors
    assert QuoteRepository.get_latest(good.id).price == 250
    assert QuoteRepository.get_latest(slow.id) is None

    details = {d['ticker']: d for d in report.details}
    assert details["SLOW"]['attempts'] == 3
    assert details["GOOD"]['price'] == 250


def test_sync_is_idempotent_per_day(make_asset):
    btc = make_asset("BTC", AssetType.crypto, "USD", coingecko_id="bitcoin")

    for _ in range(2):
        service = build_service(
            coingecko_responses=[FakeResponse(payload={'bitcoin': {'usd': 65000}})],
            dolarapi_responses=[FakeResponse(payload=DOLARAPI)],
        )
        report = service.sync()
        assert report.updated == 3

    assert QuoteRepository.count() == 1
    assert QuoteRepository.get_by_date(btc.id, TODAY).price == 65000
    assert DollarRateRepository.count() == 2


def test_resync_overwrites_same_day_price(make_asset):
    btc = make_asset("BTC", AssetType.crypto, "USD", coingecko_id="bitcoin")

    build_service(coingecko_responses=[FakeResponse(payload={'bitcoin': {'usd': 60000}})],
                  dolarapi_responses=[FakeResponse(payload=DOLARAPI)]).sync()
    build_service(coingecko_responses=[FakeResponse(payload={'bitcoin': {'usd': 61000}})],
                  dolarapi_responses=[FakeResponse(payload=DOLARAPI)]).sync()

    assert QuoteRepository.count() == 1
    assert QuoteRepository.get_latest(btc.id).price == 61000


def test_dollar_rates_down_does_not_block_other_sources(make_asset):
    make_asset("BTC", AssetType.crypto, "USD", coingecko_id="bitcoin")
    service = build_service(
        coingecko_responses=[FakeResponse(payload={'bitcoin': {'usd': 65000}})],
        dolarapi_responses=[FakeResponse(status_code=503)],
        bluelytics_responses=[FakeResponse(status_code=500)],
    )

    report = service.sync()

    assert report.sources == {"dolarapi": "error", "coingecko": "ok", "yahoo": "ok"}
    assert report.updated == 1
    assert report.errors[0].startswith("Dollar rates: DolarAPI API error: 503")
    assert DollarRateRepository.count() == 0


def test_coingecko_failure_marks_source_error(make_asset):
    make_asset("BTC", AssetType.crypto, "USD", coingecko_id="bitcoin")
    service = build_service(
        coingecko_responses=[FakeResponse(status_code=429, text="rate limited")],
        dolarapi_responses=[FakeResponse(payload=DOLARAPI)],
    )

    report = service.sync()

    assert report.sources["coingecko"] == "error"
    assert "CoinGecko: CoinGecko API error: 429" in report.errors
    assert report.sources["dolarapi"] == "ok"


def test_missing_provider_keys_are_item_errors(make_asset):
    make_asset("NOID", AssetType.stablecoin, "USD")
    make_asset("NOSYM", AssetType.stock, "USD")
    make_asset("ETH", AssetType.crypto, "USD", coingecko_id="ethereum")
    service = build_service(
        coingecko_responses=[FakeResponse(payload={})],
        dolarapi_responses=[FakeResponse(payload=DOLARAPI)],
    )

    report = service.sync()

    assert "CoinGecko: NOID has no coingeckoId configured" in report.errors
    assert "CoinGecko: No price for ETH (ethereum)" in report.errors
    assert "Yahoo: NOSYM has no yahooTicker configured" in report.errors
    assert report.sources == {"dolarapi": "ok", "coingecko": "ok", "yahoo": "ok"}


def test_report_outbound_shape(db):
    report = build_service(dolarapi_responses=[FakeResponse(payload=DOLARAPI)]).sync().to_dict()

    assert set(report) == {'updated', 'errors', 'sources', 'details', 'syncedAt'}
    assert report['updated'] == 2
    assert report['errors'] == []


def test_sync_asset_stores_price(make_asset):
    asset = make_asset("AAPL", AssetType.cedear, yahoo_ticker="AAPL.BA")
    service = build_service(yahoo_responses=[FakeResponse(payload=chart_payload(price=15000))])

    assert service.sync_asset(asset) == 15000
    assert QuoteRepository.get_by_date(asset.id, TODAY).price == 15000


def test_sync_asset_provider_failure_returns_none(make_asset):
    asset = make_asset("BTC", AssetType.crypto, "USD", coingecko_id="bitcoin")
    service = build_service(coingecko_responses=[FakeResponse(status_code=500)])

    assert service.sync_asset(asset) is None
    assert QuoteRepository.count() == 0
