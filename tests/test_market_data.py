import pytest
import requests

from conftest import FakeClock, FakeResponse, FakeSession, chart_payload
from errors import ProviderError, ProvidersExhaustedError
from services.common import RateLimiter
from services.market_data import (
    BluelyticsClient,
    CoinGeckoClient,
    DolarApiClient,
    DollarQuote,
    DollarRatesClient,
    YahooQuoteClient,
    parse_chart_meta,
)


def yahoo_client(session, clock=None):
    clock = clock or FakeClock()
    return YahooQuoteClient(
        session=session,
        rate_limiter=RateLimiter(max_calls=1, period=1.0, clock=clock, sleep=clock.sleep),
        sleep=clock.sleep,
        chart_url="https://chart.test/{ticker}",
        timeout=15.0,
        max_retries=2,
        backoff_base=3.0,
        error_delay=1.5,
    )


class TestParseChartMeta:

    def test_regular_market_price(self):
        quote = parse_chart_meta("GGAL.BA", chart_payload(price=1234.5, previous_close=1200))
        assert quote.price == 1234.5
        assert quote.currency == "ARS"

    def test_previous_close_fallback(self):
        assert parse_chart_meta("GGAL.BA", chart_payload(previous_close=1200)).price == 1200

    def test_missing_meta_is_no_data(self):
        assert parse_chart_meta("X", {'chart': {'result': None}}) is None

    @pytest.mark.parametrize("price", ["12", 0, -1])
    def test_unusable_price_is_no_data(self, price):
        assert parse_chart_meta("X", chart_payload(price=price)) is None


class TestYahooQuoteClient:

    def test_fetch_quotes_sequential_and_paced(self):
        clock = FakeClock()
        session = FakeSession(
            FakeResponse(payload=chart_payload(price=10)),
            FakeResponse(payload=chart_payload(price=20, currency="USD")),
        )

        prices, attempts = yahoo_client(session, clock).fetch_quotes(["A.BA", "B"])

        assert prices == {"A.BA": 10.0, "B": 20.0}
        assert [a.attempts for a in attempts] == [1, 1]
        assert session.calls[0]['url'] == "https://chart.test/A.BA"
        assert session.calls[0]['params'] == {"interval": "1d", "range": "1d"}
        assert session.calls[0]['timeout'] == 15.0
        # Second request waits out the one-second window
        assert clock.sleeps == [1.0]

    def test_rate_limit_backoff_escalates_then_gives_up(self):
        clock = FakeClock()
        session = FakeSession(*[FakeResponse(status_code=429, text="Too Many Requests")] * 3)

        quote, record = yahoo_client(session, clock).fetch_quote_detail("A.BA")

        assert quote is None
        assert record.attempts == 3
        assert len(session.calls) == 3
        assert clock.sleeps == [3.0, 6.0]
        assert "rate limited" in record.error

    def test_rate_limit_marker_in_body(self):
        clock = FakeClock()
        session = FakeSession(
            FakeResponse(status_code=200, text="Edge: Too Many Requests"),
            FakeResponse(payload=chart_payload(price=7)),
        )

        quote, record = yahoo_client(session, clock).fetch_quote_detail("A.BA")

        assert quote.price == 7
        assert record.attempts == 2
        assert clock.sleeps == [3.0]

    def test_timeout_is_retried_then_ticker_skipped(self):
        clock = FakeClock()
        session = FakeSession(
            requests.Timeout("slow"), requests.Timeout("slow"), requests.Timeout("slow"),
            FakeResponse(payload=chart_payload(price=99)),
        )

        prices, attempts = yahoo_client(session, clock).fetch_quotes(["SLOW.BA", "OK.BA"])

        assert prices == {"OK.BA": 99.0}
        assert attempts[0].attempts == 3
        assert "timed out" in attempts[0].error
        assert attempts[1].price == 99.0
        assert clock.sleeps[:2] == [1.5, 1.5]

    def test_server_error_then_success(self):
        clock = FakeClock()
        session = FakeSession(
            FakeResponse(status_code=502, text="bad gateway"),
            FakeResponse(payload=chart_payload(price=5)),
        )

        assert yahoo_client(session, clock).fetch_quote("A.BA").price == 5

    def test_response_without_price_is_not_retried(self):
        session = FakeSession(FakeResponse(payload={'chart': {'result': []}}))

        quote, record = yahoo_client(session).fetch_quote_detail("A.BA")

        assert quote is None
        assert record.attempts == 1
        assert record.error == "no price in response"


class TestCoinGeckoClient:

    def test_empty_input_makes_no_request(self):
        session = FakeSession()
        assert CoinGeckoClient(session=session, url="https://cg.test").fetch_prices([]) == {}
        assert session.calls == []

    def test_single_batched_request_omits_missing(self):
        session = FakeSession(FakeResponse(payload={'bitcoin': {'usd': 65000}, 'dai': {}}))

        prices = CoinGeckoClient(session=session, url="https://cg.test").fetch_prices(
            ["bitcoin", "dai", "solana"]
        )

        assert prices == {'bitcoin': 65000.0}
        assert len(session.calls) == 1
        assert session.calls[0]['params'] == {'ids': 'bitcoin,dai,solana', 'vs_currencies': 'usd'}

    def test_non_2xx_raises(self):
        session = FakeSession(FakeResponse(status_code=500, text="oops"))
        with pytest.raises(ProviderError):
            CoinGeckoClient(session=session, url="https://cg.test").fetch_prices(["bitcoin"])


class TestDollarRates:

    DOLARAPI = [
        {'casa': 'oficial', 'compra': 950, 'venta': 1000},
        {'casa': 'blue', 'compra': 1180, 'venta': 1200},
        {'casa': 'bolsa', 'compra': 1090, 'venta': 1100},
    ]
    BLUELYTICS = {
        'oficial': {'value_avg': 975, 'value_sell': 1000, 'value_buy': 950},
        'blue': {'value_avg': 1190, 'value_sell': 1200, 'value_buy': 1180},
    }

    def test_primary_rates_with_mep_alias(self):
        session = FakeSession(FakeResponse(payload=self.DOLARAPI))
        rates = DolarApiClient(session=session, url="https://dolar.test").fetch()
        assert [r.rate_type for r in rates] == ["oficial", "blue", "mep"]
        assert rates[0] == DollarQuote("oficial", 950.0, 1000.0)

    def test_fallback_has_same_shape(self):
        primary = DolarApiClient(session=FakeSession(FakeResponse(status_code=503)), url="https://dolar.test")
        fallback = BluelyticsClient(session=FakeSession(FakeResponse(payload=self.BLUELYTICS)), url="https://blue.test")

        rates = DollarRatesClient(primary=primary, fallback=fallback).fetch()

        assert rates == [DollarQuote("oficial", 950.0, 1000.0), DollarQuote("blue", 1180.0, 1200.0)]

    def test_network_error_falls_back(self):
        primary = DolarApiClient(session=FakeSession(requests.ConnectionError("down")), url="https://dolar.test")
        fallback = BluelyticsClient(session=FakeSession(FakeResponse(payload=self.BLUELYTICS)), url="https://blue.test")

        assert len(DollarRatesClient(primary=primary, fallback=fallback).fetch()) == 2

    def test_both_providers_down(self):
        primary = DolarApiClient(session=FakeSession(FakeResponse(status_code=503)), url="https://dolar.test")
        fallback = BluelyticsClient(session=FakeSession(FakeResponse(status_code=500)), url="https://blue.test")

        with pytest.raises(ProvidersExhaustedError) as excinfo:
            DollarRatesClient(primary=primary, fallback=fallback).fetch()

        assert "DolarAPI" in str(excinfo.value)
        assert "Bluelytics" in str(excinfo.value)
