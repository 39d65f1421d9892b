import json
from datetime import date

import pytest

from config import reload_settings
from db_engine import init_db, reset_engine
from models import Asset, AssetType, Transaction
from repositories import AssetRepository, TransactionRepository


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Fresh file-backed SQLite database for one test."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    reload_settings()
    reset_engine()
    init_db()
    yield
    reset_engine()
    monkeypatch.delenv("DATABASE_URL")
    reload_settings()


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Returns queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'timeout': timeout})
        if not self.responses:
            raise AssertionError(f"Unexpected request to {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start=0.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def chart_payload(price=None, previous_close=None, currency="ARS"):
    meta = {'currency': currency, 'symbol': 'X'}
    if price is not None:
        meta['regularMarketPrice'] = price
    if previous_close is not None:
        meta['previousClose'] = previous_close
    return {'chart': {'result': [{'meta': meta}], 'error': None}}


@pytest.fixture
def make_asset(db):
    def _make(ticker, asset_type=AssetType.cedear, currency="ARS", **kwargs):
        return AssetRepository.add(Asset(
            ticker=ticker, name=ticker, asset_type=asset_type, currency=currency, **kwargs
        ))
    return _make


@pytest.fixture
def make_transaction(db):
    def _make(user_id, asset_id, transaction_type, quantity, unit_price, day=date(2024, 1, 2), fee=0.0):
        return TransactionRepository.add(Transaction(
            user_id=user_id,
            asset_id=asset_id,
            transaction_date=day,
            transaction_type=transaction_type,
            quantity=quantity,
            unit_price=unit_price,
            fee=fee,
        ))
    return _make
