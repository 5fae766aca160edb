"""
Pytest fixtures for the cashback tests.

Uses a temporary SQLite database per test and an in-memory FakeDataSource in
place of the live chain adapters.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import pytest

from cashback.models.transaction import Chain, TransactionRecord
from cashback.models.wallet import PriceQuote, TaxWalletConfig
from cashback.services.chain_adapters.base import FetchResult
from cashback.services.data_source import DataSource
from cashback.services.tax_wallet_registry import TaxWalletRegistry

TAX_SOL = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
TAX_ETH = "0x" + "ab" * 20
TAX_BNB = "0x" + "cd" * 20
USER_WALLET = "0x" + "12" * 20


def make_tx(
    hash: str,
    sender: str,
    to: str,
    amount: float,
    chain: Chain = Chain.ETH,
    age: timedelta = timedelta(hours=1),
    now: Optional[datetime] = None,
) -> TransactionRecord:
    now = now or datetime.now(timezone.utc)
    return TransactionRecord(
        hash=hash,
        from_address=sender,
        to_address=to,
        amount=amount,
        timestamp=now - age,
        chain=chain,
    )


class FakeDataSource(DataSource):
    """Scriptable data source. Prices default to 1 USD so usd_value == amount."""

    def __init__(self, is_live: bool = True):
        self.is_live = is_live
        self.balances: Dict[Chain, float] = {}
        self.transactions: Dict[Chain, List[TransactionRecord]] = {}
        self.prices: Dict[str, float] = {"SOL": 1.0, "ETH": 1.0, "BNB": 1.0}
        self.failing: Set[Chain] = set()
        self.raising: Set[Chain] = set()
        self.delay: float = 0.0
        self.requested: List[tuple] = []
        self.price_calls = 0

    async def get_balance(self, chain, address):
        self.requested.append(("balance", chain, address))
        if chain in self.raising:
            raise RuntimeError(f"{chain.value} exploded")
        if chain in self.failing:
            return FetchResult(0.0, available=False, error="upstream down")
        return FetchResult(self.balances.get(chain, 0.0))

    async def get_transactions(self, chain, address, limit):
        self.requested.append(("transactions", chain, address, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if chain in self.raising:
            raise RuntimeError(f"{chain.value} exploded")
        if chain in self.failing:
            return FetchResult([], available=False, error="upstream down")
        return FetchResult(list(self.transactions.get(chain, []))[:limit])

    async def get_prices(self):
        self.price_calls += 1
        return PriceQuote(prices=dict(self.prices), source="test")


@pytest.fixture
def registry():
    return TaxWalletRegistry([
        TaxWalletConfig(address=TAX_SOL, chain=Chain.SOL, is_active=True),
        TaxWalletConfig(address=TAX_ETH, chain=Chain.ETH, is_active=True),
        TaxWalletConfig(address=TAX_BNB, chain=Chain.BNB, is_active=True),
    ])


@pytest.fixture
def fake_source():
    return FakeDataSource()


@pytest.fixture
def db(tmp_path):
    """Point the repositories at a fresh SQLite file and create the tables."""
    from cashback.database import connection

    connection.reset_engine_for_test(f"sqlite:///{tmp_path / 'cashback_test.db'}")
    connection.init_db()
    yield connection
    connection.reset_engine_for_test(None)


@pytest.fixture
def client(db, fake_source, registry):
    """FastAPI TestClient wired to the fake data source and temp database."""
    from fastapi.testclient import TestClient

    from cashback.main import create_app
    from cashback.services.realtime import RealtimeNotifier

    app = create_app(
        data_source=fake_source,
        registry=registry,
        notifier=RealtimeNotifier(interval_seconds=0),
    )
    with TestClient(app) as test_client:
        yield test_client
