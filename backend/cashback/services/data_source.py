"""
Data sources behind the aggregation engine.

LiveDataSource talks to the chain adapters and price service.
SyntheticDataSource produces plausible demo values for running the dashboard
without upstream credentials. One of them is chosen at startup by
create_data_source().
"""
import random
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
import httpx
from cashback.config import Settings, settings as default_settings
from cashback.models.transaction import BalanceSnapshot, Chain, TransactionRecord
from cashback.models.wallet import PriceQuote, TaxWalletConfig
from cashback.services.chain_adapters.base import ChainAdapter, FetchResult
from cashback.services.chain_adapters.registry import get_chain_adapter
from cashback.services.price_service import PriceService
from cashback.services.tax_wallet_registry import TaxWalletRegistry
from cashback.utils.logger import get_logger

logger = get_logger(__name__)

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


class DataSource(ABC):
    """Balances, transactions and prices for the engine."""

    is_live: bool = True

    @abstractmethod
    async def get_balance(self, chain: Chain, address: str) -> FetchResult[float]:
        pass

    @abstractmethod
    async def get_transactions(self, chain: Chain, address: str, limit: int) -> FetchResult[List[TransactionRecord]]:
        pass

    @abstractmethod
    async def get_prices(self) -> PriceQuote:
        pass

    def demo_wallets(self) -> List[TaxWalletConfig]:
        """Tax wallets to use when none are configured. Live sources have none."""
        return []

    async def aclose(self):
        pass


class LiveDataSource(DataSource):
    """Upstream APIs through the chain adapters and price service."""

    is_live = True

    def __init__(
        self,
        adapters: Optional[Dict[Chain, ChainAdapter]] = None,
        price_service: Optional[PriceService] = None,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        s = settings or default_settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=s.request_timeout_seconds)
        self.adapters = adapters or {chain: get_chain_adapter(chain, self.client, s) for chain in Chain}
        self.price_service = price_service or PriceService(client=self.client, settings=s)

    async def get_balance(self, chain: Chain, address: str) -> FetchResult[float]:
        adapter = self.adapters.get(chain)
        if adapter is None:
            return FetchResult(0.0, available=False, error=f"unsupported chain {chain}")
        return await adapter.fetch_balance(address)

    async def get_transactions(self, chain: Chain, address: str, limit: int) -> FetchResult[List[TransactionRecord]]:
        adapter = self.adapters.get(chain)
        if adapter is None:
            return FetchResult([], available=False, error=f"unsupported chain {chain}")
        return await adapter.fetch_transactions(address, limit)

    async def get_prices(self) -> PriceQuote:
        return await self.price_service.get_current_prices()

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()


# Baseline demo holdings per chain: (balance, usd value)
MOCK_BALANCES = {
    Chain.SOL: (0.123218, 24.91),
    Chain.ETH: (0.003175, 13.01),
    Chain.BNB: (0.0, 0.0),
}

MOCK_PRICES = {"SOL": 200.0, "ETH": 3000.0, "BNB": 300.0}

# Stand-in tax wallets for demo mode
DEMO_TAX_WALLETS = [
    TaxWalletConfig(address="DemoTaxWa11etSo1ana1111111111111111111111111", chain=Chain.SOL),
    TaxWalletConfig(address="0x" + "7a" * 20, chain=Chain.ETH),
    TaxWalletConfig(address="0x" + "b5" * 20, chain=Chain.BNB),
]

DEMO_SENDERS_PER_CHAIN = 5


def mock_balance_snapshots(rng: Optional[random.Random] = None) -> List[BalanceSnapshot]:
    """Fixed demo snapshot with small jitter, always marked unavailable."""
    rng = rng or random.Random()
    now = datetime.now(timezone.utc)
    snapshots = []
    for chain, (balance, usd_value) in MOCK_BALANCES.items():
        if balance:
            balance = max(balance + rng.uniform(-balance * 0.04, balance * 0.04), 0.0)
            usd_value = max(usd_value + rng.uniform(-1.0, 1.0), 0.0)
        snapshots.append(BalanceSnapshot(
            chain=chain,
            symbol=chain.symbol,
            balance=balance,
            usd_value=usd_value,
            last_updated=now,
            available=False,
        ))
    return snapshots


class SyntheticDataSource(DataSource):
    """
    Random but plausible values; every result is marked as not live.

    Without configured tax wallets it uses DEMO_TAX_WALLETS. Transfers into a
    tax wallet come from a small pool of sender wallets per chain, so some
    senders accumulate enough volume to show up as eligible.
    """

    is_live = False

    def __init__(self, registry: Optional[TaxWalletRegistry] = None, seed: Optional[int] = None):
        registry = registry or TaxWalletRegistry.from_settings()
        if not registry.active_wallets():
            registry = TaxWalletRegistry(DEMO_TAX_WALLETS)
        self.registry = registry
        self.rng = random.Random(seed)
        self.senders = {
            chain: [self._random_address(chain) for _ in range(DEMO_SENDERS_PER_CHAIN)]
            for chain in Chain
        }

    def demo_wallets(self) -> List[TaxWalletConfig]:
        return self.registry.active_wallets()

    async def get_balance(self, chain: Chain, address: str) -> FetchResult[float]:
        balance, _ = MOCK_BALANCES[chain]
        if balance:
            balance = max(balance + self.rng.uniform(-balance * 0.04, balance * 0.04), 0.0)
        return FetchResult(balance, available=False, error="synthetic data")

    async def get_transactions(self, chain: Chain, address: str, limit: int) -> FetchResult[List[TransactionRecord]]:
        now = datetime.now(timezone.utc)
        tax_address = self.registry.address_for(chain)
        is_tax_wallet = self.registry.is_tax_wallet(address, chain)
        records = []
        for _ in range(min(limit, 10)):
            if is_tax_wallet:
                # mostly incoming transfers, the rest paid out
                if self.rng.random() > 0.3:
                    sender, recipient = self.rng.choice(self.senders[chain]), address
                else:
                    sender, recipient = address, self._random_address(chain)
            else:
                to_tax = bool(tax_address) and self.rng.random() > 0.3
                sender = address
                recipient = tax_address if to_tax else self._random_address(chain)
            records.append(TransactionRecord(
                hash=self._random_hash(chain),
                from_address=sender,
                to_address=recipient,
                amount=round(self.rng.uniform(0.01, 2.0), 6),
                timestamp=now - timedelta(seconds=self.rng.uniform(0, 7 * 24 * 3600)),
                chain=chain,
            ))
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return FetchResult(records, available=False, error="synthetic data")

    async def get_prices(self) -> PriceQuote:
        return PriceQuote(
            prices={
                symbol: price + self.rng.uniform(-price * 0.05, price * 0.05)
                for symbol, price in MOCK_PRICES.items()
            },
            source="synthetic",
        )

    def _random_hash(self, chain: Chain) -> str:
        if chain == Chain.SOL:
            return "".join(self.rng.choice(BASE58_ALPHABET) for _ in range(88))
        return "0x" + "".join(self.rng.choice("0123456789abcdef") for _ in range(64))

    def _random_address(self, chain: Chain) -> str:
        if chain == Chain.SOL:
            return "".join(self.rng.choice(BASE58_ALPHABET) for _ in range(44))
        return "0x" + "".join(self.rng.choice("0123456789abcdef") for _ in range(40))


def create_data_source(
    settings: Optional[Settings] = None,
    registry: Optional[TaxWalletRegistry] = None,
) -> DataSource:
    """
    Pick the data source for this process.

    "auto" goes live as soon as any tax wallet address is configured.
    """
    s = settings or default_settings
    registry = registry or TaxWalletRegistry.from_settings(s)
    mode = s.data_source.strip().lower()
    if mode == "auto":
        mode = "live" if registry.active_wallets() else "synthetic"

    if mode == "live":
        logger.info("data_source_selected", mode="live")
        return LiveDataSource(settings=s)
    if mode == "synthetic":
        logger.info("data_source_selected", mode="synthetic")
        return SyntheticDataSource(registry=registry)
    raise ValueError(f"Unknown data source mode: {s.data_source}")
