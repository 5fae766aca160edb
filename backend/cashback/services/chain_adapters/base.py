"""Abstract base class for chain adapters and the result type they return."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar
import httpx
from cashback.config import settings
from cashback.models.transaction import Chain, TransactionRecord
from cashback.utils.logger import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass
class FetchResult(Generic[T]):
    """
    Value fetched from an upstream source.

    available is False when the value is a stand-in zero because the source
    failed; error carries the reason.
    """
    value: T
    available: bool = True
    error: Optional[str] = None

    @classmethod
    def degraded(cls, value: T, error: Exception) -> "FetchResult[T]":
        return cls(value=value, available=False, error=str(error) or type(error).__name__)


@dataclass
class RawTransaction:
    """Raw transaction payload from an upstream API."""
    data: dict = field(default_factory=dict)


class ChainAdapter(ABC):
    """
    Adapter for one chain family.

    Subclasses implement the raising _fetch_* primitives; the public
    fetch_balance/fetch_transactions wrap them so the engine never sees an
    exception, only a degraded FetchResult.
    """

    chain: Chain

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout or settings.request_timeout_seconds)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    @abstractmethod
    async def _fetch_balance(self, address: str) -> float:
        """Native balance in whole units. Raises on failure."""

    @abstractmethod
    async def _fetch_transactions(self, address: str, limit: int) -> List[RawTransaction]:
        """Most recent raw transactions, newest first. Raises on failure."""

    @abstractmethod
    def parse_transaction(self, raw_tx: RawTransaction, address: str) -> Optional[TransactionRecord]:
        """Normalize one raw transaction, or None if it carries no usable transfer."""

    @abstractmethod
    def validate_address(self, address: str) -> bool:
        """True if address has this chain's format."""

    async def fetch_balance(self, address: str) -> FetchResult[float]:
        if not address:
            return FetchResult(0.0, available=False, error="no address configured")
        try:
            return FetchResult(await self._fetch_balance(address))
        except Exception as e:
            logger.error("balance_fetch_failed", chain=self.chain.value, address=address, error=str(e))
            return FetchResult.degraded(0.0, e)

    async def fetch_transactions(self, address: str, limit: int = 10) -> FetchResult[List[TransactionRecord]]:
        if not address:
            return FetchResult([], available=False, error="no address configured")
        try:
            raw_transactions = await self._fetch_transactions(address, limit)
        except Exception as e:
            logger.error("transactions_fetch_failed", chain=self.chain.value, address=address, error=str(e))
            return FetchResult.degraded([], e)

        records = []
        for raw_tx in raw_transactions:
            try:
                record = self.parse_transaction(raw_tx, address)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("transaction_parse_failed", chain=self.chain.value, error=str(e))
                continue
            if record is not None:
                records.append(record)
        return FetchResult(records)
