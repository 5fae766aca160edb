"""Unified transaction and balance models."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class Chain(str, Enum):
    """Supported chains. The value doubles as the native asset symbol."""
    SOL = "SOL"
    ETH = "ETH"
    BNB = "BNB"

    @property
    def symbol(self) -> str:
        return self.value


class TransactionRecord(BaseModel):
    """One observed native transfer on one chain."""
    hash: str = Field(..., description="Chain-specific transaction id")
    from_address: str = Field(default="", alias="from", description="Sender address")
    to_address: str = Field(default="", alias="to", description="Recipient address")
    amount: float = Field(default=0.0, ge=0, description="Amount in the chain's native unit")
    usd_value: Optional[float] = Field(None, alias="usdValue", description="Amount valued at the current price")
    timestamp: datetime = Field(..., description="Block time")
    chain: Chain = Field(..., description="Blockchain network")
    is_tax_wallet: bool = Field(default=False, alias="isTaxWallet", description="Sent to an active tax wallet")

    class Config:
        populate_by_name = True

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class BalanceSnapshot(BaseModel):
    """Current holdings of one native asset for one address."""
    chain: Chain
    symbol: str
    balance: float = Field(default=0.0, ge=0)
    usd_value: float = Field(default=0.0, alias="usdValue")
    last_updated: datetime = Field(..., alias="lastUpdated")
    available: bool = Field(default=True, description="False when the balance could not be verified")

    class Config:
        populate_by_name = True


class BalancesView(BaseModel):
    """Balances for the three chains plus whether they came from live sources."""
    balances: List[BalanceSnapshot]
    is_live: bool = Field(default=True, alias="isLive")

    class Config:
        populate_by_name = True

    @property
    def total_usd(self) -> float:
        return sum(b.usd_value for b in self.balances)


class TransactionSummary(BaseModel):
    """Time-bucketed counts and total volume over a transaction list."""
    total: int = 0
    daily: int = 0
    weekly: int = 0
    monthly: int = 0
    total_volume: float = Field(default=0.0, alias="totalVolume")

    class Config:
        populate_by_name = True

    def count_for(self, period: str) -> int:
        """Count surfaced for a period name; unknown periods map to the total."""
        return {
            "daily": self.daily,
            "weekly": self.weekly,
            "monthly": self.monthly,
        }.get(period, self.total)


class TaxWalletTransactions(BaseModel):
    """All recent transactions across the tax wallets and their summary."""
    transactions: List[TransactionRecord] = Field(default_factory=list)
    summary: TransactionSummary = Field(default_factory=TransactionSummary)
    period: str = "all"
    period_count: int = Field(default=0, alias="periodCount")
    is_live: bool = Field(default=True, alias="isLive")

    class Config:
        populate_by_name = True


class WalletData(BaseModel):
    """Balances and recent transactions for an arbitrary external wallet."""
    balances: List[BalanceSnapshot] = Field(default_factory=list)
    transactions: List[TransactionRecord] = Field(default_factory=list)
    total_volume: float = Field(default=0.0, alias="totalVolume")
    is_live: bool = Field(default=True, alias="isLive")

    class Config:
        populate_by_name = True

    @property
    def tax_wallet_transactions(self) -> List[TransactionRecord]:
        return [tx for tx in self.transactions if tx.is_tax_wallet]


class DashboardData(BaseModel):
    """Combined dashboard view."""
    balances: List[BalanceSnapshot]
    total_volume: float = Field(alias="totalVolume")
    total_transactions: int = Field(alias="totalTransactions")
    last_updated: datetime = Field(alias="lastUpdated")
    is_live: bool = Field(default=True, alias="isLive")

    class Config:
        populate_by_name = True
