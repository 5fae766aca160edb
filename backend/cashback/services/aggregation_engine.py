"""
Aggregation engine.

Combines the data source (chain adapters and price oracle) with the tax
wallet registry into balances, transaction summaries and eligibility
results. Every public operation is total: upstream failures degrade the
result (zero balances, empty lists, is_live=False) instead of raising.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Awaitable, Dict, Iterable, List, Optional, Tuple, TypeVar

from cashback.config import Settings, settings as default_settings
from cashback.models.eligibility import EligibilityResult, QualifyingTransaction
from cashback.models.transaction import (
    BalanceSnapshot,
    BalancesView,
    Chain,
    DashboardData,
    TaxWalletTransactions,
    TransactionRecord,
    TransactionSummary,
    WalletData,
)
from cashback.models.wallet import PriceQuote
from cashback.services.chain_adapters.base import FetchResult
from cashback.services.data_source import DataSource, mock_balance_snapshots
from cashback.services.price_service import STATIC_PRICES
from cashback.services.tax_wallet_registry import TaxWalletRegistry
from cashback.utils.logger import get_logger

T = TypeVar("T")

PERIODS = ("daily", "weekly", "monthly", "all")

DAY = timedelta(days=1)
WEEK = timedelta(days=7)
MONTH = timedelta(days=30)

logger = get_logger(__name__)


def round_money(value: float) -> float:
    """Round to cents, halves away from zero, on the value's decimal repr."""
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def sort_newest_first(records: Iterable[TransactionRecord]) -> List[TransactionRecord]:
    return sorted(records, key=lambda r: r.timestamp, reverse=True)


def summarize_transactions(transactions: List[TransactionRecord], now: datetime) -> TransactionSummary:
    """
    Count transactions inside the last day, week (7 days) and month (30 days)
    relative to one fixed now. total_volume sums amount over every record.
    """
    day_ago, week_ago, month_ago = now - DAY, now - WEEK, now - MONTH
    return TransactionSummary(
        total=len(transactions),
        daily=sum(1 for tx in transactions if tx.timestamp >= day_ago),
        weekly=sum(1 for tx in transactions if tx.timestamp >= week_ago),
        monthly=sum(1 for tx in transactions if tx.timestamp >= month_ago),
        total_volume=sum(tx.amount for tx in transactions),
    )


def evaluate_eligibility(
    wallet_address: str,
    transactions: Iterable[TransactionRecord],
    threshold: float,
    rate: float,
    unit: str = "usd",
    checked_at: Optional[datetime] = None,
    is_live: bool = True,
) -> EligibilityResult:
    """
    Eligibility of one wallet over already flagged tax wallet transactions.

    Qualifying transfers come from wallet_address (case-insensitive) and are
    flagged is_tax_wallet. With unit "usd" each transfer counts at its
    usd_value; with "native" at its raw amount. The threshold is inclusive
    and is applied to the rounded total.
    """
    sender = wallet_address.lower()
    qualifying = [
        tx for tx in transactions
        if tx.is_tax_wallet and tx.from_address.lower() == sender
    ]

    if unit == "native":
        total = sum(tx.amount for tx in qualifying)
    else:
        total = sum(tx.usd_value or 0.0 for tx in qualifying)

    total_amount_sent = round_money(total)
    is_eligible = total_amount_sent >= threshold
    cashback_amount = round_money(total_amount_sent * rate) if is_eligible else 0.0

    return EligibilityResult(
        wallet_address=wallet_address,
        is_eligible=is_eligible,
        total_amount_sent=total_amount_sent,
        cashback_amount=cashback_amount,
        transaction_count=len(qualifying),
        transactions=[
            QualifyingTransaction(
                hash=tx.hash,
                amount=tx.amount,
                usd_value=tx.usd_value,
                chain=tx.chain,
                timestamp=tx.timestamp,
                to=tx.to_address,
            )
            for tx in qualifying
        ],
        checked_at=checked_at or datetime.now(timezone.utc),
        threshold=threshold,
        unit=unit,
        is_live=is_live,
    )


class AggregationEngine:
    """Stateless per call; safe to share across requests."""

    def __init__(
        self,
        data_source: DataSource,
        registry: Optional[TaxWalletRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.data_source = data_source
        self.registry = registry or TaxWalletRegistry.from_settings(self.settings)
        if not self.registry.active_wallets() and data_source.demo_wallets():
            self.registry = TaxWalletRegistry(data_source.demo_wallets())

    # ------------------------------------------------------------------
    # Guarded upstream calls
    # ------------------------------------------------------------------

    async def _bounded(self, call: Awaitable[FetchResult[T]], fallback: T, what: str) -> FetchResult[T]:
        try:
            return await asyncio.wait_for(call, timeout=self.settings.adapter_timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.warning("adapter_call_timed_out", call=what, timeout=self.settings.adapter_timeout_seconds)
            return FetchResult(fallback, available=False, error=f"timed out: {e}")
        except Exception as e:
            logger.error("adapter_call_failed", call=what, error=str(e))
            return FetchResult.degraded(fallback, e)

    async def _balance(self, chain: Chain, address: str) -> FetchResult[float]:
        return await self._bounded(self.data_source.get_balance(chain, address), 0.0, f"balance:{chain.value}")

    async def _transactions(self, chain: Chain, address: str, limit: int) -> FetchResult[List[TransactionRecord]]:
        return await self._bounded(
            self.data_source.get_transactions(chain, address, limit), [], f"transactions:{chain.value}"
        )

    async def _prices(self) -> PriceQuote:
        try:
            return await asyncio.wait_for(self.data_source.get_prices(), timeout=self.settings.adapter_timeout_seconds)
        except Exception as e:
            logger.warning("price_fetch_failed", error=str(e) or type(e).__name__)
            return PriceQuote(prices=dict(STATIC_PRICES), source="static")

    def _snapshot(self, chain: Chain, result: FetchResult[float], quote: PriceQuote, now: datetime) -> BalanceSnapshot:
        # Degraded live results already carry 0; synthetic ones keep their demo value.
        balance = result.value if (result.available or not self.data_source.is_live) else 0.0
        return BalanceSnapshot(
            chain=chain,
            symbol=chain.symbol,
            balance=balance,
            usd_value=balance * quote.price_of(chain),
            last_updated=now,
            available=result.available,
        )

    def _price_and_flag(self, records: Iterable[TransactionRecord], quote: PriceQuote) -> List[TransactionRecord]:
        return [
            r.model_copy(update={"usd_value": r.amount * quote.price_of(r.chain)})
            for r in self.registry.flag(records)
        ]

    async def _balances_for(self, addresses: Dict[Chain, str]) -> Tuple[PriceQuote, List[BalanceSnapshot]]:
        """Balances priced with one quote; the quote is returned for reuse."""
        chains = list(addresses)
        quote, *results = await asyncio.gather(
            self._prices(),
            *(self._balance(chain, addresses[chain]) for chain in chains),
        )
        now = datetime.now(timezone.utc)
        return quote, [self._snapshot(chain, result, quote, now) for chain, result in zip(chains, results)]

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def get_current_balances(self) -> BalancesView:
        """
        Balance and USD value of the tax wallet on each chain.

        Always three snapshots. A chain whose fetch failed reports 0 with
        available=False. If the fetch cannot run at all the demo snapshot is
        returned with is_live=False.
        """
        addresses = {chain: self.registry.address_for(chain) for chain in Chain}
        try:
            _, balances = await self._balances_for(addresses)
        except Exception as e:
            logger.error("balances_fetch_failed", error=str(e))
            return BalancesView(balances=mock_balance_snapshots(), is_live=False)
        return BalancesView(balances=balances, is_live=self.data_source.is_live)

    async def get_total_volume(self, balances: Optional[BalancesView] = None) -> float:
        """Sum of usd_value across the current balances."""
        balances = balances or await self.get_current_balances()
        return balances.total_usd

    async def get_total_transactions(self) -> int:
        """Recent transaction count across the active tax wallets."""
        wallets = self.registry.active_wallets()
        results = await asyncio.gather(*(
            self._transactions(w.chain, w.address, self.settings.dashboard_transaction_limit)
            for w in wallets
        ))
        total = sum(len(r.value) for r in results)
        logger.info("tax_wallet_transaction_count", wallets=len(wallets), total=total)
        return total

    async def get_dashboard_data(self) -> DashboardData:
        balances, total_transactions = await asyncio.gather(
            self.get_current_balances(),
            self.get_total_transactions(),
        )
        return DashboardData(
            balances=balances.balances,
            total_volume=await self.get_total_volume(balances),
            total_transactions=total_transactions,
            last_updated=datetime.now(timezone.utc),
            is_live=balances.is_live,
        )

    async def get_all_tax_wallet_transactions(self, period: str = "all") -> TaxWalletTransactions:
        """
        Recent transactions of every active tax wallet, newest first.

        period only selects which count is surfaced as period_count; the
        transaction list and all four summary buckets are never filtered.
        A wallet whose fetch fails contributes nothing.
        """
        now = datetime.now(timezone.utc)
        wallets = self.registry.active_wallets()
        limit = self.settings.tax_wallet_transaction_limit

        quote, *results = await asyncio.gather(
            self._prices(),
            *(self._transactions(w.chain, w.address, limit) for w in wallets),
        )

        collected: List[TransactionRecord] = []
        all_available = True
        for wallet, result in zip(wallets, results):
            if not result.available:
                all_available = False
                logger.warning(
                    "tax_wallet_transactions_unavailable",
                    chain=wallet.chain.value,
                    address=wallet.address,
                    error=result.error,
                )
            collected.extend(result.value)

        transactions = sort_newest_first(self._price_and_flag(collected, quote))
        summary = summarize_transactions(transactions, now)
        logger.info(
            "tax_wallet_transactions_summary",
            total=summary.total,
            daily=summary.daily,
            weekly=summary.weekly,
            monthly=summary.monthly,
        )
        return TaxWalletTransactions(
            transactions=transactions,
            summary=summary,
            period=period,
            period_count=summary.count_for(period),
            is_live=self.data_source.is_live and all_available,
        )

    async def get_wallet_data(self, wallet_address: str) -> WalletData:
        """
        Balances on every chain plus the latest transactions per chain for an
        external wallet. total_volume sums amount over tax wallet transfers.
        """
        limit = self.settings.wallet_transaction_limit
        try:
            (quote, balances), *tx_results = await asyncio.gather(
                self._balances_for({chain: wallet_address for chain in Chain}),
                *(self._transactions(chain, wallet_address, limit) for chain in Chain),
            )
        except Exception as e:
            logger.error("wallet_data_failed", wallet=wallet_address, error=str(e))
            return WalletData(is_live=False)

        records = [r for result in tx_results for r in result.value]
        transactions = sort_newest_first(self._price_and_flag(records, quote))
        return WalletData(
            balances=balances,
            transactions=transactions,
            total_volume=sum(tx.amount for tx in transactions if tx.is_tax_wallet),
            is_live=self.data_source.is_live,
        )

    async def check_eligibility(self, wallet_address: str) -> EligibilityResult:
        """Cumulative transfers from wallet_address to the tax wallets against the threshold."""
        data = await self.get_all_tax_wallet_transactions("all")
        result = evaluate_eligibility(
            wallet_address,
            data.transactions,
            threshold=self.settings.eligibility_threshold,
            rate=self.settings.cashback_rate,
            unit=self.settings.eligibility_unit,
            is_live=data.is_live,
        )
        logger.info(
            "eligibility_checked",
            wallet=wallet_address,
            eligible=result.is_eligible,
            total=result.total_amount_sent,
            cashback=result.cashback_amount,
            transactions=result.transaction_count,
        )
        return result

    async def get_price_updates(self) -> PriceQuote:
        return await self._prices()
