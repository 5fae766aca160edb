"""Blockchain dashboard endpoint."""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends, HTTPException, Query
from cashback.api.dependencies import get_engine
from cashback.models.transaction import BalanceSnapshot
from cashback.services.aggregation_engine import PERIODS, AggregationEngine

router = APIRouter()

DATA_TYPES = ("balances", "dashboard", "volume", "tax-wallets", "prices", "transactions")


def format_balances(balances: List[BalanceSnapshot]) -> List[Dict[str, Any]]:
    """Balances shaped for display: 6-place amounts, $-prefixed USD values."""
    return [
        {
            "chain": b.chain.value,
            "symbol": b.symbol,
            "amount": f"{b.balance:.6f}",
            "usdValue": f"${b.usd_value:.2f}",
            "available": b.available,
        }
        for b in balances
    ]


@router.get("")
async def get_blockchain_data(
    type: str = Query(default="balances", description="One of: " + ", ".join(DATA_TYPES)),
    period: str = Query(default="all", description="daily, weekly, monthly or all"),
    engine: AggregationEngine = Depends(get_engine),
):
    """
    Aggregated tax wallet data.

    type selects the view; period only applies to type=transactions and
    selects which count is surfaced, never filtering the list.
    """
    if type == "balances":
        view = await engine.get_current_balances()
        return {"balances": format_balances(view.balances), "isLive": view.is_live}

    if type == "dashboard":
        dashboard = await engine.get_dashboard_data()
        return {
            "balances": format_balances(dashboard.balances),
            "totalVolume": dashboard.total_volume,
            "totalTransactions": dashboard.total_transactions,
            "lastUpdated": dashboard.last_updated.isoformat(),
            "isLive": dashboard.is_live,
        }

    if type == "volume":
        return {"totalVolume": await engine.get_total_volume()}

    if type == "tax-wallets":
        return {"taxWallets": [w.model_dump(by_alias=True) for w in engine.registry.active_wallets()]}

    if type == "prices":
        quote = await engine.get_price_updates()
        return {"prices": quote.prices, "source": quote.source}

    if type == "transactions":
        if period not in PERIODS:
            raise HTTPException(status_code=400, detail="Invalid period parameter")
        return await engine.get_all_tax_wallet_transactions(period)

    raise HTTPException(status_code=400, detail="Invalid type parameter")
