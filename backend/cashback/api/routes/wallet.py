"""External wallet lookup endpoint."""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException
from cashback.api.dependencies import get_engine
from cashback.services.aggregation_engine import AggregationEngine
from cashback.utils.validation import is_valid_wallet_address

router = APIRouter()


@router.get("/{address}")
async def get_wallet(address: str, engine: AggregationEngine = Depends(get_engine)):
    """Balances on every chain and recent transfers for any wallet."""
    if not is_valid_wallet_address(address):
        raise HTTPException(status_code=400, detail="Invalid wallet address format")

    data = await engine.get_wallet_data(address)
    return {
        "walletAddress": address,
        "balances": data.balances,
        "transactions": data.transactions,
        "totalVolume": data.total_volume,
        "taxWalletTransactions": data.tax_wallet_transactions,
        "lastUpdated": datetime.now(timezone.utc).isoformat(),
        "isLive": data.is_live,
    }
