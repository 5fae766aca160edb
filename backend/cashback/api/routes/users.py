"""User endpoints."""
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool
from cashback.api.dependencies import get_engine
from cashback.database import repositories
from cashback.models.user import CreateUserRequest, UpdateUserRequest
from cashback.services.aggregation_engine import AggregationEngine
from cashback.utils.errors import PersistenceError
from cashback.utils.logger import get_logger

router = APIRouter()

logger = get_logger(__name__)

# Shown when the database cannot be reached
DEMO_USERS = [
    {
        "id": 1,
        "walletAddress": "0x1234...5678",
        "chain": "ETH",
        "totalVolume": 15000,
        "cashbackEligible": 15000,
        "cashbackAmount": 300,
        "status": "ACTIVE",
        "transactions": [],
        "cashbacks": [],
    },
    {
        "id": 2,
        "walletAddress": "0x9876...5432",
        "chain": "SOL",
        "totalVolume": 8500,
        "cashbackEligible": 8500,
        "cashbackAmount": 170,
        "status": "PENDING",
        "transactions": [],
        "cashbacks": [],
    },
]


@router.get("")
async def list_users(
    status: Optional[str] = Query(None),
    chain: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    """Paginated users; demo users flagged isLive=false if the database is down."""
    try:
        result = await run_in_threadpool(repositories.list_users, status, chain, page, limit)
    except PersistenceError as e:
        logger.warning("users_db_unavailable", error=str(e))
        now = datetime.now(timezone.utc).isoformat()
        return {
            "users": [{**u, "createdAt": now} for u in DEMO_USERS],
            "pagination": {"page": 1, "limit": 10, "total": len(DEMO_USERS), "pages": 1},
            "isLive": False,
        }
    return {**result, "isLive": True}


@router.post("", status_code=201)
async def create_user(body: CreateUserRequest):
    return await run_in_threadpool(repositories.create_user, body.wallet_address, body.chain.value)


@router.get("/{user_id}")
async def get_user(user_id: int):
    return await run_in_threadpool(repositories.get_user, user_id)


@router.put("/{user_id}")
async def update_user(user_id: int, body: UpdateUserRequest):
    changes = body.model_dump(exclude_unset=True)
    return await run_in_threadpool(repositories.update_user, user_id, changes)


@router.delete("/{user_id}")
async def delete_user(user_id: int):
    await run_in_threadpool(repositories.delete_user, user_id)
    return {"message": "User deleted successfully"}


@router.get("/{user_id}/trading")
async def get_user_trading(user_id: int, engine: AggregationEngine = Depends(get_engine)):
    """Live on-chain data for a stored user's wallet."""
    user = await run_in_threadpool(repositories.get_user, user_id)
    data = await engine.get_wallet_data(user["walletAddress"])
    return {
        "userId": user["id"],
        "walletAddress": user["walletAddress"],
        "balances": data.balances,
        "transactions": data.transactions,
        "totalVolume": data.total_volume,
        "taxWalletTransactions": data.tax_wallet_transactions,
        "lastUpdated": datetime.now(timezone.utc).isoformat(),
        "isLive": data.is_live,
    }
