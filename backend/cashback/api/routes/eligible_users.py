"""Eligible user ledger endpoints."""
from typing import Optional
from fastapi import APIRouter, Query
from starlette.concurrency import run_in_threadpool
from cashback.database import repositories
from cashback.models.user import EligibleUserStatusUpdate, EligibleUserUpsert
from cashback.services.cashback_service import get_cashback_stats

router = APIRouter()


@router.get("")
async def list_eligible_users(status: Optional[str] = Query(None, description="pending, approved, paid or all")):
    """Eligible users, optionally filtered by status, with ledger-wide totals."""
    all_users = await run_in_threadpool(repositories.list_eligible_users)
    users = all_users if not status or status == "all" else [u for u in all_users if u["status"] == status]
    stats = get_cashback_stats(all_users)
    return {
        "users": users,
        "summary": {
            "totalUsers": stats["totalUsers"],
            "activeUsers": stats["activeUsers"],
            "totalCashbackOwed": stats["totalCashbackOwed"],
            "pendingUsers": stats["pendingUsers"],
            "approvedUsers": stats["approvedUsers"],
            "paidUsers": stats["paidUsers"],
        },
    }


@router.post("")
async def upsert_eligible_user(body: EligibleUserUpsert):
    """Create an eligible user or refresh the one with the same wallet (any casing)."""
    user = await run_in_threadpool(repositories.upsert_eligible_user, body)
    return {"success": True, "user": user}


@router.put("")
async def update_eligible_user_status(body: EligibleUserStatusUpdate):
    user = await run_in_threadpool(repositories.update_eligible_user_status, body.user_id, body.status.value)
    return {"success": True, "user": user}
