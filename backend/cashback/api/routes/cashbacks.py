"""Cashback endpoints."""
from typing import Optional
from fastapi import APIRouter, Query
from starlette.concurrency import run_in_threadpool
from cashback.database import repositories
from cashback.models.user import ProcessCashbackRequest

router = APIRouter()


@router.get("")
async def list_cashbacks(
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    return await run_in_threadpool(repositories.list_cashbacks, status, page, limit)


@router.post("", status_code=201)
async def create_cashback(body: ProcessCashbackRequest):
    """Record a pending cashback for a user."""
    return await run_in_threadpool(repositories.create_cashback, body.user_id, body.amount)
