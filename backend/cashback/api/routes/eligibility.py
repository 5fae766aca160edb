"""Cashback eligibility endpoint."""
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from starlette.concurrency import run_in_threadpool
from cashback.api.dependencies import client_ip, get_engine, get_rate_limiter
from cashback.database import repositories
from cashback.models.eligibility import EligibilityRequest, EligibilityResult
from cashback.models.user import EligibleUserTransaction, EligibleUserUpsert
from cashback.services.aggregation_engine import AggregationEngine
from cashback.services.rate_limiter import RateLimiter
from cashback.utils.errors import RateLimitExceeded, WalletValidationError
from cashback.utils.logger import get_logger
from cashback.utils.validation import validate_wallet_address

router = APIRouter()

logger = get_logger(__name__)


def record_eligible_user(result: EligibilityResult) -> None:
    """Upsert the eligible user; failures are logged and swallowed."""
    payload = EligibleUserUpsert(
        wallet_address=result.wallet_address,
        total_amount_sent=result.total_amount_sent,
        cashback_amount=result.cashback_amount,
        transaction_count=result.transaction_count,
        transactions=[
            EligibleUserTransaction(
                hash=tx.hash,
                amount=tx.amount,
                chain=tx.chain.value,
                timestamp=tx.timestamp,
                to=tx.to,
            )
            for tx in result.transactions
        ],
    )
    try:
        repositories.upsert_eligible_user(payload)
    except Exception as e:
        logger.error(
            "eligible_user_store_failed",
            wallet=result.wallet_address,
            error=str(e) or type(e).__name__,
        )


@router.post("", response_model=EligibilityResult)
async def check_eligibility(
    body: EligibilityRequest,
    request: Request,
    response: Response,
    engine: AggregationEngine = Depends(get_engine),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Check whether a wallet has sent enough to the tax wallets for cashback.

    Limited per client IP. Eligible wallets are recorded as eligible users
    on a best-effort basis.
    """
    key = f"eligibility:{client_ip(request)}"
    if not limiter.hit(key):
        raise RateLimitExceeded(
            "Rate limit exceeded. Please try again later.",
            retry_after=int(limiter.reset_in(key)) + 1,
        )
    response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
    response.headers["X-RateLimit-Remaining"] = str(limiter.remaining(key))

    try:
        wallet_address = validate_wallet_address(body.wallet_address)
    except WalletValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = await engine.check_eligibility(wallet_address)

    if result.is_eligible:
        await run_in_threadpool(record_eligible_user, result)

    return result
