"""Shared FastAPI dependencies."""
from fastapi import Request
from cashback.services.aggregation_engine import AggregationEngine
from cashback.services.rate_limiter import RateLimiter
from cashback.services.realtime import RealtimeNotifier


def get_engine(request: Request) -> AggregationEngine:
    return request.app.state.engine


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.eligibility_limiter


def get_notifier(request: Request) -> RealtimeNotifier:
    return request.app.state.notifier


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
