"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from cashback.config import settings
from cashback.api.routes import (
    blockchain,
    cashbacks,
    eligibility,
    eligible_users,
    realtime,
    reports,
    users,
    wallet,
)
from cashback.database.connection import init_db
from cashback.services.aggregation_engine import AggregationEngine
from cashback.services.data_source import DataSource, create_data_source
from cashback.services.rate_limiter import RateLimiter
from cashback.services.realtime import RealtimeNotifier
from cashback.services.tax_wallet_registry import TaxWalletRegistry
from cashback.utils.errors import CashbackError
from cashback.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


def create_app(
    data_source: Optional[DataSource] = None,
    registry: Optional[TaxWalletRegistry] = None,
    notifier: Optional[RealtimeNotifier] = None,
) -> FastAPI:
    """
    Build the application.

    Tests pass their own data source and registry; otherwise both come from
    settings once, at startup.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            init_db()
        except CashbackError as e:
            logger.error("database_init_failed", error=str(e))
        logger.info(
            "app_started",
            data_source="live" if app.state.engine.data_source.is_live else "synthetic",
            tax_wallets=len(app.state.engine.registry.active_wallets()),
        )
        yield
        await app.state.engine.data_source.aclose()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Tax wallet aggregation and cashback eligibility API",
        lifespan=lifespan,
    )

    registry = registry or TaxWalletRegistry.from_settings()
    app.state.engine = AggregationEngine(
        data_source or create_data_source(registry=registry),
        registry=registry,
    )
    app.state.eligibility_limiter = RateLimiter(
        settings.eligibility_rate_limit,
        settings.eligibility_rate_window_seconds,
    )
    app.state.notifier = notifier or RealtimeNotifier()

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CashbackError)
    async def cashback_error_handler(request: Request, exc: CashbackError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=str(exc))
        retry_after = getattr(exc, "retry_after", None)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc)},
            headers={"Retry-After": str(retry_after)} if retry_after else None,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid input", "details": jsonable_encoder(exc.errors())},
        )

    # Include routers
    prefix = settings.api_prefix
    app.include_router(blockchain.router, prefix=f"{prefix}/blockchain", tags=["blockchain"])
    app.include_router(eligibility.router, prefix=f"{prefix}/eligibility", tags=["eligibility"])
    app.include_router(eligible_users.router, prefix=f"{prefix}/eligible-users", tags=["eligible-users"])
    app.include_router(realtime.router, prefix=f"{prefix}/realtime", tags=["realtime"])
    app.include_router(users.router, prefix=f"{prefix}/users", tags=["users"])
    app.include_router(cashbacks.router, prefix=f"{prefix}/cashbacks", tags=["cashbacks"])
    app.include_router(wallet.router, prefix=f"{prefix}/wallet", tags=["wallet"])
    app.include_router(reports.router, prefix=f"{prefix}/reports", tags=["reports"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "Cashback Tracker API",
            "version": settings.api_version,
            "docs": "/docs"
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("cashback.main:app", host="0.0.0.0", port=8000, reload=True)
