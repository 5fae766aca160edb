"""Server-sent event stream of user and dashboard updates."""
import asyncio
import json
import random
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from starlette.concurrency import run_in_threadpool

from cashback.config import settings
from cashback.database import repositories
from cashback.database.connection import is_database_available
from cashback.utils.errors import PersistenceError
from cashback.utils.logger import get_logger

logger = get_logger(__name__)


def format_sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


class RealtimeNotifier:
    """
    Builds one update per tick.

    With a wallet the update is a user_update for that wallet, otherwise a
    dashboard_update. When the database is down the values are synthetic and
    flagged is_live=False.
    """

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        db_available: Callable[[], bool] = is_database_available,
        rng: Optional[random.Random] = None,
    ):
        self.interval_seconds = settings.realtime_interval_seconds if interval_seconds is None else interval_seconds
        self.db_available = db_available
        self.rng = rng or random.Random()

    def synthetic_user_update(self) -> Dict[str, Any]:
        return {
            "type": "user_update",
            "data": {
                "totalVolume": self.rng.randint(1000, 51000),
                "cashbackAmount": self.rng.randint(100, 1100),
                "transactionCount": self.rng.randint(5, 105),
                "lastTransaction": (
                    datetime.now(timezone.utc) - timedelta(seconds=self.rng.uniform(0, 7 * 24 * 3600))
                ).isoformat(),
                "status": "ACTIVE",
                "isEligible": self.rng.random() > 0.3,
                "isLive": False,
            },
        }

    def synthetic_dashboard_update(self) -> Dict[str, Any]:
        return {
            "type": "dashboard_update",
            "data": {
                "totalUsers": self.rng.randint(50, 150),
                "activeUsers": self.rng.randint(25, 75),
                "totalVolume": self.rng.randint(500000, 1500000),
                "totalCashback": self.rng.randint(10000, 60000),
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "isLive": False,
            },
        }

    def build_update(self, wallet: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """One update, or None for a wallet that has no stored user."""
        if not self.db_available():
            return self.synthetic_user_update() if wallet else self.synthetic_dashboard_update()

        if wallet:
            try:
                user = repositories.get_user_by_wallet(wallet)
            except PersistenceError as e:
                logger.warning("realtime_user_lookup_failed", wallet=wallet, error=str(e))
                return self.synthetic_user_update()
            if user is None:
                return None
            transactions = user["transactions"]
            return {
                "type": "user_update",
                "data": {
                    "totalVolume": user["totalVolume"],
                    "cashbackAmount": user["cashbackAmount"],
                    "transactionCount": len(transactions),
                    "lastTransaction": transactions[0]["timestamp"] if transactions else None,
                    "status": user["status"],
                    "isEligible": user["cashbackEligible"] > 0,
                    "isLive": True,
                },
            }

        try:
            totals = repositories.dashboard_totals()
        except PersistenceError as e:
            logger.warning("realtime_dashboard_failed", error=str(e))
            return self.synthetic_dashboard_update()
        return {
            "type": "dashboard_update",
            "data": {
                **totals,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "isLive": True,
            },
        }

    async def stream(
        self,
        is_disconnected: Callable[[], Awaitable[bool]],
        wallet: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """Emit one SSE frame per interval until the client goes away."""
        logger.info("realtime_stream_opened", wallet=wallet)
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                if await is_disconnected():
                    break
                try:
                    update = await run_in_threadpool(self.build_update, wallet)
                except Exception as e:
                    logger.error("realtime_update_failed", wallet=wallet, error=str(e))
                    update = {"type": "error", "data": {"message": "Failed to fetch data"}}
                if update is not None:
                    yield format_sse(update)
        finally:
            logger.info("realtime_stream_closed", wallet=wallet)
