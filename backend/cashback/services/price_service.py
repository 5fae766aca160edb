"""Current price fetching service."""
from typing import Dict, Optional
import httpx
from cashback.config import Settings, settings as default_settings
from cashback.models.wallet import PriceQuote
from cashback.services.cache_service import CacheService
from cashback.utils.errors import PriceServiceError
from cashback.utils.logger import get_logger

# Native asset symbol to CoinGecko ID mapping
TOKEN_MAPPING = {
    "SOL": "solana",
    "ETH": "ethereum",
    "BNB": "binancecoin",
}

# Native asset symbol to Binance USDT pair
BINANCE_PAIRS = {
    "SOL": "SOLUSDT",
    "ETH": "ETHUSDT",
    "BNB": "BNBUSDT",
}

# Last resort when both upstream sources fail
STATIC_PRICES = {"SOL": 180.0, "ETH": 2800.0, "BNB": 550.0}

logger = get_logger(__name__)


class PriceService:
    """
    USD prices for SOL, ETH and BNB.

    CoinGecko first, Binance if CoinGecko raises, static defaults if both
    raise. get_current_prices never raises.
    """

    def __init__(
        self,
        cache_service: Optional[CacheService] = None,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        s = settings or default_settings
        self.coingecko_url = s.coingecko_base_url
        self.binance_url = s.binance_base_url
        self.api_key = s.coingecko_api_key
        self.cache = cache_service or CacheService(ttl_seconds=s.price_cache_ttl_seconds)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=s.request_timeout_seconds)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def fetch_coingecko_prices(self) -> Dict[str, float]:
        params = {
            "ids": ",".join(TOKEN_MAPPING.values()),
            "vs_currencies": "usd",
        }
        if self.api_key:
            params["x_cg_demo_api_key"] = self.api_key

        try:
            response = await self.client.get(f"{self.coingecko_url}/simple/price", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise PriceServiceError(f"CoinGecko returned {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise PriceServiceError(f"Error fetching CoinGecko prices: {e}") from e

        return {
            symbol: float((data.get(cg_id) or {}).get("usd") or 0)
            for symbol, cg_id in TOKEN_MAPPING.items()
        }

    async def fetch_binance_prices(self) -> Dict[str, float]:
        symbols = "[" + ",".join(f'"{pair}"' for pair in BINANCE_PAIRS.values()) + "]"
        try:
            response = await self.client.get(f"{self.binance_url}/ticker/price", params={"symbols": symbols})
            response.raise_for_status()
            rows = response.json() or []
        except httpx.HTTPStatusError as e:
            raise PriceServiceError(f"Binance returned {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise PriceServiceError(f"Error fetching Binance prices: {e}") from e

        by_pair = {row["symbol"]: float(row["price"]) for row in rows if "symbol" in row and "price" in row}
        return {symbol: by_pair.get(pair, 0.0) for symbol, pair in BINANCE_PAIRS.items()}

    async def get_current_prices(self) -> PriceQuote:
        """
        Current USD prices with the source that answered.

        Returns:
            PriceQuote; its source is "coingecko", "binance" or "static"
        """
        cache_key = self.cache.make_key("prices", "usd")
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            quote = PriceQuote(prices=await self.fetch_coingecko_prices(), source="coingecko")
        except PriceServiceError as cg_error:
            logger.warning("coingecko_price_failed", error=str(cg_error))
            try:
                quote = PriceQuote(prices=await self.fetch_binance_prices(), source="binance")
            except PriceServiceError as bn_error:
                logger.warning("binance_price_failed", error=str(bn_error))
                return PriceQuote(prices=dict(STATIC_PRICES), source="static")

        self.cache.set(cache_key, quote)
        return quote
