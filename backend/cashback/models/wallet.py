"""Wallet and price models."""
from datetime import datetime
from typing import Dict
from pydantic import BaseModel, Field
from cashback.models.transaction import Chain


class TaxWalletConfig(BaseModel):
    """One tax wallet registry entry."""
    address: str
    chain: Chain
    is_active: bool = Field(default=True, alias="isActive")

    class Config:
        populate_by_name = True
        frozen = True


class PriceQuote(BaseModel):
    """USD prices for the native assets and the source that supplied them."""
    prices: Dict[str, float]
    source: str = Field(..., description="coingecko, binance, static or synthetic")
    fetched_at: datetime = Field(default_factory=datetime.utcnow, alias="fetchedAt")

    class Config:
        populate_by_name = True

    def price_of(self, chain: Chain) -> float:
        return self.prices.get(chain.symbol, 0.0)
