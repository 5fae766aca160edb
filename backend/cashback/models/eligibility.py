"""Eligibility request and result models."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from cashback.models.transaction import Chain


class EligibilityRequest(BaseModel):
    """Request body for an eligibility check."""
    wallet_address: Optional[str] = Field(None, alias="walletAddress")

    class Config:
        populate_by_name = True


class QualifyingTransaction(BaseModel):
    """Transfer from the checked wallet to an active tax wallet."""
    hash: str
    amount: float
    usd_value: Optional[float] = Field(None, alias="usdValue")
    chain: Chain
    timestamp: datetime
    to: str

    class Config:
        populate_by_name = True


class EligibilityResult(BaseModel):
    """Outcome of one eligibility check."""
    wallet_address: str = Field(..., alias="walletAddress")
    is_eligible: bool = Field(..., alias="isEligible")
    total_amount_sent: float = Field(..., alias="totalAmountSent")
    cashback_amount: float = Field(..., alias="cashbackAmount")
    transaction_count: int = Field(..., alias="transactionCount")
    transactions: List[QualifyingTransaction] = Field(default_factory=list)
    checked_at: datetime = Field(..., alias="checkedAt")
    threshold: float
    unit: str = Field(default="usd", description="usd or native")
    is_live: bool = Field(default=True, alias="isLive")

    class Config:
        populate_by_name = True
