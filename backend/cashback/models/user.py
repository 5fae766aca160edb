"""User, cashback and eligible-user API models."""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from cashback.models.transaction import Chain


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    SUSPENDED = "SUSPENDED"


class EligibleUserStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


class CreateUserRequest(BaseModel):
    wallet_address: str = Field(..., min_length=1, alias="walletAddress")
    chain: Chain

    class Config:
        populate_by_name = True


class UpdateUserRequest(BaseModel):
    total_volume: Optional[float] = Field(None, alias="totalVolume")
    cashback_eligible: Optional[float] = Field(None, alias="cashbackEligible")
    cashback_amount: Optional[float] = Field(None, alias="cashbackAmount")
    status: Optional[UserStatus] = None

    class Config:
        populate_by_name = True


class ProcessCashbackRequest(BaseModel):
    user_id: int = Field(..., alias="userId")
    amount: float = Field(..., ge=0)

    class Config:
        populate_by_name = True


class EligibleUserTransaction(BaseModel):
    hash: str
    amount: float
    chain: str
    timestamp: datetime
    to: str


class EligibleUserUpsert(BaseModel):
    """Payload for creating or refreshing an eligible user."""
    wallet_address: str = Field(..., min_length=1, alias="walletAddress")
    total_amount_sent: float = Field(default=0.0, alias="totalAmountSent")
    cashback_amount: float = Field(default=0.0, alias="cashbackAmount")
    transaction_count: int = Field(default=0, alias="transactionCount")
    transactions: List[EligibleUserTransaction] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class EligibleUserStatusUpdate(BaseModel):
    user_id: int = Field(..., alias="userId")
    status: EligibleUserStatus

    class Config:
        populate_by_name = True
