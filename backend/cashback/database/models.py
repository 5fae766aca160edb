"""SQLAlchemy models for users, their transactions, cashbacks and eligible users."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from cashback.database.connection import Base


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class User(Base):
    """Program participant, one row per wallet."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(64), unique=True, nullable=False, index=True)
    chain = Column(String(8), nullable=False)
    total_volume = Column(Float, nullable=False, default=0.0)
    cashback_eligible = Column(Float, nullable=False, default=0.0)
    cashback_amount = Column(Float, nullable=False, default=0.0)
    status = Column(String(16), nullable=False, default="PENDING", index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = relationship(
        "UserTransaction",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="desc(UserTransaction.timestamp)",
    )
    cashbacks = relationship(
        "Cashback",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="desc(Cashback.created_at)",
    )

    def to_dict(self, transactions: int | None = None, cashbacks: int | None = None) -> dict[str, Any]:
        txs = self.transactions if transactions is None else self.transactions[:transactions]
        cbs = self.cashbacks if cashbacks is None else self.cashbacks[:cashbacks]
        return {
            "id": self.id,
            "walletAddress": self.wallet_address,
            "chain": self.chain,
            "totalVolume": self.total_volume,
            "cashbackEligible": self.cashback_eligible,
            "cashbackAmount": self.cashback_amount,
            "status": self.status,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "transactions": [t.to_dict() for t in txs],
            "cashbacks": [c.to_dict(include_user=False) for c in cbs],
        }


class UserTransaction(Base):
    """Transfer recorded against a user."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    hash = Column(String(128), unique=True, nullable=False, index=True)
    from_address = Column(String(64), nullable=False)
    to_address = Column(String(64), nullable=False)
    amount = Column(Float, nullable=False, default=0.0)
    chain = Column(String(8), nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)
    is_tax_wallet = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="transactions")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "hash": self.hash,
            "from": self.from_address,
            "to": self.to_address,
            "amount": self.amount,
            "chain": self.chain,
            "timestamp": _iso(self.timestamp),
            "isTaxWallet": self.is_tax_wallet,
        }


class Cashback(Base):
    """Cashback owed to a user."""

    __tablename__ = "cashbacks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_wallet = Column(String(64), nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(String(16), nullable=False, default="PENDING", index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="cashbacks")

    def to_dict(self, include_user: bool = True) -> dict[str, Any]:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "userWallet": self.user_wallet,
            "amount": self.amount,
            "status": self.status,
            "createdAt": _iso(self.created_at),
        }
        if include_user and self.user is not None:
            data["user"] = self.user.to_dict(transactions=0, cashbacks=0)
        return data


class EligibleUser(Base):
    """
    Wallet that passed an eligibility check. wallet_key is the lowercase
    address and is the upsert key; wallet_address keeps the submitted casing.
    """

    __tablename__ = "eligible_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_key = Column(String(64), unique=True, nullable=False, index=True)
    wallet_address = Column(String(64), nullable=False)
    total_amount_sent = Column(Float, nullable=False, default=0.0)
    cashback_amount = Column(Float, nullable=False, default=0.0)
    transaction_count = Column(Integer, nullable=False, default=0)
    transactions_json = Column(Text, nullable=False, default="[]")
    status = Column(String(16), nullable=False, default="pending", index=True)
    eligibility_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_checked = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def transactions(self) -> list[dict[str, Any]]:
        return json.loads(self.transactions_json or "[]")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "walletAddress": self.wallet_address,
            "totalAmountSent": self.total_amount_sent,
            "cashbackAmount": self.cashback_amount,
            "transactionCount": self.transaction_count,
            "transactions": self.transactions,
            "status": self.status,
            "eligibilityDate": _iso(self.eligibility_date),
            "lastChecked": _iso(self.last_checked),
        }
