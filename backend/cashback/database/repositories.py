"""
Repository functions over the relational store.

Every function opens its own session_scope; results are returned as plain
dicts so callers never hold detached ORM instances.
"""
from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from cashback.database.connection import session_scope
from cashback.database.models import Cashback, EligibleUser, User, UserTransaction
from cashback.models.user import EligibleUserUpsert
from cashback.utils.errors import ConflictError, NotFoundError, PersistenceError
from cashback.utils.logger import get_logger

logger = get_logger(__name__)


def _pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


def list_users(
    status: Optional[str] = None,
    chain: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> dict[str, Any]:
    """Page of users, newest first, with their 5 latest transactions and cashbacks."""
    page = max(page, 1)
    limit = max(limit, 1)
    with session_scope() as session:
        query = select(User)
        count_query = select(func.count(User.id))
        if status:
            query = query.where(User.status == status)
            count_query = count_query.where(User.status == status)
        if chain:
            query = query.where(User.chain == chain)
            count_query = count_query.where(User.chain == chain)

        total = session.execute(count_query).scalar_one()
        users = session.execute(
            query.options(selectinload(User.transactions), selectinload(User.cashbacks))
            .order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return {
            "users": [u.to_dict(transactions=5, cashbacks=5) for u in users],
            "pagination": _pagination(page, limit, total),
        }


def create_user(wallet_address: str, chain: str) -> dict[str, Any]:
    with session_scope() as session:
        existing = session.execute(
            select(User).where(User.wallet_address == wallet_address)
        ).scalar_one_or_none()
        if existing is not None:
            raise ConflictError("User already exists")
        user = User(wallet_address=wallet_address, chain=chain)
        session.add(user)
        session.flush()
        logger.info("user_created", user_id=user.id, wallet=wallet_address, chain=chain)
        return user.to_dict()


def get_user(user_id: int) -> dict[str, Any]:
    with session_scope() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user.to_dict()


def get_user_by_wallet(wallet_address: str) -> Optional[dict[str, Any]]:
    """User with its 10 latest transactions and 5 latest cashbacks, or None."""
    with session_scope() as session:
        user = session.execute(
            select(User).where(User.wallet_address == wallet_address)
        ).scalar_one_or_none()
        return user.to_dict(transactions=10, cashbacks=5) if user else None


def update_user(user_id: int, changes: dict[str, Any]) -> dict[str, Any]:
    with session_scope() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        for field, value in changes.items():
            setattr(user, field, value.value if hasattr(value, "value") else value)
        session.flush()
        return user.to_dict()


def delete_user(user_id: int) -> None:
    with session_scope() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        session.delete(user)
    logger.info("user_deleted", user_id=user_id)


def record_user_transaction(user_id: int, tx: dict[str, Any]) -> dict[str, Any]:
    """Store one transfer for a user; an already known hash is returned unchanged."""
    with session_scope() as session:
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        existing = session.execute(
            select(UserTransaction).where(UserTransaction.hash == tx["hash"])
        ).scalar_one_or_none()
        if existing is not None:
            return existing.to_dict()
        row = UserTransaction(
            user_id=user_id,
            hash=tx["hash"],
            from_address=tx.get("from", ""),
            to_address=tx.get("to", ""),
            amount=float(tx.get("amount", 0.0)),
            chain=tx["chain"],
            timestamp=tx["timestamp"],
            is_tax_wallet=bool(tx.get("isTaxWallet", False)),
        )
        session.add(row)
        session.flush()
        return row.to_dict()


def dashboard_totals() -> dict[str, Any]:
    """Aggregates for the realtime dashboard stream."""
    with session_scope() as session:
        total_users = session.execute(select(func.count(User.id))).scalar_one()
        active_users = session.execute(
            select(func.count(User.id)).where(User.status == "ACTIVE")
        ).scalar_one()
        total_volume = session.execute(select(func.sum(User.total_volume))).scalar_one()
        total_cashback = session.execute(select(func.sum(User.cashback_amount))).scalar_one()
        return {
            "totalUsers": total_users,
            "activeUsers": active_users,
            "totalVolume": float(total_volume or 0),
            "totalCashback": float(total_cashback or 0),
        }


# -----------------------------------------------------------------------------
# Cashbacks
# -----------------------------------------------------------------------------


def list_cashbacks(status: Optional[str] = None, page: int = 1, limit: int = 10) -> dict[str, Any]:
    page = max(page, 1)
    limit = max(limit, 1)
    with session_scope() as session:
        query = select(Cashback)
        count_query = select(func.count(Cashback.id))
        if status:
            query = query.where(Cashback.status == status)
            count_query = count_query.where(Cashback.status == status)
        total = session.execute(count_query).scalar_one()
        rows = session.execute(
            query.options(selectinload(Cashback.user))
            .order_by(Cashback.created_at.desc(), Cashback.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return {
            "cashbacks": [c.to_dict() for c in rows],
            "pagination": _pagination(page, limit, total),
        }


def create_cashback(user_id: int, amount: float) -> dict[str, Any]:
    with session_scope() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        cashback = Cashback(
            user_id=user.id,
            user_wallet=user.wallet_address,
            amount=amount,
            status="PENDING",
        )
        session.add(cashback)
        session.flush()
        logger.info("cashback_created", user_id=user_id, amount=amount)
        return cashback.to_dict()


# -----------------------------------------------------------------------------
# Eligible users
# -----------------------------------------------------------------------------


def list_eligible_users(status: Optional[str] = None) -> list[dict[str, Any]]:
    with session_scope() as session:
        query = select(EligibleUser).order_by(EligibleUser.eligibility_date.desc(), EligibleUser.id.desc())
        if status and status != "all":
            query = query.where(EligibleUser.status == status)
        return [u.to_dict() for u in session.execute(query).scalars().all()]


def _apply_eligible_payload(row: EligibleUser, payload: EligibleUserUpsert, now: datetime) -> None:
    row.wallet_address = payload.wallet_address
    row.total_amount_sent = payload.total_amount_sent
    row.cashback_amount = payload.cashback_amount
    row.transaction_count = payload.transaction_count
    row.transactions_json = json.dumps(
        [t.model_dump(mode="json") for t in payload.transactions]
    )
    row.last_checked = now


def _upsert_once(payload: EligibleUserUpsert, key: str) -> dict[str, Any]:
    now = datetime.utcnow()
    with session_scope() as session:
        row = session.execute(
            select(EligibleUser).where(EligibleUser.wallet_key == key).with_for_update()
        ).scalar_one_or_none()
        created = row is None
        if created:
            row = EligibleUser(wallet_key=key, status="pending", eligibility_date=now)
            session.add(row)
        _apply_eligible_payload(row, payload, now)
        session.flush()
        data = row.to_dict()
    logger.info(
        "eligible_user_upserted",
        wallet=payload.wallet_address,
        created=created,
        cashback=payload.cashback_amount,
    )
    return data


def upsert_eligible_user(payload: EligibleUserUpsert) -> dict[str, Any]:
    """
    Insert or refresh an eligible user keyed by the lowercase wallet address.

    Status and eligibility date survive a refresh. A concurrent insert of the
    same key surfaces as an IntegrityError; the second attempt finds the row
    and updates it.
    """
    key = payload.wallet_address.strip().lower()
    try:
        return _upsert_once(payload, key)
    except PersistenceError as e:
        if not isinstance(e.__cause__, IntegrityError):
            raise
        logger.info("eligible_user_upsert_retry", wallet=payload.wallet_address)
        return _upsert_once(payload, key)


def update_eligible_user_status(user_id: int, status: str) -> dict[str, Any]:
    with session_scope() as session:
        row = session.get(EligibleUser, user_id)
        if row is None:
            raise NotFoundError("User not found")
        row.status = status
        session.flush()
        logger.info("eligible_user_status_updated", user_id=user_id, status=status)
        return row.to_dict()
