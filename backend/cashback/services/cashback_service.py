"""Cashback arithmetic over eligible users."""
from typing import Any, Dict, Iterable, List
from cashback.config import settings


def calculate_cashback(volume: float, rate: float = None) -> float:
    """Cashback owed on a qualifying volume."""
    return volume * (settings.cashback_rate if rate is None else rate)


def get_total_cashback_owed(users: Iterable[Dict[str, Any]]) -> float:
    """Cashback of every eligible user not yet paid."""
    return sum(u.get("cashbackAmount", 0.0) for u in users if u.get("status") != "paid")


def get_cashback_stats(users: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Summary over eligible users as returned by the repository.

    activeUsers counts pending and approved users; totalCashbackOwed excludes
    paid ones.
    """
    total_users = len(users)
    total_owed = get_total_cashback_owed(users)
    by_status = {status: 0 for status in ("pending", "approved", "paid")}
    for user in users:
        if user.get("status") in by_status:
            by_status[user["status"]] += 1

    return {
        "totalUsers": total_users,
        "activeUsers": by_status["pending"] + by_status["approved"],
        "pendingUsers": by_status["pending"],
        "approvedUsers": by_status["approved"],
        "paidUsers": by_status["paid"],
        "totalCashbackOwed": total_owed,
        "totalAmountSent": sum(u.get("totalAmountSent", 0.0) for u in users),
        "averageCashback": total_owed / total_users if total_users else 0.0,
    }
