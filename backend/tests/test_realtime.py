"""Realtime notifier updates and SSE framing."""
import json
import random
from datetime import datetime

import pytest

from cashback.database import repositories
from cashback.services.realtime import RealtimeNotifier, format_sse

from conftest import TAX_ETH, USER_WALLET


def parse_frame(frame: str) -> dict:
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


def test_format_sse():
    assert format_sse({"type": "ping"}) == 'data: {"type": "ping"}\n\n'


def test_synthetic_updates_when_database_is_down():
    notifier = RealtimeNotifier(interval_seconds=0, db_available=lambda: False, rng=random.Random(1))

    user = notifier.build_update(USER_WALLET)
    dashboard = notifier.build_update()

    assert user["type"] == "user_update"
    assert user["data"]["isLive"] is False
    assert dashboard["type"] == "dashboard_update"
    assert dashboard["data"]["isLive"] is False


def test_user_update_from_database(db):
    user = repositories.create_user(USER_WALLET, "ETH")
    repositories.update_user(user["id"], {"total_volume": 75.0, "cashback_eligible": 75.0, "cashback_amount": 1.5})
    repositories.record_user_transaction(user["id"], {
        "hash": "0xh1", "from": USER_WALLET, "to": TAX_ETH, "amount": 1.0,
        "chain": "ETH", "timestamp": datetime(2024, 5, 1, 12, 0),
    })
    notifier = RealtimeNotifier(interval_seconds=0, db_available=lambda: True)

    update = notifier.build_update(USER_WALLET)

    assert update["type"] == "user_update"
    assert update["data"]["transactionCount"] == 1
    assert update["data"]["lastTransaction"] == "2024-05-01T12:00:00"
    assert update["data"]["isEligible"] is True
    assert update["data"]["isLive"] is True


def test_unknown_wallet_yields_no_update(db):
    notifier = RealtimeNotifier(interval_seconds=0, db_available=lambda: True)
    assert notifier.build_update("0x" + "ee" * 20) is None


def test_dashboard_update_from_database(db):
    repositories.create_user(USER_WALLET, "ETH")
    notifier = RealtimeNotifier(interval_seconds=0, db_available=lambda: True)

    update = notifier.build_update()

    assert update["data"]["totalUsers"] == 1
    assert update["data"]["isLive"] is True


@pytest.mark.asyncio
async def test_stream_stops_when_client_disconnects():
    checks = {"n": 0}

    async def is_disconnected():
        checks["n"] += 1
        return checks["n"] > 2

    notifier = RealtimeNotifier(interval_seconds=0, db_available=lambda: False, rng=random.Random(2))
    frames = [frame async for frame in notifier.stream(is_disconnected)]

    assert len(frames) == 2
    assert all(parse_frame(f)["type"] == "dashboard_update" for f in frames)


@pytest.mark.asyncio
async def test_stream_reports_errors_as_events(monkeypatch):
    checks = {"n": 0}

    async def is_disconnected():
        checks["n"] += 1
        return checks["n"] > 1

    notifier = RealtimeNotifier(interval_seconds=0, db_available=lambda: True)

    def explode(wallet=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(notifier, "build_update", explode)
    frames = [frame async for frame in notifier.stream(is_disconnected)]

    assert parse_frame(frames[0]) == {"type": "error", "data": {"message": "Failed to fetch data"}}
