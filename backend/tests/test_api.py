"""HTTP surface through FastAPI's TestClient."""
from datetime import timedelta

from cashback.models.transaction import Chain

from conftest import TAX_ETH, TAX_SOL, USER_WALLET, make_tx


def seed_transfers(fake_source, amounts, sender=USER_WALLET):
    fake_source.transactions[Chain.ETH] = [
        make_tx(f"0xh{i}", sender, TAX_ETH, amount, age=timedelta(hours=i + 1))
        for i, amount in enumerate(amounts)
    ]


def test_root_and_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["docs"] == "/docs"


def test_balances_are_formatted_for_display(client, fake_source):
    fake_source.balances = {Chain.SOL: 1.5}
    fake_source.prices = {"SOL": 100.0, "ETH": 1.0, "BNB": 1.0}

    body = client.get("/api/blockchain", params={"type": "balances"}).json()

    sol = body["balances"][0]
    assert sol == {"chain": "SOL", "symbol": "SOL", "amount": "1.500000", "usdValue": "$150.00", "available": True}
    assert body["isLive"] is True
    assert len(body["balances"]) == 3


def test_transactions_endpoint_returns_summary_and_period_count(client, fake_source):
    seed_transfers(fake_source, [1, 2, 3])

    body = client.get("/api/blockchain", params={"type": "transactions", "period": "daily"}).json()

    assert len(body["transactions"]) == 3
    assert body["summary"]["total"] == 3
    assert body["periodCount"] == 3
    assert body["transactions"][0]["isTaxWallet"] is True
    assert body["transactions"][0]["to"] == TAX_ETH


def test_blockchain_rejects_unknown_type_and_period(client):
    bad_type = client.get("/api/blockchain", params={"type": "nonsense"})
    bad_period = client.get("/api/blockchain", params={"type": "transactions", "period": "yearly"})

    assert bad_type.status_code == 400
    assert bad_type.json() == {"error": "Invalid type parameter"}
    assert bad_period.status_code == 400


def test_dashboard_prices_and_tax_wallets(client, fake_source):
    fake_source.balances = {Chain.ETH: 2.0}
    fake_source.prices = {"SOL": 1.0, "ETH": 10.0, "BNB": 1.0}
    seed_transfers(fake_source, [1])

    dashboard = client.get("/api/blockchain", params={"type": "dashboard"}).json()
    prices = client.get("/api/blockchain", params={"type": "prices"}).json()
    wallets = client.get("/api/blockchain", params={"type": "tax-wallets"}).json()
    volume = client.get("/api/blockchain", params={"type": "volume"}).json()

    assert dashboard["totalVolume"] == 20.0
    assert dashboard["totalTransactions"] == 1
    assert prices == {"prices": {"SOL": 1.0, "ETH": 10.0, "BNB": 1.0}, "source": "test"}
    assert {w["address"] for w in wallets["taxWallets"]} == {TAX_SOL, TAX_ETH, "0x" + "cd" * 20}
    assert volume == {"totalVolume": 20.0}


def test_eligibility_requires_wallet_address(client):
    missing = client.post("/api/eligibility", json={})
    malformed = client.post("/api/eligibility", json={"walletAddress": "not-a-wallet"})

    assert missing.status_code == 400
    assert missing.json() == {"error": "Wallet address is required"}
    assert malformed.status_code == 400
    assert malformed.json() == {"error": "Invalid wallet address format"}


def test_eligible_wallet_is_recorded(client, fake_source):
    seed_transfers(fake_source, [20, 20, 15])

    response = client.post("/api/eligibility", json={"walletAddress": USER_WALLET})
    body = response.json()

    assert response.status_code == 200
    assert body["isEligible"] is True
    assert body["totalAmountSent"] == 55.0
    assert body["cashbackAmount"] == 1.1
    assert body["transactionCount"] == 3
    assert response.headers["X-RateLimit-Limit"] == "10"

    ledger = client.get("/api/eligible-users").json()
    assert [u["walletAddress"] for u in ledger["users"]] == [USER_WALLET]
    assert ledger["summary"]["pendingUsers"] == 1
    assert ledger["summary"]["totalCashbackOwed"] == 1.1


def test_ineligible_wallet_is_not_recorded(client, fake_source):
    seed_transfers(fake_source, [10])

    body = client.post("/api/eligibility", json={"walletAddress": USER_WALLET}).json()

    assert body["isEligible"] is False
    assert body["cashbackAmount"] == 0.0
    assert client.get("/api/eligible-users").json()["users"] == []


def test_eligibility_is_rate_limited_per_ip(client):
    headers = {"X-Forwarded-For": "203.0.113.9"}
    codes = [
        client.post("/api/eligibility", json={"walletAddress": USER_WALLET}, headers=headers).status_code
        for _ in range(11)
    ]
    other = client.post("/api/eligibility", json={"walletAddress": USER_WALLET},
                        headers={"X-Forwarded-For": "198.51.100.1"})

    assert codes[:10] == [200] * 10
    assert codes[10] == 429
    assert other.status_code == 200


def test_rate_limited_response_has_retry_after(client):
    headers = {"X-Forwarded-For": "203.0.113.10"}
    for _ in range(10):
        client.post("/api/eligibility", json={"walletAddress": USER_WALLET}, headers=headers)

    blocked = client.post("/api/eligibility", json={"walletAddress": USER_WALLET}, headers=headers)

    assert blocked.status_code == 429
    assert int(blocked.headers["Retry-After"]) >= 1
    assert "Rate limit" in blocked.json()["error"]


def test_eligible_users_upsert_and_status_update(client):
    payload = {"walletAddress": "0xAB" + "ab" * 19, "totalAmountSent": 60.0,
               "cashbackAmount": 1.2, "transactionCount": 2, "transactions": []}

    created = client.post("/api/eligible-users", json=payload).json()["user"]
    client.post("/api/eligible-users", json={**payload, "walletAddress": payload["walletAddress"].lower()})
    updated = client.put("/api/eligible-users", json={"userId": created["id"], "status": "paid"})
    missing = client.put("/api/eligible-users", json={"userId": 999, "status": "paid"})
    invalid = client.put("/api/eligible-users", json={"userId": created["id"], "status": "lost"})

    assert updated.json()["user"]["status"] == "paid"
    assert missing.status_code == 404
    assert invalid.status_code == 400
    ledger = client.get("/api/eligible-users", params={"status": "paid"}).json()
    assert len(ledger["users"]) == 1
    assert ledger["summary"]["paidUsers"] == 1
    assert ledger["summary"]["totalCashbackOwed"] == 0.0


def test_user_lifecycle(client):
    created = client.post("/api/users", json={"walletAddress": USER_WALLET, "chain": "ETH"})
    duplicate = client.post("/api/users", json={"walletAddress": USER_WALLET, "chain": "ETH"})
    user_id = created.json()["id"]

    assert created.status_code == 201
    assert duplicate.status_code == 409
    assert duplicate.json() == {"error": "User already exists"}

    listing = client.get("/api/users").json()
    assert listing["isLive"] is True
    assert listing["pagination"]["total"] == 1

    updated = client.put(f"/api/users/{user_id}", json={"status": "ACTIVE", "totalVolume": 42.0}).json()
    assert updated["status"] == "ACTIVE"
    assert updated["totalVolume"] == 42.0

    assert client.delete(f"/api/users/{user_id}").json() == {"message": "User deleted successfully"}
    assert client.get(f"/api/users/{user_id}").status_code == 404


def test_user_trading_uses_live_wallet_data(client, fake_source):
    seed_transfers(fake_source, [4, 6])
    user_id = client.post("/api/users", json={"walletAddress": USER_WALLET, "chain": "ETH"}).json()["id"]

    body = client.get(f"/api/users/{user_id}/trading").json()

    assert body["walletAddress"] == USER_WALLET
    assert body["totalVolume"] == 10
    assert len(body["taxWalletTransactions"]) == 2


def test_cashbacks(client):
    user_id = client.post("/api/users", json={"walletAddress": USER_WALLET, "chain": "ETH"}).json()["id"]

    created = client.post("/api/cashbacks", json={"userId": user_id, "amount": 12.5})
    unknown = client.post("/api/cashbacks", json={"userId": 12345, "amount": 1})
    negative = client.post("/api/cashbacks", json={"userId": user_id, "amount": -1})

    assert created.status_code == 201
    assert created.json()["status"] == "PENDING"
    assert unknown.status_code == 404
    assert negative.status_code == 400
    assert client.get("/api/cashbacks").json()["pagination"]["total"] == 1


def test_wallet_lookup(client, fake_source):
    seed_transfers(fake_source, [3])

    ok = client.get(f"/api/wallet/{USER_WALLET}")
    bad = client.get("/api/wallet/nope")

    assert ok.status_code == 200
    assert ok.json()["totalVolume"] == 3
    assert len(ok.json()["balances"]) == 3
    assert bad.status_code == 400


def test_cashback_report_formats(client):
    client.post("/api/eligible-users", json={"walletAddress": USER_WALLET, "totalAmountSent": 55.0,
                                             "cashbackAmount": 1.1, "transactionCount": 3})

    as_json = client.get("/api/reports/cashback").json()
    as_csv = client.get("/api/reports/cashback", params={"format": "csv"})
    as_excel = client.get("/api/reports/cashback", params={"format": "excel"})
    unknown = client.get("/api/reports/cashback", params={"format": "pdf"})

    assert as_json["summary"]["totalUsers"] == 1
    assert as_csv.headers["content-type"].startswith("text/csv")
    assert USER_WALLET in as_csv.text
    assert as_excel.content[:2] == b"PK"
    assert unknown.status_code == 400


def test_failed_ledger_write_does_not_fail_eligibility(client, fake_source, monkeypatch):
    from cashback.database import repositories

    def broken_upsert(payload):
        raise RuntimeError("disk full")

    monkeypatch.setattr(repositories, "upsert_eligible_user", broken_upsert)
    seed_transfers(fake_source, [20, 20, 15])

    response = client.post("/api/eligibility", json={"walletAddress": USER_WALLET})

    assert response.status_code == 200
    assert response.json()["isEligible"] is True
    assert response.json()["cashbackAmount"] == 1.1


def test_unreachable_database_falls_back_to_demo_users(client, db, fake_source, tmp_path):
    db.reset_engine_for_test(f"sqlite:///{tmp_path / 'missing' / 'nowhere.db'}")
    seed_transfers(fake_source, [20, 20, 15])

    users = client.get("/api/users")
    eligibility = client.post("/api/eligibility", json={"walletAddress": USER_WALLET})

    assert users.status_code == 200
    assert users.json()["isLive"] is False
    assert len(users.json()["users"]) == 2
    assert eligibility.status_code == 200
    assert eligibility.json()["isEligible"] is True
