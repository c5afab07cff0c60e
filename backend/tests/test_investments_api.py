import pytest
from unittest.mock import patch
from conftest import auth_headers


@pytest.mark.asyncio
async def test_create_and_list(client, investor):
    headers = auth_headers(investor)
    r = await client.post("/api/investments", json={
        "tier": "Silver", "amount": 5000, "asset": "bitcoin", "period": 90,
    }, headers=headers)
    assert r.status_code == 201, r.text
    created = r.json()["investment"]
    assert created["status"] == "active"
    assert created["apr"] == 30
    assert created["expected_interest"] == pytest.approx(369.86, abs=0.01)
    assert created["progress"] == 0
    assert created["earned"] == 0

    r = await client.post("/api/investments", json={
        "tier": "bronze", "amount": 1000, "asset": "ETH", "period": 30,
    }, headers=headers)
    assert r.status_code == 201

    r = await client.get("/api/investments", headers=headers)
    rows = r.json()["investments"]
    assert [row["tier"] for row in rows] == ["Bronze", "Silver"]

    r = await client.get("/api/balances", headers=headers)
    assert r.json()["balances"]["bitcoin"] == 15000
    assert r.json()["balances"]["ethereum"] == 19000


@pytest.mark.asyncio
async def test_below_minimum(client, investor):
    r = await client.post("/api/investments", json={
        "tier": "Bronze", "amount": 999, "asset": "bitcoin", "period": 30,
    }, headers=auth_headers(investor))
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "below_minimum"
    assert body["required"] == 1000
    assert body["provided"] == 999


@pytest.mark.asyncio
async def test_insufficient_balance(client, investor):
    r = await client.post("/api/investments", json={
        "tier": "Gold", "amount": 25000, "asset": "solana", "period": 30,
    }, headers=auth_headers(investor))
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "insufficient_balance"
    assert body["available"] == 20000


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"tier": "Platinum", "amount": 10000, "asset": "bitcoin", "period": 30},
    {"tier": "Bronze", "amount": 1000, "asset": "bitcoin", "period": 29},
    {"tier": "Bronze", "amount": 1000, "asset": "bitcoin", "period": 366},
    {"tier": "Bronze", "amount": 1000, "asset": "cardano", "period": 30},
])
async def test_invalid_payloads(client, investor, payload):
    r = await client.post("/api/investments", json=payload, headers=auth_headers(investor))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_kyc_required_to_invest(client, user):
    r = await client.post("/api/investments", json={
        "tier": "Bronze", "amount": 1000, "asset": "bitcoin", "period": 30,
    }, headers=auth_headers(user))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_kyc_requirement_can_be_disabled(client, db):
    from conftest import make_user
    plain = await make_user(db, email="plain@example.com", funds={"bitcoin": 1000})
    with patch("app.routers.investments.settings.INVESTMENT_REQUIRES_KYC", False):
        r = await client.post("/api/investments", json={
            "tier": "Bronze", "amount": 1000, "asset": "bitcoin", "period": 30,
        }, headers=auth_headers(plain))
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_get_single_and_growth(client, investor, user):
    headers = auth_headers(investor)
    r = await client.post("/api/investments", json={
        "tier": "Gold", "amount": 10000, "asset": "bitcoin", "period": 60,
    }, headers=headers)
    inv_id = r.json()["investment"]["id"]

    r = await client.get(f"/api/investments/{inv_id}", headers=headers)
    assert r.status_code == 200
    assert r.json()["investment"]["id"] == inv_id

    r = await client.get(f"/api/investments/{inv_id}/growth", headers=headers)
    assert r.status_code == 200
    assert r.json()["series"] == []

    # Another user's investment looks like it does not exist
    r = await client.get(f"/api/investments/{inv_id}", headers=auth_headers(user))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_tiers_and_preview(client):
    r = await client.get("/api/investments/tiers")
    assert r.status_code == 200
    assert {t["tier"] for t in r.json()["tiers"]} == {"Bronze", "Silver", "Gold"}

    r = await client.get("/api/investments/preview", params={"tier": "Silver", "amount": 5000, "period": 90})
    assert r.status_code == 200
    assert r.json()["total"] == pytest.approx(5369.86, abs=0.01)

    r = await client.get("/api/investments/preview", params={"tier": "Gold", "amount": 5000, "period": 90})
    assert r.status_code == 400
    assert r.json()["error"] == "below_minimum"


@pytest.mark.asyncio
async def test_preview_tier_is_case_insensitive(client):
    r = await client.get("/api/investments/preview", params={"tier": "silver", "amount": 5000, "period": 90})
    assert r.status_code == 200, r.text
    assert r.json()["tier"] == "Silver"
    assert r.json()["total"] == pytest.approx(5369.86, abs=0.01)

    r = await client.get("/api/investments/preview", params={"tier": "platinum", "amount": 5000, "period": 90})
    assert r.status_code == 400
    assert r.json()["error"] == "unknown_tier"
