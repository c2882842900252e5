"""Tests for creator balance, earnings and payout endpoints."""
from uuid import uuid4

import pytest

from creator_ledger.services.earnings import EarningRecorder
from factories import auth_headers, create_account, create_balance, create_product, create_user


@pytest.fixture
async def creator(test_db):
    return await create_user(test_db)


@pytest.mark.asyncio
async def test_balance_requires_authentication(client):
    response = client.get("/api/creators/me/balance")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_balance_rejects_invalid_token(client):
    response = client.get(
        "/api/creators/me/balance",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_balance_requires_creator_role(client, test_db):
    buyer = await create_user(test_db, role="user")

    response = client.get("/api/creators/me/balance", headers=auth_headers(buyer))

    assert response.status_code == 403
    assert response.json()["detail"] == "Creator access required"


@pytest.mark.asyncio
async def test_suspended_creator_is_refused(client, test_db):
    suspended = await create_user(test_db, status="suspended")

    response = client.get("/api/creators/me/balance", headers=auth_headers(suspended))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_new_creator_has_zero_balance(client, creator):
    response = client.get("/api/creators/me/balance", headers=auth_headers(creator))

    assert response.status_code == 200
    data = response.json()
    assert data["creator_id"] == creator.uuid
    assert data["available_balance"] == "0.00"
    assert data["pending_balance"] == "0.00"
    assert data["lifetime_earnings"] == "0.00"
    assert data["minimum_payout"] == "50.00"
    assert data["can_request_payout"] is False
    assert data["next_payout_date"] is not None


@pytest.mark.asyncio
async def test_balance_and_earnings_after_sale(client, test_db, creator):
    product = await create_product(test_db, creator)
    await EarningRecorder(test_db).record_product_sale(
        creator.uuid, "freelancer", product.uuid, str(uuid4()), "40.00", product.name
    )
    headers = auth_headers(creator)

    balance = client.get("/api/creators/me/balance", headers=headers).json()
    assert balance["pending_balance"] == "30.00"
    assert balance["lifetime_earnings"] == "30.00"

    response = client.get("/api/creators/me/earnings", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    earning = data["earnings"][0]
    assert earning["gross_amount"] == "40.00"
    assert earning["platform_commission"] == "10.00"
    assert earning["creator_amount"] == "30.00"
    assert earning["status"] == "pending"
    assert earning["metadata"]["product_name"] == "Logo Pack"

    filtered = client.get("/api/creators/me/earnings?status=paid", headers=headers).json()
    assert filtered["total"] == 0

    invalid = client.get("/api/creators/me/earnings?status=refunded", headers=headers)
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_request_payout(client, test_db, creator):
    account = await create_account(test_db, creator, "paypal")
    await create_balance(test_db, creator, 10000)
    headers = auth_headers(creator)

    response = client.post(
        "/api/creators/me/payouts",
        json={"amount": "60.00", "payout_method": "paypal", "payout_account_id": account.uuid},
        headers=headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["amount_requested"] == "60.00"
    assert data["amount_approved"] is None
    assert data["status"] == "awaiting_admin"
    assert data["is_auto_generated"] is False

    balance = client.get("/api/creators/me/balance", headers=headers).json()
    assert balance["available_balance"] == "40.00"

    listed = client.get("/api/creators/me/payouts", headers=headers).json()
    assert listed["total"] == 1
    assert listed["payouts"][0]["uuid"] == data["uuid"]


@pytest.mark.asyncio
async def test_request_payout_insufficient_balance(client, test_db, creator):
    account = await create_account(test_db, creator, "paypal")
    await create_balance(test_db, creator, 10000)
    headers = auth_headers(creator)
    account_id = account.uuid

    response = client.post(
        "/api/creators/me/payouts",
        json={"amount": "150.00", "payout_method": "paypal", "payout_account_id": account_id},
        headers=headers,
    )

    assert response.status_code == 402
    data = response.json()
    assert data["detail"] == "Insufficient balance. Available: $100.00"
    assert data["error"] == "InsufficientBalanceError"
    assert data["available"] == "100.00"
    assert data["requested"] == "150.00"


@pytest.mark.asyncio
async def test_request_payout_below_minimum(client, test_db, creator):
    account = await create_account(test_db, creator, "paypal")
    await create_balance(test_db, creator, 10000)

    response = client.post(
        "/api/creators/me/payouts",
        json={"amount": "20.00", "payout_method": "paypal", "payout_account_id": account.uuid},
        headers=auth_headers(creator),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Minimum payout amount is $50.00"


@pytest.mark.asyncio
async def test_request_payout_validates_body(client, test_db, creator):
    headers = auth_headers(creator)

    negative = client.post(
        "/api/creators/me/payouts",
        json={"amount": "-5.00", "payout_method": "paypal", "payout_account_id": "acct"},
        headers=headers,
    )
    assert negative.status_code == 422

    bad_method = client.post(
        "/api/creators/me/payouts",
        json={"amount": "60.00", "payout_method": "cheque", "payout_account_id": "acct"},
        headers=headers,
    )
    assert bad_method.status_code == 422


@pytest.mark.asyncio
async def test_payout_requests_are_rate_limited(client, test_db, creator):
    headers = auth_headers(creator)
    body = {"amount": "60.00", "payout_method": "paypal", "payout_account_id": str(uuid4())}

    statuses = [
        client.post("/api/creators/me/payouts", json=body, headers=headers).status_code
        for _ in range(11)
    ]

    assert statuses[:10] == [400] * 10
    assert statuses[10] == 429
