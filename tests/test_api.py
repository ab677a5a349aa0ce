"""HTTP surface of the workstation router."""

import pytest

from workstation.core.config import settings


async def post_subscription(client, plan_id, **body):
    return await client.post("/api/workstation/subscription", json={"plan_id": plan_id, **body})


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_plans_are_ordered_with_tiers(client, plans):
    response = await client.get("/api/workstation/plans")

    assert response.status_code == 200
    body = response.json()
    assert [p["slug"] for p in body] == ["daily", "monthly", "quarterly", "yearly"]
    assert [p["tier"] for p in body] == ["daily", "monthly", "quarterly", "yearly"]


async def test_requires_session(client):
    client.cookies.clear()
    response = await client.get("/api/workstation/subscription")
    assert response.status_code == 401


async def test_rejects_forged_session(client):
    client.cookies.set(settings.session_cookie_name, "a.b.c")
    response = await client.get("/api/workstation/subscription")
    assert response.status_code == 401


async def test_no_subscription_yet(client, plans):
    response = await client.get("/api/workstation/subscription")

    assert response.status_code == 200
    assert response.json()["has_active_subscription"] is False


async def test_subscribe_then_upgrade(client, plans):
    response = await post_subscription(client, plans["monthly"].id)
    assert response.status_code == 201
    body = response.json()
    assert body["action"] == "subscribe"
    assert body["subscription"]["status"] == "active"
    assert body["subscription"]["plan"]["tier"] == "monthly"
    monthly_id = body["subscription"]["id"]

    response = await post_subscription(client, plans["quarterly"].id)
    assert response.status_code == 201
    assert response.json()["action"] == "upgrade"

    history = (await client.get("/api/workstation/subscription/history")).json()
    statuses = {s["id"]: s["status"] for s in history}
    assert statuses[monthly_id] == "cancelled"
    assert len(history) == 2


async def test_same_plan_conflict(client, plans):
    await post_subscription(client, plans["monthly"].id)

    response = await post_subscription(client, plans["monthly"].id)

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error_code"] == "PLAN_CHANGE_REJECTED"
    assert detail["context"]["errors"] == ["already_on_plan"]


async def test_insufficient_balance_is_payment_required(client, plans):
    yearly = (await post_subscription(client, plans["yearly"].id)).json()["subscription"]
    await client.post(
        f"/api/workstation/subscription/{yearly['id']}/cancel", json={"reason": "relocating"}
    )

    # the yearly plan used the whole wallet
    response = await post_subscription(client, plans["monthly"].id)

    assert response.status_code == 402
    assert response.json()["detail"]["error_code"] == "INSUFFICIENT_BALANCE"


async def test_unknown_plan(client, plans):
    response = await post_subscription(client, "missing")

    assert response.status_code == 404
    assert response.json()["detail"]["error_code"] == "PLAN_NOT_FOUND"


async def test_installments_not_allowed(client, plans):
    response = await post_subscription(client, plans["monthly"].id, payment_type="installment")

    assert response.status_code == 422
    assert response.json()["detail"]["context"]["errors"] == ["installments_not_allowed"]


async def test_preview(client, plans):
    response = await client.post(
        "/api/workstation/subscription/preview",
        json={"plan_id": plans["quarterly"].id, "payment_type": "installment"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["action"] == "subscribe"
    assert body["net_due"] == "8000.00"
    assert body["errors"] == []


async def test_cancel_twice_conflicts(client, plans):
    subscription_id = (await post_subscription(client, plans["monthly"].id)).json()["subscription"]["id"]
    url = f"/api/workstation/subscription/{subscription_id}/cancel"

    first = await client.post(url, json={"reason": "changed_mind"})
    second = await client.post(url, json={"reason": "changed_mind"})

    assert first.status_code == 200
    assert first.json()["status"] == "cancelled"
    assert second.status_code == 409
    assert second.json()["detail"]["error_code"] == "ALREADY_CANCELLED"


async def test_cancel_then_reactivate(client, plans):
    subscription_id = (await post_subscription(client, plans["monthly"].id)).json()["subscription"]["id"]
    await client.post(f"/api/workstation/subscription/{subscription_id}/cancel", json={"reason": "oops"})

    response = await client.post(f"/api/workstation/subscription/{subscription_id}/reactivate")

    assert response.status_code == 200
    assert response.json()["status"] == "active"


async def test_cancel_needs_reason(client, plans):
    subscription_id = (await post_subscription(client, plans["monthly"].id)).json()["subscription"]["id"]

    response = await client.post(f"/api/workstation/subscription/{subscription_id}/cancel", json={"reason": ""})

    assert response.status_code == 422


async def test_unknown_subscription(client, plans):
    response = await client.post("/api/workstation/subscription/missing/renew")

    assert response.status_code == 404
    assert response.json()["detail"]["error_code"] == "SUBSCRIPTION_NOT_FOUND"


async def test_renew(client, plans):
    subscription = (await post_subscription(client, plans["monthly"].id)).json()["subscription"]

    response = await client.post(f"/api/workstation/subscription/{subscription['id']}/renew")

    assert response.status_code == 200
    body = response.json()
    assert body["total_amount"] == "20000.00"
    assert len(body["payments"]) == 2


async def test_auto_renew_toggle(client, plans):
    subscription_id = (await post_subscription(client, plans["monthly"].id)).json()["subscription"]["id"]

    response = await client.put(
        f"/api/workstation/subscription/{subscription_id}/auto-renew", json={"auto_renew": True}
    )

    assert response.status_code == 200
    assert response.json()["auto_renew"] is True


async def test_access_card_and_presence(client, plans):
    subscription = (await post_subscription(client, plans["monthly"].id)).json()["subscription"]

    card = await client.get("/api/workstation/subscription/access-card")
    assert card.status_code == 200
    assert card.json()["qr_code"] == subscription["tracking_code"]

    check_in = await client.post(f"/api/workstation/subscription/{subscription['id']}/check-in")
    assert check_in.status_code == 200
    assert check_in.json()["last_check_in"] is not None

    again = await client.post(f"/api/workstation/subscription/{subscription['id']}/check-in")
    assert again.status_code == 409

    status = (await client.get("/api/workstation/subscription")).json()
    assert status["is_checked_in"] is True

    check_out = await client.post(f"/api/workstation/subscription/{subscription['id']}/check-out")
    assert check_out.status_code == 200


async def test_no_access_card_without_subscription(client, plans):
    response = await client.get("/api/workstation/subscription/access-card")
    assert response.status_code == 404


@pytest.mark.parametrize("payment_type,expected", [("full", 1), ("installment", 3)])
async def test_payments(client, plans, payment_type, expected):
    subscription_id = (
        await post_subscription(client, plans["quarterly"].id, payment_type=payment_type)
    ).json()["subscription"]["id"]

    response = await client.get(f"/api/workstation/subscription/{subscription_id}/payments")

    assert response.status_code == 200
    body = response.json()
    assert len(body["payments"]) == expected
    assert body["progress"]["paid_count"] == 1


async def test_wallet_reflects_charges(client, plans):
    assert (await client.get("/api/workstation/wallet")).json()["wallet_balance"] == "100000.00"

    await post_subscription(client, plans["monthly"].id)

    body = (await client.get("/api/workstation/wallet")).json()
    assert body["email"] == "ada@example.com"
    assert body["wallet_balance"] == "90000.00"
