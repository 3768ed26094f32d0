# tests/v1/test_rewards.py

import pytest
from httpx import ASGITransport, AsyncClient

from cafe_rewards.dependencies import get_cafe_client, get_claim_orchestrator, get_strict_criteria
from cafe_rewards.main import app
from cafe_rewards.services.claims import ClaimOrchestrator


@pytest.fixture
async def client(fake_backend, cafe_api):
    fake_backend.rewards = [
        {"reward_id": 1, "name": "Free Coffee", "type": "standard", "criteria_json": '{"minPoints": 50}'},
        {"reward_id": 2, "name": "VIP Brunch", "type": "standard", "criteria_json": '{"requiredCustomerTier": ["Gold"]}'},
        {"reward_id": 3, "name": "Big Treat", "type": "standard", "points_cost": 500},
        {"reward_id": 4, "name": "Latte Voucher", "type": "voucher"},
    ]
    fake_backend.profile["activeVouchers"] = [
        {"instance_id": 10, "reward_id": 4, "status": "active", "description": "One free latte"},
    ]
    orchestrator = ClaimOrchestrator(client=cafe_api)

    app.dependency_overrides[get_cafe_client] = lambda: cafe_api
    app.dependency_overrides[get_claim_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_strict_criteria] = lambda: True

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_list_visible_rewards(client):
    response = await client.get("/api/v1/customers/42/rewards")

    assert response.status_code == 200
    data = response.json()
    assert [card["identifier"] for card in data] == ["1", "10"]

    coffee, voucher = data
    assert coffee["status"] == "Claim"
    assert coffee["message"] == "100/50 points."
    assert coffee["affordance"] == {"label": "Claim", "enabled": True}
    assert voucher["is_voucher"] is True
    assert voucher["message"] == "One free latte"
    assert voucher["affordance"]["label"] == "Use Voucher"


@pytest.mark.asyncio
async def test_list_all_rewards_with_reasons(client):
    response = await client.get("/api/v1/customers/42/rewards", params={"include_hidden": True})

    data = {card["identifier"]: card for card in response.json()}
    assert data["2"]["status"] == "Ineligible"
    assert data["2"]["message"] == "Membership tier required."
    assert data["3"]["message"] == "Eligible, but need 500 points to redeem (Have 100)."


@pytest.mark.asyncio
async def test_search_filters_rewards(client):
    response = await client.get("/api/v1/customers/42/rewards", params={"search": "latte"})
    assert [card["identifier"] for card in response.json()] == ["10"]


@pytest.mark.asyncio
async def test_claim_reward_returns_refreshed_cards(client, fake_backend):
    response = await client.post("/api/v1/customers/42/rewards/1/claim")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"] == 'Reward "Free Coffee" claimed successfully!'
    refreshed = {card["identifier"]: card for card in data["rewards"]}
    assert refreshed["1"]["status"] == "Claimed"
    assert fake_backend.profile["claimedGeneralRewardIds"] == ["1"]


@pytest.mark.asyncio
async def test_use_voucher(client, fake_backend):
    response = await client.post("/api/v1/customers/42/vouchers/10/claim")

    assert response.status_code == 200
    refreshed = {card["identifier"]: card for card in response.json()["rewards"]}
    assert refreshed["10"]["status"] == "Claimed"
    assert refreshed["10"]["message"] == "This voucher has already been used."


@pytest.mark.asyncio
async def test_claim_ineligible_reward_is_rejected(client, fake_backend):
    response = await client.post("/api/v1/customers/42/rewards/2/claim")

    assert response.status_code == 400
    assert "Membership tier required." in response.json()["detail"]
    assert all(request.method == "GET" for request in fake_backend.requests)


@pytest.mark.asyncio
async def test_claim_unknown_reward(client):
    response = await client.post("/api/v1/customers/42/rewards/999/claim")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_claim_failure_surfaces_server_message(client, fake_backend):
    fake_backend.failures[("POST", "/api/customers/42/rewards/claim")] = (
        400, {"message": "Reward already claimed by this customer."}
    )

    response = await client.post("/api/v1/customers/42/rewards/1/claim")

    assert response.status_code == 502
    assert response.json()["detail"] == "Reward already claimed by this customer."


@pytest.mark.asyncio
async def test_upstream_failure_on_listing(client, fake_backend):
    fake_backend.failures[("GET", "/api/customers/42/info")] = (404, {"message": "Customer not found."})

    response = await client.get("/api/v1/customers/42/rewards")

    assert response.status_code == 502
    assert response.json()["detail"] == "Customer not found."


@pytest.mark.asyncio
async def test_invalid_catalog_row_does_not_hide_other_rewards(client, fake_backend):
    fake_backend.rewards.append({"reward_id": 5, "name": "Odd", "type": "seasonal_promo"})

    response = await client.get("/api/v1/customers/42/rewards")

    assert response.status_code == 200
    assert [card["identifier"] for card in response.json()] == ["1", "10"]


@pytest.mark.asyncio
async def test_voucher_numbered_like_reward_is_claimed_separately(client, fake_backend):
    fake_backend.profile["activeVouchers"].append({"instance_id": 1, "reward_id": 4, "status": "active"})

    response = await client.post("/api/v1/customers/42/vouchers/1/claim")

    assert response.status_code == 200
    refreshed = {(card["is_voucher"], card["identifier"]): card for card in response.json()["rewards"]}
    assert refreshed[(True, "1")]["status"] == "Claimed"
    assert refreshed[(False, "1")]["status"] == "Claim"
    assert fake_backend.profile["claimedGeneralRewardIds"] == []
