# tests/conftest.py
import json
from datetime import datetime

import httpx
import pytest

from cafe_rewards.clients.cafe_api import CafeApiClient
from cafe_rewards.schemas.customer import CustomerProfile
from cafe_rewards.schemas.reward import RewardDefinition
from cafe_rewards.services.criteria import EvaluationMoment

# Понедельник, 10:30 - все проверки по времени считаются от этого момента
NOW = datetime(2026, 10, 19, 10, 30)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def moment() -> EvaluationMoment:
    return EvaluationMoment.at(NOW)


@pytest.fixture
def make_profile():
    """Фабрика профиля клиента с разумными значениями по умолчанию."""
    def _make(**overrides) -> CustomerProfile:
        data = {
            "id": "42",
            "name": "Test Customer",
            "loyalty_points": 100,
            "purchases_this_month": 0,
            "lifetime_total_spend": 0,
            "referrals_made": 0,
        }
        data.update(overrides)
        return CustomerProfile(**data)
    return _make


@pytest.fixture
def make_reward():
    """Фабрика награды каталога; criteria передаются в "плоском" формате админки."""
    def _make(criteria=None, **overrides) -> RewardDefinition:
        data = {
            "id": "1",
            "name": "Free Coffee",
            "kind": "standard",
            "criteria": criteria,
        }
        data.update(overrides)
        return RewardDefinition(**data)
    return _make


class FakeCafeBackend:
    """
    Простейшая подмена API кофейни поверх httpx.MockTransport.
    Хранит профиль и каталог в памяти и помечает награды как полученные.
    """
    def __init__(self):
        self.profile = {
            "id": "42",
            "name": "Test Customer",
            "loyaltyPoints": 100,
            "purchasesThisMonth": 2,
            "lifetimeTotalSpend": 250.0,
            "referralsMade": 0,
            "claimedGeneralRewardIds": [],
            "activeVouchers": [],
        }
        self.rewards = []
        self.requests = []
        # (метод, путь) -> (статус, тело) для имитации ошибок
        self.failures = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        key = (request.method, path)
        if key in self.failures:
            status_code, body = self.failures[key]
            return httpx.Response(status_code, json=body)

        if request.method == "GET" and path == "/api/customers/42/info":
            return httpx.Response(200, json=self.profile)
        if request.method == "GET" and path == "/api/rewards/definitions":
            return httpx.Response(200, json=self.rewards)
        if request.method == "POST" and path == "/api/customers/42/rewards/claim":
            body = json.loads(request.content)
            self.profile["claimedGeneralRewardIds"].append(body["rewardId"])
            return httpx.Response(200, json={"message": "Reward claimed successfully!"})
        if request.method == "PATCH" and path.startswith("/api/customers/42/vouchers/"):
            instance_id = path.split("/")[-2]
            for voucher in self.profile["activeVouchers"]:
                if str(voucher["instance_id"]) == instance_id:
                    voucher["status"] = "claimed"
                    return httpx.Response(200, json={"message": "Voucher used."})
            return httpx.Response(404, json={"message": "Voucher not found or does not belong to this customer."})
        return httpx.Response(404, json={"message": "Not found"})

    def client(self) -> CafeApiClient:
        return CafeApiClient(
            base_url="http://cafe.test/api",
            token="test-token",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def fake_backend() -> FakeCafeBackend:
    return FakeCafeBackend()


@pytest.fixture
async def cafe_api(fake_backend):
    client = fake_backend.client()
    yield client
    await client.aclose()
