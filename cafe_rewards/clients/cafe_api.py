# cafe_rewards/clients/cafe_api.py

import httpx
import logging
from typing import List, Optional

from pydantic import ValidationError

from cafe_rewards.core.config import settings
from cafe_rewards.core.exceptions import CafeApiError
from cafe_rewards.schemas.customer import CustomerProfile
from cafe_rewards.schemas.reward import RewardDefinition

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response, default: str) -> str:
    """Достает поле `message` из JSON-ответа сервера, если оно есть."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return default


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class CafeApiClient:
    """
    Асинхронный клиент для REST API кофейни.
    Любой сбой (сеть или статус не 2xx) превращается в CafeApiError
    с сообщением сервера, которое можно показать пользователю.
    """
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        read_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        timeouts = httpx.Timeout(timeout, read=read_timeout)
        self.async_client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeouts,
            transport=transport,
        )

    async def _request(self, method: str, endpoint: str, default_error: str, json: dict | None = None) -> httpx.Response:
        try:
            response = await self.async_client.request(method, endpoint, json=json)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error during {method} request to {e.request.url!r}: {e.response.text}")
            raise CafeApiError(_error_message(e.response, default_error), status_code=e.response.status_code) from e
        except httpx.RequestError as e:
            logger.error(f"Network error during {method} request to {e.request.url!r}.", exc_info=True)
            raise CafeApiError(default_error) from e

    async def get_customer_profile(self, customer_id: str) -> CustomerProfile:
        response = await self._request(
            "GET", f"customers/{customer_id}/info", default_error="Failed to fetch customer info."
        )
        try:
            return CustomerProfile.model_validate(response.json())
        except ValueError as e:
            # pydantic ValidationError тоже ValueError
            logger.error(f"Invalid customer info payload for customer {customer_id}.", exc_info=True)
            raise CafeApiError("Customer info has an unexpected format.") from e

    async def get_reward_definitions(self) -> List[RewardDefinition]:
        response = await self._request(
            "GET", "rewards/definitions", default_error="Failed to fetch reward definitions."
        )
        try:
            items = response.json()
        except ValueError as e:
            raise CafeApiError("Reward definitions have an unexpected format.") from e
        if not isinstance(items, list):
            raise CafeApiError("Reward definitions have an unexpected format.")

        rewards = []
        for item in items:
            # Одна битая запись не должна скрывать весь каталог
            try:
                rewards.append(RewardDefinition.model_validate(item))
            except ValidationError:
                reward_id = item.get("reward_id", item.get("id")) if isinstance(item, dict) else None
                logger.warning(f"Failed to validate reward definition {reward_id}, skipping.", exc_info=True)
        return rewards

    async def claim_reward(self, customer_id: str, reward_id: str) -> dict:
        """Получение разовой награды каталога."""
        logger.info(f"Claiming reward {reward_id} for customer {customer_id}.")
        response = await self._request(
            "POST",
            f"customers/{customer_id}/rewards/claim",
            default_error="Failed to claim reward. Server returned an error.",
            json={"rewardId": reward_id, "customerId": customer_id},
        )
        return _json_or_empty(response)

    async def claim_voucher(self, customer_id: str, instance_id: str) -> dict:
        """Использование выданного ваучера (active -> claimed на сервере)."""
        logger.info(f"Using voucher {instance_id} for customer {customer_id}.")
        response = await self._request(
            "PATCH",
            f"customers/{customer_id}/vouchers/{instance_id}/claim",
            default_error="Failed to use voucher. Server returned an error.",
        )
        return _json_or_empty(response)

    async def aclose(self):
        await self.async_client.aclose()


# Создаем синглтон
cafe_client = CafeApiClient(
    base_url=settings.CAFE_API_BASE_URL,
    token=settings.CAFE_API_TOKEN,
    timeout=settings.CAFE_API_TIMEOUT,
    read_timeout=settings.CAFE_API_READ_TIMEOUT,
)
