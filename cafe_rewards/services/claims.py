# cafe_rewards/services/claims.py

import asyncio
import logging
from enum import Enum
from typing import Dict, FrozenSet, Tuple

from cafe_rewards.clients.cafe_api import CafeApiClient
from cafe_rewards.core.exceptions import CafeApiError, ClaimInProgressError, ClaimNotAllowedError
from cafe_rewards.schemas.eligibility import CLAIMABLE_STATUSES, ClaimOutcome, RewardCard
from cafe_rewards.services.rewards_view import card_key, load_snapshot

logger = logging.getLogger(__name__)


class ClaimState(str, Enum):
    IDLE = "idle"
    CLAIMING = "claiming"


class ClaimOrchestrator:
    """
    Выполняет получение награды / использование ваучера.

    Для каждой пары (клиент, карточка) одновременно возможен только один запрос:
    Idle -> Claiming -> Idle. Разные карточки не мешают друг другу.
    После успеха снимок (профиль + каталог) загружается заново целиком,
    локально ничего не правится. Отмены и собственного таймаута нет.
    """
    def __init__(self, client: CafeApiClient):
        self.client = client
        # (customer_id, card_key) -> состояние
        self._states: Dict[Tuple[str, Tuple[bool, str]], ClaimState] = {}
        self._lock = asyncio.Lock()

    def state(self, customer_id: str, identifier: str, is_voucher: bool = False) -> ClaimState:
        return self._states.get((customer_id, card_key(identifier, is_voucher)), ClaimState.IDLE)

    def claiming_for(self, customer_id: str) -> FrozenSet[Tuple[bool, str]]:
        """Ключи card_key, по которым у клиента сейчас идет запрос."""
        return frozenset(
            key
            for (owner, key), state in self._states.items()
            if owner == customer_id and state == ClaimState.CLAIMING
        )

    async def _begin(self, customer_id: str, card: RewardCard):
        key = (customer_id, card_key(card.identifier, card.is_voucher))
        async with self._lock:
            if self._states.get(key) == ClaimState.CLAIMING:
                raise ClaimInProgressError(card.identifier, "This reward is already being claimed.")
            self._states[key] = ClaimState.CLAIMING

    def _finish(self, customer_id: str, card: RewardCard):
        self._states.pop((customer_id, card_key(card.identifier, card.is_voucher)), None)

    async def claim(self, customer_id: str, card: RewardCard) -> ClaimOutcome:
        """
        Отправляет запрос на сервер для карточки в статусе Claim/ActiveVoucher.
        Вызов для другого статуса - ошибка вызывающего кода (ClaimNotAllowedError).
        Ошибка сервера не пробрасывается, а возвращается в ClaimOutcome.message.
        """
        identifier = card.identifier
        if card.status not in CLAIMABLE_STATUSES:
            raise ClaimNotAllowedError(
                identifier, f"Cannot claim this reward. Status: {card.status.value}"
            )

        await self._begin(customer_id, card)
        logger.info(f"Customer {customer_id} is claiming '{card.name}' ({identifier}).")
        try:
            try:
                if card.is_voucher:
                    await self.client.claim_voucher(customer_id, card.instance_id)
                else:
                    await self.client.claim_reward(customer_id, card.reward_id)
            except CafeApiError as e:
                logger.warning(f"Claim of {identifier} for customer {customer_id} failed: {e.message}")
                return ClaimOutcome(identifier=identifier, success=False, message=e.message)

            message = f'Reward "{card.name}" claimed successfully!'
            try:
                snapshot = await load_snapshot(self.client, customer_id)
            except CafeApiError as e:
                # Награда уже получена, не удалось только обновить данные
                logger.error(f"Claim of {identifier} succeeded but refresh failed: {e.message}")
                return ClaimOutcome(identifier=identifier, success=True, message=message)

            logger.info(f"Claim of {identifier} for customer {customer_id} succeeded.")
            return ClaimOutcome(identifier=identifier, success=True, message=message, snapshot=snapshot)
        finally:
            self._finish(customer_id, card)
