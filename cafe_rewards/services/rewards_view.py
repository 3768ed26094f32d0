# cafe_rewards/services/rewards_view.py

import asyncio
import logging
from datetime import datetime
from typing import Collection, Iterable, List, Optional, Tuple

from cafe_rewards.clients.cafe_api import CafeApiClient
from cafe_rewards.schemas.customer import VoucherInstance
from cafe_rewards.schemas.eligibility import (
    ClaimAffordance,
    EligibilityVerdict,
    RewardCard,
    RewardsSnapshot,
    RewardStatus,
)
from cafe_rewards.schemas.reward import RewardDefinition
from cafe_rewards.services.eligibility import evaluate_reward

logger = logging.getLogger(__name__)

# Что показываем клиенту: доступные и уже полученные награды
VISIBLE_STATUSES = frozenset({RewardStatus.CLAIM, RewardStatus.ACTIVE_VOUCHER, RewardStatus.CLAIMED})


async def load_snapshot(client: CafeApiClient, customer_id: str) -> RewardsSnapshot:
    """Загружает профиль клиента и каталог наград. Ошибки CafeApiError пробрасываются."""
    logger.info(f"Loading rewards snapshot for customer {customer_id}...")
    results = await asyncio.gather(
        client.get_customer_profile(customer_id),
        client.get_reward_definitions(),
        return_exceptions=True,
    )
    # Оба запроса завершены, пробрасываем первую ошибку
    for result in results:
        if isinstance(result, BaseException):
            raise result
    profile, rewards = results
    logger.info(
        f"Snapshot for customer {customer_id}: {len(rewards)} rewards, "
        f"{len(profile.vouchers)} vouchers, {len(profile.claimed_reward_ids)} claimed."
    )
    return RewardsSnapshot(profile=profile, rewards=tuple(rewards))


def claim_affordance(verdict: EligibilityVerdict, is_voucher: bool, is_claiming: bool = False) -> ClaimAffordance:
    if is_claiming:
        return ClaimAffordance(label="Claiming...", enabled=False)
    if verdict.is_claimable:
        label = "Use Voucher" if is_voucher or verdict.status == RewardStatus.ACTIVE_VOUCHER else "Claim"
        return ClaimAffordance(label=label, enabled=True)
    if verdict.status == RewardStatus.CLAIMED:
        return ClaimAffordance(label="Claimed", enabled=False)
    return ClaimAffordance(label="Ineligible", enabled=False)


def card_key(identifier: str, is_voucher: bool) -> Tuple[bool, str]:
    """Ключ карточки: id награды и id ваучера берутся из разных таблиц и могут совпасть."""
    return is_voucher, identifier


def _voucher_definition(voucher: VoucherInstance, rewards_by_id: dict) -> RewardDefinition:
    definition = rewards_by_id.get(voucher.reward_id)
    if definition is not None:
        return definition
    # Определение могли удалить из каталога, а ваучер остался
    return RewardDefinition(
        id=voucher.reward_id,
        name=voucher.name or f"Voucher {voucher.instance_id}",
        description=voucher.description,
        kind="voucher",
    )


def _card(
    reward: RewardDefinition,
    verdict: EligibilityVerdict,
    voucher: Optional[VoucherInstance],
    claiming: Collection[Tuple[bool, str]],
) -> RewardCard:
    is_voucher = voucher is not None
    identifier = voucher.instance_id if is_voucher else reward.id
    return RewardCard(
        identifier=identifier,
        reward_id=reward.id,
        instance_id=voucher.instance_id if is_voucher else None,
        is_voucher=is_voucher,
        name=(voucher.name or reward.name) if is_voucher else reward.name,
        description=(voucher.description or reward.description) if is_voucher else reward.description,
        image=reward.image,
        kind=reward.kind,
        points_cost=reward.points_cost,
        discount_percentage=reward.discount_percentage,
        discount_fixed_amount=reward.discount_fixed_amount,
        free_menu_item_ids=list(reward.free_menu_item_ids),
        status=verdict.status,
        message=verdict.message,
        affordance=claim_affordance(verdict, is_voucher, card_key(identifier, is_voucher) in claiming),
    )


def build_cards(
    snapshot: RewardsSnapshot,
    claiming: Collection[Tuple[bool, str]] = (),
    now: Optional[datetime] = None,
    strict_criteria: bool = True,
) -> List[RewardCard]:
    """
    Собирает карточки экрана наград:
    - по одной на каждую награду каталога, кроме ваучерных
      (ваучер существует только как выданный экземпляр);
    - по одной на каждый ваучер клиента.
    `claiming` - ключи card_key карточек, по которым сейчас идет запрос.
    """
    profile = snapshot.profile
    rewards_by_id = {reward.id: reward for reward in snapshot.rewards}
    cards = []

    for reward in snapshot.rewards:
        if reward.kind == "voucher":
            continue
        verdict = evaluate_reward(reward, profile, now=now, strict_criteria=strict_criteria)
        cards.append(_card(reward, verdict, None, claiming))

    for voucher in profile.vouchers:
        reward = _voucher_definition(voucher, rewards_by_id)
        verdict = evaluate_reward(reward, profile, voucher=voucher, now=now, strict_criteria=strict_criteria)
        cards.append(_card(reward, verdict, voucher, claiming))

    return cards


def visible_cards(cards: Iterable[RewardCard], search: str = "") -> List[RewardCard]:
    """Оставляет доступные/полученные карточки и фильтрует по названию или описанию."""
    term = search.strip().lower()
    result = []
    for card in cards:
        if card.status not in VISIBLE_STATUSES:
            continue
        if term and term not in card.name.lower() and term not in (card.description or "").lower():
            continue
        result.append(card)
    return result


def find_card(cards: Iterable[RewardCard], identifier: str, is_voucher: bool) -> Optional[RewardCard]:
    for card in cards:
        if card.identifier == identifier and card.is_voucher == is_voucher:
            return card
    return None
