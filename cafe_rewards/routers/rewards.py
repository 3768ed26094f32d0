# cafe_rewards/routers/rewards.py

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from cafe_rewards.clients.cafe_api import CafeApiClient
from cafe_rewards.core.exceptions import CafeApiError, ClaimInProgressError, ClaimNotAllowedError
from cafe_rewards.dependencies import get_cafe_client, get_claim_orchestrator, get_strict_criteria
from cafe_rewards.schemas.eligibility import ClaimResponse, RewardCard, RewardsSnapshot
from cafe_rewards.services import rewards_view
from cafe_rewards.services.claims import ClaimOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


async def _load_snapshot_or_502(client: CafeApiClient, customer_id: str) -> RewardsSnapshot:
    try:
        return await rewards_view.load_snapshot(client, customer_id)
    except CafeApiError as e:
        logger.error(f"Failed to load rewards data for customer {customer_id}: {e.message}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


async def _claim(
    customer_id: str,
    identifier: str,
    is_voucher: bool,
    client: CafeApiClient,
    orchestrator: ClaimOrchestrator,
    strict_criteria: bool,
) -> ClaimResponse:
    snapshot = await _load_snapshot_or_502(client, customer_id)
    cards = rewards_view.build_cards(
        snapshot,
        claiming=orchestrator.claiming_for(customer_id),
        strict_criteria=strict_criteria,
    )
    card = rewards_view.find_card(cards, identifier, is_voucher=is_voucher)
    if card is None:
        what = "Voucher" if is_voucher else "Reward"
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found.")

    try:
        outcome = await orchestrator.claim(customer_id, card)
    except ClaimNotAllowedError as e:
        logger.warning(f"Customer {customer_id} tried to claim {identifier}: {e.message} ({card.message})")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{e.message}. Reason: {card.message}")
    except ClaimInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    if not outcome.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=outcome.message)

    refreshed = []
    if outcome.snapshot is not None:
        refreshed = rewards_view.build_cards(
            outcome.snapshot,
            claiming=orchestrator.claiming_for(customer_id),
            strict_criteria=strict_criteria,
        )
    return ClaimResponse(success=True, message=outcome.message, rewards=refreshed)


@router.get("/customers/{customer_id}/rewards", response_model=List[RewardCard])
async def list_rewards_endpoint(
    customer_id: str,
    search: str = Query("", description="Поиск по названию или описанию"),
    include_hidden: bool = Query(False, description="Показывать и недоступные награды"),
    client: CafeApiClient = Depends(get_cafe_client),
    orchestrator: ClaimOrchestrator = Depends(get_claim_orchestrator),
    strict_criteria: bool = Depends(get_strict_criteria),
):
    """
    Награды и ваучеры клиента со статусом, пояснением и состоянием кнопки.
    По умолчанию возвращает только доступные и уже полученные.
    """
    snapshot = await _load_snapshot_or_502(client, customer_id)
    cards = rewards_view.build_cards(
        snapshot,
        claiming=orchestrator.claiming_for(customer_id),
        strict_criteria=strict_criteria,
    )
    if include_hidden:
        return cards
    return rewards_view.visible_cards(cards, search=search)


@router.post("/customers/{customer_id}/rewards/{reward_id}/claim", response_model=ClaimResponse)
async def claim_reward_endpoint(
    customer_id: str,
    reward_id: str,
    client: CafeApiClient = Depends(get_cafe_client),
    orchestrator: ClaimOrchestrator = Depends(get_claim_orchestrator),
    strict_criteria: bool = Depends(get_strict_criteria),
):
    """Получение разовой награды каталога."""
    return await _claim(customer_id, reward_id, False, client, orchestrator, strict_criteria)


@router.post("/customers/{customer_id}/vouchers/{instance_id}/claim", response_model=ClaimResponse)
async def claim_voucher_endpoint(
    customer_id: str,
    instance_id: str,
    client: CafeApiClient = Depends(get_cafe_client),
    orchestrator: ClaimOrchestrator = Depends(get_claim_orchestrator),
    strict_criteria: bool = Depends(get_strict_criteria),
):
    """Использование выданного ваучера."""
    return await _claim(customer_id, instance_id, True, client, orchestrator, strict_criteria)
