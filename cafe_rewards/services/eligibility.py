# cafe_rewards/services/eligibility.py

import logging
from datetime import datetime
from typing import List, Optional

from cafe_rewards.schemas.customer import KNOWN_VOUCHER_STATUSES, CustomerProfile, VoucherInstance
from cafe_rewards.schemas.eligibility import CriterionResult, EligibilityVerdict, RewardStatus
from cafe_rewards.schemas.reward import CriteriaSet, RewardDefinition
from cafe_rewards.services.criteria import EVALUATORS, EvaluationMoment

logger = logging.getLogger(__name__)

# ВАЖНО: все проверки здесь только для подсказок в интерфейсе.
# Окончательное решение о выдаче награды принимает сервер.


def resolve_voucher(voucher: VoucherInstance) -> EligibilityVerdict:
    """Статус выданного ваучера важнее любых условий каталога."""
    if voucher.status not in KNOWN_VOUCHER_STATUSES:
        logger.warning(f"Voucher {voucher.instance_id} has unknown status '{voucher.status}'.")
        return EligibilityVerdict(
            status=RewardStatus.INELIGIBLE,
            message=f"Voucher status '{voucher.status}' is not recognised.",
        )

    if voucher.status == "claimed":
        return EligibilityVerdict(status=RewardStatus.CLAIMED, message="This voucher has already been used.")
    if voucher.status == "expired":
        return EligibilityVerdict(status=RewardStatus.INELIGIBLE, message="This voucher has expired.")
    return EligibilityVerdict(
        status=RewardStatus.CLAIM,
        message=voucher.description or "This voucher is active and ready to use.",
    )


def check_claimed(reward: RewardDefinition, customer: CustomerProfile) -> Optional[EligibilityVerdict]:
    """Разовая награда каталога, уже полученная клиентом."""
    if reward.id in customer.claimed_reward_ids:
        return EligibilityVerdict(status=RewardStatus.CLAIMED, message="You have already claimed this reward.")
    return None


def evaluate_criteria(
    criteria: CriteriaSet,
    customer: CustomerProfile,
    moment: EvaluationMoment,
) -> List[CriterionResult]:
    """
    Прогоняет все семейства условий без короткого замыкания,
    чтобы собрать все сообщения. Результаты идут в порядке EVALUATORS.
    """
    results = []
    for family, evaluator in EVALUATORS.items():
        criterion = criteria.get(family)
        if criterion is None:
            results.append(CriterionResult())
            continue
        results.append(evaluator(criterion, customer, moment))
    return results


def _aggregate(reward: RewardDefinition, customer: CustomerProfile, results: List[CriterionResult]) -> EligibilityVerdict:
    is_eligible = all(result.met for result in results)

    if is_eligible:
        if reward.points_cost and customer.loyalty_points < reward.points_cost:
            # Условия выполнены, но баллов на обмен не хватает
            return EligibilityVerdict(
                status=RewardStatus.INELIGIBLE,
                message=(
                    f"Eligible, but need {reward.points_cost} points to redeem "
                    f"(Have {customer.loyalty_points})."
                ),
            )
        progress = [result.progress_message for result in results if result.progress_message]
        return EligibilityVerdict(
            status=RewardStatus.CLAIM,
            message=" ".join(progress) if progress else "Eligible to claim!",
        )

    unmet = [result.unmet_message for result in results if result.unmet_message]
    if unmet:
        message = " ".join(unmet)
    elif reward.earning_hint:
        message = reward.earning_hint
    else:
        message = "Not eligible."
    return EligibilityVerdict(status=RewardStatus.INELIGIBLE, message=message)


def evaluate_reward(
    reward: RewardDefinition,
    customer: CustomerProfile,
    voucher: Optional[VoucherInstance] = None,
    now: Optional[datetime] = None,
    strict_criteria: bool = True,
) -> EligibilityVerdict:
    """
    Определяет статус награды для клиента.

    1. Для выданного ваучера решает только его статус.
    2. Уже полученная разовая награда - Claimed.
    3. Иначе проверяются все условия и затем хватает ли баллов на обмен.

    Функция чистая: одинаковые входные данные (и `now`) дают одинаковый вердикт.
    """
    if voucher is not None:
        return resolve_voucher(voucher)

    claimed = check_claimed(reward, customer)
    if claimed is not None:
        return claimed

    if reward.criteria.unparseable and strict_criteria:
        return EligibilityVerdict(status=RewardStatus.INELIGIBLE, message="Reward conditions could not be read.")

    moment = EvaluationMoment.at(now)
    results = evaluate_criteria(reward.criteria, customer, moment)
    verdict = _aggregate(reward, customer, results)
    logger.debug(f"Reward {reward.id} for customer {customer.id}: {verdict.status.value} ({verdict.message})")
    return verdict
