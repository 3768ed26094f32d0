# cafe_rewards/schemas/eligibility.py
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from cafe_rewards.schemas.customer import CustomerProfile
from cafe_rewards.schemas.reward import RewardDefinition, RewardKind


class RewardStatus(str, Enum):
    CLAIM = "Claim"
    CLAIMED = "Claimed"
    INELIGIBLE = "Ineligible"
    ACTIVE_VOUCHER = "ActiveVoucher"


# Статусы, при которых награду можно отправить на получение
CLAIMABLE_STATUSES = frozenset({RewardStatus.CLAIM, RewardStatus.ACTIVE_VOUCHER})


class CriterionResult(BaseModel):
    """Результат проверки одного семейства условий."""
    model_config = ConfigDict(frozen=True)

    met: bool = True
    unmet_message: Optional[str] = None
    progress_message: Optional[str] = None


class EligibilityVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: RewardStatus
    message: str

    @property
    def is_claimable(self) -> bool:
        return self.status in CLAIMABLE_STATUSES


class ClaimAffordance(BaseModel):
    """Кнопка получения награды: подпись и доступность."""
    label: str
    enabled: bool


class RewardCard(BaseModel):
    """Награда в том виде, в котором ее показывает экран наград."""
    identifier: str
    reward_id: str
    instance_id: Optional[str] = None
    is_voucher: bool = False
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    kind: RewardKind
    points_cost: Optional[int] = None
    discount_percentage: Optional[float] = None
    discount_fixed_amount: Optional[float] = None
    free_menu_item_ids: List[str] = []
    status: RewardStatus
    message: str
    affordance: ClaimAffordance


class RewardsSnapshot(BaseModel):
    """Профиль клиента и каталог, полученные одним запросом. Обновляется только целиком."""
    model_config = ConfigDict(frozen=True)

    profile: CustomerProfile
    rewards: Tuple[RewardDefinition, ...] = ()


class ClaimOutcome(BaseModel):
    identifier: str
    success: bool
    message: str
    snapshot: Optional[RewardsSnapshot] = None


class ClaimResponse(BaseModel):
    success: bool
    message: str
    rewards: List[RewardCard] = []
