# cafe_rewards/schemas/reward.py

import json
import logging
import re
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


# --- Варианты условий: по одному на семейство ---

class _CriterionBase(BaseModel):
    model_config = ConfigDict(frozen=True)


# Пороги в JSON из админки бывают дробными (20.5) или целыми во float (20.0)
Threshold = Union[int, float]


def _whole_to_int(v):
    if isinstance(v, float) and v.is_integer():
        return int(v)
    return v


def _ids_to_str(v):
    # id товаров приходят из БД числами
    if isinstance(v, (list, tuple)):
        return [str(item) for item in v]
    return v


class PointsCriterion(_CriterionBase):
    family: Literal["points"] = "points"
    min_points: Threshold

    @field_validator("min_points", mode="before")
    def normalize_min_points(cls, v):
        return _whole_to_int(v)


class PurchaseCriterion(_CriterionBase):
    family: Literal["purchase"] = "purchase"
    min_purchases_monthly: Optional[Threshold] = None
    min_spend: Optional[float] = None
    min_spend_per_transaction: Optional[float] = None
    cumulative_spend_total: Optional[float] = None

    @field_validator("min_purchases_monthly", mode="before")
    def normalize_min_purchases(cls, v):
        return _whole_to_int(v)


class CalendarCriterion(_CriterionBase):
    family: Literal["calendar"] = "calendar"
    is_birthday_only: bool = False
    is_birth_month_only: bool = False
    valid_start_date: Optional[str] = None  # YYYY-MM-DD
    valid_end_date: Optional[str] = None


class MembershipCriterion(_CriterionBase):
    family: Literal["membership"] = "membership"
    required_tiers: List[str]

    @field_validator("required_tiers", mode="before")
    def tiers_to_str(cls, v):
        return _ids_to_str(v)


class ReferralCriterion(_CriterionBase):
    family: Literal["referral"] = "referral"
    min_referrals: Optional[Threshold] = None
    # Только для информации, отдельно не проверяются
    is_referral_bonus_for_new_user: bool = False
    is_reward_for_referring_user: bool = False

    @field_validator("min_referrals", mode="before")
    def normalize_min_referrals(cls, v):
        return _whole_to_int(v)


class SignupCriterion(_CriterionBase):
    family: Literal["signup"] = "signup"
    is_sign_up_bonus: bool = True


class TimeWindow(BaseModel):
    """Окно доступности: "HH:MM"-"HH:MM" в указанные дни (0 - воскресенье)."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_time: str = Field(validation_alias=AliasChoices("start_time", "startTime"))
    end_time: str = Field(validation_alias=AliasChoices("end_time", "endTime"))
    days_of_week: List[int] = Field(
        default_factory=list, validation_alias=AliasChoices("days_of_week", "daysOfWeek")
    )

    @field_validator("days_of_week", mode="before")
    def none_to_empty(cls, v):
        return v or []


class TimeWindowCriterion(_CriterionBase):
    family: Literal["time_window"] = "time_window"
    windows: List[TimeWindow] = []
    allowed_days_of_week: List[int] = []


class ProductCriterion(_CriterionBase):
    family: Literal["product"] = "product"
    required_product_ids: List[str] = []
    excluded_product_ids: List[str] = []
    requires_product_category: Optional[str] = None
    requires_specific_product_ids: List[str] = []

    @field_validator("required_product_ids", "excluded_product_ids", "requires_specific_product_ids", mode="before")
    def product_ids_to_str(cls, v):
        return _ids_to_str(v)


Criterion = Annotated[
    Union[
        PointsCriterion,
        PurchaseCriterion,
        CalendarCriterion,
        MembershipCriterion,
        ReferralCriterion,
        SignupCriterion,
        TimeWindowCriterion,
        ProductCriterion,
    ],
    Field(discriminator="family"),
]


class CriteriaSet(BaseModel):
    """
    Набор условий награды. Семейство без ограничений просто отсутствует в списке.
    `unparseable` выставляется, если criteria_json не удалось разобрать.
    """
    model_config = ConfigDict(frozen=True)

    criteria: List[Criterion] = []
    unparseable: bool = False

    def get(self, family: str):
        for criterion in self.criteria:
            if criterion.family == family:
                return criterion
        return None

    @property
    def families(self) -> List[str]:
        return [criterion.family for criterion in self.criteria]


# --- Разбор "плоского" JSON из админки в набор вариантов ---

# Поле варианта -> ключ в плоском JSON (camelCase, как его хранит бэкенд)
FLAT_CRITERIA_FIELDS = {
    "points": {"min_points": "minPoints"},
    "purchase": {
        "min_purchases_monthly": "minPurchasesMonthly",
        "min_spend": "minSpend",
        "min_spend_per_transaction": "minSpendPerTransaction",
        "cumulative_spend_total": "cumulativeSpendTotal",
    },
    "calendar": {
        "is_birthday_only": "isBirthdayOnly",
        "is_birth_month_only": "isBirthMonthOnly",
    },
    "membership": {"required_tiers": "requiredCustomerTier"},
    "referral": {
        "min_referrals": "minReferrals",
        "is_referral_bonus_for_new_user": "isReferralBonusForNewUser",
        "is_reward_for_referring_user": "isRewardForReferringUser",
    },
    "signup": {"is_sign_up_bonus": "isSignUpBonus"},
    "time_window": {
        "windows": "activeTimeWindows",
        "allowed_days_of_week": "allowedDaysOfWeek",
    },
    "product": {
        "required_product_ids": "requiredProductIds",
        "excluded_product_ids": "excludedProductIds",
        "requires_product_category": "requiresProductCategory",
        "requires_specific_product_ids": "requiresSpecificProductIds",
    },
}

# Флаги, которые сами по себе не создают ограничение
INFORMATIONAL_FIELDS = {"is_referral_bonus_for_new_user", "is_reward_for_referring_user"}


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _lookup(raw: dict, key: str) -> Any:
    value = raw.get(key)
    if value is None:
        value = raw.get(_snake(key))
    return value


def _flat_to_variants(raw: dict) -> List[dict]:
    variants = []
    for family, fields in FLAT_CRITERIA_FIELDS.items():
        values = {}
        for field_name, key in fields.items():
            value = _lookup(raw, key)
            # 0, false, "" и [] на фронте означают "нет ограничения"
            if value:
                values[field_name] = value

        if family == "calendar":
            date_range = _lookup(raw, "validDateRange")
            if not isinstance(date_range, dict):
                date_range = {}
            start = _lookup(date_range, "startDate")
            end = _lookup(date_range, "endDate")
            if start:
                values["valid_start_date"] = start
            if end:
                values["valid_end_date"] = end

        if not set(values) - INFORMATIONAL_FIELDS:
            continue
        variants.append({"family": family, **values})
    return variants


def parse_criteria(raw: Any) -> CriteriaSet:
    """
    Приводит условия награды к CriteriaSet.

    Принимает:
    - None / пустую строку - условий нет;
    - строку с JSON (поле criteria_json);
    - плоский словарь в формате админки (`minPoints`, `validDateRange`, ...);
    - уже разобранный набор (`{"criteria": [...]}`) или список вариантов.

    Ошибка разбора не пробрасывается: возвращается CriteriaSet(unparseable=True).
    """
    if isinstance(raw, CriteriaSet):
        return raw
    if raw is None or raw == "":
        return CriteriaSet()

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Malformed criteria JSON: {raw!r}")
            return CriteriaSet(unparseable=True)
        if raw is None:
            return CriteriaSet()

    try:
        if isinstance(raw, list):
            return CriteriaSet(criteria=raw)
        if isinstance(raw, dict):
            if "criteria" in raw and isinstance(raw["criteria"], list):
                return CriteriaSet.model_validate(raw)
            return CriteriaSet(criteria=_flat_to_variants(raw))
    except ValidationError as e:
        logger.warning(f"Criteria do not match any known shape: {e.errors()}")
        return CriteriaSet(unparseable=True)

    logger.warning(f"Unsupported criteria payload type: {type(raw).__name__}")
    return CriteriaSet(unparseable=True)


# --- Награда из каталога ---

RewardKind = Literal["standard", "voucher", "discount_coupon", "loyalty_tier_perk", "manual_grant"]


class RewardDefinition(BaseModel):
    """
    Запись каталога наград. Принимает как snake_case-поля из БД
    (`reward_id`, `points_cost`, `criteria_json`), так и camelCase.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "reward_id", "rewardId"))
    name: str
    description: Optional[str] = None
    image: Optional[str] = Field(default=None, validation_alias=AliasChoices("image", "image_url", "imageUrl"))
    kind: RewardKind = Field(default="standard", validation_alias=AliasChoices("kind", "type"))
    points_cost: Optional[int] = Field(default=None, validation_alias=AliasChoices("points_cost", "pointsCost"))
    discount_percentage: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("discount_percentage", "discountPercentage")
    )
    discount_fixed_amount: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("discount_fixed_amount", "discountFixedAmount")
    )
    free_menu_item_ids: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("free_menu_item_ids", "freeMenuItemIds")
    )
    criteria: CriteriaSet = Field(
        default_factory=CriteriaSet, validation_alias=AliasChoices("criteria", "criteria_json", "criteriaJson")
    )
    earning_hint: Optional[str] = Field(default=None, validation_alias=AliasChoices("earning_hint", "earningHint"))

    @field_validator("id", mode="before")
    def id_to_str(cls, v):
        return str(v) if v is not None else v

    @field_validator("free_menu_item_ids", mode="before")
    def normalize_item_ids(cls, v):
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                return []
        return [str(item) for item in v or []]

    @field_validator("criteria", mode="before")
    def parse_embedded_criteria(cls, v):
        return parse_criteria(v)
