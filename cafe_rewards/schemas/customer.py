# cafe_rewards/schemas/customer.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import FrozenSet, Optional, Tuple

KNOWN_VOUCHER_STATUSES = ("active", "claimed", "expired")


class VoucherInstance(BaseModel):
    """
    Выданный клиенту ваучер. Создается и меняется только сервером:
    active -> claimed (при использовании) или active -> expired.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    instance_id: str = Field(validation_alias=AliasChoices("instance_id", "instanceId", "voucher_instance_id"))
    reward_id: str = Field(validation_alias=AliasChoices("reward_id", "rewardId"))
    # Строка, а не Literal: неизвестный статус разбирается в resolve_voucher
    status: str
    name: Optional[str] = None
    description: Optional[str] = None
    granted_date: Optional[str] = Field(default=None, validation_alias=AliasChoices("granted_date", "grantedDate"))
    expiry_date: Optional[str] = Field(default=None, validation_alias=AliasChoices("expiry_date", "expiryDate"))
    granted_by: Optional[str] = Field(default=None, validation_alias=AliasChoices("granted_by", "grantedBy"))

    @field_validator("instance_id", "reward_id", "granted_by", mode="before")
    def ids_to_str(cls, v):
        return str(v) if v is not None else v


class CustomerProfile(BaseModel):
    """
    Снимок профиля клиента для проверки наград.
    Неизменяемый: после успешного получения награды заменяется целиком.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "customer_id", "customerId", "user_id"))
    name: Optional[str] = None
    loyalty_points: int = Field(default=0, validation_alias=AliasChoices("loyalty_points", "loyaltyPoints"))
    purchases_this_month: int = Field(
        default=0, validation_alias=AliasChoices("purchases_this_month", "purchasesThisMonth")
    )
    lifetime_total_spend: float = Field(
        default=0.0, validation_alias=AliasChoices("lifetime_total_spend", "lifetimeTotalSpend")
    )
    birth_date: Optional[str] = Field(default=None, validation_alias=AliasChoices("birth_date", "birthDate"))
    membership_tier: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("membership_tier", "membershipTier")
    )
    referrals_made: int = Field(default=0, validation_alias=AliasChoices("referrals_made", "referralsMade"))
    join_date: Optional[str] = Field(default=None, validation_alias=AliasChoices("join_date", "joinDate"))
    claimed_reward_ids: FrozenSet[str] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices("claimed_reward_ids", "claimedGeneralRewardIds", "claimedRewardIds"),
    )
    vouchers: Tuple[VoucherInstance, ...] = Field(
        default=(), validation_alias=AliasChoices("vouchers", "activeVouchers", "active_vouchers")
    )

    @field_validator("id", mode="before")
    def id_to_str(cls, v):
        return str(v) if v is not None else v

    @field_validator("loyalty_points", "purchases_this_month", "referrals_made", "lifetime_total_spend", mode="before")
    def none_to_zero(cls, v):
        # В БД эти счетчики бывают NULL
        return v or 0

    @field_validator("claimed_reward_ids", mode="before")
    def normalize_claimed_ids(cls, v):
        return frozenset(str(reward_id) for reward_id in v or [])

    @field_validator("vouchers", mode="before")
    def none_to_empty(cls, v):
        return v or ()

    @field_validator("birth_date", "membership_tier", "join_date", mode="before")
    def empty_str_to_none(cls, v):
        return v or None
