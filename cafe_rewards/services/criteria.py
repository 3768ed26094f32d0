# cafe_rewards/services/criteria.py

import logging
from datetime import date, datetime
from typing import Callable, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from cafe_rewards.schemas.customer import CustomerProfile
from cafe_rewards.schemas.eligibility import CriterionResult
from cafe_rewards.schemas.reward import (
    CalendarCriterion,
    MembershipCriterion,
    PointsCriterion,
    ProductCriterion,
    PurchaseCriterion,
    ReferralCriterion,
    SignupCriterion,
    TimeWindowCriterion,
)

logger = logging.getLogger(__name__)


class EvaluationMoment(BaseModel):
    """
    "Сейчас" для проверки календарных и временных условий.
    Все поля считаются от одного и того же момента в локальном времени.
    """
    model_config = ConfigDict(frozen=True)

    today: str      # YYYY-MM-DD
    month: int      # 1-12
    day: int
    weekday: int    # 0 - воскресенье, 6 - суббота
    time: str       # HH:MM

    @classmethod
    def at(cls, now: Optional[datetime] = None) -> "EvaluationMoment":
        now = now or datetime.now()
        return cls(
            today=now.date().isoformat(),
            month=now.month,
            day=now.day,
            weekday=now.isoweekday() % 7,
            time=now.strftime("%H:%M"),
        )


def _join(*parts: Optional[str]) -> Optional[str]:
    message = " ".join(part for part in parts if part)
    return message or None


def _parse_birth_date(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """Возвращает (месяц, день) или None, если дата не задана или битая."""
    if not value:
        return None
    try:
        parsed = date.fromisoformat(value[:10])
    except ValueError:
        logger.warning(f"Cannot parse customer birth date: {value!r}")
        return None
    return parsed.month, parsed.day


# --- Проверки по семействам ---

def check_points(criterion: PointsCriterion, customer: CustomerProfile, moment: EvaluationMoment) -> CriterionResult:
    balance = customer.loyalty_points
    if balance < criterion.min_points:
        return CriterionResult(met=False, unmet_message=f"Need {criterion.min_points - balance} more points.")
    return CriterionResult(progress_message=f"{balance}/{criterion.min_points} points.")


def check_purchase(criterion: PurchaseCriterion, customer: CustomerProfile, moment: EvaluationMoment) -> CriterionResult:
    """
    Количество покупок за месяц и общая сумма трат проверяются по профилю.
    min_spend и min_spend_per_transaction зависят от конкретного заказа,
    поэтому здесь только помечаются как требующие проверки.
    """
    met = True
    unmet, progress = [], []

    if criterion.min_purchases_monthly:
        purchases = customer.purchases_this_month
        if purchases < criterion.min_purchases_monthly:
            met = False
            unmet.append(f"Need {criterion.min_purchases_monthly - purchases} more purchase(s) this month.")
        else:
            progress.append(f"{purchases}/{criterion.min_purchases_monthly} purchases this month.")

    if criterion.min_spend:
        progress.append("(Min spend check required)")
    if criterion.min_spend_per_transaction:
        progress.append("(Min spend per transaction check required)")

    if criterion.cumulative_spend_total:
        spent = customer.lifetime_total_spend
        if spent < criterion.cumulative_spend_total:
            met = False
            unmet.append(f"Requires total spend of ${criterion.cumulative_spend_total:.2f}.")
        else:
            progress.append(f"Total spend ${spent:.2f}/${criterion.cumulative_spend_total:.2f}.")

    return CriterionResult(met=met, unmet_message=_join(*unmet), progress_message=_join(*progress))


def check_calendar(criterion: CalendarCriterion, customer: CustomerProfile, moment: EvaluationMoment) -> CriterionResult:
    met = True
    unmet, progress = [], []
    birth = _parse_birth_date(customer.birth_date)

    if criterion.is_birthday_only:
        if birth != (moment.month, moment.day):
            met = False
            unmet.append("Only on your birthday.")
        else:
            progress.append("Happy Birthday!")

    if met and criterion.is_birth_month_only and not criterion.is_birthday_only:
        if birth is None or birth[0] != moment.month:
            met = False
            unmet.append("Only in your birth month.")
        else:
            progress.append("For your birth month!")

    # Диапазон дат может "добавить" свою ошибку к ошибке дня рождения
    if criterion.valid_start_date and moment.today < criterion.valid_start_date[:10]:
        met = False
        unmet.append(f"Starts {criterion.valid_start_date}.")
    if met and criterion.valid_end_date and moment.today > criterion.valid_end_date[:10]:
        met = False
        unmet.append(f"Ended {criterion.valid_end_date}.")

    return CriterionResult(met=met, unmet_message=_join(*unmet), progress_message=_join(*progress))


def check_membership(criterion: MembershipCriterion, customer: CustomerProfile, moment: EvaluationMoment) -> CriterionResult:
    if not criterion.required_tiers:
        return CriterionResult()
    tier = customer.membership_tier
    if not tier:
        return CriterionResult(met=False, unmet_message="Membership tier required.")
    if tier not in criterion.required_tiers:
        return CriterionResult(
            met=False,
            unmet_message=f"Requires one of these tiers: {', '.join(criterion.required_tiers)}.",
        )
    return CriterionResult(progress_message=f"Tier {tier} ok.")


def check_referral(criterion: ReferralCriterion, customer: CustomerProfile, moment: EvaluationMoment) -> CriterionResult:
    # Флаги is_referral_bonus_for_new_user / is_reward_for_referring_user проверяет сервер
    if not criterion.min_referrals:
        return CriterionResult()
    made = customer.referrals_made
    if made < criterion.min_referrals:
        return CriterionResult(met=False, unmet_message=f"Requires {criterion.min_referrals - made} more referrals.")
    return CriterionResult(progress_message=f"{made}/{criterion.min_referrals} referrals.")


def check_signup(criterion: SignupCriterion, customer: CustomerProfile, moment: EvaluationMoment) -> CriterionResult:
    # Только наличие даты регистрации, давность не проверяется
    if not criterion.is_sign_up_bonus:
        return CriterionResult()
    if not customer.join_date:
        return CriterionResult(met=False, unmet_message="For new sign-ups only.")
    return CriterionResult(progress_message="Welcome bonus!")


def check_time_window(criterion: TimeWindowCriterion, customer: CustomerProfile, moment: EvaluationMoment) -> CriterionResult:
    met = True
    unmet = []

    if criterion.allowed_days_of_week and moment.weekday not in criterion.allowed_days_of_week:
        met = False
        unmet.append("Not valid on this day of the week.")

    if criterion.windows:
        # Окно без дней недели не подходит никогда
        in_window = any(
            moment.weekday in window.days_of_week
            and window.start_time <= moment.time <= window.end_time
            for window in criterion.windows
        )
        if not in_window:
            met = False
            unmet.append("Only valid during specific times/days.")

    return CriterionResult(met=met, unmet_message=_join(*unmet))


def check_product(criterion: ProductCriterion, customer: CustomerProfile, moment: EvaluationMoment) -> CriterionResult:
    """Состав корзины здесь неизвестен - проверку делает сервер при оформлении заказа."""
    notes = []
    if criterion.required_product_ids:
        notes.append("(Specific product purchase check needed)")
    if criterion.excluded_product_ids:
        notes.append("(Excluded product check needed)")
    if criterion.requires_product_category:
        notes.append("(Product category purchase check needed)")
    return CriterionResult(progress_message=_join(*notes))


# Порядок важен: в нем склеиваются сообщения итогового вердикта
EVALUATORS: Dict[str, Callable[..., CriterionResult]] = {
    "points": check_points,
    "purchase": check_purchase,
    "calendar": check_calendar,
    "membership": check_membership,
    "referral": check_referral,
    "signup": check_signup,
    "time_window": check_time_window,
    "product": check_product,
}
