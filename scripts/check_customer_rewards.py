# check_customer_rewards.py
import argparse
import asyncio
import logging
import sys
import os

# Хак для корректной работы импортов
sys.path.append(os.getcwd())

from cafe_rewards.clients.cafe_api import cafe_client
from cafe_rewards.core.config import settings
from cafe_rewards.core.exceptions import CafeApiError
from cafe_rewards.services.rewards_view import build_cards, load_snapshot


async def main(customer_id: str):
    """
    Печатает статус каждой награды и ваучера клиента - удобно,
    чтобы разобраться, почему награда не показывается на экране.
    """
    print(f"--- Rewards for customer {customer_id} ({settings.CAFE_API_BASE_URL}) ---")
    try:
        snapshot = await load_snapshot(cafe_client, customer_id)
    except CafeApiError as e:
        print(f"Failed to load data: {e.message}")
        return
    finally:
        await cafe_client.aclose()

    profile = snapshot.profile
    print(f"Points: {profile.loyalty_points} | Tier: {profile.membership_tier or '-'} | "
          f"Claimed: {len(profile.claimed_reward_ids)} | Vouchers: {len(profile.vouchers)}\n")

    for card in build_cards(snapshot, strict_criteria=settings.STRICT_CRITERIA_PARSING):
        kind = f"voucher {card.instance_id}" if card.is_voucher else f"reward {card.reward_id}"
        print(f"[{card.status.value:<10}] {card.name} ({kind})")
        print(f"             {card.message}")

    print("\n--- Done ---")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Show reward eligibility for a customer.")
    parser.add_argument("customer_id")
    args = parser.parse_args()

    # Настраиваем логирование, чтобы видеть вывод от наших сервисов
    logging.basicConfig(level=logging.INFO, stream=sys.stdout, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        asyncio.run(main(args.customer_id))
    except KeyboardInterrupt:
        print("\nScript interrupted by user.")
