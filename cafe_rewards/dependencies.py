# cafe_rewards/dependencies.py

import logging

from cafe_rewards.clients.cafe_api import CafeApiClient, cafe_client
from cafe_rewards.core.config import settings
from cafe_rewards.services.claims import ClaimOrchestrator

# --- Инициализация логгера ---
logger = logging.getLogger(__name__)

# Один оркестратор на процесс: флаги "идет запрос" общие для всех запросов
claim_orchestrator = ClaimOrchestrator(client=cafe_client)


def get_cafe_client() -> CafeApiClient:
    """Зависимость FastAPI: клиент API кофейни."""
    return cafe_client


def get_claim_orchestrator() -> ClaimOrchestrator:
    """Зависимость FastAPI: оркестратор получения наград."""
    return claim_orchestrator


def get_strict_criteria() -> bool:
    """Как трактовать нечитаемые условия награды (см. STRICT_CRITERIA_PARSING)."""
    return settings.STRICT_CRITERIA_PARSING
