# cafe_rewards/main.py

import logging
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

# Конфигурация и ядро
from cafe_rewards.core.config import settings as config
from cafe_rewards.core.logging_config import setup_logging
from cafe_rewards.clients.cafe_api import cafe_client

# Роутеры FastAPI
from cafe_rewards.routers import rewards as rewards_router

# --- Инициализация ---
logger = logging.getLogger(__name__)

# --- Обработчик критических ошибок ---
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Глобальный обработчик для всех необработанных исключений.
    Логирует ошибку и возвращает 500 без подробностей.
    """
    logger.critical(f"Unhandled exception for request: {request.method} {request.url}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error."},
    )

# --- Lifespan Manager (запуск и остановка приложения) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Application startup. Cafe API: {config.CAFE_API_BASE_URL}")
    yield
    await cafe_client.aclose()
    logger.info("Cafe API client closed. Application shut down.")

# --- Создание FastAPI приложения ---
app = FastAPI(
    title="Cafe Rewards Service",
    description="Backend for Frontend service for the cafe rewards screen",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Регистрация обработчика исключений ---
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Подключение роутеров FastAPI ---
api_router = APIRouter(prefix="/api/v1")
api_router.include_router(rewards_router.router, tags=["Rewards"])

app.include_router(api_router)
