from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Настройки внешнего API кофейни
    CAFE_API_URL: str = "http://localhost:3001"
    CAFE_API_TOKEN: str | None = None
    CAFE_API_TIMEOUT: float = 10.0
    CAFE_API_READ_TIMEOUT: float = 30.0

    # Битый criteria_json: True - награда недоступна, False - "без ограничений"
    STRICT_CRITERIA_PARSING: bool = True

    CORS_ORIGINS_STR: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS"
    )

    @property
    def CORS_ORIGINS(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS_STR.split(',') if origin.strip()]

    @property
    def CAFE_API_BASE_URL(self) -> str:
        return f"{self.CAFE_API_URL.rstrip('/')}/api"

    model_config = SettingsConfigDict(env_file=".env", populate_by_name=True, extra="ignore")

settings = Settings()
