from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="POTIONS_", env_file=".env", extra="ignore")

    # Intake conversion memoization
    conversion_cache_enabled: bool = True
    conversion_cache_capacity: int = Field(default=1000, ge=1)

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_rotation: str = "10 MB"
    log_retention: str = "7 days"

    api_title: str = "Personal Potions Formulation API"
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


@lru_cache
def get_settings() -> Settings:
    return Settings()
