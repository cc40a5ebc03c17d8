"""
Application settings

Values come from environment variables (or a local .env file). The only
external dependency is the document database, addressed by DATABASE_URL.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: Optional[str] = None
    database_name: str = "mercado"

    # API
    cors_origins: List[str] = ["*"]
    host: str = "0.0.0.0"
    port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
