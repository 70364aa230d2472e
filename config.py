from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server settings, read from MOVIE_BUDGET_* environment variables and .env."""

    model_config = SettingsConfigDict(
        env_prefix="MOVIE_BUDGET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Bind address for uvicorn")
    port: int = Field(default=2623, ge=1, le=65535)
    database_path: str = Field(
        default="database.json",
        description="JSON file holding the tickets and the id counter",
    )
    max_text_length: int = Field(default=200, ge=1)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")
    log_json: bool = Field(
        default=False, description="Render log lines as JSON instead of console"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
