# Backend/app/core/config.py
from __future__ import annotations

from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Backend/app/core/config.py -> parents[2] = Backend
ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_FILE, override=False)


class Settings(BaseSettings):
    # ---- App ----
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # ---- Hacker News upstreams ----
    HN_SEARCH_BASE_URL: str = "https://hn.algolia.com/api/v1"
    HN_ITEM_BASE_URL: str = "https://hacker-news.firebaseio.com/v0"
    HN_PERMALINK_BASE_URL: str = "https://news.ycombinator.com/item"
    HN_HTTP_TIMEOUT_S: float = 10.0
    HN_USER_AGENT: str = "inspedia-sources/1.0"

    # ---- Sources API ----
    SOURCES_DEFAULT_COUNT: int = 3
    SOURCES_MAX_COUNT: int = 50
    CORS_ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()


def get_settings() -> Settings:
    return settings
