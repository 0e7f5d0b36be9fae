"""Application settings and configuration management."""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    CAPTURE_LOCALE: str = "en-US"
    TICK_SECONDS: float = Field(default=1.0, gt=0.0)
    OPENING_DELAY_S: float = Field(default=0.5, ge=0.0)

    STORE_BACKEND: Literal["memory", "json", "sqlite"] = "json"
    STORE_DIR: str = "data/sessions"
    DB_PATH: str = Field(default="data/sessions.db")

    RESPONSE_PROVIDER: Literal["canned", "llm"] = "canned"
    PROVIDER_DELAY_MIN_S: float = Field(default=1.0, ge=0.0)
    PROVIDER_DELAY_MAX_S: float = Field(default=2.0, ge=0.0)
    LLM_CONFIG_PATH: str = "config/llm_routes.json"
    LLM_ROUTE_KEY: str = "response_provider.llm"

    BASE_SCORE: float = Field(default=5.0, ge=0.0, le=10.0)
    SCORE_PER_TURN: float = Field(default=0.5, ge=0.0)
    BASE_SCORE_CAP: float = Field(default=9.5, ge=0.0, le=10.0)
    SCORE_VARIANCE: float = Field(default=1.5, ge=0.0)
    REPORT_SEED: Optional[int] = None

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()
