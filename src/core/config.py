from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Ignore unrelated env keys so local/dev .env can include optional integrations.
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Sales Dashboard Analytics"
    environment: str = "development"
    api_prefix: str = "/api/v1"
    cors_allow_origins: str = "http://localhost:5173,http://127.0.0.1:5173"
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    supabase_url: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    supabase_service_role_key: Optional[str] = Field(
        default=None, alias="SUPABASE_SERVICE_ROLE_KEY"
    )
    supabase_anon_key: Optional[str] = Field(default=None, alias="SUPABASE_ANON_KEY")

    dashboard_lookahead_days: int = Field(default=30, ge=0, alias="DASHBOARD_LOOKAHEAD_DAYS")
    dashboard_leaderboard_top_n: int = Field(default=5, ge=1, alias="DASHBOARD_LEADERBOARD_TOP_N")
    dashboard_project_top_n: int = Field(default=4, ge=1, alias="DASHBOARD_PROJECT_TOP_N")
    dashboard_trailing_months: int = Field(default=6, ge=1, le=24, alias="DASHBOARD_TRAILING_MONTHS")
    dashboard_week_start: str = Field(
        default="sunday", pattern="^(sunday|monday)$", alias="DASHBOARD_WEEK_START"
    )
    dashboard_celebrations_limit: int = Field(
        default=5, ge=1, alias="DASHBOARD_CELEBRATIONS_LIMIT"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_cors_origins() -> list[str]:
    settings = get_settings()
    return [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
