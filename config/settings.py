"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False
    log_level: str = "INFO"

    # ── Document Store ───────────────────────────────────────
    document_store_type: str = "memory"  # "memory" or "http"
    document_store_base_url: str = "http://localhost:8080"
    document_store_api_prefix: str = "/api/v1"
    document_store_access_token: str = ""
    document_store_timeout: int = 15  # seconds

    # ── Collections ──────────────────────────────────────────
    evaluations_collection: str = "project_evaluations"
    projects_collection: str = "projects"
    project_students_collection: str = "project_students"


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
