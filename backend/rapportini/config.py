from __future__ import annotations

import os
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "Rapportini"
    host: str = os.getenv("RP_HOST", "127.0.0.1")
    port: int = int(os.getenv("RP_PORT", "8080"))

    sqlite_path: Path = Path(os.getenv("RP_SQLITE_PATH", "./data/rapportini.db"))
    export_dir: Path = Path(os.getenv("RP_EXPORT_DIR", "./data/exports"))

    log_level: str = os.getenv("RP_LOG_LEVEL", "INFO")

    brand_name: str = os.getenv("RP_BRAND_NAME", "CFS")
    brand_tagline: str = os.getenv("RP_BRAND_TAGLINE", "FACILITY")
    summary_form_code: str = os.getenv("RP_SUMMARY_FORM_CODE", "M-FGI-01-IT")
    extraordinary_form_code: str = os.getenv("RP_EXTRAORDINARY_FORM_CODE", "MT-INT-23-01")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").strip().upper()


settings = Settings()

# Ensure essential directories exist
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
settings.export_dir.mkdir(parents=True, exist_ok=True)
