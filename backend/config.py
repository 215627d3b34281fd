import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _get_list(name: str, fallback: str = "") -> List[str]:
    raw_value = os.getenv(name, fallback)
    if not raw_value:
        return []
    return [item.strip() for item in raw_value.split(",") if item.strip()]


def _get_bool(name: str, fallback: str = "false") -> bool:
    return os.getenv(name, fallback).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    supabase_url: str = _require_env("SUPABASE_URL")
    supabase_service_role_key: str = _require_env("SUPABASE_SERVICE_ROLE_KEY")
    app_timezone: str = os.getenv("APP_TIMEZONE", "America/New_York")
    fake_time: str | None = os.getenv("FAKE_TIME")
    promotion_interval_seconds: int = int(
        os.getenv("PROMOTION_INTERVAL_SECONDS", "3600")
    )
    promotion_autostart: bool = _get_bool("PROMOTION_AUTOSTART", "true")
    export_dir: str = os.getenv("EXPORT_DIR", "exports")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    allowed_origins: List[str] = field(
        default_factory=lambda: _get_list("ALLOWED_ORIGINS", "*")
    )


settings = Settings()
