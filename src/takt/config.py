# src/takt/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process, built explicitly at startup.
- No secrets required at import time.
- Nothing is read from the environment when this module is imported.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import time
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

ENV_PREFIX = "TAKT"

DEFAULT_TIMEZONE = "America/New_York"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_time(name: str, default: time) -> time:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return time.fromisoformat(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool
    webhook_enabled: bool
    webhook_host: str
    webhook_port: int

    # ---- LLM / OpenRouter ----
    openrouter_api_key: Optional[str]
    openrouter_base_url: str
    llm_model: str
    extra_headers: Dict[str, str]
    llm_connect_timeout_seconds: float
    llm_read_timeout_seconds: float
    llm_max_tokens: int
    llm_offline: bool

    # ---- Time ----
    default_timezone: str

    # ---- Daily digest ----
    digest_enabled: bool
    digest_interval_seconds: float
    digest_concurrency: int
    digest_default_time: time

    # ---- Outbound SMS (Twilio) ----
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_from_number: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="takt") or "takt"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        webhook_enabled = _env_bool(_k("WEBHOOK_ENABLED"), False)
        webhook_host = _env(_k("WEBHOOK_HOST"), "127.0.0.1")
        webhook_port = _env_int(_k("WEBHOOK_PORT"), 8000)

        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        http_referer = _env(_k("HTTP_REFERER"), "https://example.com")
        title = _env(_k("APP_TITLE"), app_name)

        extra_headers = {
            "HTTP-Referer": http_referer,
            "X-Title": title,
        }

        llm_model = (_env(_k("LLM_MODEL"), "anthropic/claude-sonnet-4") or "").strip()
        llm_connect_timeout_seconds = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        llm_read_timeout_seconds = _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 25.0)
        llm_max_tokens = _env_int(_k("LLM_MAX_TOKENS"), 2048)
        llm_offline = _env_bool(_k("LLM_OFFLINE"), False)

        default_timezone = _env(_k("DEFAULT_TIMEZONE"), DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE

        digest_enabled = _env_bool(_k("DIGEST_ENABLED"), False)
        digest_interval_seconds = _env_float(_k("DIGEST_INTERVAL_SECONDS"), 60.0)
        digest_concurrency = _env_int(_k("DIGEST_CONCURRENCY"), 4)
        digest_default_time = _env_time(_k("DIGEST_DEFAULT_TIME"), time(8, 0))

        twilio_account_sid = (_first_env(_k("TWILIO_ACCOUNT_SID"), "TWILIO_ACCOUNT_SID", default="") or "").strip()
        twilio_auth_token = (_first_env(_k("TWILIO_AUTH_TOKEN"), "TWILIO_AUTH_TOKEN", default="") or "").strip()
        twilio_from_number = (_first_env(_k("TWILIO_PHONE_NUMBER"), "TWILIO_PHONE_NUMBER", default="") or "").strip()

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/takt"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "takt.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            webhook_enabled=webhook_enabled,
            webhook_host=webhook_host,
            webhook_port=webhook_port,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_model=llm_model,
            extra_headers=extra_headers,
            llm_connect_timeout_seconds=llm_connect_timeout_seconds,
            llm_read_timeout_seconds=llm_read_timeout_seconds,
            llm_max_tokens=llm_max_tokens,
            llm_offline=llm_offline,
            default_timezone=default_timezone,
            digest_enabled=digest_enabled,
            digest_interval_seconds=digest_interval_seconds,
            digest_concurrency=digest_concurrency,
            digest_default_time=digest_default_time,
            twilio_account_sid=twilio_account_sid,
            twilio_auth_token=twilio_auth_token,
            twilio_from_number=twilio_from_number,
            data_dir=data_dir,
            db_path=db_path,
        )


_SETTINGS: Settings | None = None


def load_settings(*, dotenv: bool = True) -> Settings:
    """Read .env (if present) and the environment, then cache the result."""
    global _SETTINGS
    if dotenv:
        load_dotenv(override=False)
    _SETTINGS = Settings.from_env()
    return _SETTINGS


def get_settings() -> Settings:
    if _SETTINGS is None:
        return load_settings()
    return _SETTINGS
