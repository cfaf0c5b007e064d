# src/taskminder/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole service (normal "settings layer").
- No secrets required at import time.
- Settings are built on first use, so tests can set env vars before that.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKMINDER"


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


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Reminder engine ----
    scan_interval_seconds: float
    batch_size: int
    lead_minutes: int
    max_consecutive_store_failures: int
    default_channel: str
    channels: list[str]

    # ---- SMTP ----
    smtp_host: str
    smtp_port: int
    smtp_username: str
    smtp_password: str
    smtp_from: str
    smtp_starttls: bool
    smtp_timeout_seconds: float

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_store_path: Path

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "taskminder")
        log_level = _env(_k("LOG_LEVEL"), _env("LOG_LEVEL", "INFO"))

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskminder"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "taskminder.sqlite3")

        scan_interval_seconds = _env_float(_k("SCAN_INTERVAL_SECONDS"), 120.0)
        batch_size = _env_int(_k("BATCH_SIZE"), 50)
        lead_minutes = _env_int(_k("LEAD_MINUTES"), 60)
        max_consecutive_store_failures = _env_int(_k("MAX_STORE_FAILURES"), 0)
        default_channel = _env(_k("DEFAULT_CHANNEL"), "email").strip().lower() or "email"
        channels = [c.lower() for c in _env_list(_k("CHANNELS"), ["email"])]

        # SMTP: accept the common unprefixed EMAIL_* names as a fallback.
        smtp_host = (_first_env(_k("SMTP_HOST"), "EMAIL_HOST", default="") or "").strip()
        smtp_port = _env_int(_k("SMTP_PORT"), _env_int("EMAIL_PORT", 587))
        smtp_username = (_first_env(_k("SMTP_USERNAME"), "EMAIL_USER", default="") or "").strip()
        smtp_password = _first_env(_k("SMTP_PASSWORD"), "EMAIL_PASS", default="") or ""
        smtp_from = (_first_env(_k("SMTP_FROM"), default=smtp_username) or "").strip()
        smtp_starttls = _env_bool(_k("SMTP_STARTTLS"), True)
        smtp_timeout_seconds = _env_float(_k("SMTP_TIMEOUT_SECONDS"), 30.0)

        matrix_homeserver = _env(_k("MATRIX_HOMESERVER"), "").strip()
        matrix_user_id = _env(_k("MATRIX_USER_ID"), "").strip()
        matrix_password = _env(_k("MATRIX_PASSWORD"), "").strip()
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            scan_interval_seconds=scan_interval_seconds,
            batch_size=batch_size,
            lead_minutes=lead_minutes,
            max_consecutive_store_failures=max_consecutive_store_failures,
            default_channel=default_channel,
            channels=channels,
            smtp_host=smtp_host,
            smtp_port=smtp_port,
            smtp_username=smtp_username,
            smtp_password=smtp_password,
            smtp_from=smtp_from,
            smtp_starttls=smtp_starttls,
            smtp_timeout_seconds=smtp_timeout_seconds,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_store_path=matrix_store_path,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
