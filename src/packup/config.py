# src/packup/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Everything is injectable: core code receives settings, it never reads os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from dotenv import load_dotenv

ENV_PREFIX = "PACKUP"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


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


def _env_list(name: str, default: List[str]) -> List[str]:
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

    # ---- Storage ----
    data_dir: Path
    db_path: Path

    # ---- Roles / sessions ----
    admin_emails: List[str]
    session_ttl_hours: int

    # Whether an operator's own list also shows default todos.
    operator_sees_defaults: bool

    # ---- Error reporting ----
    expose_internal_errors: bool

    # ---- Console connector ----
    console_enabled: bool
    console_email: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "packup")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/packup"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "packup.sqlite3")

        # ADMIN_EMAILS is accepted unprefixed for compatibility with existing deployments.
        admin_emails = _env_list(_k("ADMIN_EMAILS"), _env_list("ADMIN_EMAILS", []))
        session_ttl_hours = _env_int(_k("SESSION_TTL_HOURS"), 24)
        operator_sees_defaults = _env_bool(_k("OPERATOR_SEES_DEFAULTS"), False)

        expose_internal_errors = _env_bool(_k("EXPOSE_INTERNAL_ERRORS"), False)

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        console_email = _env(_k("CONSOLE_EMAIL"), "").strip()

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            admin_emails=admin_emails,
            session_ttl_hours=session_ttl_hours,
            operator_sees_defaults=operator_sees_defaults,
            expose_internal_errors=expose_internal_errors,
            console_enabled=console_enabled,
            console_email=console_email,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
