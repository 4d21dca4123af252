# src/checklist/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (the REST key is only needed for the rest backend).
- Variant switches (soft delete, ordering, levels) live here, not in code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "CHECKLIST"

BACKENDS = ("sqlite", "rest")
CONSISTENCY_POLICIES = ("local", "reload")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except ImportError:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


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
    if raw is None or raw.strip() == "":
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


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_labels(name: str, default: list[str]) -> list[str]:
    # Labels may contain spaces and commas, so ';' is the only separator.
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.split(";") if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    raw = _env(name, default).strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Persistence backend ----
    backend: str
    rest_url: str
    rest_key: str
    rest_table: str
    rest_timeout_seconds: float | None

    # ---- Task policy ----
    max_records: int
    default_tasks: list[str]
    soft_delete: bool
    checked_first: bool
    levels: bool
    min_level: int
    max_level: int
    default_level: int
    consistency: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "checklist") or "checklist"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/checklist"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        backend = _env_choice(_k("BACKEND"), BACKENDS, "sqlite")
        rest_url = (_first_env(_k("REST_URL"), "SUPABASE_URL", default="") or "").strip().rstrip("/")
        rest_key = (_first_env(_k("REST_KEY"), "SUPABASE_KEY", default="") or "").strip()
        rest_table = _env(_k("REST_TABLE"), "tasks").strip() or "tasks"
        rest_timeout_seconds = _env_float(_k("REST_TIMEOUT_SECONDS"), None)

        max_records = max(1, _env_int(_k("MAX_RECORDS"), 10))
        default_tasks = _env_labels(_k("DEFAULT_TASKS"), ["Daily study"])

        soft_delete = _env_bool(_k("SOFT_DELETE"), True)
        checked_first = _env_bool(_k("CHECKED_FIRST"), True)

        levels = _env_bool(_k("LEVELS"), True)
        min_level = _env_int(_k("MIN_LEVEL"), 1)
        max_level = max(min_level, _env_int(_k("MAX_LEVEL"), 2))
        default_level = min(max_level, max(min_level, _env_int(_k("DEFAULT_LEVEL"), min_level)))

        consistency = _env_choice(_k("CONSISTENCY"), CONSISTENCY_POLICIES, "local")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            backend=backend,
            rest_url=rest_url,
            rest_key=rest_key,
            rest_table=rest_table,
            rest_timeout_seconds=rest_timeout_seconds,
            max_records=max_records,
            default_tasks=default_tasks,
            soft_delete=soft_delete,
            checked_first=checked_first,
            levels=levels,
            min_level=min_level,
            max_level=max_level,
            default_level=default_level,
            consistency=consistency,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
