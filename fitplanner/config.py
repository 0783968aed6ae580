# ===== fitplanner/config.py =====
"""
Runtime settings read from FITPLANNER_* environment variables.
The heuristic rule tables live in constants.py, not here.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

ENV_PREFIX = "FITPLANNER_"


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


def _as_int(raw: Optional[str], default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _as_bool(raw: Optional[str]) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    plan_validity_days: int = 30
    history_window: int = 50
    seed_catalog: bool = False
    cors_origins: Tuple[str, ...] = ("*",)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process, falling back to the defaults."""
    base = Settings()
    origins = tuple(
        origin.strip() for origin in (get_env("CORS_ORIGINS") or "").split(",") if origin.strip()
    )
    return Settings(
        log_level=(get_env("LOG_LEVEL") or base.log_level).upper(),
        plan_validity_days=_as_int(get_env("PLAN_VALIDITY_DAYS"), base.plan_validity_days),
        history_window=_as_int(get_env("HISTORY_WINDOW"), base.history_window),
        seed_catalog=_as_bool(get_env("SEED_CATALOG")),
        cors_origins=origins or base.cors_origins,
    )
