"""
Settings and environment access for lambdakit.

get_settings() reads adapter defaults from LAMBDAKIT_* variables once per
process. read_environment() is the default environment collaborator,
exposed to handlers under the ``env`` context key.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache

from .schemas import DEFAULT_CACHE_MAX_AGE_MS, AdapterSettings, CollisionPolicy

logger = logging.getLogger(__name__)

ENV_PREFIX = "LAMBDAKIT_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


@lru_cache()
def get_settings() -> AdapterSettings:
    """
    Get adapter settings from environment.

    Uses lru_cache for singleton pattern.
    """
    return AdapterSettings(
        cache_enabled=_env("CACHE_ENABLED", "true").lower() == "true",
        cache_max_age_ms=float(_env("CACHE_MAX_AGE_MS", str(DEFAULT_CACHE_MAX_AGE_MS))),
        collision_policy=CollisionPolicy(_env("COLLISION_POLICY", "overwrite").lower()),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
    )


def read_environment() -> dict[str, str]:
    """Snapshot of the process environment."""
    return dict(os.environ)


def configure_logging(settings: AdapterSettings | None = None) -> None:
    """Apply settings.log_level to the lambdakit logger hierarchy."""
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        logger.warning(f"[config] Unknown log level '{settings.log_level}', using INFO")
        level = logging.INFO
    logging.getLogger("lambdakit").setLevel(level)
