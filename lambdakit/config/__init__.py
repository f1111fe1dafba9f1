"""Configuration for lambdakit."""

from .schemas import (
    DEFAULT_CACHE_MAX_AGE_MS,
    AdapterSettings,
    CacheOptions,
    CollisionPolicy,
    RegistrationOptions,
)
from .settings import configure_logging, get_settings, read_environment

__all__ = [
    "DEFAULT_CACHE_MAX_AGE_MS",
    "AdapterSettings",
    "CacheOptions",
    "CollisionPolicy",
    "RegistrationOptions",
    "configure_logging",
    "get_settings",
    "read_environment",
]
