"""
Configuration Schemas for lambdakit.

Pydantic models for per-registration options and adapter-wide settings.
Options are validated when a registration is declared, so a bad cache
configuration fails at import time of the handler module rather than on
the first invocation.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

DEFAULT_CACHE_MAX_AGE_MS = 300_000


class CollisionPolicy(str, Enum):
    """What to do when a registration writes a key that already exists."""

    OVERWRITE = "overwrite"
    """Later registration wins silently."""

    WARN = "warn"
    """Later registration wins; a warning is logged."""

    ERROR = "error"
    """The invocation fails with DependencyCollisionError."""


class CacheOptions(BaseModel):
    """
    Cache behaviour for one registration.

    max_age is in milliseconds. A disabled cache invokes the factory on
    every invocation.
    """

    enabled: bool = Field(True, description="Whether factory results are cached")
    max_age: float = Field(
        DEFAULT_CACHE_MAX_AGE_MS,
        ge=0,
        description="Maximum age of a cached result in milliseconds",
    )

    class Config:
        extra = "forbid"


class RegistrationOptions(BaseModel):
    """Options accepted by EntryPointAdapter.register()."""

    cache: CacheOptions = Field(default_factory=CacheOptions)

    class Config:
        extra = "forbid"


class AdapterSettings(BaseModel):
    """
    Adapter-wide settings.

    Cache values are the defaults applied to registrations that do not
    pass explicit cache options.
    """

    cache_enabled: bool = True
    cache_max_age_ms: float = Field(DEFAULT_CACHE_MAX_AGE_MS, ge=0)
    collision_policy: CollisionPolicy = CollisionPolicy.OVERWRITE
    log_level: str = Field("INFO", description="Level for the lambdakit logger")

    class Config:
        extra = "forbid"

    def default_registration_options(self) -> RegistrationOptions:
        return RegistrationOptions(
            cache=CacheOptions(
                enabled=self.cache_enabled,
                max_age=self.cache_max_age_ms,
            )
        )
