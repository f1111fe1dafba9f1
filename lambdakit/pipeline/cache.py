"""
Single-slot TTL cache for factory results.

Each registration owns exactly one TTLCache. The slot is filled lazily
on the first invocation and survives for the lifetime of the process,
so warm invocations of the same deployed function reuse it.

Timestamps are supplied by the caller (milliseconds) rather than read
from a clock here, which keeps freshness checks deterministic and lets
the entry point use one timestamp per invocation.

Usage:
    cache = TTLCache(max_age=60_000)
    value = cache.get(now)
    if value is None:
        value = await build_dependencies()
        cache.set(value, now)
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from lambdakit.config.schemas import DEFAULT_CACHE_MAX_AGE_MS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached dependency mapping and when it was stored."""

    value: Mapping[str, Any]
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at


class TTLCache:
    """
    Single-slot cache with a maximum age.

    A disabled cache never stores anything: every get() is a miss.
    An entry is fresh while ``now - stored_at < max_age``.
    """

    def __init__(self, enabled: bool = True, max_age: float = DEFAULT_CACHE_MAX_AGE_MS):
        if max_age < 0:
            raise ValueError(f"max_age must be >= 0, got {max_age}")
        self.enabled = enabled
        self.max_age = max_age
        self._entry: CacheEntry | None = None

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    def is_fresh(self, now: float) -> bool:
        """Check whether the slot holds an entry younger than max_age."""
        if not self.enabled or self._entry is None:
            return False
        return self._entry.age(now) < self.max_age

    def get(self, now: float) -> Mapping[str, Any] | None:
        """Return the cached mapping, or None when absent or stale."""
        if self.is_fresh(now):
            return self._entry.value  # type: ignore[union-attr]
        if self._entry is not None:
            logger.debug(
                f"[ttl_cache] Entry expired: age={self._entry.age(now):.0f}ms, "
                f"max_age={self.max_age:.0f}ms"
            )
        return None

    def set(self, value: Mapping[str, Any], now: float) -> None:
        """Replace the slot with value stored at now."""
        if not self.enabled:
            return
        self._entry = CacheEntry(value=value, stored_at=now)

    def clear(self) -> None:
        self._entry = None

    def __repr__(self) -> str:
        state = "empty" if self._entry is None else f"stored_at={self._entry.stored_at}"
        return f"TTLCache(enabled={self.enabled}, max_age={self.max_age}, {state})"
