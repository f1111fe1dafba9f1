"""
Execution Context for lambdakit.

The ExecutionContext is the mapping handed to the business function:
raw invocation metadata under ``context``, the environment under ``env``,
and every dependency contributed by the registered factories.

It is built incrementally: the adapter merges each registration's
contribution as soon as it resolves, so later factories can read keys
earlier ones produced. The context is frozen before the business
function runs.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID, uuid4

from lambdakit.config.schemas import CollisionPolicy

from .errors import ContextFrozenError, DependencyCollisionError

logger = logging.getLogger(__name__)

CONTEXT_KEY = "context"
ENV_KEY = "env"

RUNTIME_SOURCE = "runtime"
ENVIRONMENT_SOURCE = "environment"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionContext(Mapping[str, Any]):
    """
    Ordered, read-only mapping of everything a handler may depend on.

    Keys are inserted in a fixed order: ``context``, ``env``, then each
    registration's contribution in registration order. A key written
    again keeps its original position but takes the newer value; the
    collision policy decides whether that is silent, logged, or an error.

    The raw event is available as the ``event`` attribute so factories
    can read it, but it is not a key.

    Example:
        ctx = ExecutionContext(event, meta, {"STAGE": "prod"})
        ctx.merge({"db": client}, source="registration[0]")
        ctx.freeze()
        ctx["db"]  # client
    """

    def __init__(
        self,
        event: Any,
        meta: Any,
        env: Mapping[str, str],
        *,
        collision_policy: CollisionPolicy = CollisionPolicy.OVERWRITE,
    ):
        self.event = event
        self.collision_policy = collision_policy
        self._data: dict[str, Any] = {CONTEXT_KEY: meta, ENV_KEY: dict(env)}
        self._sources: dict[str, str] = {
            CONTEXT_KEY: RUNTIME_SOURCE,
            ENV_KEY: ENVIRONMENT_SOURCE,
        }
        self._frozen = False

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    @property
    def meta(self) -> Any:
        """Raw invocation metadata from the host runtime."""
        return self._data[CONTEXT_KEY]

    @property
    def env(self) -> Mapping[str, str]:
        return self._data[ENV_KEY]

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def sources(self) -> Mapping[str, str]:
        """Which registration last wrote each key."""
        return MappingProxyType(self._sources)

    def merge(self, contribution: Mapping[str, Any], source: str) -> None:
        """
        Merge one registration's dependencies into the context.

        Args:
            contribution: Resolved dependency mapping
            source: Name of the contributing registration

        Raises:
            ContextFrozenError: If the context was already handed off
            DependencyCollisionError: On a collision under the error policy
        """
        if self._frozen:
            raise ContextFrozenError(
                f"Cannot merge dependencies from {source}: context is frozen"
            )

        if self.collision_policy is CollisionPolicy.ERROR:
            # Check everything first so a failed merge leaves no partial writes
            for key in contribution:
                if key in self._data:
                    raise DependencyCollisionError(key, self._sources[key], source)

        for key, value in contribution.items():
            if key in self._data:
                self._report_collision(key, source)
            self._data[key] = value
            self._sources[key] = source

    def _report_collision(self, key: str, source: str) -> None:
        previous = self._sources[key]
        if self.collision_policy is CollisionPolicy.WARN:
            logger.warning(
                f"[context] Dependency '{key}' from {source} overwrites value from {previous}"
            )
        else:
            logger.debug(
                f"[context] Dependency '{key}' from {source} overwrites value from {previous}"
            )

    def freeze(self) -> None:
        """Prevent further merges."""
        self._frozen = True

    def to_dict(self) -> dict[str, Any]:
        """Shallow copy of the context as a plain dict."""
        return dict(self._data)

    def __repr__(self) -> str:
        return f"ExecutionContext(keys={list(self._data)}, frozen={self._frozen})"


class InvocationState(str, Enum):
    """Lifecycle of a single invocation."""

    INITIALIZING = "initializing"
    RESOLVING_DEPENDENCIES = "resolving_dependencies"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (InvocationState.SUCCEEDED, InvocationState.FAILED)


@dataclass
class InvocationResult:
    """
    Outcome of one invocation.

    Exactly one of value/error is meaningful once the state is terminal.
    failed_stage records where an error happened; it is diagnostic only
    and is never used to change what the host runtime receives.
    """

    invocation_id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None

    state: InvocationState = InvocationState.INITIALIZING
    value: Any = None
    error: Exception | None = None
    failed_stage: InvocationState | None = None

    context: ExecutionContext | None = None
    transitions: list[InvocationState] = field(
        default_factory=lambda: [InvocationState.INITIALIZING]
    )
    stage_timings: dict[str, float] = field(default_factory=dict)
    cache_hits: dict[str, bool] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.state is InvocationState.SUCCEEDED

    @property
    def duration_ms(self) -> float:
        end = self.completed_at or _utc_now()
        return (end - self.started_at).total_seconds() * 1000

    def transition(self, state: InvocationState) -> None:
        """Move to the next state."""
        if self.state.is_terminal:
            raise RuntimeError(
                f"Invocation {self.invocation_id} already finished as {self.state.value}"
            )
        self.state = state
        self.transitions.append(state)

    def succeed(self, value: Any) -> None:
        self.transition(InvocationState.SUCCEEDED)
        self.value = value
        self.completed_at = _utc_now()

    def fail(self, error: Exception) -> None:
        self.failed_stage = self.state
        self.transition(InvocationState.FAILED)
        self.error = error
        self.completed_at = _utc_now()

    def record_timing(self, stage: str, duration_ms: float) -> None:
        self.stage_timings[stage] = duration_ms

    def unwrap(self) -> Any:
        """Return the value, or raise the original error."""
        if self.error is not None:
            raise self.error
        if not self.success:
            raise RuntimeError(f"Invocation {self.invocation_id} has not finished")
        return self.value

    def to_dict(self) -> dict[str, Any]:
        """Serialize result for logging."""
        return {
            "invocation_id": str(self.invocation_id),
            "state": self.state.value,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": repr(self.error) if self.error is not None else None,
            "stage_timings": dict(self.stage_timings),
            "cache_hits": dict(self.cache_hits),
        }
