"""
Factory registration and invocation for lambdakit.

A factory is a function ``(ctx) -> mapping`` (sync or async) that builds
dependencies such as datastore clients. A registration holds either one
factory or an ordered list of them, plus a private TTLCache so that warm
invocations reuse what a previous invocation built.

Execution Model:
- Cache hit: the cached mapping is returned; no factory is called.
- Cache miss, single factory: the factory is called and awaited.
- Cache miss, list of factories: every factory is started as its own
  task before any is awaited. Results merge in declaration order, so a
  later factory wins a key collision regardless of completion order.
- Concurrent misses on a cached registration wait on its lock, so only
  one factory call is in flight per freshness window.
- Any failure leaves the cache untouched and propagates unchanged.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from lambdakit.config.schemas import RegistrationOptions
from lambdakit.utils import callable_name, resolve_maybe_awaitable

from .cache import TTLCache
from .errors import ConfigurationError, InvalidFactoryResultError
from .postprocess import PostProcessorChain

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)

FactoryResult = Union[Mapping[str, Any], None]
Factory = Callable[["ExecutionContext"], Union[FactoryResult, Awaitable[FactoryResult]]]
Clock = Callable[[], float]


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000


# =============================================================================
# Registration
# =============================================================================


@dataclass
class Registration:
    """
    One call to the registration API.

    Owns its cache and post-processors for the lifetime of the process.
    """

    factories: tuple[Factory, ...]
    options: RegistrationOptions
    index: int = 0
    is_group: bool = False
    post_processors: PostProcessorChain = field(default_factory=PostProcessorChain)
    cache: TTLCache = field(init=False)
    lock: asyncio.Lock = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.cache = TTLCache(
            enabled=self.options.cache.enabled,
            max_age=self.options.cache.max_age,
        )
        self.lock = asyncio.Lock()

    @classmethod
    def create(
        cls,
        factory: Factory | Sequence[Factory],
        options: RegistrationOptions,
        index: int = 0,
    ) -> "Registration":
        """
        Build a registration from a factory or list of factories.

        Raises:
            ConfigurationError: If the factory is not callable, or a list
                is empty or contains something that is not callable
        """
        if callable(factory):
            return cls(factories=(factory,), options=options, index=index)

        if isinstance(factory, (str, bytes)) or not isinstance(factory, Sequence):
            raise ConfigurationError(
                f"Factory must be callable or a list of callables, got {type(factory).__name__}"
            )
        if not factory:
            raise ConfigurationError("Factory list must contain at least one factory")

        for position, item in enumerate(factory):
            if not callable(item):
                raise ConfigurationError(
                    f"Factory at position {position} is not callable: {type(item).__name__}"
                )

        return cls(factories=tuple(factory), options=options, index=index, is_group=True)

    @property
    def name(self) -> str:
        return f"registration[{self.index}]"

    @property
    def factory_names(self) -> list[str]:
        return [callable_name(f) for f in self.factories]

    def __repr__(self) -> str:
        return (
            f"Registration(name='{self.name}', factories={self.factory_names}, "
            f"cache={self.cache!r}, post_processors={len(self.post_processors)})"
        )


# =============================================================================
# Fan-out / fan-in
# =============================================================================


async def fan_out(
    functions: Sequence[Callable[..., Any]],
    *args: Any,
    label: str = "task",
) -> list[Any]:
    """
    Start every function concurrently and wait for all of them.

    All tasks are created before any is awaited. Every task is allowed
    to settle so that no exception goes unobserved; the first failure in
    declaration order is then re-raised.

    Returns:
        Results in declaration order
    """
    tasks = [
        asyncio.create_task(
            resolve_maybe_awaitable(fn, *args),
            name=f"{label}_{i}_{callable_name(fn)}",
        )
        for i, fn in enumerate(functions)
    ]

    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome

    return list(outcomes)


def merge_contributions(
    results: Sequence[FactoryResult],
    names: Sequence[str],
) -> dict[str, Any]:
    """
    Merge factory results in order; later keys overwrite earlier ones.

    Raises:
        InvalidFactoryResultError: If a result is neither a mapping nor None
    """
    merged: dict[str, Any] = {}
    for name, result in zip(names, results):
        if result is None:
            continue
        if not isinstance(result, Mapping):
            raise InvalidFactoryResultError(name, result)
        for key in result:
            if key in merged:
                logger.debug(f"[factory] '{name}' overwrites key '{key}' within group")
        merged.update(result)
    return merged


# =============================================================================
# Invoker
# =============================================================================


class FactoryInvoker:
    """
    Produces a registration's contribution to the execution context.

    Example:
        invoker = FactoryInvoker()
        deps, cache_hit = await invoker.resolve(registration, ctx)
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or monotonic_ms

    async def resolve(
        self,
        registration: Registration,
        ctx: "ExecutionContext",
    ) -> tuple[Mapping[str, Any], bool]:
        """
        Resolve a registration, using its cache when fresh.

        Overlapping invocations of a cached registration share one factory
        call: the miss path runs under the registration's lock and the
        cache is checked again once the lock is held.

        Args:
            registration: The registration to resolve
            ctx: Context built so far (earlier registrations included)

        Returns:
            Tuple of (read-only dependency mapping, whether it came from cache)
        """
        cached = registration.cache.get(self._clock())
        if cached is not None:
            logger.debug(f"[factory] Cache hit for {registration.name}")
            return cached, True

        if not registration.cache.enabled:
            return await self._invoke(registration, ctx), False

        async with registration.lock:
            cached = registration.cache.get(self._clock())
            if cached is not None:
                logger.debug(f"[factory] Cache filled for {registration.name} while waiting")
                return cached, True
            return await self._invoke(registration, ctx), False

    async def _invoke(
        self,
        registration: Registration,
        ctx: "ExecutionContext",
    ) -> Mapping[str, Any]:
        logger.debug(
            f"[factory] Cache miss for {registration.name}, "
            f"invoking {registration.factory_names}"
        )
        start = time.perf_counter()

        if registration.is_group:
            results = await fan_out(registration.factories, ctx, label=registration.name)
        else:
            results = [await resolve_maybe_awaitable(registration.factories[0], ctx)]

        dependencies = MappingProxyType(
            merge_contributions(results, registration.factory_names)
        )
        registration.cache.set(dependencies, self._clock())

        duration_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            f"[factory] {registration.name} produced {list(dependencies)} "
            f"in {duration_ms:.1f}ms"
        )
        return dependencies
