"""
Entry Point Adapter for lambdakit.

Wraps a business function so that dependency construction is declared
once at import time and resolved on each invocation, and so that every
invocation ends with exactly one outcome delivered to the host runtime.

Invocation Model:
    INITIALIZING            build ``context`` and ``env``
    RESOLVING_DEPENDENCIES  for each registration, in order:
                              factories (cached or fresh) -> merge -> post-processors
    EXECUTING               handler(event, ctx) with the frozen context
    SUCCEEDED | FAILED      the handler's value, or the first error raised

Registrations resolve strictly one after another because a later
registration's factories may read keys an earlier one produced. Only the
factories inside one list-valued registration run concurrently.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Union

from lambdakit.config import (
    AdapterSettings,
    RegistrationOptions,
    get_settings,
    read_environment,
)
from lambdakit.utils import callable_name, resolve_maybe_awaitable

from .context import ExecutionContext, InvocationResult, InvocationState
from .errors import ConfigurationError
from .factory import Clock, Factory, FactoryInvoker, Registration, monotonic_ms
from .postprocess import PostProcessor

logger = logging.getLogger(__name__)

Handler = Callable[[Any, ExecutionContext], Union[Any, Awaitable[Any]]]
EnvironmentReader = Callable[[], Mapping[str, str]]
ResultCallback = Callable[[Union[Exception, None], Any], Any]


class EntryPointAdapter:
    """
    Outward-facing wrapper around a business function.

    Example:
        async def main(event, ctx):
            return await ctx["orders"].get(event["id"])

        handler = (
            EntryPointAdapter(main)
            .register(create_orders_client, {"cache": {"max_age": 60_000}})
            .post_processor(instrument_client)
            .register([create_id_generator, create_clock])
        )

        # AWS Lambda style synchronous entry point
        result = handler(event, lambda_context)

    Host protocols:
        run()      -> InvocationResult, never raises for ordinary errors
        invoke()   -> value, or re-raises the original error
        handle()   -> delivers (error, value) to a callback exactly once
        __call__() -> synchronous invoke() on the adapter's event loop
    """

    def __init__(
        self,
        handler: Handler,
        *,
        settings: AdapterSettings | None = None,
        environment: EnvironmentReader | None = None,
        clock: Clock | None = None,
    ):
        """
        Initialize adapter with the business function.

        Args:
            handler: Business function called as handler(event, ctx)
            settings: Adapter settings (read from LAMBDAKIT_* if not provided)
            environment: Zero-argument callable returning the env mapping
            clock: Zero-argument callable returning milliseconds, for cache ages
        """
        if not callable(handler):
            raise ConfigurationError(
                f"Handler must be callable, got {type(handler).__name__}"
            )
        self.handler = handler
        self.settings = settings or get_settings()
        self._environment = environment or read_environment
        self._invoker = FactoryInvoker(clock or monotonic_ms)
        self._registrations: list[Registration] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def name(self) -> str:
        return callable_name(self.handler)

    @property
    def registrations(self) -> tuple[Registration, ...]:
        return tuple(self._registrations)

    # =========================================================================
    # Registration API
    # =========================================================================

    def register(
        self,
        factory: Factory | Sequence[Factory],
        options: RegistrationOptions | Mapping[str, Any] | None = None,
    ) -> "EntryPointAdapter":
        """
        Register a factory, or a list of factories run concurrently.

        Args:
            factory: ``(ctx) -> mapping`` or a list of such functions
            options: Cache options, e.g. ``{"cache": {"enabled": False}}``

        Returns:
            self, for chaining
        """
        registration = Registration.create(
            factory,
            self._resolve_options(options),
            index=len(self._registrations),
        )
        self._registrations.append(registration)
        logger.debug(f"[entry_point] {self.name}: added {registration!r}")
        return self

    def post_processor(self, fn: PostProcessor) -> "EntryPointAdapter":
        """
        Attach a post-processor to the most recent registration.

        Raises:
            ConfigurationError: If nothing has been registered yet, or fn
                is not callable
        """
        if not self._registrations:
            raise ConfigurationError(
                "post_processor() must follow a register() call"
            )
        self._registrations[-1].post_processors.add(fn)
        return self

    def clear_cache(self) -> None:
        """Drop every registration's cached dependencies."""
        for registration in self._registrations:
            registration.cache.clear()

    def _resolve_options(
        self,
        options: RegistrationOptions | Mapping[str, Any] | None,
    ) -> RegistrationOptions:
        if options is None:
            return self.settings.default_registration_options()
        if isinstance(options, RegistrationOptions):
            return options
        if not isinstance(options, Mapping):
            raise ConfigurationError(
                f"Options must be a mapping or RegistrationOptions, got {type(options).__name__}"
            )

        defaults = self.settings.default_registration_options().cache
        cache = dict(options.get("cache") or {})
        cache.setdefault("enabled", defaults.enabled)
        cache.setdefault("max_age", defaults.max_age)
        return RegistrationOptions.model_validate({**options, "cache": cache})

    # =========================================================================
    # Invocation
    # =========================================================================

    async def run(self, event: Any, meta: Any = None) -> InvocationResult:
        """
        Execute one invocation and return its outcome.

        Ordinary exceptions from any stage are captured in the result;
        they never escape this coroutine.
        """
        result = InvocationResult()
        logger.info(
            f"[entry_point] {self.name}: invocation {str(result.invocation_id)[:8]}... "
            f"starting with {len(self._registrations)} registrations"
        )

        try:
            ctx = self._build_base_context(event, meta)
            result.context = ctx

            result.transition(InvocationState.RESOLVING_DEPENDENCIES)
            await self._resolve_dependencies(ctx, result)
            ctx.freeze()

            result.transition(InvocationState.EXECUTING)
            start = time.perf_counter()
            value = await resolve_maybe_awaitable(self.handler, event, ctx)
            result.record_timing("handler", (time.perf_counter() - start) * 1000)

            result.succeed(value)
        except Exception as e:
            logger.error(
                f"[entry_point] {self.name}: invocation {str(result.invocation_id)[:8]}... "
                f"failed during {result.state.value}: {e!r}",
                exc_info=True,
            )
            result.fail(e)

        logger.info(
            f"[entry_point] {self.name}: invocation {str(result.invocation_id)[:8]}... "
            f"{result.state.value} in {result.duration_ms:.1f}ms"
        )
        return result

    async def invoke(self, event: Any, meta: Any = None) -> Any:
        """Execute one invocation, returning its value or raising its error."""
        result = await self.run(event, meta)
        return result.unwrap()

    async def handle(self, event: Any, meta: Any, callback: ResultCallback) -> None:
        """
        Execute one invocation and deliver the outcome to a callback.

        The callback is called exactly once, as ``callback(error, None)``
        or ``callback(None, value)``.
        """
        result = await self.run(event, meta)
        if result.success:
            await resolve_maybe_awaitable(callback, None, result.value)
        else:
            await resolve_maybe_awaitable(callback, result.error, None)

    def __call__(self, event: Any, meta: Any = None) -> Any:
        """
        Synchronous entry point for hosts that call handler(event, context).

        Runs on an event loop owned by the adapter and reused across warm
        invocations, so async clients cached by factories stay usable.
        Must not be called from inside a running event loop; use invoke()
        there instead.
        """
        return self._ensure_loop().run_until_complete(self.invoke(event, meta))

    def close(self) -> None:
        """Close the event loop used by the synchronous entry point."""
        if self._loop is not None and not self._loop.is_closed():
            self._loop.close()
        self._loop = None

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop

    # =========================================================================
    # Stages
    # =========================================================================

    def _build_base_context(self, event: Any, meta: Any) -> ExecutionContext:
        start = time.perf_counter()
        ctx = ExecutionContext(
            event,
            meta,
            self._environment(),
            collision_policy=self.settings.collision_policy,
        )
        logger.debug(
            f"[entry_point] Base context built in {(time.perf_counter() - start) * 1000:.1f}ms"
        )
        return ctx

    async def _resolve_dependencies(
        self,
        ctx: ExecutionContext,
        result: InvocationResult,
    ) -> None:
        for registration in self._registrations:
            start = time.perf_counter()

            dependencies, cache_hit = await self._invoker.resolve(registration, ctx)
            result.cache_hits[registration.name] = cache_hit

            ctx.merge(dependencies, source=registration.name)
            await registration.post_processors.run(dependencies, owner=registration.name)

            duration_ms = (time.perf_counter() - start) * 1000
            result.record_timing(registration.name, duration_ms)
            logger.debug(
                f"[entry_point] {registration.name}: cache_hit={cache_hit}, "
                f"keys={list(dependencies)}, time={duration_ms:.1f}ms"
            )

    def __repr__(self) -> str:
        return (
            f"EntryPointAdapter(handler='{self.name}', "
            f"registrations={len(self._registrations)})"
        )
