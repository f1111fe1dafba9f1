"""
Decorators for declaring serverless entry points.

Usage:
    from lambdakit import entry_point

    @entry_point
    async def handler(event, ctx):
        return {"statusCode": 200, "body": ctx["greeting"]}

    handler.register(lambda ctx: {"greeting": ctx.env.get("GREETING", "hi")})

The decorated name is bound to an EntryPointAdapter, which the host
runtime calls directly as handler(event, context).
"""
from __future__ import annotations

from typing import Callable, overload

from lambdakit.config import AdapterSettings
from lambdakit.pipeline.executor import EntryPointAdapter, EnvironmentReader, Handler
from lambdakit.pipeline.factory import Clock


def wrap(
    fn: Handler,
    *,
    settings: AdapterSettings | None = None,
    environment: EnvironmentReader | None = None,
    clock: Clock | None = None,
) -> EntryPointAdapter:
    """Wrap a business function in an EntryPointAdapter."""
    return EntryPointAdapter(fn, settings=settings, environment=environment, clock=clock)


@overload
def entry_point(fn: Handler) -> EntryPointAdapter: ...


@overload
def entry_point(
    fn: None = None,
    *,
    settings: AdapterSettings | None = None,
    environment: EnvironmentReader | None = None,
    clock: Clock | None = None,
) -> Callable[[Handler], EntryPointAdapter]: ...


def entry_point(
    fn: Handler | None = None,
    *,
    settings: AdapterSettings | None = None,
    environment: EnvironmentReader | None = None,
    clock: Clock | None = None,
):
    """
    Decorator form of wrap().

    Works bare (``@entry_point``) or with arguments
    (``@entry_point(settings=...)``).
    """

    def decorator(handler: Handler) -> EntryPointAdapter:
        return wrap(handler, settings=settings, environment=environment, clock=clock)

    if fn is not None:
        return decorator(fn)
    return decorator
