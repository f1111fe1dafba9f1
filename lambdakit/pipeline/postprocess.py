"""
Post-processor hooks for lambdakit registrations.

A post-processor is a side-effecting function attached to a single
registration. It runs after that registration's factories resolve and
before the business function runs, and it only sees the dependencies
its registration produced.

Typical uses are instrumenting clients (tracing, metrics) or warming
connections. Return values are ignored; exceptions abort the invocation.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterator, Mapping
from types import MappingProxyType
from typing import Any, Union

from lambdakit.utils import callable_name, resolve_maybe_awaitable

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

PostProcessor = Callable[[Mapping[str, Any]], Union[None, Awaitable[None]]]


class PostProcessorChain:
    """
    Ordered sequence of post-processors for one registration.

    Hooks run sequentially in the order they were added. The first hook
    that raises stops the chain and the error propagates unchanged.
    """

    def __init__(self, hooks: list[PostProcessor] | None = None):
        self._hooks: list[PostProcessor] = list(hooks or [])

    def add(self, hook: PostProcessor) -> "PostProcessorChain":
        """Append a hook."""
        if not callable(hook):
            raise ConfigurationError(
                f"Post-processor must be callable, got {type(hook).__name__}"
            )
        self._hooks.append(hook)
        return self

    @property
    def hook_names(self) -> list[str]:
        return [callable_name(h) for h in self._hooks]

    async def run(self, dependencies: Mapping[str, Any], *, owner: str = "") -> None:
        """
        Run every hook against a read-only view of dependencies.

        Args:
            dependencies: The owning registration's resolved mapping
            owner: Registration name, for logging
        """
        view = (
            dependencies
            if isinstance(dependencies, MappingProxyType)
            else MappingProxyType(dict(dependencies))
        )

        for hook in self._hooks:
            name = callable_name(hook)
            start = time.perf_counter()
            try:
                await resolve_maybe_awaitable(hook, view)
            except Exception as e:
                logger.debug(f"[post_processor] '{name}' failed for {owner}: {e!r}")
                raise
            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug(f"[post_processor] '{name}' for {owner} took {duration_ms:.1f}ms")

    def __len__(self) -> int:
        return len(self._hooks)

    def __iter__(self) -> Iterator[PostProcessor]:
        return iter(self._hooks)

    def __repr__(self) -> str:
        return f"PostProcessorChain(hooks={self.hook_names})"
