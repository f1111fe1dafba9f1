"""Helpers for calling user code that may be sync or async."""
from __future__ import annotations

import inspect
from typing import Any, Callable


async def resolve_maybe_awaitable(fn: Callable[..., Any], *args: Any) -> Any:
    """
    Call fn and await the result if it is awaitable.

    Synchronous exceptions raised by fn propagate from the await
    exactly like a rejected coroutine would.
    """
    result = fn(*args)
    if inspect.isawaitable(result):
        return await result
    return result


def callable_name(fn: Callable[..., Any]) -> str:
    """Best-effort readable name for logging."""
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)
