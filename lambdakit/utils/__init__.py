"""Utility functions for lambdakit."""

from .awaitables import callable_name, resolve_maybe_awaitable

__all__ = [
    "callable_name",
    "resolve_maybe_awaitable",
]
