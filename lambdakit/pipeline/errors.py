"""
Exceptions raised by lambdakit itself.

Errors raised by user factories, post-processors and business functions
are never wrapped in these types: the host runtime receives the exact
exception object that was raised.
"""
from __future__ import annotations


class LambdaKitError(Exception):
    """Base class for errors originating in lambdakit."""


class ConfigurationError(LambdaKitError, ValueError):
    """Raised when the registration API is used incorrectly."""


class InvalidFactoryResultError(LambdaKitError, TypeError):
    """Raised when a factory returns something other than a mapping."""

    def __init__(self, factory_name: str, result: object):
        self.factory_name = factory_name
        self.result_type = type(result).__name__
        super().__init__(
            f"Factory '{factory_name}' must return a mapping of dependencies, "
            f"got {self.result_type}"
        )


class DependencyCollisionError(LambdaKitError, KeyError):
    """Raised when two registrations contribute the same key under the error policy."""

    def __init__(self, key: str, previous_source: str, source: str):
        self.key = key
        self.previous_source = previous_source
        self.source = source
        super().__init__(
            f"Dependency '{key}' from {source} collides with {previous_source}"
        )

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class ContextFrozenError(LambdaKitError, RuntimeError):
    """Raised when an execution context is modified after being handed off."""


__all__ = [
    "LambdaKitError",
    "ConfigurationError",
    "InvalidFactoryResultError",
    "DependencyCollisionError",
    "ContextFrozenError",
]
