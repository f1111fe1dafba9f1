"""
lambdakit registration pipeline.

Core Components:
- TTLCache: Single-slot cache that keeps factory results across warm invocations
- Registration / FactoryInvoker: Run one factory or a concurrent group of factories
- ExecutionContext: Read-only mapping handed to the business function
- PostProcessorChain: Per-registration hooks run before the business function
- EntryPointAdapter: Drives an invocation and normalizes its outcome

Usage:
    from lambdakit.pipeline import EntryPointAdapter

    handler = (
        EntryPointAdapter(main)
        .register(create_table_client)
        .post_processor(trace_client)
    )
"""

from .cache import CacheEntry, TTLCache
from .context import (
    CONTEXT_KEY,
    ENV_KEY,
    ExecutionContext,
    InvocationResult,
    InvocationState,
)
from .errors import (
    ConfigurationError,
    ContextFrozenError,
    DependencyCollisionError,
    InvalidFactoryResultError,
    LambdaKitError,
)
from .executor import EntryPointAdapter
from .factory import FactoryInvoker, Registration, fan_out, merge_contributions, monotonic_ms
from .postprocess import PostProcessorChain

__all__ = [
    # Core
    "EntryPointAdapter",
    "ExecutionContext",
    "InvocationResult",
    "InvocationState",
    "CONTEXT_KEY",
    "ENV_KEY",
    # Factories
    "Registration",
    "FactoryInvoker",
    "fan_out",
    "merge_contributions",
    "monotonic_ms",
    # Cache
    "TTLCache",
    "CacheEntry",
    # Post-processors
    "PostProcessorChain",
    # Errors
    "LambdaKitError",
    "ConfigurationError",
    "InvalidFactoryResultError",
    "DependencyCollisionError",
    "ContextFrozenError",
]
