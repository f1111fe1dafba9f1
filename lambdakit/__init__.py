"""
lambdakit - dependency registration for serverless entry points.

lambdakit separates building dependencies (clients, generators, config)
from the business logic of a serverless function:

- **Registrations**: Factories declared once, resolved per invocation
- **Warm Caching**: Factory results reused across invocations with a TTL
- **Concurrent Factories**: A list of factories resolves concurrently
- **Post-Processors**: Hooks that see each registration's dependencies
- **One Outcome**: Every invocation ends in exactly one success or failure

Quick Start:
    >>> from lambdakit import entry_point
    >>>
    >>> @entry_point
    ... async def handler(event, ctx):
    ...     return await ctx["table"].get_item(event["id"])
    >>>
    >>> handler.register(create_table, {"cache": {"max_age": 60_000}})
"""

__version__ = "0.1.0"
__license__ = "MIT"

from lambdakit.config import AdapterSettings, CacheOptions, CollisionPolicy, RegistrationOptions
from lambdakit.pipeline import (
    EntryPointAdapter,
    ExecutionContext,
    InvocationResult,
    InvocationState,
    TTLCache,
)
from lambdakit.runtime import entry_point, wrap

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Core
    "EntryPointAdapter",
    "ExecutionContext",
    "InvocationResult",
    "InvocationState",
    "TTLCache",
    # Configuration
    "AdapterSettings",
    "CacheOptions",
    "CollisionPolicy",
    "RegistrationOptions",
    # Entry points
    "entry_point",
    "wrap",
]
