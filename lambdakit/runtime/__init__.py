"""
Runtime entry point helpers.

Connects business functions to the host runtime via EntryPointAdapter.
"""

from .decorators import entry_point, wrap

__all__ = [
    "entry_point",
    "wrap",
]
