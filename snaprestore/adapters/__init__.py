"""Adapters — transport bindings to the restore target.

Public re-exports for convenient access.
"""

from snaprestore.adapters.base import Adapter, ExecutionContext
from snaprestore.adapters.mock import MockAdapter
from snaprestore.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
