"""
Storage backends for DocStore.

This module provides a pluggable backend interface supporting:
- SQLite (local persistent store, one file per project)
- In-memory (for testing)

How to change safely:
    - New backends must implement the StoreBackend protocol
    - Verify commit atomicity and version semantics with the shared tests
"""

from .base import Mutation, MutationOp, StoreBackend, create_backend
from .memory import InMemoryBackend
from .sqlite import SqliteBackend

__all__ = [
    # Protocol and types
    "StoreBackend",
    "Mutation",
    "MutationOp",
    # Factory
    "create_backend",
    # Implementations
    "InMemoryBackend",
    "SqliteBackend",
]
