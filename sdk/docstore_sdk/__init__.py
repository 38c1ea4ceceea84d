"""
DocStore Python SDK - Client library for a hierarchical document store.

This SDK provides:
- Keys with ancestor paths (Key, KeyFactory)
- Entities with embedded records (Entity)
- Ancestor-filtered, cursor-paginated queries (Query, QueryResults)
- Transactions with optimistic concurrency (Transaction)
- DatastoreClient bound to a project and namespace

Example:
    >>> from sdk.docstore_sdk import ClientSettings, DatastoreClient, Entity
    >>>
    >>> db = DatastoreClient.from_settings(ClientSettings(), "my-project", "example")
    >>> user_key = db.key("User", "alice")
    >>> with db.transaction() as tx:
    ...     tx.put(Entity(user_key, count=0))
    ...     tx.add_with_deferred_id(Entity(db.key("Comment", parent=user_key), content="hi"))
    ...     tx.commit()

Invariants:
    - Writes are atomic per commit()
    - Children share their parent's key as a path prefix
    - A transaction is never left active after its context exits

Version: 1.0.0
"""

__version__ = "1.0.0"

from .backends import InMemoryBackend, SqliteBackend, StoreBackend, create_backend
from .client import DatastoreClient
from .config import ClientSettings
from .entity import Entity
from .errors import (
    ConcurrentModificationError,
    DocStoreError,
    EntityExistsError,
    EntityNotFoundError,
    InvalidCursorError,
    InvalidKeyError,
    StorageError,
    TransactionStateError,
)
from .keys import Key, KeyFactory
from .query import Query, QueryResults
from .transaction import CommitResult, Transaction, TransactionState

__all__ = [
    # Version
    "__version__",
    # Data model
    "Key",
    "KeyFactory",
    "Entity",
    "Query",
    "QueryResults",
    # Client
    "DatastoreClient",
    "ClientSettings",
    "Transaction",
    "TransactionState",
    "CommitResult",
    # Backends
    "StoreBackend",
    "InMemoryBackend",
    "SqliteBackend",
    "create_backend",
    # Errors
    "DocStoreError",
    "InvalidKeyError",
    "InvalidCursorError",
    "EntityExistsError",
    "EntityNotFoundError",
    "ConcurrentModificationError",
    "TransactionStateError",
    "StorageError",
]
