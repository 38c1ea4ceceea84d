"""
Base protocol and types for DocStore storage backends.

This module defines the StoreBackend protocol that all backends must
implement, along with the Mutation type that transactions hand to commit().

Invariants:
    - commit() applies all mutations or none of them
    - Every committed write bumps the entity version to a value never used before
    - A missing entity has version 0
    - Partial keys are completed at commit time, in mutation order

How to change safely:
    - Protocol changes require updating all implementations
    - Keep version semantics identical across backends, transactions rely on them
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Dict,
    List,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from ..entity import Entity
from ..keys import Key
from ..query import Query, QueryResults

if TYPE_CHECKING:
    from ..config import ClientSettings

logger = logging.getLogger(__name__)


class MutationOp(Enum):
    """Kinds of buffered writes."""

    INSERT = "insert"
    UPDATE = "update"
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class Mutation:
    """A single buffered write.

    Attributes:
        op: Write kind
        key: Target key (may be partial for INSERT)
        entity: Entity to write (None for DELETE)
    """

    op: MutationOp
    key: Key
    entity: Optional[Entity] = None


@runtime_checkable
class StoreBackend(Protocol):
    """Protocol for DocStore storage backends.

    Backends hold data per project. Each project is isolated: keys, versions
    and id allocation never cross project boundaries.

    Concurrency contract:
        - commit() checks the versions recorded by a transaction's reads
        - On any mismatch it raises ConcurrentModificationError and writes nothing
    """

    @abstractmethod
    def lookup(self, project_id: str, key: Key) -> Tuple[Optional[Entity], int]:
        """Fetch an entity by complete key.

        Returns:
            Tuple of (entity or None, version; 0 when missing)
        """
        ...

    @abstractmethod
    def run_query(self, project_id: str, query: Query) -> QueryResults:
        """Run one page of a query, ordered by key path."""
        ...

    @abstractmethod
    def commit(
        self,
        project_id: str,
        mutations: List[Mutation],
        read_versions: Dict[Key, int],
    ) -> List[Key]:
        """Apply mutations atomically.

        Args:
            project_id: Project to write
            mutations: Writes in the order they were buffered
            read_versions: Versions observed by the transaction's reads

        Returns:
            Keys allocated for partial-key inserts, in mutation order

        Raises:
            ConcurrentModificationError: If a read version changed
            EntityExistsError: If an INSERT targets an existing key
            EntityNotFoundError: If an UPDATE targets a missing key
            StorageError: On backend I/O failure
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the backend."""
        ...


def create_backend(settings: "ClientSettings") -> StoreBackend:
    """Factory function to create a backend from settings.

    Args:
        settings: Client settings

    Returns:
        Appropriate StoreBackend implementation

    Raises:
        ValueError: If backend is not supported
    """
    from .memory import InMemoryBackend
    from .sqlite import SqliteBackend

    backend = settings.backend.lower()
    if backend == "memory":
        return InMemoryBackend()
    elif backend == "sqlite":
        return SqliteBackend(
            settings.data_dir,
            wal_mode=settings.sqlite_wal_mode,
            busy_timeout_ms=settings.sqlite_busy_timeout_ms,
        )
    else:
        raise ValueError(f"Unsupported backend '{settings.backend}'. Must be one of: memory, sqlite")
