"""
Transactions for DocStore.

A Transaction buffers writes and applies them atomically on commit().
Reads go straight to the backend and record the version they observed;
commit() fails with ConcurrentModificationError if any of those entities
changed in the meantime (optimistic concurrency).

State machine:
    ACTIVE -> COMMITTED     commit() succeeded
    ACTIVE -> ROLLED_BACK   rollback() called (explicitly or on context exit)

Example:
    >>> with client.transaction() as tx:
    ...     user = tx.get(user_key)
    ...     tx.put(user.copy_with(count=user["count"] + 1))
    ...     tx.commit()

Invariants:
    - Every operation on a non-active transaction raises TransactionStateError
    - A failed commit leaves the transaction ACTIVE and writes nothing
    - Leaving the context manager never leaves the transaction ACTIVE
    - Reads observe committed store state, not the transaction's own writes
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .entity import Entity
from .errors import InvalidKeyError, TransactionStateError
from .keys import Key
from .query import Query, QueryResults
from .backends.base import Mutation, MutationOp

if TYPE_CHECKING:
    from .backends.base import StoreBackend

logger = logging.getLogger(__name__)


class TransactionState(Enum):
    """Lifecycle states of a transaction."""

    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class CommitResult:
    """Result of committing a transaction.

    Attributes:
        transaction_id: Transaction identifier
        mutation_count: Number of writes applied
        allocated_keys: Keys assigned to deferred-id entities, in add order
    """

    transaction_id: str
    mutation_count: int = 0
    allocated_keys: list[Key] = field(default_factory=list)


class Transaction:
    """Atomic unit of reads and buffered writes against one project.

    Use DatastoreClient.transaction() rather than constructing directly.
    """

    def __init__(
        self,
        backend: StoreBackend,
        project_id: str,
        namespace: str | None = None,
    ) -> None:
        """Initialize a transaction.

        Args:
            backend: Storage backend
            project_id: Project the transaction writes to
            namespace: Default namespace for queries
        """
        self._backend = backend
        self._project_id = project_id
        self._namespace = namespace
        self.id = str(uuid.uuid4())
        self._state = TransactionState.ACTIVE
        self._mutations: list[Mutation] = []
        self._read_versions: dict[Key, int] = {}
        self._deferred: list[Entity] = []

    @property
    def state(self) -> TransactionState:
        """Current lifecycle state."""
        return self._state

    @property
    def active(self) -> bool:
        """Whether the transaction can still be used."""
        return self._state is TransactionState.ACTIVE

    @property
    def mutations(self) -> list[Mutation]:
        """Buffered writes (copy)."""
        return list(self._mutations)

    def _check_active(self) -> None:
        if not self.active:
            raise TransactionStateError(
                f"Transaction {self.id} is {self._state.value}", state=self._state.value
            )

    @staticmethod
    def _complete_key(entity_or_key: Any) -> Key:
        key = entity_or_key.key if isinstance(entity_or_key, Entity) else entity_or_key
        if key is None:
            raise InvalidKeyError("Entity has no key")
        if key.is_partial:
            raise InvalidKeyError("A complete key is required", key=str(key))
        return key

    def get(self, key: Key) -> Entity | None:
        """Read an entity and record its version for the commit check."""
        self._check_active()
        self._complete_key(key)
        entity, version = self._backend.lookup(self._project_id, key)
        self._read_versions.setdefault(key, version)
        return entity

    def run(self, query: Query) -> QueryResults:
        """Run one page of a query."""
        self._check_active()
        return self._backend.run_query(self._project_id, query)

    def _buffer(self, op: MutationOp, key: Key, entity: Entity | None = None) -> None:
        snapshot = Entity(key, **entity) if entity is not None else None
        self._mutations.append(Mutation(op=op, key=key, entity=snapshot))

    def add(self, entity: Entity) -> None:
        """Insert a new entity; commit fails if the key exists."""
        self._check_active()
        self._buffer(MutationOp.INSERT, self._complete_key(entity), entity)

    def update(self, entity: Entity) -> None:
        """Replace an existing entity; commit fails if the key is missing."""
        self._check_active()
        self._buffer(MutationOp.UPDATE, self._complete_key(entity), entity)

    def put(self, entity: Entity) -> None:
        """Insert or replace an entity."""
        self._check_active()
        self._buffer(MutationOp.UPSERT, self._complete_key(entity), entity)

    def add_with_deferred_id(self, entity: Entity) -> None:
        """Insert an entity whose id is allocated at commit.

        After a successful commit the entity's key is replaced with the
        allocated complete key.
        """
        self._check_active()
        if entity.key is None or not entity.key.is_partial:
            raise InvalidKeyError("Deferred id allocation requires a partial key")
        self._buffer(MutationOp.INSERT, entity.key, entity)
        self._deferred.append(entity)

    def delete(self, key: Key) -> None:
        """Delete an entity; deleting a missing key is not an error."""
        self._check_active()
        self._buffer(MutationOp.DELETE, self._complete_key(key))

    def commit(self) -> CommitResult:
        """Apply all buffered writes atomically.

        Returns:
            CommitResult with the allocated keys

        Raises:
            TransactionStateError: If the transaction is not active
            DocStoreError: If the backend rejects the commit; the
                transaction stays active so it can be rolled back
        """
        self._check_active()
        allocated = self._backend.commit(
            self._project_id, list(self._mutations), dict(self._read_versions)
        )

        for entity, key in zip(self._deferred, allocated):
            entity.key = key

        self._state = TransactionState.COMMITTED
        logger.debug(
            "Transaction committed",
            extra={
                "transaction_id": self.id,
                "project_id": self._project_id,
                "mutations": len(self._mutations),
            },
        )
        return CommitResult(
            transaction_id=self.id,
            mutation_count=len(self._mutations),
            allocated_keys=list(allocated),
        )

    def rollback(self) -> None:
        """Discard buffered writes."""
        self._check_active()
        self._mutations.clear()
        self._read_versions.clear()
        self._deferred.clear()
        self._state = TransactionState.ROLLED_BACK
        logger.debug("Transaction rolled back", extra={"transaction_id": self.id})

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, *args: Any) -> None:
        if self.active:
            self.rollback()
