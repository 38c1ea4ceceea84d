"""
DocStore Client for Python SDK.

This module provides the main client interface:
- DatastoreClient: Project- and namespace-scoped access to a backend
- Transaction: Atomic unit of work (see transaction.py)

Example:
    >>> with DatastoreClient.from_settings(ClientSettings(), "my-project", "example") as db:
    ...     key = db.key("User", "alice")
    ...     with db.transaction() as tx:
    ...         tx.put(Entity(key, count=0))
    ...         tx.commit()

Invariants:
    - Every client is bound to exactly one project and one namespace
    - Non-transactional writes are single-mutation commits
"""

from __future__ import annotations

import logging
from typing import Any

from .backends.base import Mutation, MutationOp, StoreBackend, create_backend
from .config import ClientSettings
from .entity import Entity
from .keys import Identifier, Key, KeyFactory
from .query import Query, QueryResults
from .transaction import Transaction

logger = logging.getLogger(__name__)


class DatastoreClient:
    """Client for a DocStore project.

    Provides key construction, single-entity reads and writes, queries and
    transactions. All keys built through the client carry its namespace.

    Example:
        >>> db = DatastoreClient(InMemoryBackend(), "test", namespace="example")
        >>> db.get(db.key("User", "alice")) is None
        True
    """

    def __init__(
        self,
        backend: StoreBackend,
        project_id: str,
        namespace: str | None = None,
    ) -> None:
        """Initialize client.

        Args:
            backend: Storage backend
            project_id: Project identifier
            namespace: Namespace for keys and queries
        """
        self._backend = backend
        self.project_id = project_id
        self.namespace = namespace

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        project_id: str | None = None,
        namespace: str | None = None,
    ) -> DatastoreClient:
        """Build a client with the backend selected by settings.

        Args:
            settings: Client settings
            project_id: Project identifier (settings.default_project if None)
            namespace: Namespace for keys and queries
        """
        backend = create_backend(settings)
        project = project_id or settings.default_project
        logger.info(
            "DocStore client created",
            extra={"backend": settings.backend, "project_id": project, "namespace": namespace},
        )
        return cls(backend, project, namespace=namespace)

    @property
    def backend(self) -> StoreBackend:
        """Underlying storage backend."""
        return self._backend

    def close(self) -> None:
        """Close the backend."""
        self._backend.close()

    def __enter__(self) -> DatastoreClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def key(self, kind: str, identifier: Identifier | None = None, parent: Key | None = None) -> Key:
        """Build a key in the client's namespace."""
        if parent is not None:
            return Key(kind, identifier, parent=parent)
        return Key(kind, identifier, namespace=self.namespace)

    def key_factory(self, kind: str, parent: Key | None = None) -> KeyFactory:
        """Build a key factory for one kind in the client's namespace."""
        return KeyFactory(kind, namespace=self.namespace, parent=parent)

    def query(
        self,
        kind: str,
        *,
        ancestor: Key | None = None,
        keys_only: bool = False,
        limit: int | None = None,
    ) -> Query:
        """Build a query in the client's namespace."""
        return Query(
            kind=kind,
            namespace=self.namespace,
            ancestor=ancestor,
            keys_only=keys_only,
            limit=limit,
        )

    def transaction(self) -> Transaction:
        """Begin a new transaction."""
        return Transaction(self._backend, self.project_id, namespace=self.namespace)

    def get(self, key: Key) -> Entity | None:
        """Get an entity by key outside of any transaction."""
        entity, _ = self._backend.lookup(self.project_id, key)
        return entity

    def run(self, query: Query) -> QueryResults:
        """Run one page of a query outside of any transaction."""
        return self._backend.run_query(self.project_id, query)

    def put(self, entity: Entity) -> Key:
        """Insert or replace an entity; partial keys are completed.

        Returns:
            The entity's complete key
        """
        if entity.key is None:
            raise ValueError("Entity has no key")
        op = MutationOp.INSERT if entity.key.is_partial else MutationOp.UPSERT
        allocated = self._backend.commit(
            self.project_id, [Mutation(op=op, key=entity.key, entity=entity)], {}
        )
        if allocated:
            entity.key = allocated[0]
        return entity.key

    def delete(self, key: Key) -> None:
        """Delete an entity by key."""
        self._backend.commit(self.project_id, [Mutation(op=MutationOp.DELETE, key=key)], {})
