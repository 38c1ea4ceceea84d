"""
In-memory DocStore backend for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Local experiments without a data directory

Invariants:
    - All data is lost on process exit
    - Provides the same commit and version semantics as the SQLite backend
    - Thread-safe for concurrent access

How to change safely:
    - This is test-only code, changes don't affect persistent stores
    - Keep behaviour compatible with the StoreBackend protocol
"""

from __future__ import annotations

import copy
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..entity import Entity
from ..errors import (
    ConcurrentModificationError,
    EntityExistsError,
    EntityNotFoundError,
)
from ..keys import PATH_SEPARATOR, Key
from ..query import Query, QueryResults, encode_cursor
from .base import Mutation, MutationOp

logger = logging.getLogger(__name__)

_RecordId = Tuple[Optional[str], str]


@dataclass
class _Record:
    key: Key
    properties: dict
    version: int


@dataclass
class _ProjectData:
    records: Dict[_RecordId, _Record] = field(default_factory=dict)
    next_id: int = 1
    clock: int = 0


class InMemoryBackend:
    """In-memory implementation of StoreBackend.

    Attributes:
        commit_count: Number of successful commits (useful in tests)

    Example:
        >>> backend = InMemoryBackend()
        >>> client = DatastoreClient(backend, "test-project", namespace="ns")
        >>> client.put(Entity(client.key("User", "alice"), count=0))
    """

    def __init__(self) -> None:
        self._projects: Dict[str, _ProjectData] = defaultdict(_ProjectData)
        self._lock = threading.Lock()
        self.commit_count = 0

    @staticmethod
    def _record_id(key: Key) -> _RecordId:
        return key.namespace, key.encoded_path

    def lookup(self, project_id: str, key: Key) -> Tuple[Optional[Entity], int]:
        """Fetch an entity by key."""
        with self._lock:
            record = self._projects[project_id].records.get(self._record_id(key))
            if record is None:
                return None, 0
            return Entity(record.key, **copy.deepcopy(record.properties)), record.version

    def run_query(self, project_id: str, query: Query) -> QueryResults:
        """Run one page of a query."""
        start_after = query.start_after()
        prefix = query.ancestor.encoded_path + PATH_SEPARATOR if query.ancestor else None

        with self._lock:
            matches = sorted(
                (
                    record
                    for (namespace, path), record in self._projects[project_id].records.items()
                    if namespace == query.namespace
                    and record.key.kind == query.kind
                    and (prefix is None or path.startswith(prefix))
                    and (start_after is None or path > start_after)
                ),
                key=lambda r: r.key.encoded_path,
            )

            more_results = False
            if query.limit is not None and len(matches) > query.limit:
                matches = matches[: query.limit]
                more_results = True

            items: List = [
                r.key if query.keys_only else Entity(r.key, **copy.deepcopy(r.properties))
                for r in matches
            ]

        cursor_after = encode_cursor(matches[-1].key.encoded_path) if matches else None
        return QueryResults(items=items, cursor_after=cursor_after, more_results=more_results)

    def commit(
        self,
        project_id: str,
        mutations: List[Mutation],
        read_versions: Dict[Key, int],
    ) -> List[Key]:
        """Apply mutations atomically."""
        with self._lock:
            project = self._projects[project_id]

            conflicts = []
            for key, version in read_versions.items():
                record = project.records.get(self._record_id(key))
                current = record.version if record is not None else 0
                if current != version:
                    conflicts.append(key.encoded_path)
            if conflicts:
                raise ConcurrentModificationError(
                    f"Entities modified since read: {', '.join(conflicts)}", keys=conflicts
                )

            # Stage on a copy so a failing mutation leaves the store untouched
            staged = dict(project.records)
            next_id = project.next_id
            clock = project.clock
            allocated: List[Key] = []

            for mutation in mutations:
                key = mutation.key
                if key.is_partial:
                    key = key.completed(next_id)
                    next_id += 1
                    allocated.append(key)
                record_id = self._record_id(key)
                exists = record_id in staged

                if mutation.op is MutationOp.DELETE:
                    staged.pop(record_id, None)
                    continue
                if mutation.op is MutationOp.INSERT and exists:
                    raise EntityExistsError(key.encoded_path)
                if mutation.op is MutationOp.UPDATE and not exists:
                    raise EntityNotFoundError(key.encoded_path)

                clock += 1
                assert mutation.entity is not None
                staged[record_id] = _Record(
                    key=key,
                    properties=copy.deepcopy(dict(mutation.entity)),
                    version=clock,
                )

            project.records = staged
            project.next_id = next_id
            project.clock = clock
            self.commit_count += 1

        logger.debug(
            "Committed mutations",
            extra={"project_id": project_id, "mutations": len(mutations)},
        )
        return allocated

    def close(self) -> None:
        """Drop all data."""
        with self._lock:
            self._projects.clear()

    def entity_count(self, project_id: str, namespace: Optional[str] = None) -> int:
        """Count stored entities in a project namespace (test helper)."""
        with self._lock:
            return sum(
                1 for ns, _ in self._projects[project_id].records if ns == namespace
            )
