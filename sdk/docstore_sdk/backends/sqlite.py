"""
SQLite DocStore backend.

This module manages one SQLite database per project that stores:
- Entities with their JSON-encoded properties and versions
- Counters for id allocation and the version clock

Invariants:
    - One SQLite file per project
    - Every commit runs in a single BEGIN IMMEDIATE transaction
    - A failed commit is rolled back and leaves no partial writes
    - Versions come from a per-project clock and are never reused

How to change safely:
    - Schema migrations must be backward compatible
    - Keep path ordering identical to Key.encoded_path ordering

Table schema:
    entities:
        - namespace TEXT ('' for the default namespace)
        - kind TEXT
        - path TEXT (Key.encoded_path)
        - properties_json TEXT
        - version INTEGER
        - updated_at INTEGER (Unix ms)
        - PRIMARY KEY (namespace, path)

    counters:
        - name TEXT PRIMARY KEY ('next_id', 'clock')
        - value INTEGER
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..entity import Entity, decode_properties, encode_properties
from ..errors import (
    ConcurrentModificationError,
    EntityExistsError,
    EntityNotFoundError,
    StorageError,
)
from ..keys import PATH_SEPARATOR, Key
from ..query import Query, QueryResults, encode_cursor
from .base import Mutation, MutationOp

logger = logging.getLogger(__name__)


def _ns(namespace: str | None) -> str:
    return namespace or ""


class SqliteBackend:
    """Per-project SQLite implementation of StoreBackend.

    Thread safety:
        Each operation opens its own connection.
        SQLite serializes writers; BEGIN IMMEDIATE takes the write lock up front.

    Example:
        >>> backend = SqliteBackend("/var/lib/docstore")
        >>> client = DatastoreClient(backend, "my-project", namespace="example")
        >>> client.get(client.key("User", "alice"))
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str | Path,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the backend.

        Args:
            data_dir: Directory for SQLite database files
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.data_dir = Path(data_dir).expanduser()
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._initialized: set[str] = set()
        self._lock = threading.Lock()

    def _get_db_path(self, project_id: str) -> Path:
        """Get database file path for a project."""
        # Sanitize project_id to prevent path traversal
        safe_id = "".join(c for c in project_id if c.isalnum() or c in "-_")
        return self.data_dir / f"project_{safe_id}.db"

    def get_db_path(self, project_id: str) -> Path:
        """Get the database file path for a project."""
        return self._get_db_path(project_id)

    @contextmanager
    def _get_connection(self, project_id: str) -> Iterator[sqlite3.Connection]:
        """Open a configured connection, creating the database on first use.

        Raises:
            StorageError: If the database cannot be opened
        """
        db_path = self._get_db_path(project_id)

        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot open database {db_path}: {e}", project_id=project_id) from e

        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            with self._lock:
                if project_id not in self._initialized:
                    self._create_schema(conn, project_id)
                    self._initialized.add(project_id)
                    logger.info(f"Initialized project database: {project_id}")

            yield conn
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error for project {project_id}: {e}", project_id=project_id) from e
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection, project_id: str) -> None:
        """Create database schema.

        Raises:
            StorageError: If the database was written by a newer schema
        """
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS entities (
                namespace TEXT NOT NULL,
                kind TEXT NOT NULL,
                path TEXT NOT NULL,
                properties_json TEXT NOT NULL DEFAULT '{}',
                version INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                PRIMARY KEY (namespace, path)
            );

            CREATE INDEX IF NOT EXISTS idx_entities_kind ON entities(namespace, kind, path);

            CREATE TABLE IF NOT EXISTS counters (
                name TEXT PRIMARY KEY,
                value INTEGER NOT NULL
            );

            INSERT OR IGNORE INTO counters (name, value) VALUES ('next_id', 1);
            INSERT OR IGNORE INTO counters (name, value) VALUES ('clock', 0);
        """)

        stored = self._read_schema_version(conn)
        if stored > self.SCHEMA_VERSION:
            raise StorageError(
                f"Database schema version {stored} is newer than supported version {self.SCHEMA_VERSION}",
                project_id=project_id,
            )
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (self.SCHEMA_VERSION, int(time.time() * 1000)),
        )

    @staticmethod
    def _read_schema_version(conn: sqlite3.Connection) -> int:
        return conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()[0]

    def get_schema_version(self, project_id: str) -> int:
        """Get the schema version recorded in a project database."""
        with self._get_connection(project_id) as conn:
            return self._read_schema_version(conn)

    def lookup(self, project_id: str, key: Key) -> tuple[Entity | None, int]:
        """Fetch an entity by key."""
        with self._get_connection(project_id) as conn:
            row = conn.execute(
                "SELECT properties_json, version FROM entities WHERE namespace = ? AND path = ?",
                (_ns(key.namespace), key.encoded_path),
            ).fetchone()
            if not row:
                return None, 0
            return Entity(key, **decode_properties(row["properties_json"])), row["version"]

    def run_query(self, project_id: str, query: Query) -> QueryResults:
        """Run one page of a query."""
        sql = "SELECT path, properties_json FROM entities WHERE namespace = ? AND kind = ?"
        params: list[Any] = [_ns(query.namespace), query.kind]

        if query.ancestor is not None:
            prefix = query.ancestor.encoded_path + PATH_SEPARATOR
            sql += " AND substr(path, 1, ?) = ?"
            params.extend([len(prefix), prefix])

        start_after = query.start_after()
        if start_after is not None:
            sql += " AND path > ?"
            params.append(start_after)

        sql += " ORDER BY path"
        if query.limit is not None:
            # One extra row tells us whether more results remain
            sql += " LIMIT ?"
            params.append(query.limit + 1)

        with self._get_connection(project_id) as conn:
            rows = conn.execute(sql, params).fetchall()

        more_results = False
        if query.limit is not None and len(rows) > query.limit:
            rows = rows[: query.limit]
            more_results = True

        items: list[Any] = []
        for row in rows:
            key = Key.from_encoded_path(row["path"], namespace=query.namespace)
            if query.keys_only:
                items.append(key)
            else:
                items.append(Entity(key, **decode_properties(row["properties_json"])))

        cursor_after = encode_cursor(rows[-1]["path"]) if rows else None
        return QueryResults(items=items, cursor_after=cursor_after, more_results=more_results)

    def commit(
        self,
        project_id: str,
        mutations: list[Mutation],
        read_versions: dict[Key, int],
    ) -> list[Key]:
        """Apply mutations atomically.

        Args:
            project_id: Project identifier
            mutations: Writes in buffered order
            read_versions: Versions observed by the transaction's reads

        Returns:
            Keys allocated for partial-key inserts
        """
        now = int(time.time() * 1000)
        allocated: list[Key] = []

        with self._get_connection(project_id) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                conflicts = []
                for key, version in read_versions.items():
                    row = conn.execute(
                        "SELECT version FROM entities WHERE namespace = ? AND path = ?",
                        (_ns(key.namespace), key.encoded_path),
                    ).fetchone()
                    current = row["version"] if row else 0
                    if current != version:
                        conflicts.append(key.encoded_path)
                if conflicts:
                    raise ConcurrentModificationError(
                        f"Entities modified since read: {', '.join(conflicts)}", keys=conflicts
                    )

                next_id = self._counter(conn, "next_id")
                clock = self._counter(conn, "clock")

                for mutation in mutations:
                    key = mutation.key
                    if key.is_partial:
                        key = key.completed(next_id)
                        next_id += 1
                        allocated.append(key)
                    clock = self._apply(conn, mutation.op, key, mutation.entity, clock, now)

                conn.execute("UPDATE counters SET value = ? WHERE name = 'next_id'", (next_id,))
                conn.execute("UPDATE counters SET value = ? WHERE name = 'clock'", (clock,))

                conn.execute("COMMIT")

            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.debug(
            "Committed mutations",
            extra={
                "project_id": project_id,
                "mutations": len(mutations),
                "allocated": len(allocated),
            },
        )
        return allocated

    @staticmethod
    def _counter(conn: sqlite3.Connection, name: str) -> int:
        return conn.execute("SELECT value FROM counters WHERE name = ?", (name,)).fetchone()[0]

    def _apply(
        self,
        conn: sqlite3.Connection,
        op: MutationOp,
        key: Key,
        entity: Entity | None,
        clock: int,
        now: int,
    ) -> int:
        """Apply one mutation inside an open transaction; returns the new clock."""
        namespace, path = _ns(key.namespace), key.encoded_path

        if op is MutationOp.DELETE:
            conn.execute("DELETE FROM entities WHERE namespace = ? AND path = ?", (namespace, path))
            return clock

        assert entity is not None
        exists = (
            conn.execute(
                "SELECT 1 FROM entities WHERE namespace = ? AND path = ?", (namespace, path)
            ).fetchone()
            is not None
        )
        if op is MutationOp.INSERT and exists:
            raise EntityExistsError(path)
        if op is MutationOp.UPDATE and not exists:
            raise EntityNotFoundError(path)

        clock += 1
        conn.execute(
            """
            INSERT OR REPLACE INTO entities
            (namespace, kind, path, properties_json, version, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (namespace, key.kind, path, encode_properties(entity), clock, now),
        )
        return clock

    def close(self) -> None:
        """Nothing to release; connections are per-operation."""
        self._initialized.clear()

    def get_stats(self, project_id: str) -> dict[str, int]:
        """Get entity counts per kind for a project."""
        with self._get_connection(project_id) as conn:
            rows = conn.execute(
                "SELECT kind, COUNT(*) AS n FROM entities GROUP BY kind"
            ).fetchall()
            return {row["kind"]: row["n"] for row in rows}
