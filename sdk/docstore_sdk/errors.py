"""
Error types for DocStore SDK.

This module defines all exception types raised by the SDK:
- DocStoreError: Base exception
- InvalidKeyError: Malformed key or key path
- InvalidCursorError: Unparseable query cursor
- EntityExistsError: Insert of a key that already exists
- EntityNotFoundError: Update of a key that does not exist
- ConcurrentModificationError: Optimistic concurrency conflict at commit
- TransactionStateError: Operation on a finished transaction
- StorageError: Backend I/O failure

Invariants:
    - All errors inherit from DocStoreError
    - Errors include context for debugging
    - A failed commit never leaves partial writes behind
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DocStoreError(Exception):
    """Base exception for all DocStore SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCSTORE_ERROR"
        self.details = details or {}


class InvalidKeyError(DocStoreError):
    """Key is malformed.

    Raised when:
    - Kind is empty
    - Identifier is neither a name nor a positive id
    - Parent key is partial
    - A partial key is used where a complete key is required
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, code="INVALID_KEY", details={"key": key})
        self.key = key


class InvalidCursorError(DocStoreError):
    """Query cursor could not be decoded."""

    def __init__(self, message: str, cursor: Optional[str] = None) -> None:
        super().__init__(message, code="INVALID_CURSOR", details={"cursor": cursor})
        self.cursor = cursor


class EntityExistsError(DocStoreError):
    """Insert failed because an entity with the same key exists."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Entity already exists: {key}",
            code="ALREADY_EXISTS",
            details={"key": key},
        )
        self.key = key


class EntityNotFoundError(DocStoreError):
    """Update failed because the entity does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Entity not found: {key}",
            code="NOT_FOUND",
            details={"key": key},
        )
        self.key = key


class ConcurrentModificationError(DocStoreError):
    """Commit rejected because entities read by the transaction changed.

    Attributes:
        keys: Encoded paths of the entities whose version changed
    """

    def __init__(self, message: str, keys: Optional[List[str]] = None) -> None:
        super().__init__(
            message,
            code="CONCURRENT_MODIFICATION",
            details={"keys": keys or []},
        )
        self.keys = keys or []


class TransactionStateError(DocStoreError):
    """Operation attempted on a transaction that is no longer active."""

    def __init__(self, message: str, state: Optional[str] = None) -> None:
        super().__init__(message, code="TRANSACTION_STATE", details={"state": state})
        self.state = state


class StorageError(DocStoreError):
    """Backend storage failed.

    Raised when:
    - Database file cannot be opened
    - SQL execution fails
    """

    def __init__(self, message: str, project_id: Optional[str] = None) -> None:
        super().__init__(message, code="STORAGE_ERROR", details={"project_id": project_id})
        self.project_id = project_id
