"""
Queries and paginated results for DocStore.

Queries select entities of one kind in one namespace, optionally restricted
to the descendants of an ancestor key. Results come back ordered by key path;
there is no property ordering, so callers that need another order sort
client-side.

Pagination:
    Each page carries cursor_after, an opaque token that resumes the scan
    after the last returned item. Pass it back with Query.with_cursor().
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field, replace
from typing import Iterator, List, Optional, Union

from .entity import Entity
from .errors import InvalidCursorError, InvalidKeyError
from .keys import Key


def encode_cursor(encoded_path: str) -> str:
    """Build an opaque cursor positioned after ``encoded_path``."""
    return base64.urlsafe_b64encode(encoded_path.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> str:
    """Return the encoded key path a cursor points after.

    Raises:
        InvalidCursorError: If the cursor is not a token from encode_cursor
    """
    try:
        raw = base64.b64decode(cursor.encode("ascii"), altchars=b"-_", validate=True)
        path = raw.decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidCursorError(f"Invalid query cursor: {e}", cursor=cursor) from e
    if not path:
        raise InvalidCursorError("Empty query cursor", cursor=cursor)
    return path


@dataclass(frozen=True)
class Query:
    """A kind query.

    Attributes:
        kind: Entity kind to scan
        namespace: Namespace to scan
        ancestor: Only return strict descendants of this key
        keys_only: Return keys instead of entities
        limit: Maximum results per page (None = unbounded)
        start_cursor: Resume after this cursor
    """

    kind: str
    namespace: Optional[str] = None
    ancestor: Optional[Key] = None
    keys_only: bool = False
    limit: Optional[int] = None
    start_cursor: Optional[str] = None

    def __post_init__(self) -> None:
        if self.ancestor is not None and self.ancestor.is_partial:
            raise InvalidKeyError("Ancestor key must be complete", key=repr(self.ancestor))
        if self.limit is not None and self.limit <= 0:
            raise ValueError(f"Query limit must be positive, got {self.limit}")

    def with_cursor(self, cursor: Optional[str]) -> Query:
        """Return a copy of this query starting after ``cursor``."""
        return replace(self, start_cursor=cursor)

    def start_after(self) -> Optional[str]:
        """Encoded key path to resume after, if a cursor is set."""
        if self.start_cursor is None:
            return None
        return decode_cursor(self.start_cursor)


@dataclass
class QueryResults:
    """One page of query results.

    Attributes:
        items: Entities, or keys for a keys-only query
        cursor_after: Cursor after the last item (None for an empty page)
        more_results: Whether the scan stopped because of the limit
    """

    items: List[Union[Entity, Key]] = field(default_factory=list)
    cursor_after: Optional[str] = None
    more_results: bool = False

    def __iter__(self) -> Iterator[Union[Entity, Key]]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
